"""
Module: grants_kernel.models.grant
Responsibility: ORM persistence for grants and their per-grant serial counter.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - max_workplan_sequence is monotonic.  It starts at 0 and is only ever
      advanced by GrantSequenceService under a row lock.  No code path
      decrements it, including reassignment away from the grant.
    - grant_code is unique per donor (uq_grant_code_donor).

Failure modes:
    - IntegrityError on duplicate (donor_id, grant_code).

Audit relevance:
    The counter is the high-water mark of every serial ever issued for the
    grant.  Gaps below it are permanent and expected after failed writes.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from grants_kernel.db.base import TrackedBase, UUIDString


class Grant(TrackedBase):
    """
    A donor grant with a nominal total and a serial counter.

    A grant's activities are not stored here.  They are the workplans whose
    grant_id points at this row.
    """

    __tablename__ = "grants"

    __table_args__ = (
        UniqueConstraint("donor_id", "grant_code", name="uq_grant_code_donor"),
        Index("idx_grant_code", "grant_code"),
    )

    donor_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("donors.id"),
        nullable=False,
    )

    grant_code: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Nominal grant total
    sum_activity_amount: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    # Highest serial sequence ever issued for this grant
    max_workplan_sequence: Mapped[int] = mapped_column(
        nullable=False,
        default=0,
    )

    def __repr__(self) -> str:
        return f"<Grant {self.grant_code} max_seq={self.max_workplan_sequence}>"
