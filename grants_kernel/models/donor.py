"""
Module: grants_kernel.models.donor
Responsibility: ORM persistence for donors, the funders that own grants.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    short_code is embedded in every serial issued against the donor's
    grants.  It must not change once a grant references the donor, otherwise
    existing serials would no longer parse back to their donor.

Failure modes:
    - IntegrityError on duplicate donor name (uq_donor_name).
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from grants_kernel.db.base import TrackedBase


class Donor(TrackedBase):
    """A funding organisation.  short_code may be missing on legacy rows."""

    __tablename__ = "donors"

    __table_args__ = (
        UniqueConstraint("name", name="uq_donor_name"),
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    short_code: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Donor {self.name} ({self.short_code})>"
