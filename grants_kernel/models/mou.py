"""
Module: grants_kernel.models.mou
Responsibility: ORM persistence for memoranda of understanding (MOUs), the
    partner agreements that bundle workplans, together with their derived
    document fields.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - total_amount and the aggregated_* fields are derived.  Only
      LinkageService writes them, always from a fresh budget rollup of the
      currently linked workplans.
    - document_revision increases on every linkage change and regeneration.
      LinkageService bumps it under the MOU row lock, which serializes
      concurrent linkage edits on the same MOU.
    - Whether an MOU is assigned is never stored here.  It is derived from
      the serial_status of its linked workplans.

Failure modes:
    - IntegrityError on duplicate mou_code (uq_mou_code).

Audit relevance:
    document_checksum is the SHA-256 of the canonical rollup; two
    regenerations over unchanged workplans yield the same checksum.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import JSON, Date, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from grants_kernel.db.base import TrackedBase


class Mou(TrackedBase):
    """A partner agreement funding one or more workplans."""

    __tablename__ = "mous"

    __table_args__ = (
        UniqueConstraint("mou_code", name="uq_mou_code"),
    )

    mou_code: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    partner_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    err_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    state: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    # Derived document fields
    total_amount: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    aggregated_objectives: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    aggregated_beneficiaries: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    aggregated_activities: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    locations: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    beneficiary_total: Mapped[int] = mapped_column(
        nullable=False,
        default=0,
    )

    budget_table: Mapped[dict | None] = mapped_column(
        JSON,
        nullable=True,
    )

    document_checksum: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    document_revision: Mapped[int] = mapped_column(
        nullable=False,
        default=0,
    )

    # Editable overrides; no ledger invariant depends on these
    banking_details_override: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    partner_contact_override: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    err_contact_override: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    start_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )

    end_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Mou {self.mou_code} rev={self.document_revision}>"
