"""
Module: grants_kernel.models.workplan
Responsibility: ORM persistence for workplans (field projects), including
    their funding lifecycle, MOU linkage, and grant serial.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - grant_id, serial, workplan_number and serial_status are written
      together by ProjectService.  serial_status is the only source of truth
      for "is assigned"; the serial text is never inspected for that.
    - A DETACHED workplan has no grant_id and no serial, and keeps the last
      cleared serial in previous_serial for recovery.
    - A project with mou_id NULL is freestanding.
    - (grant_id, workplan_number) is unique (uq_workplan_grant_sequence),
      so the store itself refuses a second holder of an issued number.

Failure modes:
    - IntegrityError on a duplicate (grant_id, workplan_number), or if
      grant_id, mou_id or state_allocation_id points at a missing row.

Audit relevance:
    serial is the externally visible identifier on MOU documents and
    payment instructions.  previous_serial preserves the trail across
    reassignment.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from grants_kernel.db.base import TrackedBase, UUIDString


class FundingStatus(str, Enum):
    """Funding lifecycle: UNASSIGNED -> ALLOCATED -> COMMITTED (reversible by decommit)."""

    UNASSIGNED = "unassigned"
    ALLOCATED = "allocated"
    COMMITTED = "committed"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    ACTIVE = "active"
    REJECTED = "rejected"


class SerialStatus(str, Enum):
    """Grant serial state of a workplan."""

    NONE = "none"  # Never assigned
    ASSIGNED = "assigned"  # Holds grant_id and serial
    DETACHED = "detached"  # Serial cleared mid-reassignment


class Workplan(TrackedBase):
    """A field project funded through an MOU."""

    __tablename__ = "workplans"

    __table_args__ = (
        Index("idx_workplan_mou", "mou_id"),
        Index("idx_workplan_grant", "grant_id"),
        Index("idx_workplan_state", "state"),
        Index("idx_workplan_funding_status", "funding_status"),
        Index("idx_workplan_allocation", "state_allocation_id"),
        # NULL workplan_number rows never conflict
        UniqueConstraint("grant_id", "workplan_number", name="uq_workplan_grant_sequence"),
    )

    mou_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("mous.id"),
        nullable=True,
    )

    state: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    locality: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    err_code: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    err_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    funding_status: Mapped[FundingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=FundingStatus.UNASSIGNED,
    )

    approval_status: Mapped[ApprovalStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ApprovalStatus.PENDING,
    )

    # [{"activity": str, "total_cost": str|number}, ...]
    expenses: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    # [{"category": str, "planned_activity_cost": str|number, "individuals": int}, ...]
    planned_activities: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    project_objectives: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    intended_beneficiaries: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    estimated_beneficiaries: Mapped[int | None] = mapped_column(
        nullable=True,
    )

    banking_details: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    submitted_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )

    state_allocation_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("state_allocations.id"),
        nullable=True,
    )

    # Raw grant reference carried by a freestanding project before assignment
    grant_reference: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    # Grant serial, written as a unit
    grant_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("grants.id"),
        nullable=True,
    )

    serial: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    workplan_number: Mapped[int | None] = mapped_column(
        nullable=True,
    )

    serial_status: Mapped[SerialStatus] = mapped_column(
        String(20),
        nullable=False,
        default=SerialStatus.NONE,
    )

    previous_serial: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    @property
    def is_freestanding(self) -> bool:
        return self.mou_id is None

    @property
    def holds_serial(self) -> bool:
        """True while the project is assigned or detached mid-reassignment."""
        return self.serial_status in (SerialStatus.ASSIGNED, SerialStatus.DETACHED)

    def __repr__(self) -> str:
        return f"<Workplan {self.err_code} {self.funding_status} serial={self.serial}>"
