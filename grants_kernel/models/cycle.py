"""
Module: grants_kernel.models.cycle
Responsibility: ORM persistence for distribution cycles, the grant amount
    each cycle draws, and the per-state allocations decided within a cycle.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - A cycle includes exactly one grant (uq_cycle_inclusion).
    - Tranche numbers are unique per cycle (uq_cycle_tranche_no).
    - A closed cycle accepts no structural change (checked by FundingService).
    - tranche_count is set iff type is TRANCHES (checked by FundingService).
    - Several allocation rounds (decision_no) may target the same state.
      Their amounts are summed when computing state figures.

Failure modes:
    - IntegrityError on a second inclusion row for the same cycle, or a
      repeated tranche number.

Audit relevance:
    Over-inclusion and over-allocation are accepted and surface as negative
    remaining figures rather than rejected writes.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from grants_kernel.db.base import TrackedBase, UUIDString


class CycleType(str, Enum):
    """How a cycle releases its funds."""

    ONE_OFF = "one_off"
    TRANCHES = "tranches"
    EMERGENCY = "emergency"


class CycleStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class DistributionCycle(TrackedBase):
    """A time-boxed funding decision that allocates money to states."""

    __tablename__ = "distribution_cycles"

    __table_args__ = (
        Index("idx_cycle_year", "year"),
        Index("idx_cycle_status", "status"),
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    year: Mapped[int] = mapped_column(
        nullable=False,
    )

    cycle_number: Mapped[int] = mapped_column(
        nullable=False,
    )

    type: Mapped[CycleType] = mapped_column(
        String(20),
        nullable=False,
    )

    tranche_count: Mapped[int | None] = mapped_column(
        nullable=True,
    )

    status: Mapped[CycleStatus] = mapped_column(
        String(20),
        nullable=False,
        default=CycleStatus.OPEN,
    )

    def __repr__(self) -> str:
        return f"<DistributionCycle {self.name} ({self.year}/{self.cycle_number})>"


class CycleGrantInclusion(TrackedBase):
    """The amount of one grant a cycle draws from."""

    __tablename__ = "cycle_grant_inclusions"

    __table_args__ = (
        UniqueConstraint("cycle_id", name="uq_cycle_inclusion"),
        Index("idx_inclusion_grant", "grant_id"),
    )

    cycle_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("distribution_cycles.id"),
        nullable=False,
    )

    grant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("grants.id"),
        nullable=False,
    )

    amount_included: Mapped[Decimal] = mapped_column(
        nullable=False,
    )


class StateAllocation(TrackedBase):
    """One allocation round of cycle money to a state."""

    __tablename__ = "state_allocations"

    __table_args__ = (
        Index("idx_allocation_cycle", "cycle_id"),
        Index("idx_allocation_state", "state_name"),
    )

    cycle_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("distribution_cycles.id"),
        nullable=False,
    )

    state_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    decision_no: Mapped[int] = mapped_column(
        nullable=False,
        default=1,
    )

    def __repr__(self) -> str:
        return f"<StateAllocation {self.state_name} {self.amount} (decision {self.decision_no})>"


class CycleTranche(TrackedBase):
    """One release of a tranche cycle, with its planned cap."""

    __tablename__ = "cycle_tranches"

    __table_args__ = (
        UniqueConstraint("cycle_id", "tranche_no", name="uq_cycle_tranche_no"),
    )

    cycle_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("distribution_cycles.id"),
        nullable=False,
    )

    tranche_no: Mapped[int] = mapped_column(
        nullable=False,
    )

    planned_cap: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    status: Mapped[CycleStatus] = mapped_column(
        String(20),
        nullable=False,
        default=CycleStatus.CLOSED,
    )

    def __repr__(self) -> str:
        return f"<CycleTranche {self.tranche_no} cap={self.planned_cap} {self.status}>"
