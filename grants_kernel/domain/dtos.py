"""
DTOs -- immutable results handed across the kernel boundary.

Responsibility:
    Defines what callers get back from the ledger: serial previews, per
    project assignment outcomes, batch reports, linkage results, and the
    read-side info records returned by selectors.

Architecture position:
    Kernel > Domain -- pure, no ORM imports.  Services convert ORM rows to
    these before returning.

Invariants enforced:
    - A BatchReport carries exactly one outcome per candidate project.
    - DETACHED outcomes always carry previous_serial, so an operator can see
      which serial a project lost.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from grants_kernel.domain.budget_rollup import MouDocument


class OutcomeStatus(str, Enum):
    ASSIGNED = "assigned"
    FAILED = "failed"
    DETACHED = "detached"


class BatchOperation(str, Enum):
    ASSIGN = "assign"
    REASSIGN = "reassign"


@dataclass(frozen=True)
class SerialAssignment:
    """One planned or issued serial."""

    project_id: UUID
    serial: str
    sequence: int
    state_code: str


@dataclass(frozen=True)
class ProjectOutcome:
    """Result of writing one project within an assignment batch."""

    project_id: UUID
    status: OutcomeStatus
    serial: str | None = None
    sequence: int | None = None
    previous_serial: str | None = None
    error_code: str | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class BatchReport:
    """
    Per-project report of an assign or reassign batch.

    Partial failure is reported here rather than raised.  first_sequence and
    last_sequence bound the block reserved on the grant counter, including
    numbers burned by failed writes.
    """

    mou_id: UUID
    grant_id: UUID
    operation: BatchOperation
    mmyy: str
    outcomes: tuple[ProjectOutcome, ...] = ()
    first_sequence: int | None = None
    last_sequence: int | None = None

    @property
    def succeeded(self) -> tuple[ProjectOutcome, ...]:
        return tuple(o for o in self.outcomes if o.status == OutcomeStatus.ASSIGNED)

    @property
    def failed(self) -> tuple[ProjectOutcome, ...]:
        return tuple(o for o in self.outcomes if o.status == OutcomeStatus.FAILED)

    @property
    def detached(self) -> tuple[ProjectOutcome, ...]:
        return tuple(o for o in self.outcomes if o.status == OutcomeStatus.DETACHED)

    @property
    def assigned_count(self) -> int:
        return len(self.succeeded)

    @property
    def is_complete(self) -> bool:
        return bool(self.outcomes) and self.assigned_count == len(self.outcomes)

    @property
    def is_total_failure(self) -> bool:
        return bool(self.outcomes) and self.assigned_count == 0


@dataclass(frozen=True)
class LinkageResult:
    """Result of adding, removing, or regenerating an MOU's projects."""

    mou_id: UUID
    changed_count: int
    total_amount: Decimal
    document: MouDocument
    document_revision: int = 0
    checksum: str | None = None


# ---------------------------------------------------------------------------
# Read-side info records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GrantInfo:
    id: UUID
    donor_id: UUID
    grant_code: str
    name: str
    sum_activity_amount: Decimal
    max_workplan_sequence: int


@dataclass(frozen=True)
class DonorInfo:
    id: UUID
    name: str
    short_code: str | None


@dataclass(frozen=True)
class MouInfo:
    id: UUID
    mou_code: str
    partner_name: str
    err_name: str
    state: str | None
    total_amount: Decimal
    document_revision: int
    document_checksum: str | None
    is_assigned: bool = False


@dataclass(frozen=True)
class ProjectInfo:
    id: UUID
    mou_id: UUID | None
    state: str | None
    locality: str | None
    err_code: str | None
    err_name: str | None
    funding_status: str
    approval_status: str
    serial_status: str
    amount: Decimal
    grant_id: UUID | None = None
    serial: str | None = None
    workplan_number: int | None = None
    previous_serial: str | None = None
    state_allocation_id: UUID | None = None
    grant_reference: str | None = None
    submitted_at: datetime | None = None


@dataclass(frozen=True)
class StateAllocationInfo:
    id: UUID
    cycle_id: UUID
    state_name: str
    amount: Decimal
    decision_no: int


@dataclass(frozen=True)
class ProjectFilter:
    """
    Filter for LedgerSelector.list_projects.  None means "any".

    freestanding=True keeps only projects with no MOU; False only linked ones.
    """

    mou_id: UUID | None = None
    grant_id: UUID | None = None
    state: str | None = None
    funding_statuses: tuple[str, ...] = ()
    serial_statuses: tuple[str, ...] = ()
    cycle_id: UUID | None = None
    freestanding: bool | None = None
    project_ids: tuple[UUID, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CycleInfo:
    id: UUID
    name: str
    year: int
    cycle_number: int
    type: str
    tranche_count: int | None
    status: str


@dataclass(frozen=True)
class TrancheInfo:
    id: UUID
    cycle_id: UUID
    tranche_no: int
    planned_cap: Decimal
    status: str
