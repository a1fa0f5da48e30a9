"""
Typed Exception Hierarchy for the Grants Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger must react to a refused assignment differently from a
malformed month-year tag, and neither should be discovered by parsing a
message string.  Every error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (ids, amounts, offending values)

Example - WRONG way to handle errors:
    try:
        ledger.assign_mou_to_grant(...)
    except Exception as e:
        if "already assigned" in str(e):  # FRAGILE
            ...

Example - RIGHT way:
    try:
        ledger.assign_mou_to_grant(...)
    except MouAlreadyAssignedError as e:
        api_response(code=e.code, mou_id=e.mou_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from GrantLedgerError:

    GrantLedgerError (base)
    |
    +-- PreconditionError            (rejected before any write; fix input, retry)
    |   +-- MissingFieldError
    |   +-- MouNotFoundError
    |   +-- GrantNotFoundError
    |   +-- DonorNotFoundError
    |   +-- DonorShortCodeMissingError
    |   +-- ProjectNotFoundError
    |   +-- CycleNotFoundError
    |   +-- StateAllocationNotFoundError
    |   +-- MouAlreadyAssignedError
    |   +-- MouNotAssignedError
    |   +-- NoCommittedProjectsError
    |   +-- NoAssignedProjectsError
    |   +-- ProjectAlreadyLinkedError
    |   +-- ProjectNotEligibleError
    |   +-- ProjectLinkedToMouError
    |   +-- InvalidFundingTransitionError
    |   +-- GrantAlreadyIncludedError
    |   +-- CycleClosedError
    |   +-- AllocationHasCommittedProjectsError
    |
    +-- ValidationError              (malformed values; no side effect)
    |   +-- InvalidMonthYearError
    |   +-- InvalidAmountError
    |   +-- InvalidCycleTypeError
    |   +-- InvalidCycleStatusError
    |
    +-- ConcurrencyError
        +-- SequenceInvariantError

===============================================================================
WHAT IS NOT AN EXCEPTION
===============================================================================

1. Partial batch failure.  One project failing to persist during an
   assignment is recorded in the BatchReport (grants_kernel.domain.dtos)
   with a per-project outcome.  The batch continues.

2. Negative remaining.  Over-commitment and over-allocation are valid
   business state.  PoolFigures.is_over_committed flags them for display.

===============================================================================
"""


class GrantLedgerError(Exception):
    """
    Base exception for all grants kernel errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "GRANT_LEDGER_ERROR"


# Precondition errors


class PreconditionError(GrantLedgerError):
    """Base for errors raised before any write; safe to retry after fixing input."""

    code: str = "PRECONDITION_FAILED"


class MissingFieldError(PreconditionError):
    """A required caller-supplied field is empty."""

    code: str = "MISSING_FIELD"

    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(f"Missing required field: {field_name}")


class MouNotFoundError(PreconditionError):
    """MOU does not exist."""

    code: str = "MOU_NOT_FOUND"

    def __init__(self, mou_id: str):
        self.mou_id = mou_id
        super().__init__(f"MOU not found: {mou_id}")


class GrantNotFoundError(PreconditionError):
    """No grant matches the (grant code, donor) pair."""

    code: str = "GRANT_NOT_FOUND"

    def __init__(self, grant_code: str, donor_name: str | None = None):
        self.grant_code = grant_code
        self.donor_name = donor_name
        if donor_name:
            super().__init__(f"Grant not found: {grant_code} (donor {donor_name})")
        else:
            super().__init__(f"Grant not found: {grant_code}")


class DonorNotFoundError(PreconditionError):
    """Donor does not exist."""

    code: str = "DONOR_NOT_FOUND"

    def __init__(self, donor_ref: str):
        self.donor_ref = donor_ref
        super().__init__(f"Donor not found: {donor_ref}")


class DonorShortCodeMissingError(PreconditionError):
    """Donor has no short code, so no serial can be built for it."""

    code: str = "DONOR_SHORT_CODE_MISSING"

    def __init__(self, donor_name: str):
        self.donor_name = donor_name
        super().__init__(f"Donor short name not found for donor {donor_name}")


class ProjectNotFoundError(PreconditionError):
    """One or more workplans do not exist."""

    code: str = "PROJECT_NOT_FOUND"

    def __init__(self, project_ids: list[str]):
        self.project_ids = project_ids
        super().__init__(f"Projects not found: {', '.join(project_ids)}")


class CycleNotFoundError(PreconditionError):
    """Distribution cycle does not exist."""

    code: str = "CYCLE_NOT_FOUND"

    def __init__(self, cycle_id: str):
        self.cycle_id = cycle_id
        super().__init__(f"Distribution cycle not found: {cycle_id}")


class StateAllocationNotFoundError(PreconditionError):
    """State allocation row does not exist."""

    code: str = "STATE_ALLOCATION_NOT_FOUND"

    def __init__(self, allocation_id: str):
        self.allocation_id = allocation_id
        super().__init__(f"State allocation not found: {allocation_id}")


class MouAlreadyAssignedError(PreconditionError):
    """MOU already carries grant serials; use reassignment instead."""

    code: str = "MOU_ALREADY_ASSIGNED"

    def __init__(self, mou_id: str, operation: str = "assign"):
        self.mou_id = mou_id
        self.operation = operation
        super().__init__(
            f"Cannot {operation}: MOU {mou_id} is already assigned to a grant"
        )


class MouNotAssignedError(PreconditionError):
    """Reassignment requested for an MOU that was never assigned."""

    code: str = "MOU_NOT_ASSIGNED"

    def __init__(self, mou_id: str):
        self.mou_id = mou_id
        super().__init__(f"MOU {mou_id} is not assigned to a grant")


class NoCommittedProjectsError(PreconditionError):
    """MOU has no committed workplans to assign."""

    code: str = "NO_COMMITTED_PROJECTS"

    def __init__(self, mou_id: str):
        self.mou_id = mou_id
        super().__init__(f"No committed projects found for MOU {mou_id}")


class NoAssignedProjectsError(PreconditionError):
    """MOU has no previously assigned workplans to reassign."""

    code: str = "NO_ASSIGNED_PROJECTS"

    def __init__(self, mou_id: str):
        self.mou_id = mou_id
        super().__init__(f"No assigned projects found for MOU {mou_id}")


class ProjectAlreadyLinkedError(PreconditionError):
    """Workplans are already linked to an MOU."""

    code: str = "PROJECT_ALREADY_LINKED"

    def __init__(self, project_ids: list[str]):
        self.project_ids = project_ids
        super().__init__(
            f"Projects already linked to an MOU: {', '.join(project_ids)}"
        )


class ProjectNotEligibleError(PreconditionError):
    """Workplans are not committed and approved."""

    code: str = "PROJECT_NOT_ELIGIBLE"

    def __init__(self, project_ids: list[str]):
        self.project_ids = project_ids
        super().__init__(
            f"All projects must be committed and approved: {', '.join(project_ids)}"
        )


class ProjectLinkedToMouError(PreconditionError):
    """Workplan belongs to an MOU or holds a serial; its funding cannot be rolled back."""

    code: str = "PROJECT_LINKED_TO_MOU"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(
            f"Cannot de-commit project {project_id}: it is linked to an MOU or holds a serial"
        )


class InvalidFundingTransitionError(PreconditionError):
    """Workplan funding status does not permit the requested move."""

    code: str = "INVALID_FUNDING_TRANSITION"

    def __init__(self, project_id: str, from_status: str, to_status: str):
        self.project_id = project_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Project {project_id} cannot move from {from_status} to {to_status}"
        )


class GrantAlreadyIncludedError(PreconditionError):
    """A cycle draws from exactly one grant inclusion."""

    code: str = "GRANT_ALREADY_INCLUDED"

    def __init__(self, cycle_id: str):
        self.cycle_id = cycle_id
        super().__init__(f"Cycle {cycle_id} already includes a grant")


class CycleClosedError(PreconditionError):
    """Distribution cycle is closed; its funding structure is frozen."""

    code: str = "CYCLE_CLOSED"

    def __init__(self, cycle_id: str, operation: str):
        self.cycle_id = cycle_id
        self.operation = operation
        super().__init__(f"Cannot {operation}: cycle {cycle_id} is closed")


class AllocationHasCommittedProjectsError(PreconditionError):
    """A state allocation still backs committed workplans."""

    code: str = "ALLOCATION_HAS_COMMITTED_PROJECTS"

    def __init__(self, allocation_id: str, project_ids: list[str]):
        self.allocation_id = allocation_id
        self.project_ids = project_ids
        super().__init__(
            f"Cannot delete allocation {allocation_id} with committed projects: "
            f"{', '.join(project_ids)}"
        )


# Validation errors


class ValidationError(GrantLedgerError):
    """Base for malformed input; rejected with no side effect."""

    code: str = "VALIDATION_ERROR"


class InvalidMonthYearError(ValidationError):
    """Month-year tag is not MMYY with a month in 01-12."""

    code: str = "INVALID_MONTH_YEAR"

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"MMYY must be 4 digits with a month 01-12, got {value!r}")


class InvalidAmountError(ValidationError):
    """Monetary amount or count is zero, negative, or unparseable."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field_name: str, value: object):
        self.field_name = field_name
        self.value = str(value)
        super().__init__(f"Invalid {field_name}: {value!r} (must be positive)")


class InvalidCycleTypeError(ValidationError):
    """Cycle type is unknown or its tranche count is inconsistent."""

    code: str = "INVALID_CYCLE_TYPE"

    def __init__(self, cycle_type: str, tranche_count: int | None):
        self.cycle_type = cycle_type
        self.tranche_count = tranche_count
        super().__init__(
            f"Invalid cycle type {cycle_type!r} with tranche_count={tranche_count}"
        )


class InvalidCycleStatusError(ValidationError):
    """Cycle or tranche status is not open or closed."""

    code: str = "INVALID_CYCLE_STATUS"

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Invalid cycle status {status!r} (expected open or closed)")


# Concurrency errors


class ConcurrencyError(GrantLedgerError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class SequenceInvariantError(ConcurrencyError):
    """Grant counter failed to advance by exactly the requested block."""

    code: str = "SEQUENCE_INVARIANT_VIOLATION"

    def __init__(self, grant_id: str, old_max: int, new_max: int, count: int):
        self.grant_id = grant_id
        self.old_max = old_max
        self.new_max = new_max
        self.count = count
        super().__init__(
            f"Sequence for grant {grant_id} moved {old_max} -> {new_max}, "
            f"expected an advance of {count}"
        )
