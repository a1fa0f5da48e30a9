"""
AssignmentService -- assigns an MOU's workplans to a grant with serials.

Responsibility:
    ``assign`` gives every committed, approved workplan of an unassigned MOU a fresh
    serial on the chosen grant.  ``reassign`` moves an assigned MOU's
    workplans to another grant (or the same grant with a new month tag),
    taking a fresh block from the target grant's counter.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by GrantLedgerService, which owns the transaction.

Invariants enforced:
    - All inputs are checked, and every precondition is evaluated, before
      the first write.  A missing grant or donor writes nothing.
    - Serials for the whole batch come from one atomic counter block, in
      submission order.
    - Each workplan is written inside its own savepoint.  One failed write
      rolls back only that workplan; its reserved number is burned, never
      reissued.
    - Reassignment never decrements the old grant's counter.  It detaches
      (a) and writes (b) in separate savepoints; a failure between them is
      reported as DETACHED with the previous serial, and the next reassign
      picks the workplan up again.
    - An assigned MOU cannot be assigned again; callers must reassign.

Failure modes:
    - MissingFieldError, InvalidMonthYearError: bad input, nothing read.
    - MouNotFoundError, MouAlreadyAssignedError, MouNotAssignedError,
      NoCommittedProjectsError, NoAssignedProjectsError, DonorNotFoundError,
      GrantNotFoundError, DonorShortCodeMissingError: nothing written.
    - Per-workplan database or ledger errors: recorded in the BatchReport.

Audit relevance:
    Every batch logs ``mou_assignment_completed`` with counts and the
    reserved sequence range; each failed workplan logs
    ``project_assignment_failed`` with the exception.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from grants_kernel.domain.dtos import (
    BatchOperation,
    BatchReport,
    OutcomeStatus,
    ProjectOutcome,
    SerialAssignment,
)
from grants_kernel.domain.serial import validate_mmyy
from grants_kernel.domain.settings import LedgerSettings
from grants_kernel.exceptions import (
    DonorNotFoundError,
    DonorShortCodeMissingError,
    GrantLedgerError,
    GrantNotFoundError,
    MissingFieldError,
    MouAlreadyAssignedError,
    MouNotAssignedError,
    MouNotFoundError,
    NoAssignedProjectsError,
    NoCommittedProjectsError,
)
from grants_kernel.logging_config import LogContext, get_logger
from grants_kernel.models import ApprovalStatus, Donor, FundingStatus, Grant, Mou, Workplan
from grants_kernel.selectors.ledger_selector import (
    HOLDS_SERIAL,
    LedgerSelector,
    order_workplans,
)
from grants_kernel.selectors.reference_selector import ReferenceSelector
from grants_kernel.services.base import BaseService
from grants_kernel.services.project_service import ProjectService
from grants_kernel.services.serial_allocator import SerialAllocator

logger = get_logger("services.assignment")

# Errors a single workplan write may raise without aborting the batch
PROJECT_WRITE_ERRORS = (SQLAlchemyError, GrantLedgerError)


def check_assignment_inputs(grant_code: str, donor_name: str, mmyy: str) -> None:
    """Presence first, then MMYY shape.  Runs before any query."""
    for field_name, value in (
        ("grant_code", grant_code),
        ("donor_name", donor_name),
        ("mmyy", mmyy),
    ):
        if value is None or not str(value).strip():
            raise MissingFieldError(field_name)
    validate_mmyy(mmyy)


class AssignmentService(BaseService[Workplan]):
    def __init__(
        self,
        session: Session,
        settings: LedgerSettings | None = None,
        project_service: ProjectService | None = None,
    ):
        super().__init__(session)
        self._settings = settings or LedgerSettings()
        self._projects = project_service or ProjectService(session)
        self._allocator = SerialAllocator(session, self._settings)
        self._selector = LedgerSelector(session, self._settings.state_aliases)
        self._references = ReferenceSelector(session, self._settings.state_aliases)

    # -- lookups ------------------------------------------------------------

    def _lock_mou(self, mou_id: UUID) -> Mou:
        mou = self.session.execute(
            select(Mou).where(Mou.id == mou_id).with_for_update()
        ).scalar_one_or_none()
        if mou is None:
            raise MouNotFoundError(str(mou_id))
        return mou

    def resolve_grant(self, grant_code: str, donor_name: str) -> tuple[Grant, str]:
        """
        Find the grant by (code, donor name) and the donor's short code.

        Raises:
            DonorNotFoundError, GrantNotFoundError, DonorShortCodeMissingError
        """
        donor = self.session.execute(
            select(Donor).where(Donor.name == donor_name)
        ).scalar_one_or_none()
        if donor is None:
            raise DonorNotFoundError(donor_name)
        grant = self.session.execute(
            select(Grant).where(Grant.donor_id == donor.id, Grant.grant_code == grant_code)
        ).scalar_one_or_none()
        if grant is None:
            raise GrantNotFoundError(grant_code, donor_name)
        short_code = self._references.donor_short_code(donor.id)
        if short_code is None:
            raise DonorShortCodeMissingError(donor.name)
        return grant, short_code

    def committed_projects(self, mou_id: UUID) -> list[Workplan]:
        """Assignment candidates: committed and approved, in submission order."""
        rows = self.session.execute(
            select(Workplan).where(
                Workplan.mou_id == mou_id,
                Workplan.funding_status == FundingStatus.COMMITTED.value,
                Workplan.approval_status == ApprovalStatus.APPROVED.value,
            )
        ).scalars()
        return order_workplans(list(rows))

    def serial_holding_projects(self, mou_id: UUID) -> list[Workplan]:
        rows = self.session.execute(
            select(Workplan).where(
                Workplan.mou_id == mou_id,
                Workplan.serial_status.in_(HOLDS_SERIAL),
            )
        ).scalars()
        return order_workplans(list(rows))

    # -- per-project writes -------------------------------------------------

    def _write_serial(
        self,
        grant_id: UUID,
        assignment: SerialAssignment,
        actor_id: UUID,
        previous_serial: str | None = None,
    ) -> ProjectOutcome:
        """Write one serial in its own savepoint; errors propagate to the batch loop."""
        with self.session.begin_nested():
            self._projects.update_project_serial(
                assignment.project_id,
                grant_id,
                assignment.serial,
                assignment.sequence,
                actor_id,
            )
        return ProjectOutcome(
            project_id=assignment.project_id,
            status=OutcomeStatus.ASSIGNED,
            serial=assignment.serial,
            sequence=assignment.sequence,
            previous_serial=previous_serial,
        )

    @staticmethod
    def _failure(
        assignment: SerialAssignment,
        status: OutcomeStatus,
        exc: Exception,
        previous_serial: str | None,
    ) -> ProjectOutcome:
        logger.error(
            "project_assignment_failed",
            extra={
                "project_id": str(assignment.project_id),
                "serial": assignment.serial,
                "outcome": status.value,
                "previous_serial": previous_serial,
            },
            exc_info=exc,
        )
        return ProjectOutcome(
            project_id=assignment.project_id,
            status=status,
            sequence=assignment.sequence,
            previous_serial=previous_serial,
            error_code=exc.code if isinstance(exc, GrantLedgerError) else type(exc).__name__,
            error_message=str(exc),
        )

    def _report(
        self,
        operation: BatchOperation,
        mou_id: UUID,
        grant_id: UUID,
        mmyy: str,
        assignments: list[SerialAssignment],
        outcomes: list[ProjectOutcome],
    ) -> BatchReport:
        report = BatchReport(
            mou_id=mou_id,
            grant_id=grant_id,
            operation=operation,
            mmyy=mmyy,
            outcomes=tuple(outcomes),
            first_sequence=assignments[0].sequence if assignments else None,
            last_sequence=assignments[-1].sequence if assignments else None,
        )
        log = logger.info if report.is_complete else logger.warning
        log(
            "mou_assignment_completed",
            extra={
                "operation": operation.value,
                "project_count": len(outcomes),
                "assigned_count": report.assigned_count,
                "failed_count": len(report.failed),
                "detached_count": len(report.detached),
                "first_sequence": report.first_sequence,
                "last_sequence": report.last_sequence,
            },
        )
        return report

    # -- operations ---------------------------------------------------------

    def assign(
        self,
        mou_id: UUID,
        grant_code: str,
        donor_name: str,
        mmyy: str,
        actor_id: UUID,
    ) -> BatchReport:
        """
        Assign every committed, approved workplan of an unassigned MOU to a grant.

        Postconditions:
            - The grant counter advanced by the number of candidates.
            - Each succeeded workplan holds grant_id, serial, workplan_number,
              serial_status=assigned and approval_status=active.
        """
        check_assignment_inputs(grant_code, donor_name, mmyy)
        grant_code, donor_name = grant_code.strip(), donor_name.strip()

        self._lock_mou(mou_id)
        if self._selector.is_mou_assigned(mou_id):
            raise MouAlreadyAssignedError(str(mou_id))
        candidates = self.committed_projects(mou_id)
        if not candidates:
            raise NoCommittedProjectsError(str(mou_id))
        grant, donor_code = self.resolve_grant(grant_code, donor_name)

        with LogContext.bind(mou_id=str(mou_id), grant_id=str(grant.id), actor_id=str(actor_id)):
            assignments = self._allocator.allocate(
                grant.id, donor_code, candidates, mmyy, actor_id
            )
            outcomes = []
            for assignment in assignments:
                try:
                    outcomes.append(self._write_serial(grant.id, assignment, actor_id))
                except PROJECT_WRITE_ERRORS as exc:
                    outcomes.append(
                        self._failure(assignment, OutcomeStatus.FAILED, exc, None)
                    )
            return self._report(
                BatchOperation.ASSIGN, mou_id, grant.id, mmyy, assignments, outcomes
            )

    def reassign(
        self,
        mou_id: UUID,
        grant_code: str,
        donor_name: str,
        mmyy: str,
        actor_id: UUID,
    ) -> BatchReport:
        """
        Move an assigned MOU's workplans to a fresh block on another grant.

        Candidates are the linked workplans that are assigned or were left
        detached by an earlier reassign.  Freestanding references are never
        touched.
        """
        check_assignment_inputs(grant_code, donor_name, mmyy)
        grant_code, donor_name = grant_code.strip(), donor_name.strip()

        self._lock_mou(mou_id)
        if not self._selector.is_mou_assigned(mou_id):
            raise MouNotAssignedError(str(mou_id))
        candidates = self.serial_holding_projects(mou_id)
        if not candidates:
            raise NoAssignedProjectsError(str(mou_id))
        grant, donor_code = self.resolve_grant(grant_code, donor_name)

        with LogContext.bind(mou_id=str(mou_id), grant_id=str(grant.id), actor_id=str(actor_id)):
            assignments = self._allocator.allocate(
                grant.id, donor_code, candidates, mmyy, actor_id
            )
            outcomes = []
            for project, assignment in zip(candidates, assignments):
                held = project.serial or project.previous_serial

                # (a) detach
                try:
                    with self.session.begin_nested():
                        previous = self._projects.detach_project_serial(project.id, actor_id)
                except PROJECT_WRITE_ERRORS as exc:
                    outcomes.append(
                        self._failure(assignment, OutcomeStatus.FAILED, exc, held)
                    )
                    continue

                # (b) write
                try:
                    outcomes.append(
                        self._write_serial(grant.id, assignment, actor_id, previous)
                    )
                except PROJECT_WRITE_ERRORS as exc:
                    outcomes.append(
                        self._failure(assignment, OutcomeStatus.DETACHED, exc, previous)
                    )
            return self._report(
                BatchOperation.REASSIGN, mou_id, grant.id, mmyy, assignments, outcomes
            )
