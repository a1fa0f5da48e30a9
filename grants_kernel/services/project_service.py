"""
ProjectService -- workplan funding lifecycle and serial/linkage writes.

Responsibility:
    Owns every write to a workplan's funding status, grant serial, and MOU
    link.  Assignment and linkage services go through these methods rather
    than touching Workplan columns directly.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Funding moves only along unassigned -> allocated -> committed, plus
      decommit (committed -> unassigned).  Anything else raises
      InvalidFundingTransitionError.
    - grant_id, serial, workplan_number and serial_status are written
      together.  There is no method that sets one without the others.
    - A project linked to an MOU or holding a serial cannot be decommitted.
    - Projects cannot be allocated against a closed cycle.

Failure modes:
    - ProjectNotFoundError, StateAllocationNotFoundError, CycleClosedError,
      InvalidFundingTransitionError, ProjectLinkedToMouError.
"""

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select

from grants_kernel.domain.dtos import ProjectInfo
from grants_kernel.exceptions import (
    CycleClosedError,
    InvalidFundingTransitionError,
    ProjectLinkedToMouError,
    ProjectNotFoundError,
    StateAllocationNotFoundError,
)
from grants_kernel.logging_config import get_logger
from grants_kernel.models import (
    ApprovalStatus,
    CycleStatus,
    DistributionCycle,
    FundingStatus,
    SerialStatus,
    StateAllocation,
    Workplan,
)
from grants_kernel.selectors.converters import project_info
from grants_kernel.services.base import BaseService

logger = get_logger("services.project")


class ProjectService(BaseService[Workplan]):
    """Lifecycle and serial writes for workplans.  Returns ProjectInfo DTOs."""

    def _get_by_id(self, project_id: UUID, for_update: bool = False) -> Workplan:
        if for_update:
            project = self.session.execute(
                select(Workplan)
                .where(Workplan.id == project_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        else:
            project = self.session.get(Workplan, project_id)
        if project is None:
            raise ProjectNotFoundError([str(project_id)])
        return project

    def get_many(
        self,
        project_ids: Sequence[UUID],
        for_update: bool = False,
    ) -> list[Workplan]:
        """
        Load workplans by id, preserving input order.

        With for_update=True the rows are locked (SELECT ... FOR UPDATE) and
        refreshed, so a linkage check sees the latest committed mou_id.

        Raises:
            ProjectNotFoundError: listing every id that does not exist.
        """
        if not project_ids:
            return []
        stmt = select(Workplan).where(Workplan.id.in_(project_ids))
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        rows = {row.id: row for row in self.session.execute(stmt).scalars()}
        missing = [str(pid) for pid in project_ids if pid not in rows]
        if missing:
            raise ProjectNotFoundError(missing)
        return [rows[pid] for pid in project_ids]

    @staticmethod
    def _require_status(project: Workplan, expected: FundingStatus, target: FundingStatus) -> None:
        current = FundingStatus(project.funding_status)
        if current != expected:
            raise InvalidFundingTransitionError(str(project.id), current.value, target.value)

    # -- funding lifecycle --------------------------------------------------

    def allocate(
        self,
        project_id: UUID,
        state_allocation_id: UUID,
        actor_id: UUID,
    ) -> ProjectInfo:
        """Reserve an unassigned project against a state allocation."""
        project = self._get_by_id(project_id, for_update=True)
        self._require_status(project, FundingStatus.UNASSIGNED, FundingStatus.ALLOCATED)
        allocation = self.session.get(StateAllocation, state_allocation_id)
        if allocation is None:
            raise StateAllocationNotFoundError(str(state_allocation_id))
        cycle = self.session.get(DistributionCycle, allocation.cycle_id)
        if CycleStatus(cycle.status) == CycleStatus.CLOSED:
            raise CycleClosedError(str(allocation.cycle_id), "allocate project")

        project.funding_status = FundingStatus.ALLOCATED
        project.state_allocation_id = state_allocation_id
        project.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "project_allocated",
            extra={
                "project_id": str(project_id),
                "state_allocation_id": str(state_allocation_id),
            },
        )
        return project_info(project)

    def commit(self, project_id: UUID, actor_id: UUID) -> ProjectInfo:
        """Commit an allocated project; it becomes approved."""
        project = self._get_by_id(project_id, for_update=True)
        self._require_status(project, FundingStatus.ALLOCATED, FundingStatus.COMMITTED)

        project.funding_status = FundingStatus.COMMITTED
        project.approval_status = ApprovalStatus.APPROVED
        project.updated_by_id = actor_id
        self.session.flush()

        logger.info("project_committed", extra={"project_id": str(project_id)})
        return project_info(project)

    def decommit(self, project_id: UUID, actor_id: UUID) -> ProjectInfo:
        """Move a committed, unlinked project back to unassigned / pending."""
        project = self._get_by_id(project_id, for_update=True)
        self._require_status(project, FundingStatus.COMMITTED, FundingStatus.UNASSIGNED)
        if project.mou_id is not None or project.holds_serial:
            raise ProjectLinkedToMouError(str(project_id))

        project.funding_status = FundingStatus.UNASSIGNED
        project.approval_status = ApprovalStatus.PENDING
        project.updated_by_id = actor_id
        self.session.flush()

        logger.info("project_decommitted", extra={"project_id": str(project_id)})
        return project_info(project)

    # -- serial and linkage writes ------------------------------------------

    def update_project_serial(
        self,
        project_id: UUID,
        grant_id: UUID,
        serial: str,
        sequence: int,
        actor_id: UUID,
    ) -> ProjectInfo:
        """Attach a grant serial.  The project becomes active."""
        project = self._get_by_id(project_id)

        project.grant_id = grant_id
        project.serial = serial
        project.workplan_number = sequence
        project.serial_status = SerialStatus.ASSIGNED
        project.approval_status = ApprovalStatus.ACTIVE
        project.updated_by_id = actor_id
        self.session.flush()

        logger.debug(
            "project_serial_written",
            extra={"project_id": str(project_id), "serial": serial},
        )
        return project_info(project)

    def detach_project_serial(self, project_id: UUID, actor_id: UUID) -> str | None:
        """
        Clear the grant serial, keeping it in previous_serial.

        Returns the serial that was cleared.  Detaching an already detached
        project keeps its original previous_serial.
        """
        project = self._get_by_id(project_id)
        cleared = project.serial
        if cleared is not None:
            project.previous_serial = cleared

        project.grant_id = None
        project.serial = None
        project.workplan_number = None
        project.serial_status = SerialStatus.DETACHED
        project.updated_by_id = actor_id
        self.session.flush()

        logger.debug(
            "project_serial_detached",
            extra={"project_id": str(project_id), "previous_serial": project.previous_serial},
        )
        return project.previous_serial

    def set_project_linkage(
        self,
        project_id: UUID,
        mou_id: UUID | None,
        actor_id: UUID,
    ) -> ProjectInfo:
        """Link a project to an MOU, or unlink it with mou_id=None."""
        project = self._get_by_id(project_id)
        project.mou_id = mou_id
        project.updated_by_id = actor_id
        self.session.flush()
        return project_info(project)
