"""
Grant Ledger Operations (``grants_services.ledger_operations``).

Responsibility
--------------
Caller-facing entry point for the allocation and serial-assignment ledger.
Takes plain arguments (ids, codes, month tags), wires configuration into
the kernel services, and returns kernel DTOs or raises typed kernel errors.

Architecture position
---------------------
**Services layer** -- transport-agnostic.  ``GrantLedgerService`` is the
only component that commits; kernel services flush and leave the
transaction to it.

Invariants enforced
-------------------
* Each write method owns the transaction boundary (``commit`` on success,
  ``rollback`` then re-raise on any exception).
* A partially failed batch still commits.  Its per-project outcomes are in
  the returned ``BatchReport``; failed writes were already undone by their
  savepoints.
* After assign and reassign the MOU document is regenerated in the same
  transaction, so the budget rows carry the new serials.
* Reads and previews never commit.

Failure modes
-------------
* Typed ``GrantLedgerError`` subclasses propagate unchanged after rollback.
* ``SQLAlchemyError`` outside the per-project loop propagates after rollback.

Usage::

    config = get_active_config()
    session_factory = init_ledger(config)
    ledger = GrantLedgerService.from_config(session_factory(), config)
    report = ledger.assign_mou_to_grant(mou_id, "G-2024-01", "Global Fund", "0824", actor_id)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import TypeVar
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from grants_config import LedgerConfig, get_active_config
from grants_config.bridges import to_kernel_settings
from grants_kernel.db.engine import get_session_factory, init_engine_from_url
from grants_kernel.domain.aggregates import (
    CycleBudget,
    GrantPoolRow,
    PoolFigures,
    PoolSummary,
)
from grants_kernel.domain.dtos import (
    BatchReport,
    CycleInfo,
    LinkageResult,
    ProjectInfo,
    SerialAssignment,
    StateAllocationInfo,
    TrancheInfo,
)
from grants_kernel.domain.settings import LedgerSettings
from grants_kernel.exceptions import MouNotFoundError
from grants_kernel.logging_config import LogContext, configure_logging, get_logger
from grants_kernel.selectors.ledger_selector import LedgerSelector
from grants_kernel.selectors.pool_selector import PoolSelector
from grants_kernel.services.assignment_service import (
    AssignmentService,
    check_assignment_inputs,
)
from grants_kernel.services.funding_service import FundingService
from grants_kernel.services.linkage_service import LinkageService
from grants_kernel.services.project_service import ProjectService
from grants_kernel.services.serial_allocator import SerialAllocator

logger = get_logger("services.ledger_operations")

T = TypeVar("T")


def init_ledger(config: LedgerConfig | None = None) -> sessionmaker[Session]:
    """
    Configure logging and the engine from a LedgerConfig.

    Returns the session factory; each thread or request takes its own
    session from it.
    """
    config = config or get_active_config()
    configure_logging(level=logging.getLevelName(config.log_level))
    init_engine_from_url(
        config.database.url,
        echo=config.database.echo,
        pool_size=config.database.pool_size,
        max_overflow=config.database.max_overflow,
    )
    return get_session_factory()


class GrantLedgerService:
    """
    Assignment, linkage, lifecycle, cycle upkeep and pool figures over one session.

    Contract
    --------
    * Write methods return a DTO after commit, or raise after rollback.
    * ``compute_*`` and ``preview_serials`` only read.

    Non-goals
    ---------
    * Does NOT render MOU documents; it stores the derived budget table and
      text fields only.
    * Does NOT authorize the actor; ``actor_id`` is recorded for audit.
    """

    def __init__(self, session: Session, settings: LedgerSettings | None = None):
        self._session = session
        self._settings = settings or LedgerSettings()
        self._projects = ProjectService(session)
        self._assignment = AssignmentService(session, self._settings, self._projects)
        self._linkage = LinkageService(session, project_service=self._projects)
        self._allocator = SerialAllocator(session, self._settings)
        self._funding = FundingService(session)
        self._selector = LedgerSelector(session, self._settings.state_aliases)
        self._pools = PoolSelector(session, self._settings.state_aliases)

    @classmethod
    def from_config(cls, session: Session, config: LedgerConfig) -> GrantLedgerService:
        return cls(session, to_kernel_settings(config))

    def _in_transaction(self, operation: str, work: Callable[[], T]) -> T:
        try:
            result = work()
            self._session.commit()
        except Exception:
            self._session.rollback()
            logger.warning("ledger_operation_rolled_back", extra={"operation": operation})
            raise
        logger.debug("ledger_operation_committed", extra={"operation": operation})
        return result

    def _end_read(self) -> None:
        # Ends the read transaction without persisting anything
        self._session.rollback()

    # =========================================================================
    # Assignment
    # =========================================================================

    def assign_mou_to_grant(
        self,
        mou_id: UUID,
        grant_code: str,
        donor_name: str,
        mmyy: str,
        actor_id: UUID,
    ) -> BatchReport:
        """Give every committed workplan of an unassigned MOU a serial on the grant."""

        def work() -> BatchReport:
            report = self._assignment.assign(mou_id, grant_code, donor_name, mmyy, actor_id)
            self._linkage.regenerate(mou_id, actor_id)
            return report

        with LogContext.bind(mou_id=str(mou_id), actor_id=str(actor_id)):
            return self._in_transaction("assign_mou_to_grant", work)

    def reassign_mou_to_grant(
        self,
        mou_id: UUID,
        grant_code: str,
        donor_name: str,
        mmyy: str,
        actor_id: UUID,
    ) -> BatchReport:
        """
        Move an assigned MOU to a fresh serial block on the target grant.

        Old serials are preserved in previous_serial; the old grant's counter
        is left untouched.
        """

        def work() -> BatchReport:
            report = self._assignment.reassign(mou_id, grant_code, donor_name, mmyy, actor_id)
            self._linkage.regenerate(mou_id, actor_id)
            return report

        with LogContext.bind(mou_id=str(mou_id), actor_id=str(actor_id)):
            return self._in_transaction("reassign_mou_to_grant", work)

    def preview_serials(
        self,
        mou_id: UUID,
        grant_code: str,
        donor_name: str,
        mmyy: str,
    ) -> list[SerialAssignment]:
        """
        Serials an assign (or reassign, for an assigned MOU) would issue now.

        Unlocked and non-authoritative: a concurrent assignment on the same
        grant makes the preview stale.  An MOU with no candidates previews
        as an empty list.
        """
        check_assignment_inputs(grant_code, donor_name, mmyy)
        try:
            if self._selector.get_mou(mou_id) is None:
                raise MouNotFoundError(str(mou_id))
            if self._selector.is_mou_assigned(mou_id):
                candidates = self._assignment.serial_holding_projects(mou_id)
            else:
                candidates = self._assignment.committed_projects(mou_id)
            if not candidates:
                return []
            grant, donor_code = self._assignment.resolve_grant(
                grant_code.strip(), donor_name.strip()
            )
            return self._allocator.preview(grant.id, donor_code, candidates, mmyy)
        finally:
            self._end_read()

    # =========================================================================
    # Linkage
    # =========================================================================

    def add_projects_to_mou(
        self,
        mou_id: UUID,
        project_ids: Sequence[UUID],
        actor_id: UUID,
    ) -> LinkageResult:
        return self._in_transaction(
            "add_projects_to_mou",
            lambda: self._linkage.add_projects(mou_id, project_ids, actor_id),
        )

    def remove_projects_from_mou(
        self,
        mou_id: UUID,
        project_ids: Sequence[UUID],
        actor_id: UUID,
    ) -> LinkageResult:
        return self._in_transaction(
            "remove_projects_from_mou",
            lambda: self._linkage.remove_projects(mou_id, project_ids, actor_id),
        )

    def regenerate_mou(self, mou_id: UUID, actor_id: UUID) -> LinkageResult:
        return self._in_transaction(
            "regenerate_mou",
            lambda: self._linkage.regenerate(mou_id, actor_id),
        )

    # =========================================================================
    # Project lifecycle
    # =========================================================================

    def allocate_project(
        self,
        project_id: UUID,
        state_allocation_id: UUID,
        actor_id: UUID,
    ) -> ProjectInfo:
        return self._in_transaction(
            "allocate_project",
            lambda: self._projects.allocate(project_id, state_allocation_id, actor_id),
        )

    def commit_project(self, project_id: UUID, actor_id: UUID) -> ProjectInfo:
        return self._in_transaction(
            "commit_project",
            lambda: self._projects.commit(project_id, actor_id),
        )

    def decommit_project(self, project_id: UUID, actor_id: UUID) -> ProjectInfo:
        return self._in_transaction(
            "decommit_project",
            lambda: self._projects.decommit(project_id, actor_id),
        )

    # =========================================================================
    # Cycles and allocations
    # =========================================================================

    def update_cycle(
        self,
        cycle_id: UUID,
        actor_id: UUID,
        *,
        name: str | None = None,
        cycle_type: str | None = None,
        tranche_count: int | None = None,
        status: str | None = None,
    ) -> CycleInfo:
        return self._in_transaction(
            "update_cycle",
            lambda: self._funding.update_cycle(
                cycle_id,
                actor_id,
                name=name,
                cycle_type=cycle_type,
                tranche_count=tranche_count,
                status=status,
            ),
        )

    def close_cycle(self, cycle_id: UUID, actor_id: UUID) -> CycleInfo:
        """Freeze the cycle's inclusion, allocations and tranches."""
        return self._in_transaction(
            "close_cycle",
            lambda: self._funding.close_cycle(cycle_id, actor_id),
        )

    def amend_state_allocation(
        self,
        cycle_id: UUID,
        allocation_id: UUID,
        amount: object,
        actor_id: UUID,
    ) -> StateAllocationInfo:
        return self._in_transaction(
            "amend_state_allocation",
            lambda: self._funding.amend_state_allocation(
                cycle_id, allocation_id, amount, actor_id
            ),
        )

    def delete_state_allocation(
        self,
        cycle_id: UUID,
        allocation_id: UUID,
        actor_id: UUID,
    ) -> int:
        """Delete an allocation round; returns how many allocated projects were released."""
        return self._in_transaction(
            "delete_state_allocation",
            lambda: self._funding.delete_state_allocation(cycle_id, allocation_id, actor_id),
        )

    def set_tranche(
        self,
        cycle_id: UUID,
        tranche_no: int,
        actor_id: UUID,
        *,
        planned_cap: object = None,
        status: str | None = None,
    ) -> TrancheInfo:
        return self._in_transaction(
            "set_tranche",
            lambda: self._funding.set_tranche(
                cycle_id, tranche_no, actor_id, planned_cap=planned_cap, status=status
            ),
        )

    def get_cycle(self, cycle_id: UUID) -> CycleInfo | None:
        try:
            return self._selector.get_cycle(cycle_id)
        finally:
            self._end_read()

    def list_tranches(self, cycle_id: UUID) -> list[TrancheInfo]:
        try:
            return self._selector.list_tranches(cycle_id)
        finally:
            self._end_read()

    # =========================================================================
    # Pool figures
    # =========================================================================

    def compute_grant_remaining(self, grant_code: str, donor_name: str) -> PoolFigures:
        """Nominal total minus committed and allocated workplans on the grant."""
        try:
            return self._pools.grant_figures(grant_code, donor_name)
        finally:
            self._end_read()

    def compute_state_allocation_remaining(self, state_name: str) -> PoolFigures:
        """Every allocation for the state, across cycles, minus its workplans."""
        try:
            return self._pools.state_figures(state_name)
        finally:
            self._end_read()

    def compute_cycle_budget(self, cycle_id: UUID) -> CycleBudget:
        try:
            return self._pools.cycle_figures(cycle_id)
        finally:
            self._end_read()

    def compute_pool_summary(self) -> PoolSummary:
        """All grant money, the part included in cycles, and what every workplan uses of it."""
        try:
            return self._pools.pool_summary()
        finally:
            self._end_read()

    def compute_grant_pool_rows(self) -> tuple[GrantPoolRow, ...]:
        """Per donor and grant breakdown of the overall pool."""
        try:
            return self._pools.grant_pool_rows()
        finally:
            self._end_read()
