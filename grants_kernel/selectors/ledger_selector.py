"""
Module: grants_kernel.selectors.ledger_selector
Responsibility: Read-only access to grants, MOUs, workplans, cycles, state
    allocations and tranches, returned as DTOs.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Workplans come back in submission order (submitted_at, created_at, id).
    - "Assigned" is derived from serial_status of linked workplans, never
      from the serial text.
"""

from collections.abc import Mapping
from uuid import UUID

from sqlalchemy import and_, exists, select
from sqlalchemy.orm import Session

from grants_kernel.domain.aggregates import normalize_state, submission_order_key
from grants_kernel.domain.dtos import (
    CycleInfo,
    GrantInfo,
    MouInfo,
    ProjectFilter,
    ProjectInfo,
    StateAllocationInfo,
    TrancheInfo,
)
from grants_kernel.models import (
    CycleTranche,
    DistributionCycle,
    Donor,
    Grant,
    Mou,
    SerialStatus,
    StateAllocation,
    Workplan,
)
from grants_kernel.selectors.base import BaseSelector
from grants_kernel.selectors.converters import (
    allocation_info,
    cycle_info,
    grant_info,
    mou_info,
    project_info,
    tranche_info,
)

HOLDS_SERIAL = (SerialStatus.ASSIGNED.value, SerialStatus.DETACHED.value)


def mou_assigned_clause(mou_id: UUID):
    """SQL predicate: some workplan linked to the MOU holds or lost a serial."""
    return exists().where(
        and_(
            Workplan.mou_id == mou_id,
            Workplan.serial_status.in_(HOLDS_SERIAL),
        )
    )


def order_workplans(rows: list[Workplan]) -> list[Workplan]:
    return sorted(
        rows, key=lambda w: submission_order_key(w.submitted_at, w.created_at, w.id)
    )


class LedgerSelector(BaseSelector[Workplan]):
    """
    Read surface for the allocation ledger.

    Example:
        selector = LedgerSelector(session)
        grant = selector.get_grant("G-2025-01", "Acme Foundation")
        rows = selector.list_projects(ProjectFilter(mou_id=mou.id))
    """

    def __init__(self, session: Session, state_aliases: Mapping[str, str] | None = None):
        super().__init__(session)
        self._aliases = state_aliases or {}

    # -- grants and donors --------------------------------------------------

    def get_grant(self, grant_code: str, donor_name: str) -> GrantInfo | None:
        row = self.session.execute(
            select(Grant)
            .join(Donor, Donor.id == Grant.donor_id)
            .where(Grant.grant_code == grant_code, Donor.name == donor_name)
        ).scalar_one_or_none()
        return grant_info(row) if row is not None else None

    # -- MOUs and projects --------------------------------------------------

    def is_mou_assigned(self, mou_id: UUID) -> bool:
        return bool(self.session.execute(select(mou_assigned_clause(mou_id))).scalar())

    def get_mou(self, mou_id: UUID) -> MouInfo | None:
        row = self.session.get(Mou, mou_id)
        if row is None:
            return None
        return mou_info(row, self.is_mou_assigned(mou_id))

    def get_project(self, project_id: UUID) -> ProjectInfo | None:
        row = self.session.get(Workplan, project_id)
        return project_info(row) if row is not None else None

    def list_projects(self, project_filter: ProjectFilter | None = None) -> list[ProjectInfo]:
        f = project_filter or ProjectFilter()
        query = select(Workplan)

        if f.mou_id is not None:
            query = query.where(Workplan.mou_id == f.mou_id)
        if f.grant_id is not None:
            query = query.where(Workplan.grant_id == f.grant_id)
        if f.funding_statuses:
            query = query.where(Workplan.funding_status.in_(f.funding_statuses))
        if f.serial_statuses:
            query = query.where(Workplan.serial_status.in_(f.serial_statuses))
        if f.freestanding is True:
            query = query.where(Workplan.mou_id.is_(None))
        elif f.freestanding is False:
            query = query.where(Workplan.mou_id.is_not(None))
        if f.project_ids:
            query = query.where(Workplan.id.in_(f.project_ids))
        if f.cycle_id is not None:
            query = query.join(
                StateAllocation, StateAllocation.id == Workplan.state_allocation_id
            ).where(StateAllocation.cycle_id == f.cycle_id)

        rows = list(self.session.execute(query).scalars())
        if f.state is not None:
            wanted = (normalize_state(f.state, self._aliases) or "").casefold()
            rows = [
                r for r in rows
                if (normalize_state(r.state, self._aliases) or "").casefold() == wanted
            ]
        return [project_info(r) for r in order_workplans(rows)]

    # -- allocations --------------------------------------------------------

    def get_state_allocations(self, state_name: str) -> list[StateAllocationInfo]:
        """Every allocation to the state, across cycles and decision rounds."""
        wanted = (normalize_state(state_name, self._aliases) or "").casefold()
        rows = self.session.execute(select(StateAllocation)).scalars()
        matched = [
            r for r in rows
            if (normalize_state(r.state_name, self._aliases) or "").casefold() == wanted
        ]
        matched.sort(key=lambda r: (r.decision_no, str(r.id)))
        return [allocation_info(r) for r in matched]

    def get_cycle_allocations(self, cycle_id: UUID) -> list[StateAllocationInfo]:
        rows = self.session.execute(
            select(StateAllocation)
            .where(StateAllocation.cycle_id == cycle_id)
            .order_by(StateAllocation.state_name, StateAllocation.decision_no)
        ).scalars()
        return [allocation_info(r) for r in rows]

    # -- cycles -------------------------------------------------------------

    def get_cycle(self, cycle_id: UUID) -> CycleInfo | None:
        row = self.session.get(DistributionCycle, cycle_id)
        return cycle_info(row) if row is not None else None

    def list_tranches(self, cycle_id: UUID) -> list[TrancheInfo]:
        rows = self.session.execute(
            select(CycleTranche)
            .where(CycleTranche.cycle_id == cycle_id)
            .order_by(CycleTranche.tranche_no)
        ).scalars()
        return [tranche_info(r) for r in rows]
