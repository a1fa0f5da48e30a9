"""
Module: grants_kernel.selectors.pool_selector
Responsibility: Loads the rows behind a funding pool and hands them to the
    pure aggregate calculator.
Architecture position: Kernel > Selectors.  All arithmetic lives in
    grants_kernel.domain.aggregates; this module only queries.

Invariants enforced:
    - No caching.  Every call reads current rows.
    - A missing grant or a state with no allocations yields not-computable
      figures, not an error.  A missing cycle or allocation row raises.
    - The overall pool and its per-grant rows count only money included in
      cycles as the pool total.
"""

from collections.abc import Mapping
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from grants_kernel.domain import aggregates
from grants_kernel.domain.aggregates import (
    AllocationFigures,
    CycleBudget,
    GrantPoolRow,
    InclusionSnapshot,
    PoolFigures,
    PoolSummary,
)
from grants_kernel.exceptions import CycleNotFoundError, StateAllocationNotFoundError
from grants_kernel.models import (
    CycleGrantInclusion,
    Donor,
    DistributionCycle,
    Grant,
    StateAllocation,
    Workplan,
)
from grants_kernel.selectors.base import BaseSelector
from grants_kernel.selectors.converters import allocation_snapshot, project_snapshot


class PoolSelector(BaseSelector[Workplan]):
    """Committed / allocated / remaining figures for grants, states and cycles."""

    def __init__(self, session: Session, state_aliases: Mapping[str, str] | None = None):
        super().__init__(session)
        self._aliases = state_aliases or {}

    def grant_figures(self, grant_code: str, donor_name: str) -> PoolFigures:
        grant = self.session.execute(
            select(Grant)
            .join(Donor, Donor.id == Grant.donor_id)
            .where(Grant.grant_code == grant_code, Donor.name == donor_name)
        ).scalar_one_or_none()
        if grant is None:
            return PoolFigures.not_computable()
        return self.grant_figures_by_id(grant.id)

    def grant_figures_by_id(self, grant_id: UUID) -> PoolFigures:
        grant = self.session.get(Grant, grant_id)
        if grant is None:
            return PoolFigures.not_computable()
        rows = self.session.execute(
            select(Workplan).where(Workplan.grant_id == grant_id)
        ).scalars()
        return aggregates.grant_figures(
            grant.id,
            grant.sum_activity_amount,
            [project_snapshot(r) for r in rows],
        )

    def state_figures(self, state_name: str) -> PoolFigures:
        allocations = self.session.execute(select(StateAllocation)).scalars()
        projects = self.session.execute(
            select(Workplan).where(Workplan.state.is_not(None))
        ).scalars()
        return aggregates.state_figures(
            state_name,
            [allocation_snapshot(a) for a in allocations],
            [project_snapshot(p) for p in projects],
            self._aliases,
        )

    def cycle_figures(self, cycle_id: UUID) -> CycleBudget:
        cycle = self.session.get(DistributionCycle, cycle_id)
        if cycle is None:
            raise CycleNotFoundError(str(cycle_id))

        inclusion = self.session.execute(
            select(CycleGrantInclusion).where(CycleGrantInclusion.cycle_id == cycle_id)
        ).scalar_one_or_none()
        allocations = list(
            self.session.execute(
                select(StateAllocation).where(StateAllocation.cycle_id == cycle_id)
            ).scalars()
        )
        allocation_ids = [a.id for a in allocations]
        projects = []
        if allocation_ids:
            projects = self.session.execute(
                select(Workplan).where(Workplan.state_allocation_id.in_(allocation_ids))
            ).scalars()

        return aggregates.cycle_budget(
            cycle_id,
            inclusion.amount_included if inclusion is not None else None,
            [allocation_snapshot(a) for a in allocations],
            [project_snapshot(p) for p in projects],
        )

    def allocation_figures(self, allocation_id: UUID) -> AllocationFigures:
        allocation = self.session.get(StateAllocation, allocation_id)
        if allocation is None:
            raise StateAllocationNotFoundError(str(allocation_id))
        rows = self.session.execute(
            select(Workplan).where(Workplan.state_allocation_id == allocation_id)
        ).scalars()
        return aggregates.allocation_figures(
            allocation_snapshot(allocation),
            [project_snapshot(r) for r in rows],
        )

    def _inclusions(self) -> list[InclusionSnapshot]:
        rows = self.session.execute(
            select(CycleGrantInclusion, Grant, Donor)
            .join(Grant, Grant.id == CycleGrantInclusion.grant_id)
            .join(Donor, Donor.id == Grant.donor_id)
        ).all()
        return [
            InclusionSnapshot(
                cycle_id=inclusion.cycle_id,
                grant_id=grant.id,
                grant_code=grant.grant_code,
                donor_id=donor.id,
                donor_name=donor.name,
                amount_included=inclusion.amount_included,
            )
            for inclusion, grant, donor in rows
        ]

    def pool_summary(self) -> PoolSummary:
        """Every grant, every cycle inclusion, every workplan."""
        grant_totals = self.session.execute(select(Grant.sum_activity_amount)).scalars()
        projects = self.session.execute(select(Workplan)).scalars()
        return aggregates.pool_summary(
            list(grant_totals),
            self._inclusions(),
            [project_snapshot(p) for p in projects],
        )

    def grant_pool_rows(self) -> tuple[GrantPoolRow, ...]:
        """Per donor and grant: included money against projects holding that grant."""
        projects = self.session.execute(
            select(Workplan).where(Workplan.grant_id.is_not(None))
        ).scalars()
        return aggregates.grant_pool_rows(
            self._inclusions(),
            [project_snapshot(p) for p in projects],
        )
