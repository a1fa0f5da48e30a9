"""
Aggregate Calculator -- pure pool figures over project snapshots.

Responsibility:
    Computes committed / allocated / remaining for a grant, a state, a
    distribution cycle, a single state allocation row, and the overall pool
    with its per-grant breakdown.  Inputs are
    immutable snapshots; nothing here touches the database.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    PoolSelector loads rows, converts them to snapshots, and calls into
    this module.

Invariants enforced:
    - remaining == total - committed - allocated, always.  Negative
      remaining is valid state (over-commitment) and is never clamped.
    - A project counts as committed iff funding_status is committed.
    - A project counts as allocated iff funding_status is allocated, or it
      is unassigned with approval_status pending.  Every other combination
      is excluded.
    - Figures are recomputed on every call.  There is no cache.

Failure modes:
    - ValueError from PoolFigures if the remaining identity is broken by a
      hand-built instance.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from grants_kernel.db.types import ZERO, to_money

COMMITTED = "committed"
ALLOCATED = "allocated"
UNASSIGNED = "unassigned"
PENDING = "pending"


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProjectSnapshot:
    """The fields of a workplan the calculators need."""

    project_id: UUID
    amount: Decimal
    funding_status: str
    approval_status: str
    state: str | None = None
    grant_id: UUID | None = None
    state_allocation_id: UUID | None = None


@dataclass(frozen=True)
class AllocationSnapshot:
    """One state allocation row."""

    allocation_id: UUID
    cycle_id: UUID
    state_name: str
    amount: Decimal
    decision_no: int = 1


@dataclass(frozen=True)
class InclusionSnapshot:
    """One cycle's draw on a grant, with the grant and donor it belongs to."""

    cycle_id: UUID
    grant_id: UUID
    grant_code: str
    donor_id: UUID
    donor_name: str
    amount_included: Decimal


def project_amount(expenses: Iterable[Mapping[str, Any]] | None) -> Decimal:
    """Sum of total_cost over a project's expense items."""
    if not expenses:
        return ZERO
    total = ZERO
    for item in expenses:
        if isinstance(item, Mapping):
            total += to_money(item.get("total_cost"))
    return total


def normalize_state(name: str | None, aliases: Mapping[str, str]) -> str | None:
    """Trim a state name and map legacy spellings to the canonical name."""
    if name is None:
        return None
    stripped = name.strip()
    if not stripped:
        return None
    return aliases.get(stripped, stripped)


def _same_state(a: str | None, b: str | None, aliases: Mapping[str, str]) -> bool:
    left = normalize_state(a, aliases)
    right = normalize_state(b, aliases)
    if left is None or right is None:
        return False
    return left.casefold() == right.casefold()


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PoolFigures:
    """
    Committed / allocated / remaining for one funding pool.

    computable is False when the pool or its projects could not be found;
    in that case committed and allocated are zero and remaining equals total.
    """

    total: Decimal
    committed: Decimal
    allocated: Decimal
    remaining: Decimal
    computable: bool = True

    def __post_init__(self) -> None:
        if self.remaining != self.total - self.committed - self.allocated:
            raise ValueError(
                f"remaining {self.remaining} != total {self.total} "
                f"- committed {self.committed} - allocated {self.allocated}"
            )

    @classmethod
    def of(
        cls,
        total: Decimal,
        committed: Decimal,
        allocated: Decimal,
        computable: bool = True,
    ) -> "PoolFigures":
        return cls(
            total=total,
            committed=committed,
            allocated=allocated,
            remaining=total - committed - allocated,
            computable=computable,
        )

    @classmethod
    def not_computable(cls, total: Decimal = ZERO) -> "PoolFigures":
        return cls.of(total, ZERO, ZERO, computable=False)

    @property
    def is_over_committed(self) -> bool:
        """Warning flag only; negative remaining is valid state."""
        return self.remaining < ZERO


@dataclass(frozen=True)
class AllocationFigures:
    allocation_id: UUID
    state_name: str
    decision_no: int
    figures: PoolFigures


@dataclass(frozen=True)
class CycleBudget:
    """
    Budget summary of a distribution cycle.

    unallocated = total - state_allocated.  A negative value means the
    cycle promised states more than it draws from its grant.
    """

    cycle_id: UUID
    total: Decimal
    state_allocated: Decimal
    unallocated: Decimal
    figures: PoolFigures
    allocations: tuple[AllocationFigures, ...] = ()

    @property
    def is_over_allocated(self) -> bool:
        return self.unallocated < ZERO


@dataclass(frozen=True)
class PoolSummary:
    """
    The overall pool across every grant and cycle.

    figures.total is the money drawn into cycles; total_not_included is
    what the grants hold beyond that.
    """

    total_grants: Decimal
    total_included: Decimal
    total_not_included: Decimal
    figures: PoolFigures


@dataclass(frozen=True)
class GrantPoolRow:
    """Included money of one grant, summed over cycles, against its serial-holding projects."""

    donor_id: UUID
    donor_name: str
    grant_id: UUID
    grant_code: str
    included: Decimal
    figures: PoolFigures


# ---------------------------------------------------------------------------
# Calculators
# ---------------------------------------------------------------------------


def counts_as_committed(project: ProjectSnapshot) -> bool:
    return project.funding_status == COMMITTED


def counts_as_allocated(project: ProjectSnapshot) -> bool:
    if project.funding_status == ALLOCATED:
        return True
    return (
        project.funding_status == UNASSIGNED and project.approval_status == PENDING
    )


def sum_committed(projects: Iterable[ProjectSnapshot]) -> Decimal:
    return sum((p.amount for p in projects if counts_as_committed(p)), ZERO)


def sum_allocated(projects: Iterable[ProjectSnapshot]) -> Decimal:
    return sum((p.amount for p in projects if counts_as_allocated(p)), ZERO)


def pool_figures(total: Decimal, projects: Iterable[ProjectSnapshot]) -> PoolFigures:
    """Figures for an already-scoped project set.  Empty set -> not computable."""
    projects = list(projects)
    if not projects:
        return PoolFigures.not_computable(total)
    return PoolFigures.of(total, sum_committed(projects), sum_allocated(projects))


def grant_figures(
    grant_id: UUID | None,
    grant_total: Decimal | None,
    projects: Iterable[ProjectSnapshot],
) -> PoolFigures:
    """
    Figures for a grant.  The project set is every project whose grant_id
    points at the grant.
    """
    if grant_id is None or grant_total is None:
        return PoolFigures.not_computable()
    scoped = [p for p in projects if p.grant_id == grant_id]
    return pool_figures(grant_total, scoped)


def state_figures(
    state_name: str,
    allocations: Iterable[AllocationSnapshot],
    projects: Iterable[ProjectSnapshot],
    aliases: Mapping[str, str],
) -> PoolFigures:
    """
    Figures for a state across every cycle and every decision round.

    total is the sum of all allocations to the state.  A state with no
    allocations is not computable.
    """
    matched = [a for a in allocations if _same_state(a.state_name, state_name, aliases)]
    if not matched:
        return PoolFigures.not_computable()
    total = sum((a.amount for a in matched), ZERO)
    scoped = [p for p in projects if _same_state(p.state, state_name, aliases)]
    return pool_figures(total, scoped)


def allocation_figures(
    allocation: AllocationSnapshot,
    projects: Iterable[ProjectSnapshot],
) -> AllocationFigures:
    """Figures for one allocation row over the projects reserved against it."""
    scoped = [p for p in projects if p.state_allocation_id == allocation.allocation_id]
    return AllocationFigures(
        allocation_id=allocation.allocation_id,
        state_name=allocation.state_name,
        decision_no=allocation.decision_no,
        figures=pool_figures(allocation.amount, scoped),
    )


def cycle_budget(
    cycle_id: UUID,
    amount_included: Decimal | None,
    allocations: Iterable[AllocationSnapshot],
    projects: Iterable[ProjectSnapshot],
) -> CycleBudget:
    """
    Budget summary for a cycle.

    total is the cycle's grant inclusion.  The project set is every project
    reserved against one of the cycle's allocations.
    """
    cycle_allocations = [a for a in allocations if a.cycle_id == cycle_id]
    projects = list(projects)
    total = amount_included if amount_included is not None else ZERO
    state_allocated = sum((a.amount for a in cycle_allocations), ZERO)

    allocation_ids = {a.allocation_id for a in cycle_allocations}
    scoped = [p for p in projects if p.state_allocation_id in allocation_ids]
    if amount_included is None:
        figures = PoolFigures.not_computable()
    else:
        figures = pool_figures(total, scoped)

    per_allocation = tuple(
        allocation_figures(a, scoped)
        for a in sorted(
            cycle_allocations, key=lambda a: (a.state_name, a.decision_no, str(a.allocation_id))
        )
    )
    return CycleBudget(
        cycle_id=cycle_id,
        total=total,
        state_allocated=state_allocated,
        unallocated=total - state_allocated,
        figures=figures,
        allocations=per_allocation,
    )


def pool_summary(
    grant_totals: Iterable[Decimal],
    inclusions: Iterable[InclusionSnapshot],
    projects: Iterable[ProjectSnapshot],
) -> PoolSummary:
    """
    Overall pool: all grant money, the part drawn into cycles, and usage.

    Usage is every project in the ledger, classified the same way as the
    scoped figures.  Over-inclusion shows as a negative total_not_included.
    """
    total_grants = sum(grant_totals, ZERO)
    total_included = sum((i.amount_included for i in inclusions), ZERO)
    return PoolSummary(
        total_grants=total_grants,
        total_included=total_included,
        total_not_included=total_grants - total_included,
        figures=pool_figures(total_included, projects),
    )


def grant_pool_rows(
    inclusions: Iterable[InclusionSnapshot],
    projects: Iterable[ProjectSnapshot],
) -> tuple[GrantPoolRow, ...]:
    """
    One row per included grant, ordered by donor name then grant code.

    A grant with no inclusion has no row.  Projects count against the grant
    their grant_id points at.
    """
    included: dict[UUID, Decimal] = {}
    first: dict[UUID, InclusionSnapshot] = {}
    for inclusion in inclusions:
        included[inclusion.grant_id] = (
            included.get(inclusion.grant_id, ZERO) + inclusion.amount_included
        )
        first.setdefault(inclusion.grant_id, inclusion)

    by_grant: dict[UUID, list[ProjectSnapshot]] = {}
    for project in projects:
        if project.grant_id in included:
            by_grant.setdefault(project.grant_id, []).append(project)

    rows = [
        GrantPoolRow(
            donor_id=ref.donor_id,
            donor_name=ref.donor_name,
            grant_id=grant_id,
            grant_code=ref.grant_code,
            included=included[grant_id],
            figures=pool_figures(included[grant_id], by_grant.get(grant_id, ())),
        )
        for grant_id, ref in first.items()
    ]
    rows.sort(key=lambda r: (r.donor_name.casefold(), r.grant_code, str(r.grant_id)))
    return tuple(rows)


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


def _instant(value: datetime | None) -> tuple[int, datetime]:
    if value is None:
        return (1, datetime.min)
    if value.tzinfo is not None:
        value = value.astimezone(UTC).replace(tzinfo=None)
    return (0, value)


def submission_order_key(
    submitted_at: datetime | None,
    created_at: datetime | None,
    project_id: UUID,
) -> tuple:
    """Stable ordering: submitted_at, then created_at, then id.  Missing times sort last."""
    return (_instant(submitted_at), _instant(created_at), str(project_id))
