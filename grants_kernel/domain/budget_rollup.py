"""
Budget Rollup Aggregator -- derives an MOU document from its workplans.

Responsibility:
    Builds the three-level budget table (category lines per project,
    project rows, MOU totals) and the aggregated narrative fields
    (objectives, beneficiaries, activities, locations, banking blocks)
    that LinkageService stores on the MOU.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Read-side only; the
    aggregator never mutates its inputs.

Invariants enforced:
    - Projects are processed in submission order (submitted_at, created_at,
      id) regardless of input order, so the output is stable.
    - to_canonical_json() is deterministic; regenerating from unchanged
      input yields byte-identical JSON and the same checksum.
    - expense_grand_total (sum of expense total_cost) is the MOU total.
      grand_total is the planned-activity budget and may differ.

Failure modes:
    - ValueError if a stored cost is not a number.
"""

from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID

from grants_kernel.db.types import ZERO, round_money, to_money
from grants_kernel.domain.aggregates import project_amount, submission_order_key
from grants_kernel.utils.hashing import canonicalize_json, hash_payload

UNCATEGORIZED = "Uncategorized"
MAX_LISTED_LOCALITIES = 4
BANKING_SEPARATOR = "─" * 50

_ACTIVITY_NAME_KEYS = ("activity", "selectedActivity", "activity_name")
_ACTIVITY_COST_KEYS = ("planned_activity_cost", "cost")


@dataclass(frozen=True)
class RollupProject:
    """Read-only view of a workplan as the rollup sees it."""

    project_id: UUID
    err_code: str | None = None
    err_name: str | None = None
    state: str | None = None
    locality: str | None = None
    serial: str | None = None
    expenses: tuple[Mapping[str, Any], ...] = ()
    planned_activities: tuple[Any, ...] = ()
    project_objectives: str | None = None
    intended_beneficiaries: str | None = None
    estimated_beneficiaries: int | None = None
    banking_details: str | None = None
    submitted_at: datetime | None = None
    created_at: datetime | None = None


# ---------------------------------------------------------------------------
# Budget table
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BudgetCategoryLine:
    """Leaf: one category's subtotal within one project."""

    category: str
    amount: Decimal
    beneficiaries: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "amount": self.amount,
            "beneficiaries": self.beneficiaries,
        }


@dataclass(frozen=True)
class BudgetProjectRow:
    """Mid level: one project's row in the budget table."""

    row_number: int
    project_id: UUID
    serial: str | None
    err_code: str | None
    err_name: str | None
    beneficiaries: int
    categories: tuple[BudgetCategoryLine, ...]
    subtotal: Decimal
    expense_total: Decimal

    def amount_for(self, category: str) -> Decimal:
        for line in self.categories:
            if line.category == category:
                return line.amount
        return ZERO

    def to_dict(self) -> dict[str, Any]:
        return {
            "row_number": self.row_number,
            "project_id": self.project_id,
            "serial": self.serial,
            "err_code": self.err_code,
            "err_name": self.err_name,
            "beneficiaries": self.beneficiaries,
            "categories": [line.to_dict() for line in self.categories],
            "subtotal": self.subtotal,
            "expense_total": self.expense_total,
        }


@dataclass(frozen=True)
class BudgetTable:
    """Root: the whole MOU budget."""

    rows: tuple[BudgetProjectRow, ...] = ()
    all_categories: tuple[str, ...] = ()
    category_totals: tuple[tuple[str, Decimal], ...] = ()
    grand_total: Decimal = ZERO
    expense_grand_total: Decimal = ZERO

    def total_for(self, category: str) -> Decimal:
        return dict(self.category_totals).get(category, ZERO)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows": [row.to_dict() for row in self.rows],
            "all_categories": list(self.all_categories),
            "category_totals": {name: amount for name, amount in self.category_totals},
            "grand_total": self.grand_total,
            "expense_grand_total": self.expense_grand_total,
        }


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MouDocument:
    """Derived MOU content.  Never persisted as a whole; see LinkageService."""

    objectives: str | None = None
    beneficiaries_text: str | None = None
    beneficiary_total: int = 0
    activities: str | None = None
    locations: str = "-"
    state: str | None = None
    banking: str | None = None
    budget: BudgetTable = field(default_factory=BudgetTable)

    @property
    def total_amount(self) -> Decimal:
        return self.budget.expense_grand_total

    def to_dict(self) -> dict[str, Any]:
        return {
            "objectives": self.objectives,
            "beneficiaries_text": self.beneficiaries_text,
            "beneficiary_total": self.beneficiary_total,
            "activities": self.activities,
            "locations": self.locations,
            "state": self.state,
            "banking": self.banking,
            "budget": self.budget.to_dict(),
        }

    def to_canonical_json(self) -> str:
        return canonicalize_json(self.to_dict())

    def checksum(self) -> str:
        return hash_payload(self.to_dict())


class DocumentAggregator(Protocol):
    """Anything that can turn linked projects into an MouDocument."""

    def aggregate(self, projects: Sequence[RollupProject]) -> MouDocument: ...


# ---------------------------------------------------------------------------
# Field rules
# ---------------------------------------------------------------------------


def most_common_text(values: Sequence[str | None]) -> str | None:
    """The shared value if all agree, else the most frequent; ties go to the first seen."""
    present = [v for v in values if v]
    if not present:
        return None
    first = present[0]
    if all(v == first for v in present):
        return first
    return Counter(present).most_common(1)[0][0]


def format_amount(amount: Decimal) -> str:
    """1234 -> '1,234'; 1234.5 -> '1,234.5'."""
    text = f"{round_money(amount):,.2f}"
    if text.endswith(".00"):
        return text[:-3]
    if text.endswith("0"):
        return text[:-1]
    return text


def _first_key(item: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = item.get(key)
        if value:
            return value
    return None


def aggregate_activities(projects: Sequence[RollupProject]) -> str | None:
    """Unique activity names as a bulleted list, with summed costs where known."""
    names: list[str] = []
    costs: dict[str, Decimal | None] = {}

    for project in projects:
        for item in project.planned_activities:
            if isinstance(item, str):
                name, cost = item.strip(), None
            elif isinstance(item, Mapping):
                raw_name = _first_key(item, _ACTIVITY_NAME_KEYS)
                name = raw_name.strip() if isinstance(raw_name, str) else ""
                raw_cost = _first_key(item, _ACTIVITY_COST_KEYS)
                cost = to_money(raw_cost) if raw_cost is not None else None
            else:
                continue
            if not name:
                continue
            if name not in costs:
                names.append(name)
                costs[name] = cost
            elif cost is not None and cost > ZERO:
                costs[name] = (costs[name] or ZERO) + cost

    if not names:
        return None

    lines = []
    for name in names:
        cost = costs[name]
        if cost is not None and cost > ZERO:
            lines.append(f"• {name} -> ${format_amount(cost)}")
        else:
            lines.append(f"• {name}")
    return "\n".join(lines)


def aggregate_locations(projects: Sequence[RollupProject]) -> tuple[str, str | None]:
    localities: list[str] = []
    states: list[str] = []
    for project in projects:
        if project.locality and project.locality not in localities:
            localities.append(project.locality)
        if project.state and project.state not in states:
            states.append(project.state)

    if not localities:
        text = "-"
    elif len(localities) <= MAX_LISTED_LOCALITIES:
        text = ", ".join(localities)
    else:
        text = f"{len(localities)} localities"
    return text, (states[0] if states else None)


def _location_label(project: RollupProject) -> str:
    return (
        project.err_name
        or project.err_code
        or project.locality
        or project.state
        or "Unknown"
    )


def aggregate_banking(projects: Sequence[RollupProject]) -> str | None:
    blocks = []
    for project in projects:
        if not project.banking_details:
            continue
        lines = [_location_label(project), "", project.banking_details]
        amount = project_amount(project.expenses)
        if amount > ZERO:
            lines.append(f"Amount USD: {format_amount(amount)} $")
        blocks.append("\n".join(lines))
    if not blocks:
        return None
    return f"\n\n{BANKING_SEPARATOR}\n\n".join(blocks)


def _head_count(value: Any) -> int:
    """Stored head count, or 0 for rows written before counts were validated."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        count = int(str(value).strip())
    except ValueError:
        return 0
    return max(count, 0)


def category_lines(planned_activities: Sequence[Any]) -> tuple[BudgetCategoryLine, ...]:
    """Per-category subtotals of planned activities with a positive cost, sorted by category."""
    amounts: dict[str, Decimal] = {}
    people: dict[str, int] = {}
    for item in planned_activities:
        if not isinstance(item, Mapping):
            continue
        cost = to_money(item.get("planned_activity_cost"))
        if cost <= ZERO:
            continue
        raw = item.get("category")
        category = raw.strip() if isinstance(raw, str) and raw.strip() else UNCATEGORIZED
        amounts[category] = amounts.get(category, ZERO) + cost
        people[category] = people.get(category, 0) + _head_count(item.get("individuals"))
    return tuple(
        BudgetCategoryLine(category=name, amount=amounts[name], beneficiaries=people[name])
        for name in sorted(amounts)
    )


def build_budget_table(projects: Sequence[RollupProject]) -> BudgetTable:
    rows = []
    for number, project in enumerate(projects, start=1):
        lines = category_lines(project.planned_activities)
        rows.append(
            BudgetProjectRow(
                row_number=number,
                project_id=project.project_id,
                serial=project.serial,
                err_code=project.err_code,
                err_name=project.err_name,
                beneficiaries=project.estimated_beneficiaries or 0,
                categories=lines,
                subtotal=sum((line.amount for line in lines), ZERO),
                expense_total=project_amount(project.expenses),
            )
        )

    totals: dict[str, Decimal] = {}
    for row in rows:
        for line in row.categories:
            totals[line.category] = totals.get(line.category, ZERO) + line.amount
    all_categories = tuple(sorted(totals))

    return BudgetTable(
        rows=tuple(rows),
        all_categories=all_categories,
        category_totals=tuple((name, totals[name]) for name in all_categories),
        grand_total=sum((row.subtotal for row in rows), ZERO),
        expense_grand_total=sum((row.expense_total for row in rows), ZERO),
    )


class MouDocumentAggregator:
    """Default DocumentAggregator used by LinkageService."""

    def aggregate(self, projects: Sequence[RollupProject]) -> MouDocument:
        ordered = sorted(
            projects,
            key=lambda p: submission_order_key(p.submitted_at, p.created_at, p.project_id),
        )
        locations, state = aggregate_locations(ordered)
        return MouDocument(
            objectives=most_common_text([p.project_objectives for p in ordered]),
            beneficiaries_text=most_common_text([p.intended_beneficiaries for p in ordered]),
            beneficiary_total=sum(p.estimated_beneficiaries or 0 for p in ordered),
            activities=aggregate_activities(ordered),
            locations=locations,
            state=state,
            banking=aggregate_banking(ordered),
            budget=build_budget_table(ordered),
        )
