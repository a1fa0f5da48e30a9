"""
FundingService -- donors, grants, cycles, allocations, MOUs and workplans.

Responsibility:
    Creates the reference and funding structure the ledger computes over.
    Validates amounts and cycle shapes at the boundary so the calculators
    can trust stored values.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Grant totals, inclusion amounts and allocation amounts are > 0.
    - A cycle includes at most one grant.
    - A closed cycle accepts no inclusion, allocation or tranche change.
    - An allocation with committed projects cannot be deleted; deleting one
      releases its allocated projects back to unassigned.
    - Tranche numbers run 1..tranche_count and exist only on tranche cycles.
    - tranche_count is required (>= 1) for tranche cycles and absent otherwise.
    - Expense and activity costs are stored as decimal strings, never floats.
    - Activity head counts (individuals) are stored as non-negative ints.
    - New workplans start unassigned / pending with no serial.

Failure modes:
    - InvalidAmountError, InvalidCycleTypeError, MissingFieldError.
    - DonorNotFoundError, GrantNotFoundError, CycleNotFoundError.
    - GrantAlreadyIncludedError, CycleClosedError.
    - StateAllocationNotFoundError, AllocationHasCommittedProjectsError.
"""

from collections.abc import Mapping, Sequence
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select

from grants_kernel.db.types import ZERO, to_money
from grants_kernel.domain.dtos import (
    CycleInfo,
    DonorInfo,
    GrantInfo,
    MouInfo,
    ProjectInfo,
    StateAllocationInfo,
    TrancheInfo,
)
from grants_kernel.exceptions import (
    AllocationHasCommittedProjectsError,
    CycleClosedError,
    CycleNotFoundError,
    DonorNotFoundError,
    GrantAlreadyIncludedError,
    GrantNotFoundError,
    InvalidAmountError,
    InvalidCycleStatusError,
    InvalidCycleTypeError,
    MissingFieldError,
    StateAllocationNotFoundError,
)
from grants_kernel.logging_config import get_logger
from grants_kernel.models import (
    ApprovalStatus,
    CycleGrantInclusion,
    CycleStatus,
    CycleTranche,
    CycleType,
    DistributionCycle,
    Donor,
    FundingStatus,
    Grant,
    Mou,
    SerialStatus,
    StateAllocation,
    StateReference,
    Workplan,
)
from grants_kernel.selectors.converters import (
    allocation_info,
    cycle_info,
    donor_info,
    grant_info,
    mou_info,
    project_info,
    tranche_info,
)
from grants_kernel.services.base import BaseService

logger = get_logger("services.funding")


def _required(field_name: str, value: str | None) -> str:
    if value is None or not str(value).strip():
        raise MissingFieldError(field_name)
    return str(value).strip()


def _amount(field_name: str, value: object, allow_zero: bool = False) -> Decimal:
    try:
        amount = to_money(value)
    except ValueError as exc:
        raise InvalidAmountError(field_name, value) from exc
    if amount < ZERO or (amount == ZERO and not allow_zero):
        raise InvalidAmountError(field_name, value)
    return amount


def _cycle_shape(cycle_type: object, tranche_count: int | None) -> CycleType:
    try:
        kind = CycleType(cycle_type)
    except ValueError as exc:
        raise InvalidCycleTypeError(str(cycle_type), tranche_count) from exc
    if kind == CycleType.TRANCHES:
        if tranche_count is None or tranche_count < 1:
            raise InvalidCycleTypeError(kind.value, tranche_count)
    elif tranche_count is not None:
        raise InvalidCycleTypeError(kind.value, tranche_count)
    return kind


def _cycle_status(status: object) -> CycleStatus:
    try:
        return CycleStatus(status)
    except ValueError as exc:
        raise InvalidCycleStatusError(str(status)) from exc


def _individuals(value: object) -> int:
    if isinstance(value, bool):
        raise InvalidAmountError("individuals", value)
    try:
        count = int(str(value).strip())
    except ValueError as exc:
        raise InvalidAmountError("individuals", value) from exc
    if count < 0:
        raise InvalidAmountError("individuals", value)
    return count


def _normalize_costs(
    items: Sequence[Any] | None,
    cost_key: str,
    field_name: str,
) -> list[Any]:
    """Copy JSON items, rewriting the cost under cost_key as a decimal string."""
    normalized = []
    for item in items or ():
        if isinstance(item, Mapping):
            copy = dict(item)
            if cost_key in copy:
                copy[cost_key] = str(_amount(field_name, copy[cost_key], allow_zero=True))
            normalized.append(copy)
        else:
            normalized.append(item)
    return normalized


def _normalize_activities(items: Sequence[Any] | None) -> list[Any]:
    normalized = _normalize_costs(items, "planned_activity_cost", "planned_activity_cost")
    for item in normalized:
        if isinstance(item, dict) and item.get("individuals") not in (None, ""):
            item["individuals"] = _individuals(item["individuals"])
    return normalized


class FundingService(BaseService[Grant]):
    """Creates funding structure rows and returns DTOs."""

    # -- donors and grants --------------------------------------------------

    def create_donor(
        self,
        name: str,
        short_code: str | None,
        actor_id: UUID,
    ) -> DonorInfo:
        donor = Donor(
            name=_required("name", name),
            short_code=short_code.strip() if short_code else None,
            created_by_id=actor_id,
        )
        self.session.add(donor)
        self.session.flush()
        logger.info("donor_created", extra={"donor_id": str(donor.id), "donor_name": donor.name})
        return donor_info(donor)

    def create_grant(
        self,
        donor_id: UUID,
        grant_code: str,
        name: str,
        sum_activity_amount: object,
        actor_id: UUID,
    ) -> GrantInfo:
        """New grants start with max_workplan_sequence = 0."""
        if self.session.get(Donor, donor_id) is None:
            raise DonorNotFoundError(str(donor_id))
        grant = Grant(
            donor_id=donor_id,
            grant_code=_required("grant_code", grant_code),
            name=_required("name", name),
            sum_activity_amount=_amount("sum_activity_amount", sum_activity_amount),
            max_workplan_sequence=0,
            created_by_id=actor_id,
        )
        self.session.add(grant)
        self.session.flush()
        logger.info(
            "grant_created",
            extra={
                "grant_id": str(grant.id),
                "grant_code": grant.grant_code,
                "amount": str(grant.sum_activity_amount),
            },
        )
        return grant_info(grant)

    def register_state(self, state_name: str, short_code: str, actor_id: UUID) -> None:
        """Add or update the short code used for a state in serials."""
        state_name = _required("state_name", state_name)
        short_code = _required("short_code", short_code)
        existing = self.session.execute(
            select(StateReference).where(StateReference.state_name == state_name)
        ).scalar_one_or_none()
        if existing is None:
            self.session.add(
                StateReference(
                    state_name=state_name,
                    short_code=short_code,
                    created_by_id=actor_id,
                )
            )
        else:
            existing.short_code = short_code
            existing.updated_by_id = actor_id
        self.session.flush()

    # -- cycles -------------------------------------------------------------

    def create_cycle(
        self,
        name: str,
        year: int,
        cycle_number: int,
        cycle_type: str,
        actor_id: UUID,
        tranche_count: int | None = None,
    ) -> CycleInfo:
        kind = _cycle_shape(cycle_type, tranche_count)
        cycle = DistributionCycle(
            name=_required("name", name),
            year=year,
            cycle_number=cycle_number,
            type=kind,
            tranche_count=tranche_count,
            status=CycleStatus.OPEN,
            created_by_id=actor_id,
        )
        self.session.add(cycle)
        self.session.flush()
        logger.info("cycle_created", extra={"cycle_id": str(cycle.id), "cycle_type": kind.value})
        return cycle_info(cycle)

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
        """
        Change a cycle's name, shape or status.

        The merged type/tranche_count pair is validated as on creation, so
        switching a tranche cycle to one_off needs no explicit tranche_count.
        Tranche rows above a reduced tranche_count are dropped.
        """
        cycle = self._get_cycle(cycle_id)
        new_type = cycle_type if cycle_type is not None else cycle.type
        if tranche_count is not None:
            new_count = tranche_count
        elif cycle_type is not None and cycle_type != CycleType.TRANCHES:
            new_count = None
        else:
            new_count = cycle.tranche_count
        kind = _cycle_shape(new_type, new_count)
        new_status = _cycle_status(status if status is not None else cycle.status)

        if name is not None:
            cycle.name = _required("name", name)
        cycle.type = kind
        cycle.tranche_count = new_count
        cycle.status = new_status
        cycle.updated_by_id = actor_id

        stale = self.session.execute(
            select(CycleTranche).where(CycleTranche.cycle_id == cycle_id)
        ).scalars().all()
        for tranche in stale:
            if new_count is None or tranche.tranche_no > new_count:
                self.session.delete(tranche)
        self.session.flush()
        logger.info(
            "cycle_updated",
            extra={
                "cycle_id": str(cycle_id),
                "cycle_type": kind.value,
                "status": new_status.value,
            },
        )
        return cycle_info(cycle)

    def close_cycle(self, cycle_id: UUID, actor_id: UUID) -> CycleInfo:
        """Freeze a cycle.  Closing an already closed cycle is a no-op."""
        cycle = self._get_cycle(cycle_id)
        if CycleStatus(cycle.status) != CycleStatus.CLOSED:
            cycle.status = CycleStatus.CLOSED
            cycle.updated_by_id = actor_id
            self.session.flush()
            logger.info("cycle_closed", extra={"cycle_id": str(cycle_id)})
        return cycle_info(cycle)

    def _get_cycle(self, cycle_id: UUID) -> DistributionCycle:
        cycle = self.session.get(DistributionCycle, cycle_id)
        if cycle is None:
            raise CycleNotFoundError(str(cycle_id))
        return cycle

    def _open_cycle(self, cycle_id: UUID, operation: str) -> DistributionCycle:
        cycle = self._get_cycle(cycle_id)
        if CycleStatus(cycle.status) == CycleStatus.CLOSED:
            raise CycleClosedError(str(cycle_id), operation)
        return cycle

    def include_grant(
        self,
        cycle_id: UUID,
        grant_id: UUID,
        amount_included: object,
        actor_id: UUID,
    ) -> UUID:
        """
        Draw amount_included from a grant into a cycle.

        Including more than the grant total is allowed; it shows up as a
        negative remaining rather than a rejection.
        """
        self._open_cycle(cycle_id, "include grant")
        if self.session.get(Grant, grant_id) is None:
            raise GrantNotFoundError(str(grant_id))
        amount = _amount("amount_included", amount_included)
        existing = self.session.execute(
            select(CycleGrantInclusion.id).where(CycleGrantInclusion.cycle_id == cycle_id)
        ).scalar_one_or_none()
        if existing is not None:
            raise GrantAlreadyIncludedError(str(cycle_id))

        inclusion = CycleGrantInclusion(
            cycle_id=cycle_id,
            grant_id=grant_id,
            amount_included=amount,
            created_by_id=actor_id,
        )
        self.session.add(inclusion)
        self.session.flush()
        return inclusion.id

    def add_state_allocation(
        self,
        cycle_id: UUID,
        state_name: str,
        amount: object,
        actor_id: UUID,
        decision_no: int = 1,
    ) -> StateAllocationInfo:
        self._open_cycle(cycle_id, "add state allocation")
        if decision_no < 1:
            raise InvalidAmountError("decision_no", decision_no)

        allocation = StateAllocation(
            cycle_id=cycle_id,
            state_name=_required("state_name", state_name),
            amount=_amount("amount", amount),
            decision_no=decision_no,
            created_by_id=actor_id,
        )
        self.session.add(allocation)
        self.session.flush()
        logger.info(
            "state_allocation_added",
            extra={
                "cycle_id": str(cycle_id),
                "state_name": allocation.state_name,
                "amount": str(allocation.amount),
                "decision_no": decision_no,
            },
        )
        return allocation_info(allocation)

    def _get_allocation(self, cycle_id: UUID, allocation_id: UUID) -> StateAllocation:
        allocation = self.session.get(StateAllocation, allocation_id)
        if allocation is None or allocation.cycle_id != cycle_id:
            raise StateAllocationNotFoundError(str(allocation_id))
        return allocation

    def amend_state_allocation(
        self,
        cycle_id: UUID,
        allocation_id: UUID,
        amount: object,
        actor_id: UUID,
    ) -> StateAllocationInfo:
        """Change the amount of one allocation round.  Projects keep pointing at it."""
        self._open_cycle(cycle_id, "amend state allocation")
        allocation = self._get_allocation(cycle_id, allocation_id)
        previous = allocation.amount
        allocation.amount = _amount("amount", amount)
        allocation.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "state_allocation_amended",
            extra={
                "cycle_id": str(cycle_id),
                "state_allocation_id": str(allocation_id),
                "previous_amount": str(previous),
                "amount": str(allocation.amount),
            },
        )
        return allocation_info(allocation)

    def delete_state_allocation(
        self,
        cycle_id: UUID,
        allocation_id: UUID,
        actor_id: UUID,
    ) -> int:
        """
        Delete an allocation round.

        Allocated projects reserved against it go back to unassigned with no
        allocation.  Returns how many were released.

        Raises:
            AllocationHasCommittedProjectsError: a project on this allocation
                is committed.  Nothing is changed.
        """
        self._open_cycle(cycle_id, "delete state allocation")
        allocation = self._get_allocation(cycle_id, allocation_id)
        projects = list(
            self.session.execute(
                select(Workplan)
                .where(Workplan.state_allocation_id == allocation_id)
                .order_by(Workplan.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalars()
        )
        committed = [
            str(p.id)
            for p in projects
            if FundingStatus(p.funding_status) == FundingStatus.COMMITTED
        ]
        if committed:
            raise AllocationHasCommittedProjectsError(str(allocation_id), committed)

        for project in projects:
            project.funding_status = FundingStatus.UNASSIGNED
            project.state_allocation_id = None
            project.updated_by_id = actor_id
        self.session.flush()
        self.session.delete(allocation)
        self.session.flush()
        logger.info(
            "state_allocation_deleted",
            extra={
                "cycle_id": str(cycle_id),
                "state_allocation_id": str(allocation_id),
                "released_count": len(projects),
            },
        )
        return len(projects)

    # -- tranches -----------------------------------------------------------

    def set_tranche(
        self,
        cycle_id: UUID,
        tranche_no: int,
        actor_id: UUID,
        *,
        planned_cap: object = None,
        status: str | None = None,
    ) -> TrancheInfo:
        """
        Create or update one tranche of a tranche cycle.

        A tranche that does not exist yet starts closed with a zero cap.
        Omitted fields are left as they are.
        """
        cycle = self._open_cycle(cycle_id, "set tranche")
        if CycleType(cycle.type) != CycleType.TRANCHES:
            raise InvalidCycleTypeError(CycleType(cycle.type).value, cycle.tranche_count)
        if isinstance(tranche_no, bool) or not 1 <= tranche_no <= (cycle.tranche_count or 0):
            raise InvalidAmountError("tranche_no", tranche_no)

        tranche = self.session.execute(
            select(CycleTranche).where(
                CycleTranche.cycle_id == cycle_id,
                CycleTranche.tranche_no == tranche_no,
            )
        ).scalar_one_or_none()
        if tranche is None:
            tranche = CycleTranche(
                cycle_id=cycle_id,
                tranche_no=tranche_no,
                planned_cap=ZERO,
                status=CycleStatus.CLOSED,
                created_by_id=actor_id,
            )
            self.session.add(tranche)
        else:
            tranche.updated_by_id = actor_id
        if planned_cap is not None:
            tranche.planned_cap = _amount("planned_cap", planned_cap, allow_zero=True)
        if status is not None:
            tranche.status = _cycle_status(status)
        self.session.flush()
        logger.info(
            "tranche_set",
            extra={
                "cycle_id": str(cycle_id),
                "tranche_no": tranche_no,
                "planned_cap": str(tranche.planned_cap),
                "status": CycleStatus(tranche.status).value,
            },
        )
        return tranche_info(tranche)

    # -- MOUs and workplans -------------------------------------------------

    def create_mou(
        self,
        mou_code: str,
        partner_name: str,
        err_name: str,
        actor_id: UUID,
        state: str | None = None,
    ) -> MouInfo:
        mou = Mou(
            mou_code=_required("mou_code", mou_code),
            partner_name=_required("partner_name", partner_name),
            err_name=_required("err_name", err_name),
            state=state,
            total_amount=ZERO,
            beneficiary_total=0,
            document_revision=0,
            created_by_id=actor_id,
        )
        self.session.add(mou)
        self.session.flush()
        logger.info("mou_created", extra={"mou_id": str(mou.id), "mou_code": mou.mou_code})
        return mou_info(mou, is_assigned=False)

    def create_workplan(
        self,
        actor_id: UUID,
        *,
        state: str | None = None,
        locality: str | None = None,
        err_code: str | None = None,
        err_name: str | None = None,
        expenses: Sequence[Mapping[str, Any]] | None = None,
        planned_activities: Sequence[Any] | None = None,
        project_objectives: str | None = None,
        intended_beneficiaries: str | None = None,
        estimated_beneficiaries: int | None = None,
        banking_details: str | None = None,
        submitted_at: datetime | None = None,
        grant_reference: str | None = None,
    ) -> ProjectInfo:
        """New workplans are freestanding, unassigned, pending, and have no serial."""
        project = Workplan(
            state=state,
            locality=locality,
            err_code=err_code,
            err_name=err_name,
            funding_status=FundingStatus.UNASSIGNED,
            approval_status=ApprovalStatus.PENDING,
            serial_status=SerialStatus.NONE,
            expenses=_normalize_costs(expenses, "total_cost", "total_cost"),
            planned_activities=_normalize_activities(planned_activities),
            project_objectives=project_objectives,
            intended_beneficiaries=intended_beneficiaries,
            estimated_beneficiaries=estimated_beneficiaries,
            banking_details=banking_details,
            submitted_at=submitted_at,
            grant_reference=grant_reference,
            created_by_id=actor_id,
        )
        self.session.add(project)
        self.session.flush()
        return project_info(project)
