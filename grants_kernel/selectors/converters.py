"""Row -> DTO conversion shared by selectors and services."""

from grants_kernel.domain.aggregates import (
    AllocationSnapshot,
    ProjectSnapshot,
    project_amount,
)
from grants_kernel.domain.budget_rollup import RollupProject
from grants_kernel.domain.dtos import (
    CycleInfo,
    DonorInfo,
    GrantInfo,
    MouInfo,
    ProjectInfo,
    StateAllocationInfo,
    TrancheInfo,
)
from grants_kernel.models import (
    ApprovalStatus,
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
    Workplan,
)


def project_snapshot(row: Workplan) -> ProjectSnapshot:
    return ProjectSnapshot(
        project_id=row.id,
        amount=project_amount(row.expenses),
        funding_status=FundingStatus(row.funding_status).value,
        approval_status=ApprovalStatus(row.approval_status).value,
        state=row.state,
        grant_id=row.grant_id,
        state_allocation_id=row.state_allocation_id,
    )


def allocation_snapshot(row: StateAllocation) -> AllocationSnapshot:
    return AllocationSnapshot(
        allocation_id=row.id,
        cycle_id=row.cycle_id,
        state_name=row.state_name,
        amount=row.amount,
        decision_no=row.decision_no,
    )


def rollup_project(row: Workplan) -> RollupProject:
    return RollupProject(
        project_id=row.id,
        err_code=row.err_code,
        err_name=row.err_name,
        state=row.state,
        locality=row.locality,
        serial=row.serial,
        expenses=tuple(row.expenses or ()),
        planned_activities=tuple(row.planned_activities or ()),
        project_objectives=row.project_objectives,
        intended_beneficiaries=row.intended_beneficiaries,
        estimated_beneficiaries=row.estimated_beneficiaries,
        banking_details=row.banking_details,
        submitted_at=row.submitted_at,
        created_at=row.created_at,
    )


def project_info(row: Workplan) -> ProjectInfo:
    return ProjectInfo(
        id=row.id,
        mou_id=row.mou_id,
        state=row.state,
        locality=row.locality,
        err_code=row.err_code,
        err_name=row.err_name,
        funding_status=FundingStatus(row.funding_status).value,
        approval_status=ApprovalStatus(row.approval_status).value,
        serial_status=SerialStatus(row.serial_status).value,
        amount=project_amount(row.expenses),
        grant_id=row.grant_id,
        serial=row.serial,
        workplan_number=row.workplan_number,
        previous_serial=row.previous_serial,
        state_allocation_id=row.state_allocation_id,
        grant_reference=row.grant_reference,
        submitted_at=row.submitted_at,
    )


def grant_info(row: Grant) -> GrantInfo:
    return GrantInfo(
        id=row.id,
        donor_id=row.donor_id,
        grant_code=row.grant_code,
        name=row.name,
        sum_activity_amount=row.sum_activity_amount,
        max_workplan_sequence=row.max_workplan_sequence,
    )


def donor_info(row: Donor) -> DonorInfo:
    return DonorInfo(id=row.id, name=row.name, short_code=row.short_code)


def mou_info(row: Mou, is_assigned: bool) -> MouInfo:
    return MouInfo(
        id=row.id,
        mou_code=row.mou_code,
        partner_name=row.partner_name,
        err_name=row.err_name,
        state=row.state,
        total_amount=row.total_amount,
        document_revision=row.document_revision,
        document_checksum=row.document_checksum,
        is_assigned=is_assigned,
    )


def allocation_info(row: StateAllocation) -> StateAllocationInfo:
    return StateAllocationInfo(
        id=row.id,
        cycle_id=row.cycle_id,
        state_name=row.state_name,
        amount=row.amount,
        decision_no=row.decision_no,
    )


def cycle_info(row: DistributionCycle) -> CycleInfo:
    return CycleInfo(
        id=row.id,
        name=row.name,
        year=row.year,
        cycle_number=row.cycle_number,
        type=CycleType(row.type).value,
        tranche_count=row.tranche_count,
        status=CycleStatus(row.status).value,
    )


def tranche_info(row: CycleTranche) -> TrancheInfo:
    return TrancheInfo(
        id=row.id,
        cycle_id=row.cycle_id,
        tranche_no=row.tranche_no,
        planned_cap=row.planned_cap,
        status=CycleStatus(row.status).value,
    )
