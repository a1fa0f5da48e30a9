"""ORM models for the grants kernel."""

from grants_kernel.models.cycle import (
    CycleGrantInclusion,
    CycleTranche,
    CycleStatus,
    CycleType,
    DistributionCycle,
    StateAllocation,
)
from grants_kernel.models.donor import Donor
from grants_kernel.models.grant import Grant
from grants_kernel.models.mou import Mou
from grants_kernel.models.reference import StateReference
from grants_kernel.models.workplan import (
    ApprovalStatus,
    FundingStatus,
    SerialStatus,
    Workplan,
)

__all__ = [
    "Donor",
    "Grant",
    "DistributionCycle",
    "CycleGrantInclusion",
    "CycleTranche",
    "CycleType",
    "CycleStatus",
    "StateAllocation",
    "StateReference",
    "Mou",
    "Workplan",
    "FundingStatus",
    "ApprovalStatus",
    "SerialStatus",
]
