"""Write services for the grants kernel.  Callers own the transaction."""

from grants_kernel.services.assignment_service import AssignmentService
from grants_kernel.services.funding_service import FundingService
from grants_kernel.services.linkage_service import LinkageService
from grants_kernel.services.project_service import ProjectService
from grants_kernel.services.sequence_service import GrantSequenceService
from grants_kernel.services.serial_allocator import SerialAllocator

__all__ = [
    "AssignmentService",
    "FundingService",
    "GrantSequenceService",
    "LinkageService",
    "ProjectService",
    "SerialAllocator",
]
