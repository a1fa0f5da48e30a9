"""
Pure domain layer.

Serial formatting, pool figures, the MOU budget rollup, and result DTOs.
No ORM, no database, no clock.
"""

from grants_kernel.domain.aggregates import (
    AllocationFigures,
    AllocationSnapshot,
    CycleBudget,
    GrantPoolRow,
    InclusionSnapshot,
    PoolFigures,
    PoolSummary,
    ProjectSnapshot,
)
from grants_kernel.domain.budget_rollup import (
    BudgetTable,
    DocumentAggregator,
    MouDocument,
    MouDocumentAggregator,
    RollupProject,
)
from grants_kernel.domain.dtos import (
    BatchOperation,
    BatchReport,
    LinkageResult,
    OutcomeStatus,
    ProjectFilter,
    ProjectOutcome,
    SerialAssignment,
)
from grants_kernel.domain.serial import SERIAL_PREFIX, SerialId, validate_mmyy
from grants_kernel.domain.settings import LedgerSettings

__all__ = [
    "AllocationFigures",
    "AllocationSnapshot",
    "CycleBudget",
    "GrantPoolRow",
    "InclusionSnapshot",
    "PoolFigures",
    "PoolSummary",
    "ProjectSnapshot",
    "BudgetTable",
    "DocumentAggregator",
    "MouDocument",
    "MouDocumentAggregator",
    "RollupProject",
    "BatchOperation",
    "BatchReport",
    "LinkageResult",
    "OutcomeStatus",
    "ProjectFilter",
    "ProjectOutcome",
    "SerialAssignment",
    "SERIAL_PREFIX",
    "SerialId",
    "validate_mmyy",
    "LedgerSettings",
]
