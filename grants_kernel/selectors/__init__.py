"""Read-only selectors for the grants kernel."""

from grants_kernel.selectors.ledger_selector import LedgerSelector
from grants_kernel.selectors.pool_selector import PoolSelector
from grants_kernel.selectors.reference_selector import ReferenceSelector

__all__ = [
    "LedgerSelector",
    "PoolSelector",
    "ReferenceSelector",
]
