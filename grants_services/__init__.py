"""
grants_services -- caller-facing ledger operations.

Responsibility:
    Owns transaction boundaries and turns configuration into kernel
    settings.  The kernel never imports this package (enforced by
    tests/architecture/test_kernel_boundary.py).
"""

from grants_services.ledger_operations import GrantLedgerService, init_ledger

__all__ = [
    "GrantLedgerService",
    "init_ledger",
]
