"""
Kernel Invariants Contract.

These invariants are structural law for the allocation ledger.  No
configuration value may override them.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across the sequence service, assignment
service, linkage service, and the pure aggregate calculator.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    SEQUENCE_MONOTONICITY = "sequence_monotonicity"
    """A grant's max_workplan_sequence only ever increases.  Issued numbers
    are never reclaimed, including on reassignment away from the grant.
    Enforced by GrantSequenceService with a locked counter row."""

    REMAINING_IDENTITY = "remaining_identity"
    """remaining == total - committed - allocated for every pool figure,
    negative values included.  Enforced by PoolFigures construction."""

    LINKAGE_EXCLUSIVITY = "linkage_exclusivity"
    """Projects cannot be added to or removed from an assigned MOU.
    Enforced by LinkageService before any write."""

    SERIAL_GRANT_COUPLING = "serial_grant_coupling"
    """serial, grant_id, workplan_number and serial_status are always
    written together, and workplan_number is unique within a grant.
    Enforced by ProjectService and uq_workplan_grant_sequence."""

    CLOSED_CYCLE_FROZEN = "closed_cycle_frozen"
    """A closed cycle takes no new inclusion, allocation change, tranche
    change or project allocation until it is reopened.  Enforced by
    FundingService and ProjectService."""

    DERIVED_TOTALS = "derived_totals"
    """MOU total_amount and every pool figure are recomputed from project
    rows, never stored as independent ground truth."""


ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "grants_services",
    "grants_config",
)
