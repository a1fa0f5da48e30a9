"""
Grants Kernel - allocation and serial-assignment ledger

Tracks money through donor grants, distribution cycles, state allocations,
MOUs and field workplans with:
- Derived committed / allocated / remaining figures (no stored balances)
- Grant-scoped serial identifiers from a locked, monotonic counter
- Per-project batch reporting for assignment and reassignment
- MOU document rollups regenerated synchronously on linkage changes
"""

__version__ = "0.1.0"
