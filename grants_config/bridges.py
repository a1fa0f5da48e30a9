"""
Config -> Kernel Bridges.

Converts the LedgerConfig into kernel-compatible inputs.  These live in
grants_config because the kernel must never import grants_config.

Usage:
    from grants_config import get_active_config
    from grants_config.bridges import to_kernel_settings

    settings = to_kernel_settings(get_active_config())
"""

from __future__ import annotations

from grants_config.schema import LedgerConfig
from grants_kernel.domain.settings import LedgerSettings


def to_kernel_settings(config: LedgerConfig) -> LedgerSettings:
    return LedgerSettings(
        placeholder_state_code=config.serial_placeholder_state,
        state_aliases=config.alias_map,
    )
