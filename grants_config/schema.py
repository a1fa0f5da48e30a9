"""
Ledger configuration schema.

Frozen dataclasses produced by grants_config.loader from YAML.  The kernel
never sees these types; grants_config.bridges converts them into
grants_kernel.domain.settings.LedgerSettings.
"""

from __future__ import annotations

from dataclasses import dataclass, field

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("database.url must be non-empty")
        if self.pool_size < 1:
            raise ValueError(f"database.pool_size must be >= 1, got {self.pool_size}")
        if self.max_overflow < 0:
            raise ValueError(f"database.max_overflow must be >= 0, got {self.max_overflow}")


@dataclass(frozen=True)
class LedgerConfig:
    """
    The single runtime configuration artifact.

    state_aliases is stored as sorted (alias, canonical) pairs so the
    object stays hashable and its checksum is order-independent.
    """

    config_id: str
    version: int
    database: DatabaseConfig
    serial_placeholder_state: str = "XX"
    state_aliases: tuple[tuple[str, str], ...] = ()
    log_level: str = "INFO"
    checksum: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if not self.serial_placeholder_state:
            raise ValueError("serials.placeholder_state must be non-empty")
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"logging.level must be one of {VALID_LOG_LEVELS}, got {self.log_level!r}"
            )
        for alias, canonical in self.state_aliases:
            if not alias or not canonical:
                raise ValueError(f"Invalid state alias {alias!r} -> {canonical!r}")

    @property
    def alias_map(self) -> dict[str, str]:
        return dict(self.state_aliases)
