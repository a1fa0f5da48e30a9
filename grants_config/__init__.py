"""
grants_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the only way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration.  Sits above ``grants_kernel`` and below
    ``grants_services``.  The kernel MUST NEVER import from
    ``grants_config``; ``grants_config.bridges`` translates the config into
    kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- the named configuration set does not exist.
    - ``ValueError`` -- structural validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call logs
    ``GRANTS_CONFIG_TRACE`` with the config id, version and checksum.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from grants_config.loader import load_yaml_file, parse_ledger_config
from grants_config.schema import DatabaseConfig, LedgerConfig

_logger = logging.getLogger("grants_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

DATABASE_URL_ENV = "GRANTS_LEDGER_DATABASE_URL"


def get_active_config(
    config_dir: Path | None = None,
    config_name: str = "default",
) -> LedgerConfig:
    """
    The only public configuration entrypoint.

    Loads ``<config_dir>/<config_name>.yaml`` (default
    ``grants_config/sets/default.yaml``).  When ``GRANTS_LEDGER_DATABASE_URL``
    is set it replaces ``database.url``.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ValueError: If validation fails.
    """
    sets_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR
    path = sets_dir / f"{config_name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"Configuration set not found: {path}")

    config = parse_ledger_config(
        load_yaml_file(path),
        database_url_override=os.environ.get(DATABASE_URL_ENV) or None,
    )

    _logger.info(
        "GRANTS_CONFIG_TRACE",
        extra={
            "trace_type": "GRANTS_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "alias_count": len(config.state_aliases),
        },
    )
    return config


__all__ = [
    "DATABASE_URL_ENV",
    "DatabaseConfig",
    "LedgerConfig",
    "get_active_config",
]
