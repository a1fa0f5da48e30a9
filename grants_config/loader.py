"""
Configuration Loader (``grants_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen
``grants_config.schema`` dataclasses.  Runtime callers go through
``grants_config.get_active_config()`` instead of calling this directly.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing or invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from grants_config.schema import DatabaseConfig, LedgerConfig


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization; identical data, identical checksum."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_database(data: dict[str, Any], url_override: str | None = None) -> DatabaseConfig:
    url = url_override or data.get("url")
    if not url:
        raise ValueError("database.url is required")
    return DatabaseConfig(
        url=url,
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 20)),
        max_overflow=int(data.get("max_overflow", 10)),
    )


def parse_state_aliases(data: Any) -> tuple[tuple[str, str], ...]:
    if data is None:
        return ()
    if not isinstance(data, dict):
        raise ValueError(f"state_aliases must be a mapping, got {type(data).__name__}")
    return tuple(sorted((str(k).strip(), str(v).strip()) for k, v in data.items()))


def parse_ledger_config(
    data: dict[str, Any],
    database_url_override: str | None = None,
) -> LedgerConfig:
    """
    Parse a ``LedgerConfig`` from a dict.

    The checksum covers the parsed content after the database url override
    is applied, so two processes pointed at different databases report
    different checksums.
    """
    if "config_id" not in data:
        raise ValueError("config_id is required")

    serials = data.get("serials") or {}
    logging_section = data.get("logging") or {}
    database = parse_database(data.get("database") or {}, database_url_override)
    aliases = parse_state_aliases(data.get("state_aliases"))

    placeholder = str(serials.get("placeholder_state", "XX")).strip()
    log_level = str(logging_section.get("level", "INFO")).upper()

    checksum = compute_checksum(
        {
            "config_id": data["config_id"],
            "version": data.get("version", 1),
            "placeholder_state": placeholder,
            "state_aliases": [list(pair) for pair in aliases],
            "database": {
                "url": database.url,
                "echo": database.echo,
                "pool_size": database.pool_size,
                "max_overflow": database.max_overflow,
            },
            "log_level": log_level,
        }
    )

    return LedgerConfig(
        config_id=str(data["config_id"]),
        version=int(data.get("version", 1)),
        database=database,
        serial_placeholder_state=placeholder,
        state_aliases=aliases,
        log_level=log_level,
        checksum=checksum,
    )
