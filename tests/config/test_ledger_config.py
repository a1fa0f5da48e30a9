"""Tests for grants_config: YAML loading, validation, env override and bridges."""

import textwrap

import pytest
import yaml

from grants_config import DATABASE_URL_ENV, get_active_config
from grants_config.bridges import to_kernel_settings
from grants_config.loader import compute_checksum, parse_ledger_config
from grants_kernel.domain.settings import LedgerSettings


def _write(tmp_path, body: str, name: str = "default"):
    path = tmp_path / f"{name}.yaml"
    path.write_text(textwrap.dedent(body))
    return tmp_path


MINIMAL = """
    config_id: test-ledger
    version: 3
    serials:
      placeholder_state: ZZ
    state_aliases:
      Gadarif: Gadaref
    database:
      url: sqlite:///ledger.db
    logging:
      level: debug
"""


class TestShippedDefault:
    def test_default_set_loads(self, monkeypatch):
        monkeypatch.delenv(DATABASE_URL_ENV, raising=False)
        config = get_active_config()

        assert config.config_id == "grants-ledger-default"
        assert config.serial_placeholder_state == "XX"
        assert config.alias_map == {
            "Al Jazeera": "Al Jazirah",
            "Gadarif": "Gadaref",
            "Sinar": "Sennar",
        }
        assert config.database.url.startswith("postgresql://")
        assert len(config.checksum) == 64

    def test_trace_logged(self, monkeypatch, captured_logs):
        monkeypatch.delenv(DATABASE_URL_ENV, raising=False)
        config = get_active_config()
        traces = [r for r in captured_logs() if r["message"] == "GRANTS_CONFIG_TRACE"]
        assert traces[-1]["checksum"] == config.checksum


class TestLoader:
    def test_parses_custom_set(self, tmp_path, monkeypatch):
        monkeypatch.delenv(DATABASE_URL_ENV, raising=False)
        config = get_active_config(_write(tmp_path, MINIMAL))

        assert config.version == 3
        assert config.serial_placeholder_state == "ZZ"
        assert config.state_aliases == (("Gadarif", "Gadaref"),)
        assert config.log_level == "DEBUG"
        assert config.database.pool_size == 20

    def test_env_overrides_database_url(self, tmp_path, monkeypatch):
        monkeypatch.setenv(DATABASE_URL_ENV, "postgresql://other/db")
        config = get_active_config(_write(tmp_path, MINIMAL))
        assert config.database.url == "postgresql://other/db"

    def test_checksum_tracks_content(self, tmp_path, monkeypatch):
        monkeypatch.delenv(DATABASE_URL_ENV, raising=False)
        first = get_active_config(_write(tmp_path, MINIMAL))
        again = get_active_config(tmp_path)
        changed = get_active_config(
            _write(tmp_path, MINIMAL.replace("placeholder_state: ZZ", "placeholder_state: QQ"))
        )
        assert first.checksum == again.checksum
        assert first.checksum != changed.checksum

    def test_missing_set(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path, "absent")

    def test_malformed_yaml(self, tmp_path):
        with pytest.raises(yaml.YAMLError):
            get_active_config(_write(tmp_path, "config_id: [unclosed"))

    @pytest.mark.parametrize(
        "data",
        [
            {"database": {"url": "sqlite://"}},
            {"config_id": "x", "database": {}},
            {"config_id": "x", "database": {"url": "sqlite://"}, "logging": {"level": "LOUD"}},
            {"config_id": "x", "database": {"url": "sqlite://"}, "state_aliases": ["a"]},
            {"config_id": "x", "database": {"url": "sqlite://", "pool_size": 0}},
            {"config_id": "x", "database": {"url": "sqlite://"}, "serials": {"placeholder_state": ""}},
        ],
    )
    def test_invalid_config_raises_value_error(self, data):
        with pytest.raises(ValueError):
            parse_ledger_config(data)

    def test_compute_checksum_ignores_key_order(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})


class TestBridges:
    def test_to_kernel_settings(self, tmp_path, monkeypatch):
        monkeypatch.delenv(DATABASE_URL_ENV, raising=False)
        settings = to_kernel_settings(get_active_config(_write(tmp_path, MINIMAL)))

        assert isinstance(settings, LedgerSettings)
        assert settings.placeholder_state_code == "ZZ"
        assert settings.state_aliases["Gadarif"] == "Gadaref"
        with pytest.raises(TypeError):
            settings.state_aliases["new"] = "value"
