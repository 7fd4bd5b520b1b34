"""Tests for runtime configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest
from marshmallow import ValidationError

from mailslot.config.model import RuntimeConfig
from mailslot.config.schema import RuntimeConfigSchema
from mailslot.config.settings import get_default_config, load_runtime_config
from mailslot.const import DEFAULT_MESSAGE_SIZE, DEFAULT_METRICS_PORT, INSTANCES


def test_defaults_without_file() -> None:
    config = load_runtime_config()

    assert config == RuntimeConfig()
    assert config.instances == INSTANCES
    assert config.default_message_size == DEFAULT_MESSAGE_SIZE
    assert config.metrics_port == DEFAULT_METRICS_PORT
    assert config.debug_logging is False


def test_get_default_config_mirrors_dataclass() -> None:
    defaults = get_default_config()

    assert defaults["instances"] == INSTANCES
    assert defaults["metrics_host"] == "127.0.0.1"
    assert RuntimeConfig(**defaults) == RuntimeConfig()


def test_load_from_mailslot_table(tmp_path: Path) -> None:
    path = tmp_path / "mailslot.toml"
    path.write_text(
        "[mailslot]\n"
        "instances = 8\n"
        "default_message_size = 64\n"
        "debug_logging = true\n"
        'metrics_host = " 0.0.0.0 "\n'
        "metrics_port = 0\n"
    )

    config = load_runtime_config(path)

    assert config.instances == 8
    assert config.default_message_size == 64
    assert config.debug_logging is True
    assert config.metrics_host == "0.0.0.0"
    assert config.metrics_port == 0


def test_load_from_top_level_keys(tmp_path: Path) -> None:
    path = tmp_path / "flat.toml"
    path.write_text("metrics_enabled = true\n")

    assert load_runtime_config(str(path)).metrics_enabled is True


@pytest.mark.parametrize(
    "body",
    [
        "[mailslot]\ndefault_message_size = 0\n",
        "[mailslot]\ndefault_message_size = 513\n",
        "[mailslot]\ninstances = 0\n",
        "[mailslot]\nmetrics_port = 70000\n",
        '[mailslot]\ninstances = "many"\n',
        "[mailslot]\nunknown_key = 1\n",
    ],
)
def test_invalid_values_raise_value_error(tmp_path: Path, body: str) -> None:
    path = tmp_path / "bad.toml"
    path.write_text(body)

    with pytest.raises(ValueError, match="invalid mailslot configuration"):
        load_runtime_config(path)


def test_malformed_toml_raises_value_error(tmp_path: Path) -> None:
    path = tmp_path / "broken.toml"
    path.write_text("[mailslot\n")

    with pytest.raises(ValueError, match="invalid configuration file"):
        load_runtime_config(path)


def test_missing_file_raises_os_error(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        load_runtime_config(tmp_path / "absent.toml")


def test_schema_builds_runtime_config() -> None:
    config = RuntimeConfigSchema().load({"instances": 2, "log_syslog": True})

    assert isinstance(config, RuntimeConfig)
    assert config.instances == 2
    assert config.log_syslog is True

    with pytest.raises(ValidationError) as excinfo:
        RuntimeConfigSchema().load({"default_message_size": 1000})
    assert "default_message_size" in excinfo.value.messages


@pytest.mark.parametrize(
    "kwargs",
    [
        {"instances": 0},
        {"default_message_size": 0},
        {"default_message_size": 600},
        {"metrics_host": "   "},
        {"metrics_port": -1},
    ],
)
def test_dataclass_validation(kwargs: dict[str, object]) -> None:
    with pytest.raises(ValueError):
        RuntimeConfig(**kwargs)  # type: ignore[arg-type]
