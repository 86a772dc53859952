from pathlib import Path

import pytest
from pydantic import ValidationError

from attachgate.config import Config, RefreshPolicy, TelemetryConfig

BASE = {"INSTANCE_URL": "https://acme.example.com/"}


def test_defaults():
    config = Config.model_validate(BASE)
    assert config.instance_url == "https://acme.example.com"
    assert config.table_name == ""
    assert config.extensions == ""
    assert config.read_only is False
    assert config.session_token is None
    assert config.toast_dwell_seconds == 15.0
    assert config.max_toasts is None
    assert config.refresh_policy is RefreshPolicy.MERGE
    assert config.request_timeout is None
    assert config.telemetry == TelemetryConfig()
    assert not config.has_record


def test_aliases_and_field_names():
    by_alias = Config.model_validate(
        {**BASE, "TABLE_NAME": "incident", "RECORD_ID": "abc", "EXTENSIONS": "pdf docx"}
    )
    by_name = Config(
        instance_url="https://acme.example.com",
        table_name="incident",
        record_id="abc",
        extensions="pdf docx",
    )
    assert by_alias == by_name
    assert by_alias.has_record


@pytest.mark.parametrize(
    ("raw", "expected"), [("true", True), ("TRUE ", True), ("false", False), ("", False), (True, True)]
)
def test_read_only_accepts_strings(raw, expected: bool):
    assert Config.model_validate({**BASE, "READ_ONLY": raw}).read_only is expected


def test_extensions_none_is_empty():
    assert Config.model_validate({**BASE, "EXTENSIONS": None}).extensions == ""


@pytest.mark.parametrize("raw", ["replace", "REPLACE", RefreshPolicy.REPLACE])
def test_refresh_policy(raw):
    assert Config.model_validate({**BASE, "REFRESH_POLICY": raw}).refresh_policy is (
        RefreshPolicy.REPLACE
    )


@pytest.mark.parametrize(
    "overrides",
    [
        {"INSTANCE_URL": "ftp://acme.example.com"},
        {"INSTANCE_URL": "not a url"},
        {"TOAST_DWELL_SECONDS": 0},
        {"MAX_TOASTS": 0},
        {"REFRESH_POLICY": "sometimes"},
        {"TELEMETRY": {"enabled": True, "endpoint": "localhost:4317"}},
    ],
)
def test_invalid_values(overrides: dict):
    with pytest.raises(ValidationError):
        Config.model_validate({**BASE, **overrides})


def test_config_is_frozen():
    config = Config.model_validate(BASE)
    with pytest.raises(ValidationError):
        config.read_only = True  # type: ignore[misc]


def test_parse_yaml(tmp_path: Path):
    path = tmp_path / "config.yml"
    path.write_text(
        "INSTANCE_URL: https://acme.example.com\n"
        "TABLE_NAME: incident\n"
        "RECORD_ID: abc\n"
        "READ_ONLY: 'true'\n"
        "TELEMETRY:\n"
        "  enabled: true\n"
        "  console_export: true\n"
    )
    config = Config.parse_yaml(str(path))
    assert config.table_name == "incident"
    assert config.read_only is True
    assert config.telemetry.console_export is True


def test_parse_yaml_missing_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    with pytest.raises(SystemExit) as exc:
        Config.parse_yaml(str(tmp_path / "missing.yml"))
    assert exc.value.code == 1
    assert "Config file not found" in capsys.readouterr().err
