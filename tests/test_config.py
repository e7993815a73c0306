"""Tests for engine settings."""

from pathlib import Path

import pytest

from zeus.config import DEFAULT_CONFIG_TOML, Settings, load_settings
from zeus.errors import ConfigError


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "zeus.toml"
    path.write_text(text, encoding="utf-8")
    return path


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    assert load_settings(tmp_path / "nope.toml") == Settings()
    assert load_settings(None) == Settings()


def test_default_config_matches_defaults(tmp_path: Path) -> None:
    assert load_settings(_write(tmp_path, DEFAULT_CONFIG_TOML)) == Settings()


def test_engine_overrides(tmp_path: Path) -> None:
    settings = load_settings(_write(tmp_path, '[engine]\nrisk_threshold = 4\nhours_per_day = 6\napproval_mode = "Strict"\n'))
    assert settings.risk_threshold == 4
    assert settings.hours_per_day == 6.0
    assert settings.approval_mode == "strict"
    assert settings.suggestion_limit == 20


def test_unknown_keys_and_tables_are_ignored(tmp_path: Path) -> None:
    settings = load_settings(_write(tmp_path, "[engine]\ncolour = 'blue'\n\n[other]\nx = 1\n"))
    assert settings == Settings()


@pytest.mark.parametrize(
    "body",
    [
        'approval_mode = "sometimes"',
        "stagnation_days = -1",
        "suggestion_limit = true",
        "risk_threshold = 2.5",
        'default_duration = "long"',
        "hours_per_day = 0",
    ],
)
def test_invalid_values(tmp_path: Path, body: str) -> None:
    with pytest.raises(ConfigError):
        load_settings(_write(tmp_path, f"[engine]\n{body}\n"))


def test_malformed_toml(tmp_path: Path) -> None:
    with pytest.raises(ConfigError) as exc:
        load_settings(_write(tmp_path, "[engine\nrisk_threshold = 4\n"))
    assert "zeus.toml" in str(exc.value)
