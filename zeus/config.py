"""Engine settings loaded from ``.zeus/zeus.toml``."""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from .errors import ConfigError

APPROVAL_MODES = ("default", "strict", "loose")

DEFAULT_CONFIG_TOML = """\
[engine]
risk_threshold = 6
draft_activity_limit = 5
suggestion_limit = 20
stagnation_days = 14
archive_after_days = 30
blocked_review_days = 14
default_duration = 1.0
hours_per_day = 8.0
approval_mode = "default"
"""


@dataclass(frozen=True)
class Settings:
    """Tunable thresholds for analysis and approval."""

    risk_threshold: int = 6
    draft_activity_limit: int = 5
    suggestion_limit: int = 20
    stagnation_days: int = 14
    archive_after_days: int = 30
    blocked_review_days: int = 14
    default_duration: float = 1.0
    hours_per_day: float = 8.0
    approval_mode: str = "default"


def _coerce_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _coerce_number(name: str, value: Any, kind: type) -> Any:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"engine.{name} must be a number, got {value!r}")
    if kind is int:
        if isinstance(value, float) and not value.is_integer():
            raise ConfigError(f"engine.{name} must be an integer, got {value!r}")
        value = int(value)
    else:
        value = float(value)
    if value < 0:
        raise ConfigError(f"engine.{name} must not be negative")
    return value


def settings_from_dict(data: dict[str, Any]) -> Settings:
    """Build Settings from the parsed ``[engine]`` table. Unknown keys are ignored."""
    values: dict[str, Any] = {}
    for f in fields(Settings):
        if f.name not in data:
            continue
        raw = data[f.name]
        if f.name == "approval_mode":
            mode = str(raw).strip().lower()
            if mode not in APPROVAL_MODES:
                raise ConfigError(
                    f"engine.approval_mode must be one of {', '.join(APPROVAL_MODES)}, got {raw!r}"
                )
            values[f.name] = mode
        else:
            kind = int if isinstance(f.default, int) else float
            values[f.name] = _coerce_number(f.name, raw, kind)

    if values.get("hours_per_day") == 0:
        raise ConfigError("engine.hours_per_day must be positive")
    return Settings(**values)


def load_settings(path: Path | None) -> Settings:
    """
    Load engine settings from a TOML file.

    A missing file yields the defaults. Malformed TOML or invalid values
    raise ConfigError.
    """
    if path is None or not path.exists():
        return Settings()

    import tomllib

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"{path}: {e}") from e

    return settings_from_dict(_coerce_dict(data.get("engine")))
