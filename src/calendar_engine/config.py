"""
Configuration file loading.

The file is a plain INI document with a single ``[calendar-engine]``
section; every key is optional::

    [calendar-engine]
    palette_size = 8
    max_per_slot = 2
    week_start = sunday
    invalid_range_policy = collapse
    sprint_hour = 1
    project_hour = 8
    task_hour = 9
    entities_file = ~/.local/share/grid-calendar-engine/entities.json
"""

from configparser import ConfigParser
from configparser import Error as ConfigParserError
from pathlib import Path

from calendar_engine.models import ConfigError
from calendar_engine.models import EngineConfig
from calendar_engine.models import InvalidRangePolicy
from calendar_engine.models import WeekStart

SECTION = "calendar-engine"


def load_config_file(config_path: Path) -> dict[str, str]:
    if not config_path.exists():
        return {}
    parser = ConfigParser()
    try:
        parser.read(config_path)
    except ConfigParserError as e:
        raise ConfigError(f"{config_path}: {e}") from e
    if SECTION not in parser:
        return {}
    return dict(parser[SECTION])


def _int(values: dict[str, str], key: str, default: int, low: int, high: int | None = None) -> int:
    raw = values.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from None
    if value < low or (high is not None and value > high):
        bounds = f">= {low}" if high is None else f"between {low} and {high}"
        raise ConfigError(f"{key} must be {bounds}, got {value}")
    return value


def _choice(values: dict[str, str], key: str, enum_cls, default):
    raw = values.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return enum_cls(raw.strip().lower())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigError(f"{key} must be one of {allowed}, got {raw!r}") from None


def build_config(values: dict[str, str]) -> EngineConfig:
    """Validate raw key/value pairs into an EngineConfig."""
    defaults = EngineConfig()
    entities_file = values.get("entities_file")
    return EngineConfig(
        palette_size=_int(values, "palette_size", defaults.palette_size, 1),
        max_per_slot=_int(values, "max_per_slot", defaults.max_per_slot, 1),
        week_start=_choice(values, "week_start", WeekStart, defaults.week_start),
        invalid_range_policy=_choice(
            values, "invalid_range_policy", InvalidRangePolicy, defaults.invalid_range_policy
        ),
        sprint_hour=_int(values, "sprint_hour", defaults.sprint_hour, 0, 23),
        project_hour=_int(values, "project_hour", defaults.project_hour, 0, 23),
        task_hour=_int(values, "task_hour", defaults.task_hour, 0, 23),
        entities_file=(
            Path(entities_file).expanduser() if entities_file else defaults.entities_file
        ),
    )


def load_config(config_path: Path) -> EngineConfig:
    return build_config(load_config_file(config_path))
