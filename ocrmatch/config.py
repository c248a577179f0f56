"""Configuration for the matcher: YAML file plus environment overrides.

Environment variables use the ``OCRMATCH_`` prefix followed by the field
name, e.g. ``OCRMATCH_MATCH_THRESHOLD=0.8``.
"""

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional

import yaml

log = logging.getLogger(__name__)

ENV_PREFIX = 'OCRMATCH_'


@dataclass(frozen=True)
class MatcherConfig:
    """Tunable matching thresholds and service settings."""

    match_threshold: float = 0.75
    hold_misses: int = 5
    min_token_length: int = 3
    max_token_length: int = 25
    roster_path: Optional[str] = None
    roster_url: Optional[str] = None
    refresh_interval: float = 0.0   # Seconds, 0 disables periodic refresh
    host: str = '127.0.0.1'
    port: int = 8000
    log_level: str = 'INFO'

    def validate(self) -> 'MatcherConfig':
        """Check value ranges.

        Raises:
            ValueError: If a value is out of range.
        """
        if not 0.0 < self.match_threshold <= 1.0:
            raise ValueError(
                f"match_threshold muss in (0, 1] liegen, ist {self.match_threshold}"
            )
        if self.hold_misses < 1:
            raise ValueError(f"hold_misses muss >= 1 sein, ist {self.hold_misses}")
        if not 3 <= self.min_token_length <= self.max_token_length:
            raise ValueError(
                "Token-Laengen ungueltig: "
                f"min={self.min_token_length}, max={self.max_token_length}"
            )
        if self.refresh_interval < 0:
            raise ValueError(
                f"refresh_interval darf nicht negativ sein, ist {self.refresh_interval}"
            )
        return self


_DEFAULTS = {f.name: f.default for f in fields(MatcherConfig)}


def _convert_env_value(value: str, target: Any) -> Any:
    """Convert an environment string to the type of the field default."""
    if isinstance(target, bool):
        return value.lower() in ('true', 'yes', '1', 'on')
    if isinstance(target, int):
        return int(value)
    if isinstance(target, float):
        return float(value)
    if value == '':
        return None
    return value


def _apply_overrides(config: MatcherConfig, values: dict[str, Any]) -> MatcherConfig:
    """Apply a flat mapping of field overrides.

    Raises:
        ValueError: For unknown keys.
    """
    known = {f.name for f in fields(MatcherConfig)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(f"Unbekannte Konfigurationsschluessel: {', '.join(sorted(unknown))}")
    return replace(config, **{
        name: _coerce_number(name, value, _DEFAULTS[name])
        for name, value in values.items()
    })


def _coerce_number(name: str, value: Any, target: Any) -> Any:
    """Convert a value for a numeric field, e.g. a quoted YAML number.

    Raises:
        ValueError: If the value is not a number.
    """
    if not isinstance(target, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return _convert_env_value(value, target)
        except ValueError as exc:
            raise ValueError(f"{name} muss eine Zahl sein, ist {value!r}") from exc
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} muss eine Zahl sein, ist {value!r}")
    return value


def _environment_overrides(config: MatcherConfig) -> dict[str, Any]:
    """Collect ``OCRMATCH_*`` overrides for known fields."""
    overrides: dict[str, Any] = {}
    for f in fields(MatcherConfig):
        env_value = os.environ.get(ENV_PREFIX + f.name.upper())
        if env_value is None:
            continue
        overrides[f.name] = _convert_env_value(env_value, f.default)
    return overrides


def load_config(path: str | Path | None = None, **overrides: Any) -> MatcherConfig:
    """Load the matcher configuration.

    Precedence, lowest first: defaults, YAML file, environment, keyword
    overrides (typically CLI arguments; None values are ignored).

    Args:
        path: Optional YAML file. Keys may sit at top level or under
            ``matcher:``.
        **overrides: Explicit field values.

    Returns:
        Validated MatcherConfig.

    Raises:
        ValueError: For unknown keys or out-of-range values.
        FileNotFoundError: If ``path`` does not exist.
    """
    config = MatcherConfig()

    if path is not None:
        path = Path(path)
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Konfiguration {path} ist kein Mapping.")
        data = data.get('matcher', data) or {}
        config = _apply_overrides(config, data)
        log.debug("Konfiguration gelesen aus %s", path)

    config = _apply_overrides(config, _environment_overrides(config))
    config = _apply_overrides(
        config, {k: v for k, v in overrides.items() if v is not None},
    )
    return config.validate()
