"""Load, validate, and hot-reload the Formline sync configuration.

The config lives in ``sync_config.yaml`` alongside this module.  At startup
it is loaded once and cached.  Call ``reload_sync_config()`` to re-read from
disk after an edit, no restart required.

Usage::

    from formline.config_loader import get_sync_config

    config = get_sync_config()
    config.activities.concurrency_limit     # 5
    config.rate_limit.batch_delay_seconds   # 3.0
    options = config.fitness.with_overrides(concurrency_limit=2)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

from formline.metrics.training_load import TrainingLoadConstants

logger = logging.getLogger("formline.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "sync_config.yaml"


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SyncOptions:
    """Tuning for one sync orchestrator run.

    Attributes:
        concurrency_limit:        Targets processed at the same time.
        batch_size:               Page size (activities) or write batch (fitness).
        retry_attempts:           Total attempts per target, first one included.
        retry_base_delay_seconds: Backoff base; attempt n waits base * 2^(n-1).
    """

    concurrency_limit: int = 5
    batch_size: int = 100
    retry_attempts: int = 3
    retry_base_delay_seconds: float = 1.0

    def with_overrides(self, **overrides: Any) -> "SyncOptions":
        """Return a copy with the given non-None fields replaced.

        Raises:
            ConfigValidationError: On an unknown field or a non-positive value.
        """
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigValidationError(f"Unknown sync option(s): {', '.join(sorted(unknown))}")

        updates = {k: v for k, v in overrides.items() if v is not None}
        options = replace(self, **updates)
        errors = _check_options(options, "overrides")
        if errors:
            raise ConfigValidationError("; ".join(errors))
        return options


@dataclass(frozen=True)
class RateLimitConfig:
    """Pacing of Strava stream requests."""

    requests_per_batch: int = 10
    batch_delay_seconds: float = 3.0


@dataclass
class SyncConfig:
    """Complete, validated sync configuration.

    This is the single in-memory representation of sync_config.yaml.

    Attributes:
        version:       Config schema version string.
        activities:    Activity sync tuning.
        fitness:       Fitness sync tuning.
        rate_limit:    Stream request pacing.
        training_load: CTL/ATL time constants and precision.
    """

    version: str
    activities: SyncOptions
    fitness: SyncOptions
    rate_limit: RateLimitConfig
    training_load: TrainingLoadConstants
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when sync_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Sync config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _check_options(options: SyncOptions, section: str) -> list[str]:
    errors: list[str] = []
    for name in ("concurrency_limit", "batch_size", "retry_attempts"):
        if getattr(options, name) < 1:
            errors.append(f"{section}.{name} must be >= 1, got {getattr(options, name)}")
    if options.retry_base_delay_seconds < 0:
        errors.append(
            f"{section}.retry_base_delay_seconds must be >= 0, "
            f"got {options.retry_base_delay_seconds}"
        )
    return errors


def _coerce(value: Any, default: Any) -> Any:
    """Convert ``value`` to the type of ``default``; ints must be integral."""
    if isinstance(value, bool):
        raise TypeError("booleans are not numbers")
    if isinstance(default, int):
        if isinstance(value, float) and not value.is_integer():
            raise ValueError(f"{value} is not integral")
        return int(value)
    return type(default)(value)


def _build_section(raw: Any, section: str, cls: type, errors: list[str]) -> Any:
    """Build a dataclass section, coercing each value to its default's type."""
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        errors.append(f"'{section}' must be a mapping")
        return cls()

    defaults = cls()
    names = {f.name for f in fields(cls)}
    values: dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in raw:
            continue
        default = getattr(defaults, f.name)
        try:
            values[f.name] = _coerce(raw[f.name], default)
        except (TypeError, ValueError):
            kind = "an integer" if isinstance(default, int) else "a number"
            errors.append(f"{section}.{f.name} must be {kind}, got {raw[f.name]!r}")

    for key in raw:
        if key not in names:
            errors.append(f"Unknown key '{key}' in section '{section}'")
    return cls(**values)


def _validate_and_build(raw: dict) -> SyncConfig:
    """Validate the raw YAML dict and construct a SyncConfig.

    Every problem is collected before raising so one edit can fix them all.

    Raises:
        ConfigValidationError: If any section is malformed or out of range.
    """
    errors: list[str] = []

    version = str(raw.get("version", "1.0"))

    activities = _build_section(raw.get("activities"), "activities", SyncOptions, errors)
    fitness_raw = raw.get("fitness")
    if fitness_raw is None or isinstance(fitness_raw, dict):
        # Fitness writes metric rows in smaller batches than activity pages
        fitness_raw = {"batch_size": 50, **(fitness_raw or {})}
    fitness = _build_section(fitness_raw, "fitness", SyncOptions, errors)
    errors.extend(_check_options(activities, "activities"))
    errors.extend(_check_options(fitness, "fitness"))

    # ── Rate limit ──
    rate_limit = _build_section(raw.get("rate_limit"), "rate_limit", RateLimitConfig, errors)
    if rate_limit.requests_per_batch < 1:
        errors.append(
            f"rate_limit.requests_per_batch must be >= 1, got {rate_limit.requests_per_batch}"
        )
    if rate_limit.batch_delay_seconds < 0:
        errors.append(
            f"rate_limit.batch_delay_seconds must be >= 0, got {rate_limit.batch_delay_seconds}"
        )

    # ── Training load ──
    training_load = _build_section(
        raw.get("training_load"), "training_load", TrainingLoadConstants, errors
    )
    if training_load.ctl_days < 1 or training_load.atl_days < 1:
        errors.append("training_load.ctl_days and atl_days must be >= 1")
    if training_load.precision < 0:
        errors.append(f"training_load.precision must be >= 0, got {training_load.precision}")
    if training_load.atl_days >= training_load.ctl_days:
        logger.warning(
            "training_load.atl_days (%d) >= ctl_days (%d); fatigue will not lead fitness",
            training_load.atl_days,
            training_load.ctl_days,
        )

    if errors:
        raise ConfigValidationError(
            f"sync_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return SyncConfig(
        version=version,
        activities=activities,
        fitness=fitness,
        rate_limit=rate_limit,
        training_load=training_load,
        _raw=raw,
    )


def load_sync_config(path: Path | None = None) -> SyncConfig:
    """Load and validate the sync config from disk.

    Args:
        path: Override path to YAML. Uses the bundled sync_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded sync config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: SyncConfig | None = None
_config_lock = threading.Lock()


def get_sync_config() -> SyncConfig:
    """Return the global SyncConfig singleton, loading it on first call."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_sync_config()
    return _config


def reload_sync_config(path: Path | None = None) -> SyncConfig:
    """Reload the sync config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_sync_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded sync config: %s → %s", old_version, new_config.version)
    return new_config
