"""Load, validate, and hot-reload the Adhera tracking configuration.

The config lives in ``tracking_config.yaml`` alongside this module.  At
startup it is loaded once and cached.  Call ``reload_tracking_config()`` to
re-read from disk after an edit — no restart required.

Usage::

    from src.tracking.config_loader import get_tracking_config

    config = get_tracking_config()
    config.reconciliation.tolerance            # timedelta(minutes=30)
    config.normalization.default_time_of_day   # time(9, 0)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import time, timedelta
from pathlib import Path

import yaml

from src.tracking.base import Frequency, RetentionPeriod

logger = logging.getLogger("adhera.tracking.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "tracking_config.yaml"


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class ReconciliationConfig:
    """Dose-to-slot matching settings."""

    tolerance_minutes: int = 30

    @property
    def tolerance(self) -> timedelta:
        return timedelta(minutes=self.tolerance_minutes)


@dataclass
class NormalizationConfig:
    """Defaults applied when a schedule draft is incomplete."""

    default_time_of_day: time = time(9, 0)
    default_weekday: int = 1
    default_custom_interval_days: int = 1
    default_times: dict[Frequency, list[time]] = field(default_factory=dict)
    max_start_date_future_days: int = 3650


@dataclass
class ViewsConfig:
    upcoming_limit: int = 5


@dataclass
class AnalyticsConfig:
    default_window_days: int = 30
    cancellation_check_days: int = 7


@dataclass
class TrackingConfig:
    """Complete, validated tracking configuration.

    This is the single in-memory representation of tracking_config.yaml.
    The reconciler, analyzer, normalizer and coordinator read from it.

    Attributes:
        version:          Config schema version string.
        reconciliation:   Tolerance window for matching doses to slots.
        normalization:    Defaults used to repair schedule drafts.
        views:            Today/upcoming view settings.
        analytics:        Adherence analytics settings.
        default_retention: Retention period applied until changed at runtime.
    """

    version: str = "1.0"
    reconciliation: ReconciliationConfig = field(default_factory=ReconciliationConfig)
    normalization: NormalizationConfig = field(default_factory=NormalizationConfig)
    views: ViewsConfig = field(default_factory=ViewsConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
    default_retention: RetentionPeriod = RetentionPeriod.months_6
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when tracking_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Tracking config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _parse_time(raw: object, where: str, errors: list[str]) -> time | None:
    if isinstance(raw, time):
        return raw
    if isinstance(raw, int):
        # YAML 1.1 reads unquoted 09:00 as a sexagesimal integer (minutes)
        hours, minutes = divmod(raw, 60)
        if 0 <= hours < 24:
            return time(hours, minutes)
    if isinstance(raw, str):
        try:
            return time.fromisoformat(raw.strip())
        except ValueError:
            pass
    errors.append(f"{where} must be a HH:MM time, got {raw!r}")
    return None


def _positive_int(raw: object, where: str, errors: list[str], default: int) -> int:
    if raw is None:
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        errors.append(f"{where} must be an integer, got {raw!r}")
        return default
    if value < 1:
        errors.append(f"{where} must be >= 1, got {value}")
        return default
    return value


def _validate_and_build(raw: dict) -> TrackingConfig:
    """Validate the raw YAML dict and construct a TrackingConfig.

    All problems are collected and reported together.

    Raises:
        ConfigValidationError: If any value is missing or invalid.
    """
    errors: list[str] = []

    version = str(raw.get("version", "1.0"))

    # ── Reconciliation ──
    rc_raw = raw.get("reconciliation") or {}
    reconciliation = ReconciliationConfig(
        tolerance_minutes=_positive_int(
            rc_raw.get("tolerance_minutes"), "reconciliation.tolerance_minutes", errors, 30
        ),
    )

    # ── Normalization ──
    nm_raw = raw.get("normalization") or {}
    default_time = _parse_time(
        nm_raw.get("default_time_of_day", "09:00"),
        "normalization.default_time_of_day",
        errors,
    )
    default_weekday = _positive_int(
        nm_raw.get("default_weekday"), "normalization.default_weekday", errors, 1
    )
    if default_weekday > 7:
        errors.append(f"normalization.default_weekday must be 1..7, got {default_weekday}")

    default_times: dict[Frequency, list[time]] = {}
    for key, times_raw in (nm_raw.get("default_times") or {}).items():
        try:
            frequency = Frequency(key)
        except ValueError:
            errors.append(f"normalization.default_times.{key} is not a known frequency")
            continue
        if not isinstance(times_raw, list):
            errors.append(f"normalization.default_times.{key} must be a list of times")
            continue
        parsed = [
            _parse_time(t, f"normalization.default_times.{key}[{i}]", errors)
            for i, t in enumerate(times_raw)
        ]
        default_times[frequency] = [t for t in parsed if t is not None]

    normalization = NormalizationConfig(
        default_time_of_day=default_time or time(9, 0),
        default_weekday=default_weekday,
        default_custom_interval_days=_positive_int(
            nm_raw.get("default_custom_interval_days"),
            "normalization.default_custom_interval_days",
            errors,
            1,
        ),
        default_times=default_times,
        max_start_date_future_days=_positive_int(
            nm_raw.get("max_start_date_future_days"),
            "normalization.max_start_date_future_days",
            errors,
            3650,
        ),
    )

    # ── Views ──
    vw_raw = raw.get("views") or {}
    views = ViewsConfig(
        upcoming_limit=_positive_int(vw_raw.get("upcoming_limit"), "views.upcoming_limit", errors, 5),
    )

    # ── Analytics ──
    an_raw = raw.get("analytics") or {}
    analytics = AnalyticsConfig(
        default_window_days=_positive_int(
            an_raw.get("default_window_days"), "analytics.default_window_days", errors, 30
        ),
        cancellation_check_days=_positive_int(
            an_raw.get("cancellation_check_days"), "analytics.cancellation_check_days", errors, 7
        ),
    )

    # ── Retention ──
    rt_raw = raw.get("retention") or {}
    default_retention = RetentionPeriod.months_6
    if "default_days" in rt_raw:
        try:
            default_retention = RetentionPeriod.from_days(rt_raw["default_days"])
        except ValueError as exc:
            errors.append(f"retention.default_days: {exc}")

    if errors:
        raise ConfigValidationError(
            f"tracking_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return TrackingConfig(
        version=version,
        reconciliation=reconciliation,
        normalization=normalization,
        views=views,
        analytics=analytics,
        default_retention=default_retention,
        _raw=raw,
    )


def load_tracking_config(path: Path | None = None) -> TrackingConfig:
    """Load and validate the tracking config from disk.

    Args:
        path: Override path to YAML. Uses the bundled tracking_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded tracking config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Cached instance with hot-reload support
# ---------------------------------------------------------------------------

_config: TrackingConfig | None = None
_config_lock = threading.Lock()


def get_tracking_config() -> TrackingConfig:
    """Return the cached TrackingConfig, loading it on first call.  Thread-safe."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_tracking_config()
    return _config


def reload_tracking_config(path: Path | None = None) -> TrackingConfig:
    """Reload the tracking config from disk and replace the cached instance.

    If validation fails, the old config is retained and the error re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_tracking_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded tracking config: %s → %s", old_version, new_config.version)
    return new_config
