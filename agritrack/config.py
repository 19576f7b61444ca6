"""Tracking settings and logging setup."""

from __future__ import annotations

import json
import sys
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, TextIO

from loguru import logger

LOG_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


@dataclass(frozen=True, slots=True)
class TrackingSettings:
    """Settings snapshot used by one tracking session.

    Attributes
    ----------
    min_speed, max_speed : float
        Spreading speed window in km/h.
    storage_radius : float
        Storage detection radius in meters.
    slurry_load_size, manure_load_size : float
        m³ per load of each fertilizer type.
    spread_width, slurry_spread_width, manure_spread_width : float
        Working widths in meters; the plain one applies to non-organic work.
    accuracy_tolerance_m : float
        Live fixes less accurate than this are dropped.
    loading_speed_kmh : float
        Below this speed a vehicle at a storage is loading.
    moving_speed_kmh : float
        Above this speed a loading vehicle outside the storage radius has left.
    live_thinning_m, simulated_thinning_m : float
        Minimum spacing of recorded points for real GPS and test mode.
    storage_dwell_seconds : float
        Time to stay at a storage before a load counts.
    simulation_interval_ms : int
        Minimum time between simulated drag fixes.
    """

    min_speed: float = 2.0
    max_speed: float = 8.0
    storage_radius: float = 15.0
    slurry_load_size: float = 10.0
    manure_load_size: float = 8.0
    spread_width: float = 12.0
    slurry_spread_width: float = 12.0
    manure_spread_width: float = 10.0
    accuracy_tolerance_m: float = 50.0
    loading_speed_kmh: float = 2.0
    moving_speed_kmh: float = 3.5
    live_thinning_m: float = 0.5
    simulated_thinning_m: float = 0.2
    storage_dwell_seconds: float = 0.0
    simulation_interval_ms: int = 80

    def __post_init__(self) -> None:
        if self.min_speed < 0:
            raise ValueError("min_speed must be >= 0")
        if self.max_speed < self.min_speed:
            raise ValueError("max_speed must be >= min_speed")
        if self.storage_radius <= 0:
            raise ValueError("storage_radius must be > 0")
        if self.slurry_load_size < 0 or self.manure_load_size < 0:
            raise ValueError("load sizes must be >= 0")
        if self.accuracy_tolerance_m <= 0:
            raise ValueError("accuracy_tolerance_m must be > 0")
        if self.live_thinning_m < 0 or self.simulated_thinning_m < 0:
            raise ValueError("thinning thresholds must be >= 0")
        if self.storage_dwell_seconds < 0:
            raise ValueError("storage_dwell_seconds must be >= 0")
        if self.simulation_interval_ms < 0:
            raise ValueError("simulation_interval_ms must be >= 0")


DEFAULT_SETTINGS = TrackingSettings()


def settings_from_dict(data: dict[str, Any], base: TrackingSettings = DEFAULT_SETTINGS) -> TrackingSettings:
    """Build settings from a plain mapping.

    Unknown keys are logged and ignored so that settings files written by
    newer versions still load.

    Parameters
    ----------
    data : dict[str, Any]
        Mapping of setting name to value.
    base : TrackingSettings, optional
        Settings providing values for missing keys.

    Returns
    -------
    TrackingSettings
        Validated settings.

    Raises
    ------
    ValueError
        Raised when a value has the wrong type or violates a bound.
    """
    known = {f.name: f for f in fields(TrackingSettings)}
    updates: dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            logger.warning(f"Ignoring unknown setting: {key}")
            continue
        try:
            updates[key] = int(value) if key == "simulation_interval_ms" else float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid value for setting {key!r}: {value!r}") from exc
    return replace(base, **updates)


def load_settings(path: str | Path) -> TrackingSettings:
    """Load settings from a JSON file.

    A missing file yields the defaults.

    Parameters
    ----------
    path : str | Path
        Settings file path.

    Returns
    -------
    TrackingSettings
        Loaded settings.
    """
    settings_path = Path(path)
    if not settings_path.exists():
        logger.info(f"Settings file not found, using defaults: {settings_path}")
        return DEFAULT_SETTINGS
    with open(settings_path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Settings file must contain a JSON object: {settings_path}")
    settings = settings_from_dict(data)
    logger.debug(f"Loaded settings from {settings_path}")
    return settings


def save_settings(settings: TrackingSettings, path: str | Path) -> None:
    """Write settings to a JSON file, creating parent folders."""
    settings_path = Path(path)
    settings_path.parent.mkdir(parents=True, exist_ok=True)
    with open(settings_path, "w", encoding="utf-8") as f:
        json.dump(asdict(settings), f, indent=2, ensure_ascii=False)
    logger.info(f"Saved settings to {settings_path}")


def configure_logging(level: str = "DEBUG", sink: TextIO | None = None) -> int:
    """Install the application log handler.

    Parameters
    ----------
    level : str, optional
        Minimum log level.
    sink : TextIO, optional
        Output stream, ``sys.stderr`` by default.

    Returns
    -------
    int
        Loguru handler id, usable with ``logger.remove``.
    """
    logger.remove()
    return logger.add(sink if sink is not None else sys.stderr, format=LOG_FORMAT, level=level)
