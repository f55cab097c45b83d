"""
inkpipe: Defaults (Presets)

Throttle and correction records are frozen. Overrides build new records
with dataclasses.replace; owners swap their reference, so a change applies
from the next processed sample on.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, Mapping


class SmoothingMethod(str, Enum):
    LINEAR = "linear"
    CATMULL_ROM = "catmull_rom"
    ADAPTIVE = "adaptive"


class DevicePreset(str, Enum):
    GENERIC = "generic"
    APPLE_PENCIL = "apple-pencil"
    WACOM = "wacom"


@dataclass(frozen=True)
class ThrottleConfig:
    min_time_interval_ms: float = 8.0     # ~120 Hz
    min_distance: float = 1.0             # canvas units
    max_buffer_size: int = 32
    force_flush_interval_ms: float = 16.0  # ~60 Hz


@dataclass(frozen=True)
class PressureCorrectionConfig:
    enabled: bool = True
    # device id -> pressure multiplier
    device_calibration: Mapping[str, float] = field(default_factory=lambda: {
        DevicePreset.APPLE_PENCIL.value: 1.0,
        DevicePreset.WACOM.value: 0.8,
        DevicePreset.GENERIC.value: 1.0,
    })
    smoothing_window: int = 3
    min_pressure_change: float = 0.01
    fallback_pressure: float = 0.5
    # which calibration entry applies to the current stroke
    active_device: str = DevicePreset.GENERIC.value


@dataclass(frozen=True)
class SmoothingConfig:
    enabled: bool = True
    strength: float = 0.3            # 0 = off, 1 = max
    method: SmoothingMethod = SmoothingMethod.LINEAR
    realtime_mode: bool = True
    min_points: int = 2
    max_processing_time_ms: float = 1.0
    adaptive_speed_threshold: float = 100.0  # canvas units / second


@dataclass(frozen=True)
class CorrectionConfig:
    pressure_correction: PressureCorrectionConfig = PressureCorrectionConfig()
    smoothing: SmoothingConfig = SmoothingConfig()


@dataclass(frozen=True)
class InputFilterConfig:
    enable_duplicate_filtering: bool = True
    # drop moves whose only news is a tiny pressure change; this also drops
    # moves with steady pressure
    filter_pressure_only_changes: bool = False
    min_pressure_change: float = 0.01


DEFAULT_THROTTLE = ThrottleConfig()
DEFAULT_CORRECTION = CorrectionConfig()
DEFAULT_INPUT_FILTER = InputFilterConfig()


# ============================================================
# Device presets
# ============================================================

# Overrides on top of the base correction config, per detected device.
DEVICE_PRESETS: Dict[DevicePreset, Dict[str, Dict[str, Any]]] = {
    DevicePreset.APPLE_PENCIL: {
        # good native smoothing; be sensitive to pressure
        "pressure_correction": {"enabled": True, "smoothing_window": 2, "min_pressure_change": 0.005},
        "smoothing": {"enabled": True, "strength": 0.2, "method": SmoothingMethod.LINEAR, "realtime_mode": True},
    },
    DevicePreset.WACOM: {
        # jittery; smooth more and ignore small pressure wobble
        "pressure_correction": {"enabled": True, "smoothing_window": 4, "min_pressure_change": 0.02},
        "smoothing": {"enabled": True, "strength": 0.4, "method": SmoothingMethod.CATMULL_ROM, "realtime_mode": False},
    },
    DevicePreset.GENERIC: {
        # most generic devices have no usable pressure
        "pressure_correction": {"enabled": False},
        "smoothing": {"enabled": True, "strength": 0.3, "method": SmoothingMethod.LINEAR, "realtime_mode": True},
    },
}


def _checked_replace(record, overrides: Mapping[str, Any]):
    known = {f.name for f in fields(record)}
    unknown = set(overrides) - known
    if unknown:
        raise ValueError(f"unknown {type(record).__name__} field(s): {sorted(unknown)}")
    return replace(record, **overrides)


def with_throttle_overrides(base: ThrottleConfig, **overrides: Any) -> ThrottleConfig:
    return _checked_replace(base, overrides)


def merge_correction_config(base: CorrectionConfig, overrides: Mapping[str, Any]) -> CorrectionConfig:
    """
    Partial update of a CorrectionConfig.

    overrides looks like {"smoothing": {"strength": 0.5}}; a full sub-record
    (PressureCorrectionConfig / SmoothingConfig) is accepted as a value too.
    """
    pressure = base.pressure_correction
    smoothing = base.smoothing

    for key, value in overrides.items():
        if key == "pressure_correction":
            if isinstance(value, PressureCorrectionConfig):
                pressure = value
            else:
                value = dict(value)
                if "device_calibration" in value:
                    value["device_calibration"] = {**pressure.device_calibration, **value["device_calibration"]}
                pressure = _checked_replace(pressure, value)
        elif key == "smoothing":
            if isinstance(value, SmoothingConfig):
                smoothing = value
            else:
                value = dict(value)
                if "method" in value:
                    value["method"] = SmoothingMethod(value["method"])
                smoothing = _checked_replace(smoothing, value)
        else:
            raise ValueError(f"unknown CorrectionConfig section: {key!r}")

    return CorrectionConfig(pressure_correction=pressure, smoothing=smoothing)


def device_preset_config(device_id: str, base: CorrectionConfig = DEFAULT_CORRECTION) -> CorrectionConfig:
    """Base config tuned for a detected device id; unknown ids get the generic preset."""
    try:
        preset = DevicePreset(device_id)
    except ValueError:
        preset = DevicePreset.GENERIC
    merged = merge_correction_config(base, DEVICE_PRESETS[preset])
    return merge_correction_config(merged, {"pressure_correction": {"active_device": preset.value}})
