from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional

from inkpipe.core.config import CorrectionConfig, merge_correction_config
from inkpipe.core.types import EventKind, NormalizedInputEvent, clamp

log = logging.getLogger("inkpipe.calibration")

MIN_MULTIPLIER = 0.5
MAX_MULTIPLIER = 2.0


@dataclass
class CalibResult:
    device_id: str
    multiplier: float
    p10: float
    p50: float
    p90: float
    samples: int


def _profile_path() -> Path:
    env = os.environ.get("INKPIPE_PROFILE")
    if env:
        return Path(env).expanduser()
    return Path.home() / ".config" / "inkpipe" / "profile.json"


def load_profile(path: Optional[Path] = None) -> Optional[dict]:
    p = Path(path) if path is not None else _profile_path()
    if not p.exists():
        return None
    try:
        data = json.loads(p.read_text())
    except (OSError, ValueError) as e:
        log.warning("could not read profile %s: %s", p, e)
        return None
    if not isinstance(data, dict):
        log.warning("ignoring profile %s: expected an object, got %s", p, type(data).__name__)
        return None
    return data


def save_profile(r: CalibResult, path: Optional[Path] = None) -> Path:
    """Store the result's multiplier, keeping other devices already in the profile."""
    p = Path(path) if path is not None else _profile_path()
    p.parent.mkdir(parents=True, exist_ok=True)

    prof = load_profile(p) or {}
    cal = dict(prof.get("device_calibration") or {})
    cal[r.device_id] = r.multiplier
    prof["device_calibration"] = cal
    prof.setdefault("calibrations", {})[r.device_id] = asdict(r)

    p.write_text(json.dumps(prof, indent=2))
    return p


def apply_profile(config: CorrectionConfig, profile: Optional[dict]) -> CorrectionConfig:
    """Merge the profile's per-device multipliers into `config`. Bad entries are skipped."""
    if not profile:
        return config

    cal: Dict[str, float] = {}
    for device_id, value in (profile.get("device_calibration") or {}).items():
        try:
            cal[str(device_id)] = float(value)
        except (TypeError, ValueError):
            log.warning("ignoring calibration for %s: not a number (%r)", device_id, value)
    if not cal:
        return config
    return merge_correction_config(config, {"pressure_correction": {"device_calibration": cal}})


def percentile(xs, q):
    if not xs:
        return None
    xs = sorted(xs)
    k = int(round((q / 100.0) * (len(xs) - 1)))
    return xs[max(0, min(len(xs) - 1, k))]


class PressureCalibrator:
    """
    Collects pen pressures for one device while the user draws a few
    firm strokes, then picks the multiplier that brings a firm stroke
    (90th percentile) to `target`.

    Samples at 0, or exactly 0.5, carry no pressure signal and are skipped.
    """

    def __init__(self, device_id: str, target: float = 0.8, min_samples: int = 20):
        self.device_id = device_id
        self.target = target
        self.min_samples = min_samples
        self.samples: List[float] = []

    def start(self):
        self.samples.clear()

    def add(self, pressure: float) -> bool:
        if pressure <= 0.0 or pressure == 0.5 or pressure > 1.0:
            return False
        self.samples.append(float(pressure))
        return True

    def update(self, ev: NormalizedInputEvent) -> bool:
        if ev.kind == EventKind.CANCEL:
            return False
        return self.add(ev.pressure)

    @property
    def done(self) -> bool:
        return len(self.samples) >= self.min_samples

    def instruction(self) -> str:
        if self.done:
            return "Calibration complete."
        return f"Draw a few firm strokes ({len(self.samples)}/{self.min_samples} samples)."

    def finalize(self) -> CalibResult:
        p90 = percentile(self.samples, 90)
        if not self.done or not p90:
            # not enough signal: leave the device as it is
            return CalibResult(self.device_id, 1.0, 0.0, 0.0, 0.0, len(self.samples))

        return CalibResult(
            device_id=self.device_id,
            multiplier=float(clamp(self.target / p90, MIN_MULTIPLIER, MAX_MULTIPLIER)),
            p10=float(percentile(self.samples, 10)),
            p50=float(percentile(self.samples, 50)),
            p90=float(p90),
            samples=len(self.samples),
        )
