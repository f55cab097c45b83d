import json
import logging

import pytest

from inkpipe.core.config import DEFAULT_CORRECTION
from inkpipe.core.types import EventKind, NormalizedInputEvent, StrokePoint
from inkpipe.runtime.calibration import (
    CalibResult, PressureCalibrator, apply_profile, load_profile, percentile, save_profile,
)


def test_percentile():
    assert percentile([], 50) is None
    assert percentile([3, 1, 2], 50) == 2
    assert percentile([1, 2, 3, 4, 5], 90) == 5
    assert percentile([1, 2, 3, 4, 5], 0) == 1


def test_calibrator_skips_no_signal_values():
    cal = PressureCalibrator("wacom")
    assert not cal.add(0.0)
    assert not cal.add(0.5)
    assert not cal.add(1.3)
    assert cal.add(0.7)
    assert cal.samples == [0.7]


def test_calibrator_multiplier_from_p90():
    cal = PressureCalibrator("wacom", target=0.8, min_samples=10)
    for _ in range(10):
        cal.add(0.64)
    assert cal.done

    r = cal.finalize()
    assert r.device_id == "wacom"
    assert r.multiplier == pytest.approx(1.25)
    assert r.p90 == pytest.approx(0.64)
    assert r.samples == 10


def test_calibrator_multiplier_is_bounded():
    cal = PressureCalibrator("light-pen", min_samples=5)
    for _ in range(5):
        cal.add(0.1)
    assert cal.finalize().multiplier == 2.0


def test_calibrator_needs_enough_samples():
    cal = PressureCalibrator("wacom", min_samples=20)
    cal.add(0.3)
    assert "1/20" in cal.instruction()
    assert cal.finalize().multiplier == 1.0


def test_calibrator_consumes_events():
    cal = PressureCalibrator("wacom")
    move = NormalizedInputEvent(point=StrokePoint(0, 0, 0.7, 0), kind=EventKind.MOVE)
    cancel = NormalizedInputEvent(point=StrokePoint(0, 0, 0.7, 0), kind=EventKind.CANCEL)
    assert cal.update(move)
    assert not cal.update(cancel)

    cal.start()
    assert cal.samples == []


def test_profile_round_trip_keeps_other_devices(tmp_path):
    path = tmp_path / "profile.json"
    save_profile(CalibResult("wacom", 1.1, 0.2, 0.4, 0.7, 30), path)
    save_profile(CalibResult("apple-pencil", 0.9, 0.2, 0.5, 0.9, 30), path)

    prof = load_profile(path)
    assert prof["device_calibration"] == {"wacom": 1.1, "apple-pencil": 0.9}
    assert prof["calibrations"]["wacom"]["samples"] == 30


def test_profile_path_from_env(tmp_path, monkeypatch):
    path = tmp_path / "nested" / "p.json"
    monkeypatch.setenv("INKPIPE_PROFILE", str(path))
    written = save_profile(CalibResult("wacom", 1.2, 0, 0, 0, 1))
    assert written == path
    assert load_profile()["device_calibration"]["wacom"] == 1.2


def test_missing_profile(tmp_path):
    assert load_profile(tmp_path / "nope.json") is None


def test_corrupt_profile_is_ignored(tmp_path, caplog):
    path = tmp_path / "profile.json"
    path.write_text("{not json")
    with caplog.at_level(logging.WARNING, logger="inkpipe.calibration"):
        assert load_profile(path) is None
    assert "could not read profile" in caplog.text

    path.write_text(json.dumps([1, 2]))
    assert load_profile(path) is None


def test_apply_profile(caplog):
    prof = {"device_calibration": {"wacom": 1.3, "huion": "1.1", "broken": "lots"}}
    with caplog.at_level(logging.WARNING, logger="inkpipe.calibration"):
        cfg = apply_profile(DEFAULT_CORRECTION, prof)

    cal = cfg.pressure_correction.device_calibration
    assert cal["wacom"] == 1.3
    assert cal["huion"] == 1.1
    assert cal["generic"] == 1.0
    assert "broken" not in cal
    assert "broken" in caplog.text

    assert apply_profile(DEFAULT_CORRECTION, None) is DEFAULT_CORRECTION
    assert apply_profile(DEFAULT_CORRECTION, {"device_calibration": {}}) is DEFAULT_CORRECTION
