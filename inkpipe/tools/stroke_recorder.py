from __future__ import annotations

import json
import os
import time
from dataclasses import asdict, is_dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional

from inkpipe.core.types import NormalizedInputEvent

"""
inkpipe Stroke Recorder
Writes JSONL logs to ~/.cache/inkpipe/stroke_logs/stroke_<timestamp>.jsonl
One line = one emitted event (post throttle, post correction).
"""


def _ser(x):
    if x is None:
        return None
    if isinstance(x, Enum):
        return x.value
    if is_dataclass(x):
        return asdict(x)
    if hasattr(x, "__dict__"):
        return dict(x.__dict__)
    return str(x)


def log_path():
    outdir = Path.home() / ".cache" / "inkpipe" / "stroke_logs"
    outdir.mkdir(parents=True, exist_ok=True)
    ts = time.strftime("%Y%m%d_%H%M%S")
    return outdir / f"stroke_{ts}.jsonl"


def event_record(ev: NormalizedInputEvent) -> dict:
    return {
        "t_ms": ev.t_ms,
        "kind": ev.kind.value,
        "device": ev.device.value,
        "device_id": ev.device_id,
        "x": ev.x,
        "y": ev.y,
        "pressure": ev.pressure,
        "buttons": ev.buttons,
        "tilt": _ser(ev.tilt),
    }


class StrokeRecorder:
    """
    Event consumer that appends each event as one JSON line.

    Pass the instance itself as the processor's event callback. The output
    path is STROKE_LOG_PATH when set, a fresh file under ~/.cache otherwise.
    """

    def __init__(self, path: Optional[Path] = None):
        if path is None:
            env = os.environ.get("STROKE_LOG_PATH")
            path = Path(env).expanduser() if env else log_path()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.count = 0
        self._f = open(self.path, "a", buffering=1)

    def __call__(self, ev: NormalizedInputEvent) -> None:
        self._f.write(json.dumps(event_record(ev), default=_ser) + "\n")
        self.count += 1

    def close(self) -> None:
        if not self._f.closed:
            self._f.close()

    def __enter__(self) -> "StrokeRecorder":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def read_log(path) -> List[dict]:
    out = []
    with open(path) as f:
        for line in f:
            line = line.strip()
            if line:
                out.append(json.loads(line))
    return out


if __name__ == "__main__":
    p = log_path()
    print(f"[inkpipe] stroke recorder would write to {p}")
    print("[inkpipe] Attach it as the processor callback:")
    print("  with StrokeRecorder() as rec:")
    print("      processor.set_event_callback(rec)")
    print(f"[inkpipe] Or set STROKE_LOG_PATH='{p}' to choose the file.")
