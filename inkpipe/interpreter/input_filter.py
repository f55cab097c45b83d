from __future__ import annotations

from typing import Optional

from inkpipe.core.config import InputFilterConfig
from inkpipe.core.types import EventKind, NormalizedInputEvent
from inkpipe.interpreter.normalizer import NEUTRAL_PRESSURE


def is_duplicate_event(
    event: NormalizedInputEvent, last: Optional[NormalizedInputEvent], min_pressure_change: float
) -> bool:
    """Same kind, same position, pressure within the noise threshold."""
    if last is None:
        return False
    return (
        last.kind == event.kind
        and last.x == event.x
        and last.y == event.y
        and abs(last.pressure - event.pressure) < min_pressure_change
    )


def is_minimal_pressure_change(
    event: NormalizedInputEvent, last: Optional[NormalizedInputEvent], min_pressure_change: float
) -> bool:
    if last is None or event.kind != EventKind.MOVE:
        return False

    # Both samples at the neutral value means "no pressure sensor", not
    # "pressure didn't change". Exact-equality check; see DESIGN.md.
    if event.pressure == NEUTRAL_PRESSURE and last.pressure == NEUTRAL_PRESSURE:
        return False

    return abs(last.pressure - event.pressure) < min_pressure_change


def passes_filter(
    event: NormalizedInputEvent, last: Optional[NormalizedInputEvent], cfg: InputFilterConfig
) -> bool:
    """start / end / cancel always pass."""
    if event.kind != EventKind.MOVE:
        return True
    if cfg.enable_duplicate_filtering and is_duplicate_event(event, last, cfg.min_pressure_change):
        return False
    if cfg.filter_pressure_only_changes and is_minimal_pressure_change(event, last, cfg.min_pressure_change):
        return False
    return True
