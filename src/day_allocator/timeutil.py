from __future__ import annotations

import math

from day_allocator.models import TimeRange

HOURS_PER_DAY = 24


def snap_to_step(value: float, step: float) -> float:
    """Round value to the nearest multiple of step, halves away from zero. Raises ValueError."""
    if step <= 0:
        raise ValueError("Snap step must be > 0")

    steps = math.floor(abs(value) / step + 0.5)
    return math.copysign(round(steps * step, 9), value) if steps else 0.0


def format_hour(value: float) -> str:
    """Render an hour offset as a 12-hour clock label, e.g. 13.5 -> '1:30 PM'."""
    total_minutes = round(value * 60) % (HOURS_PER_DAY * 60)
    hour, minute = divmod(total_minutes, 60)

    period = "PM" if hour >= 12 else "AM"
    display_hour = hour % 12 or 12
    if minute:
        return f"{display_hour}:{minute:02d} {period}"
    return f"{display_hour} {period}"


def time_markers(time_range: TimeRange, *, count: int = 4) -> list[float]:
    interval = max(1, math.ceil(time_range.span / count))
    markers: list[float] = []
    current = time_range.start
    while current <= time_range.end:
        markers.append(current)
        current += interval
    if time_range.end not in markers:
        markers.append(time_range.end)
    return markers
