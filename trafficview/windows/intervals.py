from __future__ import annotations


FULL_DAY = "Full Day"
SLOT_MINUTES = 15
LAST_SLOT_END = "23:59"


def generate_intervals() -> tuple[str, ...]:
    """Return ``"Full Day"`` followed by the 96 quarter-hour labels of a day.

    The final slot ends at ``23:59`` rather than ``24:00``.
    """
    intervals = [FULL_DAY]
    for hour in range(24):
        for minute in (0, 15, 30, 45):
            start = f"{hour:02d}:{minute:02d}"
            end_hour, end_minute = hour, minute + SLOT_MINUTES
            if end_minute == 60:
                end_hour += 1
                end_minute = 0
            if end_hour < 24:
                end = f"{end_hour:02d}:{end_minute:02d}"
            else:
                end = LAST_SLOT_END
            intervals.append(f"{start} - {end}")
    return tuple(intervals)


INTERVALS = generate_intervals()


def is_known_interval(label: str) -> bool:
    return label in INTERVALS
