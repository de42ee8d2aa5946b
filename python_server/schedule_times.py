#!/usr/bin/env python3
"""
Default reminder times for a given number of daily doses
"""

from datetime import time
from typing import List

DEFAULT_TIMES = {
    1: [time(9, 0)],
    2: [time(9, 0), time(21, 0)],
    3: [time(8, 0), time(14, 0), time(20, 0)],
    4: [time(8, 0), time(12, 0), time(16, 0), time(20, 0)],
}

FIRST_DOSE_HOUR = 8


def generate_scheduled_times(count: int) -> List[time]:
    """
    Canonical reminder times for `count` doses per day

    More than four doses are spaced evenly from 08:00, wrapping past
    midnight.

    Args:
        count: Doses per day (values below 1 are treated as 1)

    Returns:
        List[time]: Exactly max(count, 1) times of day
    """
    count = max(count, 1)
    if count in DEFAULT_TIMES:
        return list(DEFAULT_TIMES[count])

    step = 24 // count
    return [time((FIRST_DOSE_HOUR + i * step) % 24, 0) for i in range(count)]


def format_times(times: List[time]) -> List[str]:
    """Render times as "HH:MM" strings"""
    return [t.strftime('%H:%M') for t in times]
