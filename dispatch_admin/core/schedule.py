"""
Schedule evaluation for the email dispatch window
Pure functions: every result depends only on the explicit `now` passed in.

Windows are same-day only. A window whose end is before its start (an
overnight window) is not modelled; ScheduleConfig rejects it on save.
"""

from datetime import datetime, timedelta
from typing import Optional, Tuple, Union

from dispatch_admin.core.models import IntervalUnit, ScheduleConfig


MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS


def parse_clock(value: str) -> Tuple[int, int]:
    """Split an HH:MM clock string into (hour, minute)"""
    hour_str, minute_str = value.split(':')
    return int(hour_str), int(minute_str)


def minutes_since_midnight(value: Union[str, datetime]) -> int:
    if isinstance(value, datetime):
        return value.hour * 60 + value.minute
    hour, minute = parse_clock(value)
    return hour * 60 + minute


def interval_ms(interval: int, unit: Union[IntervalUnit, str]) -> int:
    unit = IntervalUnit(unit)
    return interval * (HOUR_MS if unit == IntervalUnit.HOURS else MINUTE_MS)


def at_clock(day: datetime, clock: str) -> datetime:
    """Same calendar day (and tzinfo) as `day`, at the given clock time"""
    hour, minute = parse_clock(clock)
    return day.replace(hour=hour, minute=minute, second=0, microsecond=0)


def is_active(now: datetime, start_time: str, end_time: str) -> bool:
    """Whether `now` falls inside the window, inclusive at both ends, minute resolution"""
    current = minutes_since_midnight(now)
    return minutes_since_midnight(start_time) <= current <= minutes_since_midnight(end_time)


def compute_next_run(now: datetime, start_time: str, end_time: str,
                     interval: int, unit: Union[IntervalUnit, str]) -> Optional[datetime]:
    """Next scheduled run strictly after `now`

    Runs are anchored at the window start and repeat every interval. A step
    equal to `now` does not count. When no step fits inside today's window
    the next run is tomorrow's window start.
    """
    if interval <= 0:
        return None

    start = at_clock(now, start_time)
    end = at_clock(now, end_time)
    step = timedelta(milliseconds=interval_ms(interval, unit))

    if now < start:
        return start

    if start <= now <= end:
        steps_taken = (now - start) // step + 1
        candidate = start + step * steps_taken
        if candidate <= end:
            return candidate

    return at_clock(now + timedelta(days=1), start_time)


class ScheduleEvaluator:
    """Evaluates a stored ScheduleConfig against a given instant"""

    def __init__(self, schedule: ScheduleConfig):
        self.schedule = schedule

    def is_active(self, now: datetime) -> bool:
        return is_active(now, self.schedule.start_time, self.schedule.end_time)

    def next_run(self, now: datetime) -> Optional[datetime]:
        return compute_next_run(
            now,
            self.schedule.start_time,
            self.schedule.end_time,
            self.schedule.interval,
            self.schedule.interval_unit,
        )
