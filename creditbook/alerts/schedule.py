"""
Schedule Gate

Decides whether a notification rule may fire at a given instant.
Three checks, all of which must pass:

1. Frequency debounce, anchored on the rule's last_run:
   - daily: not again on the same calendar date
   - weekly: not within 7 x 24h
   - monthly: not within 30 x 24h
   A rule that has never run always passes.
2. Day filter: when schedule.days is non-empty, today's weekday
   (weekly, 0 = Sunday) or day of month (monthly) must be listed.
3. Time window: the current minute of day must be within the tolerance
   of the scheduled HH:MM. The window exists because ticks are not
   aligned to exact minutes.

The gate never touches last_run; the scheduler writes it back after a
rule has been dispatched.
"""

from datetime import datetime, timedelta
from typing import Optional, Tuple

from .exceptions import MalformedScheduleError
from .models import Frequency
from .schemas import RuleSchedule

DEFAULT_TOLERANCE_MINUTES = 5

# Minimum spacing between fires for interval-debounced frequencies
FREQUENCY_INTERVALS = {
    Frequency.WEEKLY: timedelta(days=7),
    Frequency.MONTHLY: timedelta(days=30),
}


def parse_schedule_time(value: Optional[str]) -> Tuple[int, int]:
    """Parse "HH:MM" (24h) into (hour, minute)."""
    if not value or not isinstance(value, str):
        raise MalformedScheduleError(f"Missing schedule time: {value!r}")

    parts = value.strip().split(":")
    if len(parts) != 2:
        raise MalformedScheduleError(f"Schedule time must be HH:MM, got {value!r}")

    try:
        hour, minute = int(parts[0]), int(parts[1])
    except ValueError:
        raise MalformedScheduleError(f"Schedule time must be HH:MM, got {value!r}")

    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise MalformedScheduleError(f"Schedule time out of range: {value!r}")

    return hour, minute


def parse_frequency(value: Optional[str]) -> Frequency:
    try:
        return Frequency(value)
    except ValueError:
        raise MalformedScheduleError(f"Unknown schedule frequency: {value!r}")


def validate_schedule(schedule: Optional[RuleSchedule]) -> Tuple[Frequency, int, int]:
    """
    Check a schedule can be evaluated.

    Returns:
        (frequency, hour, minute)

    Raises:
        MalformedScheduleError: schedule missing, unknown frequency or bad time
    """
    if schedule is None:
        raise MalformedScheduleError("Rule has no schedule")

    frequency = parse_frequency(schedule.frequency)
    hour, minute = parse_schedule_time(schedule.time)
    return frequency, hour, minute


def _align(last_run: datetime, now: datetime) -> datetime:
    """
    Express last_run in the same timezone awareness as now.

    A naive last_run is system-local time, which is how the rule store
    writes it.
    """
    if now.tzinfo is not None:
        return last_run.astimezone(now.tzinfo)
    if last_run.tzinfo is not None:
        return last_run.astimezone().replace(tzinfo=None)
    return last_run


def passes_debounce(frequency: Frequency, last_run: Optional[datetime], now: datetime) -> bool:
    if last_run is None:
        return True

    last_run = _align(last_run, now)

    if frequency == Frequency.DAILY:
        return last_run.date() != now.date()

    return now - last_run >= FREQUENCY_INTERVALS[frequency]


def weekday_number(now: datetime) -> int:
    """Day of week with Sunday = 0 ... Saturday = 6."""
    return (now.weekday() + 1) % 7


def passes_day_filter(schedule: RuleSchedule, frequency: Frequency, now: datetime) -> bool:
    if not schedule.days:
        return True

    if frequency == Frequency.WEEKLY:
        return weekday_number(now) in schedule.days
    if frequency == Frequency.MONTHLY:
        return now.day in schedule.days

    # daily schedules ignore the day list
    return True


def within_time_window(
    hour: int,
    minute: int,
    now: datetime,
    tolerance_minutes: int = DEFAULT_TOLERANCE_MINUTES,
) -> bool:
    current = now.hour * 60 + now.minute
    scheduled = hour * 60 + minute
    return abs(current - scheduled) <= tolerance_minutes


def is_eligible(
    schedule: Optional[RuleSchedule],
    last_run: Optional[datetime],
    now: datetime,
    tolerance_minutes: int = DEFAULT_TOLERANCE_MINUTES,
) -> bool:
    """
    Whether a rule with this schedule and last_run may fire at `now`.

    Pure: no state is read or written besides the arguments.

    Raises:
        MalformedScheduleError: the schedule cannot be interpreted
    """
    frequency, hour, minute = validate_schedule(schedule)

    if not passes_debounce(frequency, last_run, now):
        return False

    if not passes_day_filter(schedule, frequency, now):
        return False

    return within_time_window(hour, minute, now, tolerance_minutes)
