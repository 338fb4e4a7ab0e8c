"""Half-open interval helpers shared by conflict checking and slot enumeration."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from medassist.core import config
from medassist.scheduling.errors import InvalidArgument


@dataclass(frozen=True)
class BusinessHours:
    """Daily window, in local time, in which slots are offered."""

    start: time
    end: time

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise InvalidArgument('Business hours must start before they end.')

    def bounds_for(self, day: date) -> tuple[datetime, datetime]:
        return datetime.combine(day, self.start), datetime.combine(day, self.end)


DEFAULT_BUSINESS_HOURS = BusinessHours(config.BUSINESS_HOURS_START, config.BUSINESS_HOURS_END)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Return True when ``[a_start, a_end)`` and ``[b_start, b_end)`` intersect.

    Intervals that only touch (one ends exactly when the other begins) do not overlap.
    """
    return a_start < b_end and b_start < a_end


def appointment_end(start_time: datetime, duration_minutes: int) -> datetime:
    return start_time + timedelta(minutes=duration_minutes)


def validate_doctor_id(doctor_id) -> str:
    if not isinstance(doctor_id, str) or not doctor_id.strip():
        raise InvalidArgument('Doctor id is required.')
    return doctor_id.strip()


def validate_start_time(start_time) -> datetime:
    if not isinstance(start_time, datetime):
        raise InvalidArgument('Start time must be a valid timestamp.')
    if start_time.tzinfo is not None:
        # Single local clock: aware values are converted and stored naive.
        return start_time.astimezone().replace(tzinfo=None)
    return start_time


def validate_duration(duration_minutes) -> int:
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int) or duration_minutes <= 0:
        raise InvalidArgument('Duration must be a positive number of minutes.')
    return duration_minutes


def validate_day(day) -> date:
    if isinstance(day, datetime):
        return day.date()
    if isinstance(day, date):
        return day
    raise InvalidArgument('Date must be a calendar day.')
