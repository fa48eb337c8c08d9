"""
Calendar helpers shared by the scheduling services.

Dates travel as ``YYYY-MM-DD`` strings and times of day as ``HH:MM`` strings.
Day-of-week numbering is 0 = Sunday ... 6 = Saturday throughout.
"""
import re
from datetime import date, datetime, timedelta, timezone
from typing import Tuple, Union
from zoneinfo import ZoneInfo

from app import config
from app.utils.exceptions import InvalidDateFormat, ValidationError

DATE_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)(?::(\d{2}))?$")

DateLike = Union[str, date]


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, matching what Motor returns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    match = DATE_PATTERN.match(str(value or "").strip())
    if not match:
        raise InvalidDateFormat(f"Invalid date format: {value!r}. Expected YYYY-MM-DD")
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        raise InvalidDateFormat(f"Invalid date: {value!r}")


def format_date(value: DateLike) -> str:
    return parse_date(value).strftime("%Y-%m-%d")


def parse_time(value: str) -> str:
    """Return the canonical ``HH:MM`` form of a time of day."""
    match = TIME_PATTERN.match(str(value or "").strip())
    if not match or (match.group(3) is not None and match.group(3) != "00"):
        raise ValidationError(f"Invalid time format: {value!r}. Expected HH:MM")
    return f"{match.group(1)}:{match.group(2)}"


def day_of_week(value: DateLike) -> int:
    # date.weekday() is Monday = 0
    return (parse_date(value).weekday() + 1) % 7


def _check_day(day: int, label: str):
    if not isinstance(day, int) or isinstance(day, bool) or not 0 <= day <= 6:
        raise ValidationError(f"{label} must be an integer between 0 and 6")


def resolve_date_for_day(week_start_date: DateLike, dow: int, first_day_of_week: int) -> str:
    """Concrete date of ``dow`` inside the week beginning at ``week_start_date``."""
    _check_day(dow, "day_of_week")
    _check_day(first_day_of_week, "first_day_of_week")
    if dow >= first_day_of_week:
        days_to_add = dow - first_day_of_week
    else:
        days_to_add = 7 - first_day_of_week + dow
    return format_date(parse_date(week_start_date) + timedelta(days=days_to_add))


def week_start_for(any_date: DateLike, first_day_of_week: int) -> str:
    _check_day(first_day_of_week, "first_day_of_week")
    current = parse_date(any_date)
    dow = day_of_week(current)
    if dow >= first_day_of_week:
        back = dow - first_day_of_week
    else:
        back = dow + 7 - first_day_of_week
    return format_date(current - timedelta(days=back))


def week_bounds(any_date: DateLike, first_day_of_week: int) -> Tuple[str, str]:
    start = week_start_for(any_date, first_day_of_week)
    return start, format_date(parse_date(start) + timedelta(days=6))


def _schedule_zone():
    if config.SCHEDULE_TIMEZONE.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(config.SCHEDULE_TIMEZONE)


def shift_start_utc(shift_date: DateLike, start_time: str) -> datetime:
    """Convert a local shift start into a naive UTC datetime."""
    hours, minutes = parse_time(start_time).split(":")
    local = datetime.combine(parse_date(shift_date), datetime.min.time()).replace(
        hour=int(hours), minute=int(minutes), tzinfo=_schedule_zone()
    )
    return local.astimezone(timezone.utc).replace(tzinfo=None)
