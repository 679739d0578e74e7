from datetime import date, datetime, timedelta
from typing import Iterator, Union

DateLike = Union[date, datetime, str]


def as_calendar_date(value: DateLike) -> date:
    """Normalise a date, datetime or ISO string to its calendar day (midnight)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(value).date()


def iter_nights(check_in: DateLike, check_out: DateLike) -> Iterator[date]:
    """Yield every night in [check_in, check_out). The checkout day is not occupied."""
    day = as_calendar_date(check_in)
    end = as_calendar_date(check_out)
    while day < end:
        yield day
        day += timedelta(days=1)


def nights(check_in: DateLike, check_out: DateLike) -> list[date]:
    return list(iter_nights(check_in, check_out))


def is_weekend_night(day: date) -> bool:
    # Friday and Saturday nights are sold at the weekend rate
    return day.weekday() in (4, 5)
