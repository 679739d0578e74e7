from datetime import date, datetime

import pytest

from room_inventory.admission.controller import validate_stay
from room_inventory.dates import as_calendar_date, is_weekend_night, nights
from room_inventory.exceptions import InvalidDateRange


def test_nights_exclude_checkout_day():
    assert nights(date(2026, 4, 10), date(2026, 4, 13)) == [
        date(2026, 4, 10),
        date(2026, 4, 11),
        date(2026, 4, 12),
    ]


def test_datetimes_and_strings_are_normalised_to_calendar_days():
    assert as_calendar_date(datetime(2026, 1, 5, 23, 59)) == date(2026, 1, 5)
    assert as_calendar_date("2026-01-05") == date(2026, 1, 5)
    assert nights("2026-01-05T14:00:00", datetime(2026, 1, 6, 11, 0)) == [date(2026, 1, 5)]



@pytest.mark.parametrize(
    "check_in, check_out",
    [
        (date(2026, 3, 1), date(2026, 3, 1)),
        (date(2026, 3, 2), date(2026, 3, 1)),
    ],
)
def test_empty_or_reversed_stay_is_rejected(check_in, check_out):
    with pytest.raises(InvalidDateRange):
        validate_stay(check_in, check_out)


def test_friday_and_saturday_are_weekend_nights():
    # 2026-03-06 is a Friday
    assert is_weekend_night(date(2026, 3, 6))
    assert is_weekend_night(date(2026, 3, 7))
    assert not is_weekend_night(date(2026, 3, 8))
    assert not is_weekend_night(date(2026, 3, 5))
