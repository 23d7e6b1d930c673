import pytest

from app.core.time_of_day import LAST_MINUTE_OF_DAY, TimeOfDay


@pytest.mark.parametrize("raw,minutes", [
    ("00:00", 0),
    ("9:05", 545),
    ("09:15", 555),
    ("23:59", LAST_MINUTE_OF_DAY),
])
def test_parse_valid_times(raw, minutes):
    assert TimeOfDay.parse(raw).minutes == minutes


@pytest.mark.parametrize("raw", ["24:00", "12:60", "9", "09-15", "", "ab:cd"])
def test_parse_rejects_malformed_times(raw):
    with pytest.raises(ValueError):
        TimeOfDay.parse(raw)
    assert not TimeOfDay.is_valid(raw)


def test_formats_as_zero_padded_hh_mm():
    assert str(TimeOfDay(545)) == "09:05"
    assert str(TimeOfDay.parse("7:30")) == "07:30"


def test_ordering_follows_minutes():
    """Comparisons drive the interval arithmetic, so they must be numeric."""
    assert TimeOfDay.parse("09:00") < TimeOfDay.parse("10:00")
    assert TimeOfDay.parse("10:00") == TimeOfDay(600)
    assert max(TimeOfDay(10), TimeOfDay(5)) == TimeOfDay(10)


def test_out_of_range_minutes_rejected():
    with pytest.raises(ValueError):
        TimeOfDay(-1)
    with pytest.raises(ValueError):
        TimeOfDay(LAST_MINUTE_OF_DAY + 1)
