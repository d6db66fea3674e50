from datetime import date, datetime, timedelta, timezone

from plantcare.utils.time import coerce_date, coerce_datetime, ensure_utc, minute_floor, to_iso, utc_now


def test_coerce_datetime_parses_z_suffix():
    dt = coerce_datetime("2026-01-01T00:00:00Z")
    assert dt is not None
    assert dt.tzinfo is not None
    assert dt.utcoffset() == timedelta(0)
    assert dt.isoformat().endswith("+00:00")


def test_coerce_datetime_parses_offset():
    dt = coerce_datetime("2026-01-01T02:00:00+02:00")
    assert dt is not None
    assert dt.utcoffset() == timedelta(0)
    assert dt.hour == 0


def test_coerce_datetime_parses_naive_as_utc():
    dt = coerce_datetime("2026-01-01T00:00:00")
    assert dt is not None
    assert dt.utcoffset() == timedelta(0)

    time_diff = utc_now() - dt
    assert isinstance(time_diff, timedelta)


def test_coerce_datetime_rejects_garbage():
    assert coerce_datetime("last tuesday") is None
    assert coerce_datetime(1718000000) is None
    assert coerce_datetime(None) is None


def test_ensure_utc_converts_aware_values():
    plus_two = timezone(timedelta(hours=2))
    assert ensure_utc(datetime(2024, 6, 15, 14, 0, tzinfo=plus_two)) == datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def test_coerce_date_variants():
    assert coerce_date("2024-06-15") == date(2024, 6, 15)
    assert coerce_date("2024-06-15T23:30:00-02:00") == date(2024, 6, 16)
    assert coerce_date(datetime(2024, 6, 15, 8, 0)) == date(2024, 6, 15)
    assert coerce_date(date(2024, 6, 15)) == date(2024, 6, 15)
    assert coerce_date("June 15th") is None


def test_to_iso():
    assert to_iso(None) is None
    assert to_iso(datetime(2024, 6, 15, 12, 0)) == "2024-06-15T12:00:00+00:00"


def test_minute_floor():
    plus_one = timezone(timedelta(hours=1))
    assert minute_floor(datetime(2024, 6, 15, 13, 7, 42, 5, tzinfo=plus_one)) == datetime(
        2024, 6, 15, 12, 7, tzinfo=timezone.utc
    )
