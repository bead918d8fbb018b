from datetime import datetime, timedelta, timezone

from relgraph.utils.records import format_time, to_datetime, to_float, to_int, to_str, to_str_list


def test_to_str_is_total():
    assert to_str("abc") == "abc"
    assert to_str(5) == "5"
    assert to_str(b"xy") == "xy"
    assert to_str(None) == ""
    assert to_str(True) == ""
    assert to_str({"a": 1}, default="?") == "?"


def test_to_float_rejects_bools_and_strings():
    assert to_float(3) == 3.0
    assert to_float("3.5") == 0.0
    assert to_float(False, default=-1.0) == -1.0


def test_to_int_accepts_integral_floats_only():
    assert to_int(4.0) == 4
    assert to_int(4.5) == 0
    assert to_int(None, default=7) == 7


def test_to_datetime_parses_rfc3339_to_utc():
    value = to_datetime("2024-03-01T10:00:00+02:00")
    assert value == datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)
    assert to_datetime("2024-03-01T10:00:00Z").tzinfo is not None


def test_to_datetime_invalid_values_become_none():
    assert to_datetime("yesterday") is None
    assert to_datetime(42) is None
    assert to_datetime("") is None


def test_to_datetime_naive_is_treated_as_utc():
    assert to_datetime(datetime(2024, 1, 1)) == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_to_str_list_drops_empty_entries():
    assert to_str_list(["a", None, "", 3]) == ["a", "3"]
    assert to_str_list("abc") == []


def test_format_time_emits_z_suffix():
    ts = datetime(2024, 3, 1, 7, 30, tzinfo=timezone(timedelta(hours=-5)))
    assert format_time(ts) == "2024-03-01T12:30:00Z"
    assert format_time(None) == ""
