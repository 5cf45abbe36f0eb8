from datetime import datetime

import pytest
import pytz
from freezegun import freeze_time

import lib.shared.errors as errors
import lib.shared.timewindow as timewindow
from lib.shared.timewindow import TimeWindowParser


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=pytz.utc)


@pytest.fixture
def parser():
    return TimeWindowParser()


def test_now_to_evening_keeps_default_zone(parser):
    window = parser.Parse("now-8:30pm", utc(2024, 1, 10, 14, 5))
    assert window.start == "14:05"
    assert window.end == "20:30"
    assert window.timezone == "UTC"


def test_explicit_start_and_end(parser):
    window = parser.Parse("15:00-17:45", utc(2024, 1, 10, 14, 5))
    assert (window.start, window.end) == ("15:00", "17:45")


def test_bare_hour_closer_to_afternoon_reads_as_pm(parser):
    window = parser.Parse("now-3:30", utc(2024, 1, 10, 14, 0))
    assert window.end == "15:30"


def test_bare_hour_in_the_morning_stays_am(parser):
    window = parser.Parse("now-9", utc(2024, 1, 10, 7, 0))
    assert window.end == "09:00"


def test_time_well_in_the_past_rolls_to_tomorrow(parser):
    window = parser.Parse("now-9:00am", utc(2024, 1, 10, 14, 0))
    assert window.end == "09:00"
    assert window.endAt.day == 11


def test_time_slightly_in_the_past_is_not_rolled(parser):
    window = parser.Parse("now-1:30pm", utc(2024, 1, 10, 14, 0))
    assert window.end == "13:30"
    assert window.endAt.day == 10


def test_abbreviation_converts_into_server_frame(parser):
    window = parser.Parse("now-8:30pm EST", utc(2024, 1, 10, 14, 5))
    assert window.timezone == "America/New_York"
    # 20:30 EST is 01:30 UTC on the next day
    assert window.end == "01:30"
    assert window.endAt == utc(2024, 1, 11, 1, 30)


def test_abbreviation_is_case_insensitive(parser):
    window = parser.Parse("NOW-8:30PM est", utc(2024, 1, 10, 14, 5))
    assert window.timezone == "America/New_York"
    assert window.end == "01:30"


def test_range_in_pacific_time(parser):
    window = parser.Parse("6:00-9:30 PST", utc(2024, 1, 10, 14, 5))
    assert window.start == "14:00"
    assert window.end == "17:30"
    assert window.timezone == "America/Los_Angeles"


def test_iana_zone_name_is_recognized(parser):
    window = parser.Parse("now-8:30pm Europe/Paris", utc(2024, 1, 10, 14, 5))
    assert window.timezone == "Europe/Paris"
    assert window.end == "19:30"


def test_spaces_around_dash_are_ignored(parser):
    window = parser.Parse("now - 8:30pm", utc(2024, 1, 10, 14, 5))
    assert window.end == "20:30"


def test_unknown_zone_falls_back_to_default(parser):
    window = parser.Parse("now-8:30pm XYZ", utc(2024, 1, 10, 14, 5))
    assert (window.start, window.end) == ("14:05", "20:30")
    assert window.timezone == "UTC"


def test_unknown_zone_after_spaced_range(parser):
    window = parser.Parse("now - 9:30pm Mars/Olympus", utc(2024, 1, 10, 14, 5))
    assert window.end == "21:30"
    assert window.timezone == "UTC"


def test_twelve_am_and_pm(parser):
    assert parser.Parse("now-12pm", utc(2024, 1, 10, 11, 0)).end == "12:00"
    assert parser.Parse("now-12am", utc(2024, 1, 10, 23, 30)).end == "00:00"


def test_out_of_range_minutes_without_dash_is_a_value_error(parser):
    with pytest.raises(errors.InvalidTimeValue):
        parser.Parse("18:99", utc(2024, 1, 10, 14, 5))


def test_out_of_range_hour(parser):
    with pytest.raises(errors.InvalidTimeValue):
        parser.Parse("now-25:00", utc(2024, 1, 10, 14, 5))


@pytest.mark.parametrize("text", ["garbage", "8:30", "now-", "-8:30", "1-2-3", "", "   ", "now-soon"])
def test_malformed_input(parser, text):
    with pytest.raises(errors.InvalidFormat):
        parser.Parse(text, utc(2024, 1, 10, 14, 5))


def test_errors_share_a_user_facing_base(parser):
    with pytest.raises(errors.QueueError) as info:
        parser.Parse("garbage", utc(2024, 1, 10, 14, 5))
    assert "now-8:30" in str(info.value)


def test_expired_just_after_end(parser):
    assert parser.IsExpired("13:00", utc(2024, 1, 10, 13, 5)) is True


def test_expired_exactly_at_end(parser):
    assert parser.IsExpired("13:00", utc(2024, 1, 10, 13, 0)) is True


def test_end_far_in_the_past_means_tomorrow(parser):
    assert parser.IsExpired("13:00", utc(2024, 1, 10, 17, 1)) is False


def test_future_end_not_expired(parser):
    assert parser.IsExpired("20:30", utc(2024, 1, 10, 14, 5)) is False


def test_module_helpers_use_wall_clock():
    with freeze_time("2024-01-10 14:05:00"):
        window = timewindow.ParseAvailability("now-8:30pm")
        assert window.start == "14:05"
        assert window.end == "20:30"
        assert timewindow.IsExpired("14:00") is True
        assert timewindow.IsExpired("20:30") is False


def test_server_time_banner(parser):
    assert parser.GetCurrentDateTimeWithTZ(utc(2024, 1, 10, 14, 5)) == "2024-01-10 14:05 (UTC+0)"


def test_server_time_banner_in_server_zone():
    parser = TimeWindowParser(serverTimezone="America/New_York")
    assert parser.GetCurrentDateTimeWithTZ(utc(2024, 1, 10, 14, 5)) == "2024-01-10 09:05 (UTC-5)"


def test_default_zone_input_is_read_in_server_zone():
    parser = TimeWindowParser(serverTimezone="America/New_York")
    window = parser.Parse("now-8:30pm", utc(2024, 1, 10, 14, 5))
    assert window.start == "09:05"
    assert window.end == "20:30"


def test_configured_abbreviation():
    parser = TimeWindowParser(abbreviations={"cet": "Europe/Paris"})
    window = parser.Parse("now-8:30pm CET", utc(2024, 1, 10, 14, 5))
    assert window.timezone == "Europe/Paris"


def test_time_zones_list(parser):
    listing = parser.GetTimeZonesList(utc(2024, 1, 10, 14, 5)).splitlines()
    assert "UTC: 14:05" in listing
    assert "America/New_York: 09:05" in listing


def test_describe_mentions_non_default_zone():
    assert timewindow.AvailabilityWindow("14:05", "20:30").Describe() == "14:05 to 20:30"
    assert timewindow.AvailabilityWindow("14:05", "01:30", "America/New_York").Describe() == "14:05 to 01:30 (America/New_York)"
