"""
Tests for epoch/datetime conversion helpers.
"""

import datetime

import pytest

from timeliner.utils.time_utils import (
    datetime_to_epoch,
    epoch_to_datetime,
    format_datetime,
    parse_date_literal,
    weekday_name,
)

UTC = datetime.timezone.utc


def test_epoch_round_trip_for_known_instants():
    instant = epoch_to_datetime(1424097650)
    assert instant == datetime.datetime(2015, 2, 16, 14, 40, 50, tzinfo=UTC)
    assert datetime_to_epoch(instant) == 1424097650


def test_negative_epochs():
    assert epoch_to_datetime(-1) == datetime.datetime(1969, 12, 31, 23, 59, 59, tzinfo=UTC)
    assert datetime_to_epoch(epoch_to_datetime(-86400)) == -86400


def test_out_of_range_epoch():
    with pytest.raises(OverflowError):
        epoch_to_datetime(2 ** 62)


def test_naive_datetimes_are_utc():
    assert datetime_to_epoch(datetime.datetime(1970, 1, 2)) == 86400


def test_sub_second_values_round_down():
    assert datetime_to_epoch(datetime.datetime(1969, 12, 31, 23, 59, 59, 500000, tzinfo=UTC)) == -1


def test_weekday_name():
    assert weekday_name(datetime.datetime(2009, 7, 13)) == 'Monday'
    assert weekday_name(datetime.datetime(2013, 4, 10)) == 'Wednesday'


@pytest.mark.parametrize('text, expected', [
    ('2013-04-09', 1365465600.0),
    ('2013-04-09T00:00:01Z', 1365465601.0),
    ('2013-04-09 01:00', 1365469200.0),
    ('2013-04-09T02:00:00+02:00', 1365465600.0),
    ('1969-12-31T23:59:59Z', -1.0),
])
def test_parse_date_literal(text, expected):
    assert parse_date_literal(text) == expected


@pytest.mark.parametrize('text', ['Monday', '04/09/2013', '2013-02-30', '2013-04-09x', ''])
def test_parse_date_literal_rejects_non_dates(text):
    assert parse_date_literal(text) is None


def test_format_datetime():
    offset = datetime.timezone(datetime.timedelta(hours=2))
    assert format_datetime(datetime.datetime(2013, 4, 9, 2, 0, tzinfo=offset)) == '2013-04-09T00:00:00Z'
    assert format_datetime(datetime.datetime(2013, 4, 9)) == '2013-04-09T00:00:00Z'
    assert format_datetime(None) == ''
