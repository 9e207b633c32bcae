"""
Tests for per-timestamp filter evaluation and the structured DateFilter.
"""

import datetime

import pytest

from timeliner.data.bodyfile_parser import parse_line
from timeliner.data.records import TimestampKind
from timeliner.filters.date_filter import DateFilter
from timeliner.filters.filter_engine import FilterEngine, timestamp_parameters
from timeliner.utils.error_handler import CompileError, EvalError

UTC = datetime.timezone.utc

# 2009-07-13 23:29:31 .a.b / 2009-07-14 01:38:55 m... / 2013-04-10 07:36:03 ..c.
AUDIT_LINE = r'0|\.\Windows\System32\oobe\audit.exe|36434|0|454|0|74240|1247527771|1247535535|1365579363|1247527771'
# 2013-04-10 08:55:58 .a.b / 2015-02-16 14:40:50 m.c.
MRT_LINE = r'0|\.\Windows\System32\MRT.exe|64535|0|497|0|116773704|1365584158|1424097650|1424097650|1365584158'
# 2013-04-10 07:31:17 macb
MFT_LINE = r'0|\.\$MFT|0|0|256|0|284950528|1365579077|1365579077|1365579077|1365579077'
# Only the modification time (2015-02-16) falls on a Monday
MONDAY_LINE = r'0|/home/user/notes.txt|99|r/rrw-r--r--|1000|1000|12|1365584158|1424097650|1365579363|1247535535'


@pytest.mark.parametrize('line, expression, expected', [
    (MFT_LINE, "date > '2018-11-10'", False),
    (AUDIT_LINE, "date > '2013-04-09' && date < '2013-04-11'", True),
    (AUDIT_LINE, 'hour < 3 && hour > 0', True),
    (AUDIT_LINE, 'hour < 8', True),
    (AUDIT_LINE, 'hour > 6', True),
    (MRT_LINE, 'hour <= 15 && hour >= 14', True),
    (MRT_LINE, "weekday == 'Monday'", True),
    (MRT_LINE, "path =~ 'MRT' && day == 16", True),
    (MFT_LINE, "p =~ 'MRT'", False),
])
def test_filter_cases(line, expression, expected):
    matched, mask = FilterEngine(expression).evaluate(parse_line(line))

    assert matched is expected
    assert (mask != 0) is expected


def test_match_is_or_across_kinds():
    record = parse_line(MONDAY_LINE)
    engine = FilterEngine("weekday == 'Monday'")

    assert engine.apply(record) is True
    assert record.matched_mask == TimestampKind.MODIFICATION


def test_evaluate_does_not_touch_the_record():
    record = parse_line(MRT_LINE)
    matched, mask = FilterEngine("w == 'Monday'").evaluate(record)

    assert matched
    assert mask == TimestampKind.MODIFICATION | TimestampKind.CHANGE
    assert record.matched_mask == 0


def test_non_matching_record_gets_zero_mask():
    record = parse_line(MFT_LINE)
    assert FilterEngine('hour == 23').apply(record) is False
    assert record.matched_mask == 0


def test_aliases_resolve_identically():
    instant = datetime.datetime(2015, 2, 16, 14, 40, 50, tzinfo=UTC)
    params = timestamp_parameters('/x', instant)

    for name, alias in (('path', 'p'), ('hour', 'h'), ('min', 'm'),
                        ('day', 'D'), ('weekday', 'w'), ('date', 'd')):
        assert params[name] == params[alias]

    assert params['path'] == '/x'
    assert params['hour'] == 14
    assert params['min'] == 40
    assert params['day'] == 16
    assert params['weekday'] == 'Monday'
    assert params['date'] == 1424097650


def test_sentinel_timestamp_parameters():
    params = timestamp_parameters('/x', datetime.datetime(1969, 12, 31, 23, 59, 59, tzinfo=UTC))
    assert params['date'] == -1
    assert params['weekday'] == 'Wednesday'


def test_eval_error_names_the_kind():
    with pytest.raises(EvalError) as excinfo:
        FilterEngine('h').evaluate(parse_line(MFT_LINE))

    assert excinfo.value.kind == 'access time'
    assert 'expected a boolean' in str(excinfo.value)


def test_bad_expression_fails_at_construction():
    with pytest.raises(CompileError):
        FilterEngine("weekday = 'Monday'")


def test_date_filter_expression():
    date_filter = DateFilter(
        after=datetime.datetime(2013, 4, 9),
        before=datetime.datetime(2013, 4, 11),
        hour_after=0,
        hour_before=3,
        weekday='monday'
    )
    assert date_filter.to_expression() == (
        "date > '2013-04-09T00:00:00Z' && date < '2013-04-11T00:00:00Z' && "
        "hour > 0 && hour < 3 && weekday == 'Monday'"
    )


@pytest.mark.parametrize('line, date_filter, expected', [
    (MFT_LINE, DateFilter(after=datetime.datetime(2018, 11, 10)), False),
    (AUDIT_LINE, DateFilter(after=datetime.datetime(2013, 4, 9), before=datetime.datetime(2013, 4, 11)), True),
    (AUDIT_LINE, DateFilter(hour_after=0, hour_before=3), True),
    (AUDIT_LINE, DateFilter(hour_before=8), True),
    (AUDIT_LINE, DateFilter(hour_after=6), True),
    (MRT_LINE, DateFilter(hour_after=13, hour_before=15), True),
    (MRT_LINE, DateFilter(weekday=0), True),
])
def test_date_filter_cases(line, date_filter, expected):
    matched, _ = FilterEngine.from_filter(date_filter).evaluate(parse_line(line))
    assert matched is expected


def test_date_filter_around():
    center = datetime.datetime(2015, 2, 16, 14, 40, 0, tzinfo=UTC)
    date_filter = DateFilter.around(center, datetime.timedelta(minutes=5))

    record = parse_line(MRT_LINE)
    matched, mask = FilterEngine.from_filter(date_filter).evaluate(record)

    assert matched
    assert mask == TimestampKind.MODIFICATION | TimestampKind.CHANGE


@pytest.mark.parametrize('date_filter', [
    DateFilter(),
    DateFilter(weekday='Funday'),
    DateFilter(weekday=7),
    DateFilter(hour_before=25),
])
def test_invalid_date_filters(date_filter):
    with pytest.raises(ValueError):
        date_filter.to_expression()
