"""
Tests for the timeliner command line.
"""

import io
import json
import logging
import sys
from unittest.mock import MagicMock

import pytest

from timeliner.cli import EXIT_CONFIG_ERROR, EXIT_DATA_ERROR, EXIT_OK, build_parser, main
from timeliner.utils.error_handler import ErrorHandler

AUDIT_LINE = r'0|\.\Windows\System32\oobe\audit.exe|36434|0|454|0|74240|1247527771|1247535535|1365579363|1247527771'
MRT_LINE = r'0|\.\Windows\System32\MRT.exe|64535|0|497|0|116773704|1365584158|1424097650|1424097650|1365584158'
MFT_LINE = r'0|\.\$MFT|0|0|256|0|284950528|1365579077|1365579077|1365579077|1365579077'


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger('timeliner')
    for handler in logger.handlers:
        handler.close()
    logger.handlers = []
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def bodyfile(tmp_path):
    path = tmp_path / 'body.txt'
    path.write_text('\n'.join(['# fls -r -m C:', AUDIT_LINE, MRT_LINE, MFT_LINE]) + '\n')
    return str(path)


def test_parser_defaults():
    args = build_parser().parse_args([])

    assert args.bodyfiles == ['-']
    assert args.strict is None
    assert args.on_error is None
    assert args.verbose == 0


def test_prints_sorted_timeline(bodyfile, capsys):
    assert main([bodyfile]) == EXIT_OK

    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 6
    assert lines[0].startswith('2009-07-13T23:29:31Z')
    assert lines[-1].startswith('2015-02-16T14:40:50Z')


def test_filter_and_strict(bodyfile, capsys):
    assert main([bodyfile, '-f', "weekday == 'Monday'", '--strict']) == EXIT_OK

    lines = capsys.readouterr().out.splitlines()
    assert [line.split()[2] for line in lines] == ['.a.b', 'm.c.']


def test_json_output(bodyfile, capsys):
    assert main([bodyfile, '-o', 'json', '-f', "p =~ 'MFT'"]) == EXIT_OK

    objects = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [o['path'] for o in objects] == ['\\.\\$MFT']
    assert objects[0]['matched_mask'] == 15


def test_multiple_files_are_merged(bodyfile, tmp_path, capsys):
    second = tmp_path / 'second.txt'
    second.write_text('0|/early|1|r/r|0|0|0|100|100|100|100\n')

    assert main([bodyfile, str(second), '-o', 'csv']) == EXIT_OK

    rows = capsys.readouterr().out.splitlines()
    assert rows[0].startswith('Date,')
    assert rows[1].startswith('1970-01-01T00:01:40Z')
    assert len(rows) == 8


def test_reads_stdin(monkeypatch, capsys):
    stdin = io.TextIOWrapper(io.BytesIO((MFT_LINE + '\n').encode('utf-8')))
    monkeypatch.setattr('sys.stdin', stdin)

    assert main([]) == EXIT_OK
    assert capsys.readouterr().out.startswith('2013-04-10T07:31:17Z')


def test_invalid_filter_is_a_config_error(bodyfile, capsys):
    assert main([bodyfile, '-f', 'hour >']) == EXIT_CONFIG_ERROR

    captured = capsys.readouterr()
    assert captured.out == ''
    assert 'Invalid filter expression' in captured.err


def test_invalid_config_file(bodyfile, tmp_path, capsys):
    config = tmp_path / 'settings.json'
    config.write_text(json.dumps({'timeliner': {'on_error': 'ignore'}}))

    assert main([bodyfile, '-c', str(config)]) == EXIT_CONFIG_ERROR


def test_config_file_supplies_filter(bodyfile, tmp_path, capsys):
    config = tmp_path / 'settings.json'
    config.write_text(json.dumps({'timeliner': {'filter': "p =~ 'MRT'", 'strict': True}}))

    assert main([bodyfile, '-c', str(config)]) == EXIT_OK
    assert len(capsys.readouterr().out.splitlines()) == 2


def test_malformed_line_is_a_data_error(tmp_path, capsys):
    path = tmp_path / 'body.txt'
    path.write_text(AUDIT_LINE + '\n0|broken\n')

    assert main([str(path)]) == EXIT_DATA_ERROR

    captured = capsys.readouterr()
    assert captured.out == ''
    assert 'line 2' in captured.err


def test_skip_errors(tmp_path, capsys):
    path = tmp_path / 'body.txt'
    path.write_text(AUDIT_LINE + '\n0|broken\n' + MFT_LINE + '\n')

    assert main([str(path), '--skip-errors']) == EXIT_OK
    assert len(capsys.readouterr().out.splitlines()) == 4


def test_missing_file_is_a_data_error(tmp_path, capsys):
    assert main([str(tmp_path / 'absent.txt')]) == EXIT_DATA_ERROR
    assert 'Could not build timeline' in capsys.readouterr().err


def test_undecodable_path_bytes_survive(tmp_path, capsysbinary):
    path = tmp_path / 'body.txt'
    path.write_bytes(b'0|/tmp/\xff\xfe|1|r/r|0|0|0|1|2|3|4\n')

    assert main([str(path)]) == EXIT_OK
    assert b'/tmp/\xff\xfe' in capsysbinary.readouterr().out


def test_deeply_nested_filter_is_a_config_error(bodyfile, capsys):
    depth = sys.getrecursionlimit() * 2
    expression = '(' * depth + 'true' + ')' * depth

    assert main([bodyfile, '-f', expression]) == EXIT_CONFIG_ERROR
    assert 'nested too deeply' in capsys.readouterr().err


def test_interrupted_ingestion_closes_input(tmp_path, monkeypatch):
    config = tmp_path / 'settings.json'
    config.write_text(json.dumps({'timeliner': {'memory_check_interval': 1}}))

    opened = []

    def fake_open(path):
        stream = io.StringIO('\n'.join([AUDIT_LINE, MRT_LINE, MFT_LINE]) + '\n')
        opened.append(stream)
        return stream

    monitor = MagicMock()
    monitor.log_memory_usage.side_effect = OSError('sampling failed')
    monkeypatch.setattr('timeliner.cli.open_bodyfile', fake_open)
    monkeypatch.setattr('timeliner.cli.MemoryMonitor', lambda: monitor)

    closed_when_reported = []
    handle_error = ErrorHandler.handle_error

    def recording_handle_error(self, *args, **kwargs):
        closed_when_reported.append(all(stream.closed for stream in opened))
        return handle_error(self, *args, **kwargs)

    monkeypatch.setattr(ErrorHandler, 'handle_error', recording_handle_error)

    assert main(['body.txt', '-c', str(config)]) == EXIT_DATA_ERROR
    assert len(opened) == 1
    assert closed_when_reported == [True]
