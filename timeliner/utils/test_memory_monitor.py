"""
Tests for MemoryMonitor with psutil patched out.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from timeliner.utils.memory_monitor import MemoryMonitor

MB = 1024 * 1024


def fake_virtual_memory(percent):
    return SimpleNamespace(total=1000 * MB, available=(100 - percent) * 10 * MB, percent=percent)


@pytest.fixture
def fake_psutil():
    with patch('timeliner.utils.memory_monitor.psutil') as mocked:
        mocked.Process.return_value.memory_info.return_value = SimpleNamespace(rss=50 * MB)
        mocked.virtual_memory.return_value = fake_virtual_memory(40)
        yield mocked


def test_sample_values(fake_psutil):
    snapshot = MemoryMonitor().sample('start')

    assert snapshot.total_mb == 1000
    assert snapshot.available_mb == 600
    assert snapshot.process_mb == 50
    assert snapshot.system_percent == 40
    assert snapshot.context == 'start'


@pytest.mark.parametrize('percent, status, warned', [
    (40, 'ok', False),
    (85, 'warning', True),
    (95, 'critical', True),
])
def test_thresholds(fake_psutil, percent, status, warned):
    fake_psutil.virtual_memory.return_value = fake_virtual_memory(percent)
    callback = MagicMock()

    stats = MemoryMonitor(on_pressure=callback).get_memory_stats()

    assert stats['status'] == status
    assert callback.called is warned


def test_invalid_thresholds(fake_psutil):
    with pytest.raises(ValueError):
        MemoryMonitor(warning_percent=95, critical_percent=90)


def test_history_is_bounded(fake_psutil):
    monitor = MemoryMonitor(history=3)
    for _ in range(5):
        monitor.log_memory_usage('ingest')

    assert len(monitor.snapshots) == 3
    assert monitor.peak_process_mb == 50

    monitor.clear_snapshots()
    assert monitor.peak_process_mb == 0.0


def test_log_memory_usage_includes_context(fake_psutil, caplog):
    with caplog.at_level('INFO', logger='timeliner.utils.memory_monitor'):
        MemoryMonitor().log_memory_usage('timeline sorted')

    assert '[timeline sorted]' in caplog.text
    assert 'process 50 MB' in caplog.text
