"""
Timeline output formatting.

Formats:
- mactime: the sleuthkit mactime body layout, one event per line
    2009-07-13T23:29:31Z    74240 .a.b 0        454      0        36434    \\.\\Windows\\...
- csv: header row plus one row per event
- json: one JSON object per line
"""

import csv
import io
import json
import logging
from typing import Any, Dict, Iterable, List, TextIO

from timeliner.data.records import TimelineEvent
from timeliner.utils.time_utils import datetime_to_epoch, format_datetime

# Configure logger
logger = logging.getLogger(__name__)

CSV_COLUMNS = ['Date', 'Size', 'Type', 'Mode', 'UID', 'GID', 'Meta', 'File Name']


def event_to_dict(event: TimelineEvent) -> Dict[str, Any]:
    record = event.record
    return {
        'time': format_datetime(event.event_time),
        'epoch': datetime_to_epoch(event.event_time),
        'kind': event.kind.field_name,
        'macb': event.macb,
        'hash': record.hash,
        'path': record.path,
        'inode': record.inode,
        'mode': record.mode,
        'uid': record.uid,
        'gid': record.gid,
        'size': record.size,
        'matched_mask': record.matched_mask,
    }


def format_mactime(event: TimelineEvent) -> str:
    record = event.record
    return (
        f"{format_datetime(event.event_time)} {record.size:>8} {event.macb} "
        f"{record.mode:<8} {record.uid:<8} {record.gid:<8} {record.inode:<8} {record.path}"
    )


def _csv_row(event: TimelineEvent) -> List[Any]:
    record = event.record
    return [
        format_datetime(event.event_time), record.size, event.macb, record.mode,
        record.uid, record.gid, record.inode, record.path
    ]


def format_event(event: TimelineEvent, output_format: str = 'mactime') -> str:
    """
    Render a single event as one line (without the line terminator).

    Args:
        event: Event to render
        output_format: 'mactime', 'csv' or 'json'

    Returns:
        str: The rendered line

    Raises:
        ValueError: If the format is unknown
    """
    if output_format == 'mactime':
        return format_mactime(event)
    if output_format == 'json':
        return json.dumps(event_to_dict(event), ensure_ascii=False)
    if output_format == 'csv':
        buffer = io.StringIO()
        csv.writer(buffer, lineterminator='').writerow(_csv_row(event))
        return buffer.getvalue()
    raise ValueError(f"Unknown output format: {output_format!r}")


def write_timeline(events: Iterable[TimelineEvent], stream: TextIO,
                   output_format: str = 'mactime') -> int:
    """
    Write events to a text stream.

    Args:
        events: Events in the order they should appear
        stream: Destination
        output_format: 'mactime', 'csv' or 'json'

    Returns:
        int: Number of events written
    """
    if output_format not in ('mactime', 'csv', 'json'):
        raise ValueError(f"Unknown output format: {output_format!r}")

    if output_format == 'csv':
        csv.writer(stream, lineterminator='\n').writerow(CSV_COLUMNS)

    count = 0
    for event in events:
        stream.write(format_event(event, output_format) + '\n')
        count += 1

    logger.debug(f"Wrote {count} events as {output_format}")
    return count
