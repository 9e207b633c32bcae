"""
Data layer for timeliner.
Provides the bodyfile record model, the line parser and the streaming reader.
"""

from .records import (
    Record,
    TimelineEvent,
    TimestampKind,
    TIMESTAMP_KINDS,
    SENTINEL_EPOCH,
    SENTINEL_TIME
)
from .bodyfile_parser import parse_line
from .bodyfile_reader import BodyfileReader, open_bodyfile

__all__ = [
    'Record',
    'TimelineEvent',
    'TimestampKind',
    'TIMESTAMP_KINDS',
    'SENTINEL_EPOCH',
    'SENTINEL_TIME',
    'parse_line',
    'BodyfileReader',
    'open_bodyfile'
]
