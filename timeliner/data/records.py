"""
Bodyfile Record Model
=====================

Data types shared by the parser, the filter engine and the timeline builder.

A bodyfile line carries eleven '|'-delimited fields:

    MD5|name|inode|mode_as_string|UID|GID|size|atime|mtime|ctime|crtime

Author: Timeliner Development Team
Version: 1.0
"""

import datetime
from dataclasses import dataclass
from enum import IntFlag
from typing import Iterator, Optional, Tuple

from timeliner.utils.time_utils import epoch_to_datetime

FIELD_SEPARATOR = '|'
ESCAPE_MARKER = '\\'
COMMENT_MARKER = '#'

FIELD_NAMES = (
    'hash', 'path', 'inode', 'mode', 'uid', 'gid', 'size',
    'access_time', 'modification_time', 'change_time', 'creation_time',
)
FIELD_COUNT = len(FIELD_NAMES)

# Epoch -1 means "timestamp not available on this filesystem"
SENTINEL_EPOCH = -1
SENTINEL_TIME = epoch_to_datetime(SENTINEL_EPOCH)


class TimestampKind(IntFlag):
    """The four timestamp roles of a record; values are matched_mask bits."""
    ACCESS = 1
    MODIFICATION = 2
    CHANGE = 4
    CREATION = 8

    @property
    def field_name(self) -> str:
        return _KIND_FIELDS[self]

    @property
    def letter(self) -> str:
        """Letter used in mactime 'macb' flags."""
        return _KIND_LETTERS[self]

    @property
    def label(self) -> str:
        return self.field_name.replace('_', ' ')


_KIND_FIELDS = {
    TimestampKind.ACCESS: 'access_time',
    TimestampKind.MODIFICATION: 'modification_time',
    TimestampKind.CHANGE: 'change_time',
    TimestampKind.CREATION: 'creation_time',
}

_KIND_LETTERS = {
    TimestampKind.ACCESS: 'a',
    TimestampKind.MODIFICATION: 'm',
    TimestampKind.CHANGE: 'c',
    TimestampKind.CREATION: 'b',
}

# Fan-out and filter evaluation order
TIMESTAMP_KINDS = (
    TimestampKind.ACCESS,
    TimestampKind.MODIFICATION,
    TimestampKind.CHANGE,
    TimestampKind.CREATION,
)

# Column order of the mactime flag string
MACB_ORDER = (
    TimestampKind.MODIFICATION,
    TimestampKind.ACCESS,
    TimestampKind.CHANGE,
    TimestampKind.CREATION,
)


@dataclass
class Record:
    """One decoded bodyfile line."""
    hash: str
    path: str
    inode: str
    mode: str
    uid: int
    gid: int
    size: int
    access_time: datetime.datetime
    modification_time: datetime.datetime
    change_time: datetime.datetime
    creation_time: datetime.datetime

    # Bits of the timestamp kinds that satisfied the active filter
    matched_mask: int = 0

    def timestamp(self, kind: TimestampKind) -> datetime.datetime:
        return getattr(self, kind.field_name)

    def timestamps(self) -> Iterator[Tuple[TimestampKind, datetime.datetime]]:
        """Yield (kind, instant) pairs in fan-out order."""
        for kind in TIMESTAMP_KINDS:
            yield kind, self.timestamp(kind)

    def matched(self, kind: TimestampKind) -> bool:
        return bool(self.matched_mask & kind)

    @property
    def inode_number(self) -> Optional[int]:
        """
        Best-effort numeric inode.

        Some producers emit composite identifiers such as '1234-128-4'; the
        leading number is returned for those, None when there is none.
        """
        head = self.inode.split('-', 1)[0] if self.inode else ''
        if head.isdigit():
            return int(head)
        return None


@dataclass(frozen=True)
class TimelineEvent:
    """A single timestamp of a record, positioned on the timeline."""
    event_time: datetime.datetime
    kind: TimestampKind
    record: Record

    @property
    def macb(self) -> str:
        """
        mactime-style flags, e.g. 'm.c.'.

        Every kind of the record whose instant equals event_time is flagged,
        since coincident timestamps are folded into a single event.
        """
        return ''.join(
            kind.letter if self.record.timestamp(kind) == self.event_time else '.'
            for kind in MACB_ORDER
        )
