"""
Bodyfile Line Parser
====================

Decodes one bodyfile line into a Record.

The '|' separator may appear inside the path, escaped with a backslash. Lines
with more than eleven fields go through escape recovery, scanning from the
path: a fragment ending with a dangling escape marker (an odd number of
trailing backslashes, since '\\\\' is a literal backslash) absorbs the next
fragment, then the scan moves to the fragment after it. The first fragment
without a dangling escape is merged back into the fragment before it and the
scan stops. Separators and escape markers are kept as they appear in the input.

Known limitation: the recovery is a greedy single pass, not a grammar. A path
mixing unescaped separators and dangling escape markers may be rebuilt wrongly
(an unescaped separator right after the path start folds the path into the
hash column) or rejected.

Lenient coercions:
- size: a malformed or overflowing value becomes 0 (known-broken producers
  write garbage in that column)
- inode and mode: kept as opaque strings

Author: Timeliner Development Team
Version: 1.0
"""

import logging
import re
from typing import List

from timeliner.data.records import (
    ESCAPE_MARKER,
    FIELD_COUNT,
    FIELD_SEPARATOR,
    Record,
)
from timeliner.utils.error_handler import InvalidField, MalformedRecord
from timeliner.utils.time_utils import epoch_to_datetime

# Configure logger
logger = logging.getLogger(__name__)

INTEGER_PATTERN = re.compile(r'[+-]?[0-9]+')
INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1

TIMESTAMP_FIELDS = (
    (7, 'access_time'),
    (8, 'modification_time'),
    (9, 'change_time'),
    (10, 'creation_time'),
)


def parse_int64(value: str) -> int:
    """
    Parse a signed base-10 64-bit integer.

    Raises:
        ValueError: On bad syntax or when the value does not fit in 64 bits
    """
    if not INTEGER_PATTERN.fullmatch(value):
        raise ValueError("invalid syntax")
    number = int(value)
    if number < INT64_MIN or number > INT64_MAX:
        raise ValueError("value out of range")
    return number


def has_dangling_escape(fragment: str) -> bool:
    """True if the fragment ends with an odd number of escape markers."""
    stripped = fragment.rstrip(ESCAPE_MARKER)
    return (len(fragment) - len(stripped)) % 2 == 1


def recover_escaped_fields(fields: List[str]) -> List[str]:
    """
    Merge path fragments split on separators.

    Scanning from the path, a fragment with a dangling escape absorbs the
    fragment after it and the scan moves on. The first fragment reached
    without one is folded into the fragment before it, which ends the scan.
    Separators are restored at every merge. The scan also ends as soon as
    FIELD_COUNT fields remain.

    Args:
        fields: Raw split result, more than FIELD_COUNT entries

    Returns:
        List[str]: The fields with the path rebuilt. The caller re-checks the count.
    """
    fields = list(fields)
    i = 1
    while len(fields) > FIELD_COUNT and i < len(fields) - 1:
        if has_dangling_escape(fields[i]):
            fields[i] = fields[i] + FIELD_SEPARATOR + fields[i + 1]
            del fields[i + 1]
        else:
            fields[i - 1] = fields[i - 1] + FIELD_SEPARATOR + fields[i]
            del fields[i]
            break
        i += 1
    return fields


def split_fields(line: str) -> List[str]:
    """
    Split a line into exactly FIELD_COUNT raw fields.

    Raises:
        MalformedRecord: If the count cannot be reconciled
    """
    # Quotes are not special: a field starting with '"' is split like any other
    fields = line.rstrip('\r\n').split(FIELD_SEPARATOR)

    if len(fields) < FIELD_COUNT:
        raise MalformedRecord(len(fields), FIELD_COUNT)

    if len(fields) > FIELD_COUNT:
        recovered = recover_escaped_fields(fields)
        if len(recovered) != FIELD_COUNT:
            raise MalformedRecord(len(fields), FIELD_COUNT)
        logger.debug(f"Recovered escaped separators in path: {recovered[1]!r}")
        fields = recovered

    return fields


def _parse_required_int(fields: List[str], index: int, name: str) -> int:
    try:
        return parse_int64(fields[index])
    except ValueError as e:
        raise InvalidField(name, fields[index], str(e)) from None


def parse_line(line: str) -> Record:
    """
    Parse one bodyfile line.

    Args:
        line: Raw line, with or without its terminator

    Returns:
        Record: The decoded record, matched_mask unset

    Raises:
        MalformedRecord: Wrong number of fields
        InvalidField: uid, gid or a timestamp is not an integer
    """
    fields = split_fields(line)

    uid = _parse_required_int(fields, 4, 'uid')
    gid = _parse_required_int(fields, 5, 'gid')

    try:
        size = parse_int64(fields[6])
    except ValueError:
        logger.debug(f"Size was not an integer ({fields[6]!r}), using 0")
        size = 0

    timestamps = {}
    for index, name in TIMESTAMP_FIELDS:
        seconds = _parse_required_int(fields, index, name)
        try:
            timestamps[name] = epoch_to_datetime(seconds)
        except OverflowError:
            raise InvalidField(name, fields[index], "out of datetime range") from None

    return Record(
        hash=fields[0],
        path=fields[1],
        inode=fields[2],
        mode=fields[3],
        uid=uid,
        gid=gid,
        size=size,
        **timestamps
    )
