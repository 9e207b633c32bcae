"""
Bodyfile Reader
===============

Streams records out of an externally supplied line source. Comment lines
(starting with '#') and blank lines are skipped. Each data line is parsed and,
when a filter engine is installed, filtered; only matching records are yielded.

Error policy:
- 'raise': the first ParseError or EvalError propagates, tagged with its line number
- 'skip': the line is logged through the ErrorHandler, counted and ignored

Author: Timeliner Development Team
Version: 1.0
"""

import io
import logging
import sys
from typing import IO, Iterable, Iterator, Optional, Union

from timeliner.data.bodyfile_parser import parse_line
from timeliner.data.records import COMMENT_MARKER, Record
from timeliner.utils.error_handler import ErrorHandler, EvalError, ParseError

# Configure logger
logger = logging.getLogger(__name__)

ON_ERROR_RAISE = 'raise'
ON_ERROR_SKIP = 'skip'
ON_ERROR_POLICIES = (ON_ERROR_RAISE, ON_ERROR_SKIP)


def _decode(line: Union[str, bytes]) -> str:
    if isinstance(line, bytes):
        return line.decode('utf-8', errors='surrogateescape')
    return line


class BodyfileReader:
    """
    Iterates the matching records of a line source.

    Statistics are available after (or during) iteration:
    lines_read, records_parsed, records_matched, skipped.
    """

    def __init__(self, lines: Iterable[Union[str, bytes]], filter_engine=None,
                 on_error: str = ON_ERROR_RAISE,
                 error_handler: Optional[ErrorHandler] = None):
        """
        Args:
            lines: Iterable of raw lines (str, or bytes decoded as UTF-8)
            filter_engine: Optional FilterEngine; None lets every record through
            on_error: 'raise' or 'skip'
            error_handler: Handler used to report skipped lines
        """
        if on_error not in ON_ERROR_POLICIES:
            raise ValueError(f"on_error must be one of {ON_ERROR_POLICIES}, got {on_error!r}")

        self.lines = lines
        self.filter_engine = filter_engine
        self.on_error = on_error
        self.error_handler = error_handler or ErrorHandler(logger.name)

        self.lines_read = 0
        self.records_parsed = 0
        self.records_matched = 0
        self.skipped = 0

    def __iter__(self) -> Iterator[Record]:
        for line_number, raw in enumerate(self.lines, 1):
            self.lines_read += 1
            line = _decode(raw).rstrip('\r\n')

            if not line.strip() or line.startswith(COMMENT_MARKER):
                continue

            try:
                record = parse_line(line)
                self.records_parsed += 1
                matched = self._apply_filter(record)
            except (ParseError, EvalError) as e:
                e.line_number = line_number
                if self.on_error == ON_ERROR_RAISE:
                    raise
                self.skipped += 1
                self.error_handler.handle_error(
                    e, "Skipping bodyfile line", logging.WARNING, raise_exception=False
                )
                continue

            if matched:
                self.records_matched += 1
                yield record

        logger.debug(
            f"Read {self.lines_read} lines: {self.records_parsed} parsed, "
            f"{self.records_matched} matched, {self.skipped} skipped"
        )

    def _apply_filter(self, record: Record) -> bool:
        if self.filter_engine is None:
            return True
        return self.filter_engine.apply(record)


def open_bodyfile(path: str) -> IO[str]:
    """
    Open a bodyfile for reading, '-' meaning stdin.

    Undecodable bytes are preserved as surrogate escapes instead of failing
    the whole file.
    """
    if path == '-':
        return io.TextIOWrapper(sys.stdin.buffer, encoding='utf-8',
                                errors='surrogateescape', newline='\n')
    return open(path, 'r', encoding='utf-8', errors='surrogateescape', newline='\n')
