"""
Timeline Builder
================

Explodes records into per-timestamp events and serves them in time order.

The builder has two phases. ingest() consumes every record, fans each one out
into up to four events and sorts the whole set once. next_event() then hands
the events out one at a time.

Fan-out rules, in access, modification, change, creation order:
- a timestamp equal to an earlier timestamp of the same record adds no event
- otherwise, non-strict: included when later than the sentinel (epoch -1)
- otherwise, strict: included when its bit is set in the record's matched_mask

States: UNINITIALIZED -> READY -> CONSUMING -> EXHAUSTED

Author: Timeliner Development Team
Version: 1.0
"""

import logging
from enum import Enum
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from timeliner.data.bodyfile_reader import BodyfileReader, ON_ERROR_RAISE
from timeliner.data.records import (
    Record,
    SENTINEL_TIME,
    TIMESTAMP_KINDS,
    TimelineEvent,
)
from timeliner.filters.filter_engine import FilterEngine
from timeliner.utils.error_handler import TimelineStateError

# Configure logger
logger = logging.getLogger(__name__)


class TimelineState(Enum):
    """Lifecycle of a TimelineBuilder."""
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    CONSUMING = "consuming"
    EXHAUSTED = "exhausted"


def explode_record(record: Record, strict: bool = False) -> List[TimelineEvent]:
    """
    Fan a record out into its timeline events.

    Args:
        record: Parsed (and possibly filtered) record
        strict: Only keep the timestamps that satisfied the filter

    Returns:
        List[TimelineEvent]: Zero to four events, in fan-out order
    """
    events = []
    seen = []

    for kind, instant in record.timestamps():
        duplicate = instant in seen
        seen.append(instant)
        if duplicate:
            continue

        if strict:
            include = record.matched(kind)
        else:
            include = instant > SENTINEL_TIME

        if include:
            events.append(TimelineEvent(instant, kind, record))

    return events


class TimelineBuilder:
    """
    Collects timeline events and serves them sorted by time.

    One builder is driven by exactly one ingest-then-consume sequence.
    """

    def __init__(self, memory_monitor=None, memory_check_interval: int = 100000):
        """
        Args:
            memory_monitor: Optional MemoryMonitor sampled during ingestion
            memory_check_interval: Records between two memory samples
        """
        self.memory_monitor = memory_monitor
        self.memory_check_interval = max(1, int(memory_check_interval))
        self._events: List[TimelineEvent] = []
        self._offset = -1
        self.records_ingested = 0

    @property
    def state(self) -> TimelineState:
        if self._offset < 0:
            return TimelineState.UNINITIALIZED
        if self._offset >= len(self._events):
            return TimelineState.EXHAUSTED
        if self._offset == 0:
            return TimelineState.READY
        return TimelineState.CONSUMING

    @property
    def events(self) -> Tuple[TimelineEvent, ...]:
        """All events in sorted order (empty before ingestion)."""
        return tuple(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def ingest(self, records: Iterable[Record], strict: bool = False) -> int:
        """
        Consume every record, then sort the events.

        Args:
            records: Parsed records, matched_mask set when a filter ran
            strict: Keep only the timestamps that satisfied the filter

        Returns:
            int: Number of events on the timeline

        Raises:
            TimelineStateError: If the builder already ingested
        """
        if self._offset >= 0:
            raise TimelineStateError("Timeline already ingested, use a new builder")

        events: List[TimelineEvent] = []
        for record in records:
            events.extend(explode_record(record, strict))
            self.records_ingested += 1

            if self.memory_monitor and self.records_ingested % self.memory_check_interval == 0:
                self.memory_monitor.log_memory_usage(
                    f"{self.records_ingested} records, {len(events)} events"
                )

        # list.sort is stable, ties keep insertion order
        events.sort(key=lambda event: event.event_time)
        self._events = events
        self._offset = 0

        logger.info(
            f"Ingested {self.records_ingested} records into {len(events)} events"
            f"{' (strict)' if strict else ''}"
        )
        if self.memory_monitor:
            self.memory_monitor.log_memory_usage("timeline sorted")

        return len(events)

    def next_event(self) -> Optional[TimelineEvent]:
        """
        Return the next event in time order.

        Returns:
            TimelineEvent, or None once the timeline is exhausted (repeatably)

        Raises:
            TimelineStateError: If called before ingest()
        """
        if self._offset < 0:
            raise TimelineStateError("Not initialized, call ingest() first")

        if self._offset >= len(self._events):
            return None

        self._offset += 1
        return self._events[self._offset - 1]

    def __iter__(self) -> Iterator[TimelineEvent]:
        while True:
            event = self.next_event()
            if event is None:
                return
            yield event


def build_timeline(lines: Iterable[Union[str, bytes]],
                   expression: Optional[Union[str, FilterEngine]] = None,
                   strict: bool = False,
                   on_error: str = ON_ERROR_RAISE,
                   memory_monitor=None) -> TimelineBuilder:
    """
    Parse, filter and ingest a line source in one call.

    Args:
        lines: Raw bodyfile lines
        expression: Filter expression text or a FilterEngine
        strict: Strict inclusion (see TimelineBuilder.ingest)
        on_error: 'raise' or 'skip' for bad lines
        memory_monitor: Optional MemoryMonitor

    Returns:
        TimelineBuilder: Ingested builder, ready for next_event()
    """
    engine = expression
    if isinstance(expression, str):
        engine = FilterEngine(expression)

    reader = BodyfileReader(lines, engine, on_error=on_error)
    builder = TimelineBuilder(memory_monitor=memory_monitor)
    builder.ingest(reader, strict=strict)

    if reader.skipped:
        logger.warning(f"Skipped {reader.skipped} invalid line(s)")
    return builder
