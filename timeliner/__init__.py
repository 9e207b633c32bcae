"""
Bodyfile Timeline Builder

Turns sleuthkit-style bodyfile records into a single chronologically ordered
sequence of timestamped events, with an embedded filter language evaluated
against each of a record's four timestamps.
"""

__version__ = "1.0.0"
__author__ = "Timeliner Development Team"

from .data import Record, TimelineEvent, TimestampKind, BodyfileReader, parse_line
from .filters import DateFilter, FilterEngine, compile_expression
from .timeline import TimelineBuilder, TimelineState, build_timeline

__all__ = [
    'Record',
    'TimelineEvent',
    'TimestampKind',
    'BodyfileReader',
    'parse_line',
    'DateFilter',
    'FilterEngine',
    'compile_expression',
    'TimelineBuilder',
    'TimelineState',
    'build_timeline'
]
