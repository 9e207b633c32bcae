"""
Utility functions and helpers for timeliner.
Includes the error taxonomy, error handling, time conversion and memory monitoring.
"""

from .error_handler import (
    ErrorHandler,
    ErrorSeverity,
    TimelinerError,
    ParseError,
    MalformedRecord,
    InvalidField,
    FilterError,
    CompileError,
    EvalError,
    UsageError,
    TimelineStateError
)
from .memory_monitor import MemoryMonitor, MemorySnapshot

__all__ = [
    'ErrorHandler',
    'ErrorSeverity',
    'TimelinerError',
    'ParseError',
    'MalformedRecord',
    'InvalidField',
    'FilterError',
    'CompileError',
    'EvalError',
    'UsageError',
    'TimelineStateError',
    'MemoryMonitor',
    'MemorySnapshot'
]
