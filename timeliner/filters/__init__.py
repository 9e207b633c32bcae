"""
Filter engine for timeliner.
Compiles filter expressions and evaluates them against each timestamp of a record.
"""

from .expression import Expression, compile_expression
from .date_filter import DateFilter
from .filter_engine import FilterEngine, timestamp_parameters

__all__ = [
    'Expression',
    'compile_expression',
    'DateFilter',
    'FilterEngine',
    'timestamp_parameters'
]
