"""
Filter Engine
=============

Evaluates a compiled expression once per timestamp kind of a record. A record
matches when at least one of its four timestamps satisfies the expression;
the kinds that did are recorded in Record.matched_mask.

Variables available to an expression (short alias in parentheses):

    path    (p)   record path
    hour    (h)   hour of day, 0-23
    min     (m)   minute of hour, 0-59
    day     (D)   day of month, 1-31
    weekday (w)   'Monday' ... 'Sunday'
    date    (d)   epoch seconds

All calendar values are computed in UTC.

Author: Timeliner Development Team
Version: 1.0
"""

import datetime
import logging
from typing import Any, Dict, Tuple, Union

from timeliner.data.records import Record, TIMESTAMP_KINDS
from timeliner.filters.date_filter import DateFilter
from timeliner.filters.expression import Expression, compile_expression
from timeliner.utils.error_handler import EvalError
from timeliner.utils.time_utils import datetime_to_epoch, weekday_name

# Configure logger
logger = logging.getLogger(__name__)

# Variable names, each with its short alias
PATH_VARIABLES = ('path', 'p')
HOUR_VARIABLES = ('hour', 'h')
MINUTE_VARIABLES = ('min', 'm')
DAY_VARIABLES = ('day', 'D')
WEEKDAY_VARIABLES = ('weekday', 'w')
DATE_VARIABLES = ('date', 'd')

KNOWN_VARIABLES = frozenset(
    PATH_VARIABLES + HOUR_VARIABLES + MINUTE_VARIABLES +
    DAY_VARIABLES + WEEKDAY_VARIABLES + DATE_VARIABLES
)


def timestamp_parameters(path: str, instant: datetime.datetime) -> Dict[str, Any]:
    """
    Build the variable environment for one timestamp of a record.

    Args:
        path: Record path
        instant: The timestamp being tested (UTC)

    Returns:
        Dict[str, Any]: Variable name -> value, aliases included
    """
    values = (
        (PATH_VARIABLES, path),
        (HOUR_VARIABLES, instant.hour),
        (MINUTE_VARIABLES, instant.minute),
        (DAY_VARIABLES, instant.day),
        (WEEKDAY_VARIABLES, weekday_name(instant)),
        (DATE_VARIABLES, datetime_to_epoch(instant)),
    )
    params = {}
    for names, value in values:
        for name in names:
            params[name] = value
    return params


class FilterEngine:
    """
    Per-record filter over the four timestamps.

    The expression is compiled once at construction; a syntax error raises
    CompileError before any record is read.
    """

    def __init__(self, expression: Union[str, Expression]):
        """
        Args:
            expression: Expression source or an already compiled Expression
        """
        if isinstance(expression, Expression):
            self.expression = expression
        else:
            self.expression = compile_expression(expression)

        unknown = self.expression.variables - KNOWN_VARIABLES
        if unknown:
            # Evaluation fails on the first record
            logger.warning(
                f"Filter references unknown variable(s): {', '.join(sorted(unknown))}"
            )

    @classmethod
    def from_filter(cls, date_filter: DateFilter) -> 'FilterEngine':
        """Compile a structured DateFilter."""
        return cls(date_filter.to_expression())

    @property
    def text(self) -> str:
        return self.expression.text

    def evaluate(self, record: Record) -> Tuple[bool, int]:
        """
        Evaluate the expression against each timestamp of a record.

        Args:
            record: Parsed record (not modified)

        Returns:
            Tuple[bool, int]: (matched, mask of the kinds that satisfied it)

        Raises:
            EvalError: The expression failed or did not produce a boolean
        """
        mask = 0
        for kind in TIMESTAMP_KINDS:
            params = timestamp_parameters(record.path, record.timestamp(kind))
            try:
                decision = self.expression.evaluate(params)
            except EvalError as e:
                raise EvalError(e.message, kind.label) from e

            if not isinstance(decision, bool):
                raise EvalError(
                    f"expression returned {type(decision).__name__} {decision!r}, expected a boolean",
                    kind.label
                )
            if decision:
                mask |= kind

        return mask != 0, int(mask)

    def apply(self, record: Record) -> bool:
        """Evaluate and store the mask on the record. Returns the verdict."""
        matched, mask = self.evaluate(record)
        record.matched_mask = mask
        return matched

    def __repr__(self) -> str:
        return f"FilterEngine({self.text!r})"

