"""
Structured date filter that compiles down to a filter expression.
"""

import datetime
from dataclasses import dataclass
from typing import List, Optional, Union

from timeliner.utils.time_utils import WEEKDAY_NAMES, format_datetime


def _as_utc(dt: datetime.datetime) -> datetime.datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=datetime.timezone.utc)
    return dt


@dataclass
class DateFilter:
    """
    Date range, hour range and weekday conditions, combined with '&&'.

    Bounds are exclusive. Example:

        DateFilter(hour_after=0, hour_before=3).to_expression()
        -> 'hour > 0 && hour < 3'
    """
    after: Optional[datetime.datetime] = None
    before: Optional[datetime.datetime] = None
    hour_after: Optional[int] = None
    hour_before: Optional[int] = None
    weekday: Optional[Union[str, int]] = None

    @classmethod
    def around(cls, center: datetime.datetime, delta: datetime.timedelta) -> 'DateFilter':
        """Window of +/- delta around an instant."""
        center = _as_utc(center)
        return cls(after=center - delta, before=center + delta)

    def weekday_name(self) -> Optional[str]:
        if self.weekday is None:
            return None
        if isinstance(self.weekday, int) and not isinstance(self.weekday, bool):
            if not 0 <= self.weekday <= 6:
                raise ValueError(f"Weekday index must be 0-6, got {self.weekday}")
            return WEEKDAY_NAMES[self.weekday]
        for name in WEEKDAY_NAMES:
            if name.lower() == str(self.weekday).strip().lower():
                return name
        raise ValueError(f"Unknown weekday: {self.weekday!r}")

    def to_expression(self) -> str:
        """
        Render the conditions in the filter expression language.

        Raises:
            ValueError: No condition set, or an invalid hour/weekday
        """
        conditions: List[str] = []

        if self.after is not None:
            conditions.append(f"date > '{format_datetime(_as_utc(self.after))}'")
        if self.before is not None:
            conditions.append(f"date < '{format_datetime(_as_utc(self.before))}'")

        for name, hour, operator in (('hour_after', self.hour_after, '>'),
                                     ('hour_before', self.hour_before, '<')):
            if hour is None:
                continue
            if not 0 <= hour <= 24:
                raise ValueError(f"{name} must be between 0 and 24, got {hour}")
            conditions.append(f"hour {operator} {int(hour)}")

        weekday = self.weekday_name()
        if weekday is not None:
            conditions.append(f"weekday == '{weekday}'")

        if not conditions:
            raise ValueError("DateFilter needs at least one condition")

        return ' && '.join(conditions)
