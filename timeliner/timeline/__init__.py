"""
Timeline construction for timeliner.
Fans records out into timestamped events and serves them in chronological order.
"""

from .timeline_builder import TimelineBuilder, TimelineState, build_timeline, explode_record

__all__ = ['TimelineBuilder', 'TimelineState', 'build_timeline', 'explode_record']
