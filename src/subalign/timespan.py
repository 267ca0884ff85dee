"""
Time spans in milliseconds or alignment ticks, and conversions between them.
"""
import statistics
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence


def _div_toward_zero( value: int, divisor: int ) -> int:
    quotient = abs( value ) // divisor;
    return quotient if value >= 0 else -quotient;


@dataclass( frozen=True )
class TimeSpan:
    """
    Closed interval [start, end] of integer timestamps.

    Used both for millisecond timings and for discretized alignment ticks.
    Endpoints given in the wrong order are swapped.
    """

    start: int;
    end: int;

    def __post_init__( self ):
        if self.start > self.end:
            start, end = self.end, self.start;
            object.__setattr__( self, "start", start );
            object.__setattr__( self, "end", end );

    @property
    def length( self ) -> int:
        return self.end - self.start;

    def shifted( self, delta: int ) -> "TimeSpan":
        return TimeSpan( self.start + delta, self.end + delta );

    def scaled( self, factor: float ) -> "TimeSpan":
        """Multiply both endpoints by ``factor``, truncating toward zero."""
        return TimeSpan( int( self.start * factor ), int( self.end * factor ) );

    def __repr__( self ):
        return f"TimeSpan({self.start}, {self.end})";


def _check_interval( interval: int ):
    if interval <= 0:
        raise ValueError( f"interval must be a positive number of milliseconds, got {interval}" );


def timepoint_to_ticks( msecs: int, interval: int ) -> int:
    _check_interval( interval );
    return _div_toward_zero( msecs, interval );


def delta_to_msecs( delta: int, interval: int ) -> int:
    _check_interval( interval );
    return delta * interval;


def timespans_to_ticks( spans: Iterable[TimeSpan], interval: int ) -> List[TimeSpan]:
    """Discretize millisecond spans into alignment ticks of ``interval`` ms."""
    return [
        TimeSpan( timepoint_to_ticks( span.start, interval ), timepoint_to_ticks( span.end, interval ) )
        for span in spans
    ];


def deltas_to_msecs( deltas: Iterable[int], interval: int ) -> List[int]:
    return [ delta_to_msecs( delta, interval ) for delta in deltas ];


def format_msecs( msecs: int ) -> str:
    """Format milliseconds as ``[-]H:MM:SS.mmm``."""
    sign = "-" if msecs < 0 else "";
    msecs = abs( msecs );
    hours = msecs // 3600000;
    minutes = ( msecs % 3600000 ) // 60000;
    seconds = ( msecs % 60000 ) // 1000;
    millis = msecs % 1000;
    return f"{sign}{hours}:{minutes:02d}:{seconds:02d}.{millis:03d}";


def describe_timeline( spans: Sequence[TimeSpan] ) -> Dict:
    """
    Summarize a timeline for the speech analysis report.

    Returns:
        Dictionary with line count, covered time, coverage of the whole
        timeline and the median gap between consecutive spans (all ms)
    """
    if not spans:
        return {};

    ordered = sorted( spans, key=lambda span: span.start );
    first = ordered[0].start;
    last = max( span.end for span in ordered );
    covered = sum( span.length for span in ordered );

    gaps = [
        nxt.start - prev.end
        for prev, nxt in zip( ordered, ordered[1:] )
        if nxt.start > prev.end
    ];

    total = last - first;
    return {
        'lines': len( ordered ),
        'first_ms': first,
        'last_ms': last,
        'covered_ms': covered,
        'coverage': covered / total if total > 0 else 0.0,
        'median_gap_ms': statistics.median( gaps ) if gaps else 0,
    };
