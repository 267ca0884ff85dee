"""
Applying computed deltas to subtitle timings and keeping the result non-negative.
"""
from typing import List, Sequence

from .logging import get_logger
from .timespan import TimeSpan


def correct_timespans( spans: Sequence[TimeSpan], deltas_ms: Sequence[int], scaling_factor: float = 1.0 ) -> List[TimeSpan]:
    """
    Rescale each original span by the framerate factor, then shift it.

    Args:
        spans: Original line timings in milliseconds
        deltas_ms: One millisecond delta per line
        scaling_factor: Chosen framerate ratio (1.0 = unchanged)

    Returns:
        Corrected spans, in the order of ``spans``
    """
    if len( spans ) != len( deltas_ms ):
        raise ValueError( f"got {len( deltas_ms )} deltas for {len( spans )} lines" );

    return [
        span.scaled( scaling_factor ).shifted( delta )
        for span, delta in zip( spans, deltas_ms )
    ];


def has_negative_timestamps( spans: Sequence[TimeSpan] ) -> bool:
    return any( span.start < 0 for span in spans );


class TimestampSanitizer:
    """
    Moves a timeline forward so that no line starts before zero.

    The whole timeline is shifted by one offset, so gaps and ordering are
    kept. With ``allow_negative`` the timeline is returned unchanged.
    """

    def __init__( self, allow_negative: bool = False ):
        self.logger = get_logger();
        self.allow_negative = allow_negative;
        self.last_shift_ms = 0;

    def sanitize( self, spans: Sequence[TimeSpan] ) -> List[TimeSpan]:
        self.last_shift_ms = 0;

        if not has_negative_timestamps( spans ) or self.allow_negative:
            return list( spans );

        offset = -min( span.start for span in spans );
        self.last_shift_ms = offset;
        self.logger.debug( f"Moving whole timeline forward by {offset}ms" );
        return [ span.shifted( offset ) for span in spans ];
