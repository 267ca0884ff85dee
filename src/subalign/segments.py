"""
Conversion of per-chunk voice activity flags into speech segments.
"""
from enum import Enum
from typing import Iterable, List, Tuple

from .timespan import TimeSpan


class ScanState( Enum ):
    OUTSIDE = "outside";
    INSIDE = "inside";


class VoiceSegmentExtractor:
    """
    Two-state scanner turning voice activity flags into speech segments.

    Each flag covers ``chunk_duration_ms`` of audio. A segment is closed once
    more than ``merge_gap`` consecutive silent chunks follow its last speech
    chunk, so a merge gap of 0 closes on the first silent chunk and larger
    values bridge short pauses. A segment still open at the end of the
    stream is always closed.

    ``merge_gap`` is therefore the number of silent chunks that may be
    bridged inside one segment: the segment closes on silent chunk
    ``merge_gap + 1``, not on chunk ``merge_gap``.
    """

    def __init__( self, chunk_duration_ms: int = 32, merge_gap: int = 0 ):
        if chunk_duration_ms <= 0:
            raise ValueError( f"chunk duration must be positive, got {chunk_duration_ms}" );
        if merge_gap < 0:
            raise ValueError( f"merge gap must not be negative, got {merge_gap}" );
        self.chunk_duration_ms = chunk_duration_ms;
        self.merge_gap = merge_gap;

    def extract_chunk_ranges( self, flags: Iterable[bool] ) -> List[Tuple[int, int]]:
        """
        Scan the flags once and collect speech runs.

        Returns:
            Half-open chunk index ranges (first_speech, last_speech + 1)
        """
        ranges = [];
        state = ScanState.OUTSIDE;
        segment_start = 0;
        last_speech = 0;

        for index, is_voice in enumerate( flags ):
            if is_voice:
                if state is ScanState.OUTSIDE:
                    segment_start = index;
                    state = ScanState.INSIDE;
                last_speech = index;
            elif state is ScanState.INSIDE and index - last_speech > self.merge_gap:
                ranges.append( ( segment_start, last_speech + 1 ) );
                state = ScanState.OUTSIDE;

        # end of stream acts as a closing silent chunk
        if state is ScanState.INSIDE:
            ranges.append( ( segment_start, last_speech + 1 ) );

        return ranges;

    def extract( self, flags: Iterable[bool] ) -> List[TimeSpan]:
        """Speech segments in milliseconds, sorted and pairwise disjoint."""
        return [
            TimeSpan( start * self.chunk_duration_ms, end * self.chunk_duration_ms )
            for start, end in self.extract_chunk_ranges( flags )
        ];


def filter_min_duration( segments: Iterable[TimeSpan], min_duration_ms: int ) -> List[TimeSpan]:
    """Drop segments shorter than ``min_duration_ms``."""
    return [ segment for segment in segments if segment.length >= min_duration_ms ];
