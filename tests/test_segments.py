"""
Test cases for voice flag to speech segment conversion.
"""
import pytest
from pathlib import Path
import sys

# Add src directory to path for testing
sys.path.insert( 0, str( Path( __file__ ).parent.parent / "src" ) );

from subalign.segments import ScanState, VoiceSegmentExtractor, filter_min_duration
from subalign.timespan import TimeSpan


T, F = True, False;


class TestVoiceSegmentExtractor:
    """Test cases for the two-state segment scanner."""

    def test_all_silent_gives_no_segments( self ):
        """Test that silence produces nothing."""
        extractor = VoiceSegmentExtractor();
        assert extractor.extract( [ F ] * 50 ) == [];
        assert extractor.extract( [] ) == [];

    def test_all_voiced_gives_one_segment( self ):
        """Test that continuous speech is one segment covering every chunk."""
        extractor = VoiceSegmentExtractor( chunk_duration_ms=32 );
        assert extractor.extract_chunk_ranges( [ T ] * 10 ) == [ ( 0, 10 ) ];
        assert extractor.extract( [ T ] * 10 ) == [ TimeSpan( 0, 320 ) ];

    def test_gap_splits_without_merging( self ):
        """Test that a merge gap of 0 closes on the first silent chunk."""
        extractor = VoiceSegmentExtractor( merge_gap=0 );
        assert extractor.extract_chunk_ranges( [ T, T, F, F, T, T, F ] ) == [ ( 0, 2 ), ( 4, 6 ) ];

    def test_gap_merge_bridges_short_silence( self ):
        """Test that a merge gap of 2 or more joins both speech runs."""
        flags = [ T, T, F, F, T, T, F ];
        for merge_gap in ( 2, 3, 10 ):
            extractor = VoiceSegmentExtractor( merge_gap=merge_gap );
            assert extractor.extract_chunk_ranges( flags ) == [ ( 0, 6 ) ];

    def test_gap_merge_too_small( self ):
        """Test that a merge gap shorter than the silence still splits."""
        extractor = VoiceSegmentExtractor( merge_gap=1 );
        assert extractor.extract_chunk_ranges( [ T, T, F, F, T, T, F ] ) == [ ( 0, 2 ), ( 4, 6 ) ];

    def test_merge_gap_counts_bridged_chunks( self ):
        """Test that exactly merge_gap silent chunks are bridged and one more splits."""
        extractor = VoiceSegmentExtractor( merge_gap=3 );
        assert extractor.extract_chunk_ranges( [ T, F, F, F, T ] ) == [ ( 0, 5 ) ];
        assert extractor.extract_chunk_ranges( [ T, F, F, F, F, T ] ) == [ ( 0, 1 ), ( 5, 6 ) ];

    def test_trailing_speech_is_closed( self ):
        """Test that speech running into the end of the stream is kept."""
        extractor = VoiceSegmentExtractor( merge_gap=5 );
        assert extractor.extract_chunk_ranges( [ F, T, F, T ] ) == [ ( 1, 4 ) ];

    def test_segments_sorted_and_disjoint( self ):
        """Test ordering invariant on an irregular pattern."""
        flags = [ ( index * 7 ) % 5 < 2 for index in range( 200 ) ];
        segments = VoiceSegmentExtractor( chunk_duration_ms=32, merge_gap=1 ).extract( flags );

        assert segments;
        for previous, current in zip( segments, segments[1:] ):
            assert previous.end < current.start;

    def test_invalid_parameters( self ):
        """Test parameter validation."""
        with pytest.raises( ValueError ):
            VoiceSegmentExtractor( chunk_duration_ms=0 );
        with pytest.raises( ValueError ):
            VoiceSegmentExtractor( merge_gap=-1 );

    def test_scan_states( self ):
        """Test the scanner state enum."""
        assert ScanState.OUTSIDE != ScanState.INSIDE;


class TestMinDurationFilter:
    """Test cases for the minimum speech span filter."""

    def test_short_segments_dropped( self ):
        segments = [ TimeSpan( 0, 320 ), TimeSpan( 1000, 1500 ), TimeSpan( 2000, 3000 ) ];
        assert filter_min_duration( segments, 500 ) == [ TimeSpan( 1000, 1500 ), TimeSpan( 2000, 3000 ) ];

    def test_zero_keeps_everything( self ):
        segments = [ TimeSpan( 0, 0 ), TimeSpan( 10, 42 ) ];
        assert filter_min_duration( segments, 0 ) == segments;
