"""
Test cases for shift group building and reporting.
"""
import pytest
from pathlib import Path
from unittest.mock import Mock
import sys

# Add src directory to path for testing
sys.path.insert( 0, str( Path( __file__ ).parent.parent / "src" ) );

from subalign.align import standard_scoring
from subalign.groups import DeltaGrouper, ShiftGroup, group_by_delta
from subalign.timespan import TimeSpan


class TestGroupByDelta:
    """Test cases for the chronological delta scan."""

    def setup_method( self ):
        self.pairs = [
            ( 5, TimeSpan( 3000, 3500 ) ),
            ( 0, TimeSpan( 0, 500 ) ),
            ( 0, TimeSpan( 1000, 1500 ) ),
            ( 5, TimeSpan( 2000, 2500 ) ),
            ( 0, TimeSpan( 4000, 4500 ) ),
        ];

    def test_partition( self ):
        """Test that groups cover the sorted lines exactly once."""
        groups = group_by_delta( self.pairs );

        members = [ span for group in groups for span in group.spans ];
        assert members == sorted( ( span for _, span in self.pairs ), key=lambda span: span.start );
        assert [ group.delta for group in groups ] == [ 0, 5, 0 ];

    def test_adjacent_groups_differ( self ):
        groups = group_by_delta( self.pairs );
        for previous, current in zip( groups, groups[1:] ):
            assert previous.delta != current.delta;

    def test_empty( self ):
        assert group_by_delta( [] ) == [];

    def test_group_properties( self ):
        group = ShiftGroup( delta=3, spans=[ TimeSpan( 1000, 1500 ), TimeSpan( 4000, 4200 ) ] );
        assert group.min_start == 1000;
        assert group.max_start == 4000;
        assert group.duration == 3000;


class TestDeltaGrouper:
    """Test cases for group re-scoring."""

    def test_report_rescores_shifted_ticks( self ):
        """Test that members are converted to ticks and shifted before scoring."""
        engine = Mock();
        engine.score.return_value = 6.0;
        grouper = DeltaGrouper( engine, interval=10 );

        groups = grouper.group( [ 3, 3 ], [ TimeSpan( 100, 200 ), TimeSpan( 500, 700 ) ] );
        reports = grouper.report( groups, [ TimeSpan( 13, 23 ) ] );

        assert len( reports ) == 1;
        assert reports[0].delta_ms == 30;
        assert reports[0].score == 6.0;
        assert reports[0].score_per_line == 3.0;

        ref_ticks, shifted, scoring_fn = engine.score.call_args[0];
        assert ref_ticks == [ TimeSpan( 13, 23 ) ];
        assert shifted == [ TimeSpan( 13, 23 ), TimeSpan( 53, 73 ) ];
        assert scoring_fn is standard_scoring;

    def test_report_applies_framerate_factor( self ):
        engine = Mock();
        engine.score.return_value = 0.0;
        grouper = DeltaGrouper( engine, interval=1 );

        groups = grouper.group( [ 0 ], [ TimeSpan( 1000, 2000 ) ] );
        grouper.report( groups, [], scaling_factor=0.5 );

        assert engine.score.call_args[0][1] == [ TimeSpan( 500, 1000 ) ];

    def test_describe( self ):
        engine = Mock();
        engine.score.return_value = 1000.0;
        grouper = DeltaGrouper( engine, interval=1 );

        reports = grouper.report( grouper.group( [ -200, -200 ], [ TimeSpan( 200, 1200 ), TimeSpan( 5200, 6200 ) ] ), [] );
        text = reports[0].describe();

        assert "shifted block of 2 subtitles" in text;
        assert "-0:00:00.200" in text;
        assert "per subtitle: 500.000" in text;

    def test_length_mismatch( self ):
        grouper = DeltaGrouper( Mock(), interval=1 );
        with pytest.raises( ValueError ):
            grouper.group( [ 1, 2 ], [ TimeSpan( 0, 1 ) ] );
