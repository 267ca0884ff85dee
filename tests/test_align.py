"""
Test cases for the overlap alignment engine.
"""
import pytest
import numpy as np
from pathlib import Path
from unittest.mock import Mock
import sys

# Add src directory to path for testing
sys.path.insert( 0, str( Path( __file__ ).parent.parent / "src" ) );

from subalign.align import OverlapAlignmentEngine, overlap_scoring, standard_scoring
from subalign.timespan import TimeSpan


def irregular_reference( count: int = 20 ):
    """Lines of 1000ms with irregular spacing, so no shift repeats the pattern."""
    return [
        TimeSpan( start, start + 1000 )
        for start in ( index * 4000 + ( index * index * 731 ) % 1500 for index in range( count ) )
    ];


class TestScoringFunctions:
    """Test cases for pair weights."""

    def test_standard_scoring( self ):
        weights = standard_scoring( np.array( [ 100, 50, 0 ] ), np.array( [ 50, 100, 0 ] ) );
        assert list( weights ) == [ 0.5, 0.5, 0.0 ];

    def test_overlap_scoring_broadcasts( self ):
        weights = overlap_scoring( np.array( [ [ 10 ], [ 20 ] ] ), np.array( [ [ 1, 2, 3 ] ] ) );
        assert weights.shape == ( 2, 3 );
        assert weights.sum() == 6.0;


class TestOverlapAlignmentEngine:
    """Test cases for scoring and offset search."""

    def test_score_sums_overlaps( self ):
        """Test blocked pair scoring."""
        engine = OverlapAlignmentEngine( block_size=1 );
        ref = [ TimeSpan( 0, 100 ), TimeSpan( 200, 300 ), TimeSpan( 1000, 1100 ) ];
        shifted = [ TimeSpan( 50, 150 ), TimeSpan( 250, 350 ) ];
        assert engine.score( ref, shifted, standard_scoring ) == 100.0;
        assert engine.score( [], shifted, standard_scoring ) == 0.0;

    def test_nosplit_finds_constant_shift( self ):
        engine = OverlapAlignmentEngine();
        ref = [ TimeSpan( 0, 1000 ), TimeSpan( 5000, 6000 ) ];
        inc = [ TimeSpan( 200, 1200 ), TimeSpan( 5200, 6200 ) ];

        delta, score = engine.align_nosplit( ref, inc, standard_scoring );

        assert delta == -200;
        assert score == 2000.0;

    def test_nosplit_tie_prefers_smallest_delta( self ):
        """Test that a plateau of equal scores resolves toward zero."""
        engine = OverlapAlignmentEngine();
        delta, score = engine.align_nosplit( [ TimeSpan( 0, 100 ) ], [ TimeSpan( 100, 150 ) ], overlap_scoring );
        assert delta == -50;
        assert score == 50.0;

    def test_nosplit_matches_direct_score( self ):
        """Test that the profile score agrees with pairwise scoring."""
        engine = OverlapAlignmentEngine( block_size=7 );
        ref = irregular_reference();
        inc = [ TimeSpan( span.start + 333, span.end + 333 - ( index % 3 ) * 150 ) for index, span in enumerate( ref ) ];

        delta, score = engine.align_nosplit( ref, inc, standard_scoring );
        best = engine.score( ref, [ span.shifted( delta ) for span in inc ], standard_scoring );

        assert delta == -333;
        assert score == pytest.approx( best );
        for other in ( -400, -334, -332, 0, 500 ):
            assert engine.score( ref, [ span.shifted( other ) for span in inc ], standard_scoring ) <= score + 1e-6;

    def test_nosplit_empty_inputs( self ):
        engine = OverlapAlignmentEngine();
        assert engine.align_nosplit( [], [ TimeSpan( 0, 1 ) ], standard_scoring ) == ( 0, 0.0 );
        assert engine.align_nosplit( [ TimeSpan( 0, 1 ) ], [], standard_scoring ) == ( 0, 0.0 );

    def test_split_alignment_finds_two_blocks( self ):
        """Test per-line deltas for input shifted by two different offsets."""
        engine = OverlapAlignmentEngine();
        ref = irregular_reference();
        inc = [ span.shifted( 200 ) for span in ref[:10] ] + [ span.shifted( -2000 ) for span in ref[10:] ];
        progress = Mock();

        deltas = engine.align( ref, inc, 7.0, 1.0, standard_scoring, progress );

        assert deltas == [ -200 ] * 10 + [ 2000 ] * 10;
        progress.init.assert_called_once();
        progress.finish.assert_called_once();

    def test_split_alignment_close_offsets( self ):
        """Test blocks whose offsets differ by less than a line length."""
        engine = OverlapAlignmentEngine();
        ref = irregular_reference( 40 );
        inc = [ span.shifted( 200 ) for span in ref[:20] ] + ref[20:];

        deltas = engine.align( ref, inc, 2.0, 1.0, standard_scoring, Mock() );

        assert deltas == [ -200 ] * 20 + [ 0 ] * 20;

    def test_split_alignment_offsets_on_one_plateau( self ):
        """Test +200/+1000 blocks, whose global profile is flat between both offsets."""
        engine = OverlapAlignmentEngine();
        ref = irregular_reference( 40 );
        inc = [ span.shifted( 200 ) for span in ref[:20] ] + [ span.shifted( 1000 ) for span in ref[20:] ];

        deltas = engine.align( ref, inc, 7.0, 1.0, standard_scoring, Mock() );

        assert deltas == [ -200 ] * 20 + [ -1000 ] * 20;

    def test_split_alignment_finishes_progress_on_error( self ):
        engine = OverlapAlignmentEngine();
        ref = irregular_reference();
        progress = Mock();

        with pytest.raises( ZeroDivisionError ):
            # the profile pass succeeds, per line scoring fails
            scoring = Mock( side_effect=[ np.ones( ( 20, 20 ) ), ZeroDivisionError() ] );
            engine.align( ref, ref, 7.0, 1.0, scoring, progress );

        progress.init.assert_called_once();

        progress.finish.assert_called_once();

    def test_split_alignment_keeps_input_order( self ):
        """Test that deltas follow input order even when lines are unsorted."""
        engine = OverlapAlignmentEngine();
        ref = irregular_reference();
        inc = [ span.shifted( 200 ) for span in ref ];
        inc.reverse();

        deltas = engine.align( ref, inc, 7.0, None, standard_scoring );

        assert deltas == [ -200 ] * len( inc );

    def test_split_alignment_degenerate_inputs( self ):
        engine = OverlapAlignmentEngine();
        assert engine.align( [ TimeSpan( 0, 10 ) ], [], 7.0, 1.0, standard_scoring ) == [];
        assert engine.align( [], [ TimeSpan( 0, 10 ), TimeSpan( 20, 30 ) ], 7.0, 1.0, standard_scoring ) == [ 0, 0 ];
