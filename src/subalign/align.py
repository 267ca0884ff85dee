"""
Alignment engine: scores and offsets between a reference timeline and an input timeline.

All spans handled here are tick spans (milliseconds divided by the configured
interval). A pair of spans contributes ``overlap * weight`` to a score, where
the weight comes from a scoring function over the two span lengths.
"""
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from .logging import get_logger
from .progress import NoProgress, ProgressObserver
from .timespan import TimeSpan


ScoringFn = Callable[[np.ndarray, np.ndarray], np.ndarray];


def standard_scoring( ref_lengths, in_lengths ) -> np.ndarray:
    """Weight pairs by length similarity (shorter / longer)."""
    ref_lengths = np.asarray( ref_lengths, dtype=np.float64 );
    in_lengths = np.asarray( in_lengths, dtype=np.float64 );
    low = np.minimum( ref_lengths, in_lengths );
    high = np.maximum( ref_lengths, in_lengths );
    return np.divide( low, high, out=np.zeros_like( low ), where=high > 0 );


def overlap_scoring( ref_lengths, in_lengths ) -> np.ndarray:
    """Every pair weighs the same; the score is the plain overlap length."""
    return np.ones_like( np.asarray( ref_lengths, dtype=np.float64 ) + np.asarray( in_lengths, dtype=np.float64 ) );


def _span_arrays( spans: Sequence[TimeSpan] ) -> Tuple[np.ndarray, np.ndarray]:
    starts = np.fromiter( ( span.start for span in spans ), dtype=np.int64, count=len( spans ) );
    ends = np.fromiter( ( span.end for span in spans ), dtype=np.int64, count=len( spans ) );
    return starts, ends;


class AlignmentEngine( ABC ):
    """Global and split-aware alignment of input spans onto reference spans."""

    @abstractmethod
    def align(
        self,
        ref_spans: Sequence[TimeSpan],
        in_spans: Sequence[TimeSpan],
        split_penalty: float,
        speed_optimization: Optional[float],
        scoring_fn: ScoringFn,
        progress: ProgressObserver
    ) -> List[int]:
        """One tick delta per input span, in input order."""
        pass

    @abstractmethod
    def align_nosplit(
        self,
        ref_spans: Sequence[TimeSpan],
        in_spans: Sequence[TimeSpan],
        scoring_fn: ScoringFn,
        progress: ProgressObserver
    ) -> Tuple[int, float]:
        """Best single tick delta for the whole input and its score."""
        pass

    @abstractmethod
    def score( self, ref_spans: Sequence[TimeSpan], shifted_spans: Sequence[TimeSpan], scoring_fn: ScoringFn ) -> float:
        """Score of already shifted spans against the reference."""
        pass


class OverlapAlignmentEngine( AlignmentEngine ):
    """
    Numpy alignment engine based on overlap profiles.

    The score of a single pair, as a function of the delta applied to the
    input span, is a trapezoid. Adding every pair's trapezoid as a second
    difference array and integrating twice gives the global score for every
    integer delta in one pass. Split-aware alignment picks, per line, one of
    the deltas proposed by single line pairs, paying a penalty for each change.
    """

    def __init__( self, max_candidates: int = 32, block_size: int = 512 ):
        self.logger = get_logger();
        self.max_candidates = max_candidates;
        self.block_size = block_size;

    def score( self, ref_spans, shifted_spans, scoring_fn ) -> float:
        if not ref_spans or not shifted_spans:
            return 0.0;

        ref_starts, ref_ends = _span_arrays( ref_spans );
        in_starts, in_ends = _span_arrays( shifted_spans );
        in_lengths = ( in_ends - in_starts )[None, :];

        total = 0.0;
        for begin in range( 0, len( ref_starts ), self.block_size ):
            rs = ref_starts[begin:begin + self.block_size, None];
            re = ref_ends[begin:begin + self.block_size, None];
            overlap = np.clip( np.minimum( re, in_ends[None, :] ) - np.maximum( rs, in_starts[None, :] ), 0, None );
            weights = scoring_fn( re - rs, in_lengths );
            total += float( ( overlap * weights ).sum() );
        return total;

    def _line_scores( self, ref_arrays, in_arrays, delta: int, scoring_fn ) -> np.ndarray:
        """Per input line score at ``delta``, normalized by line length."""
        ref_starts, ref_ends = ref_arrays;
        in_starts = in_arrays[0] + delta;
        in_ends = in_arrays[1] + delta;
        in_lengths = in_ends - in_starts;

        scores = np.zeros( len( in_starts ), dtype=np.float64 );
        for begin in range( 0, len( ref_starts ), self.block_size ):
            rs = ref_starts[begin:begin + self.block_size, None];
            re = ref_ends[begin:begin + self.block_size, None];
            overlap = np.clip( np.minimum( re, in_ends[None, :] ) - np.maximum( rs, in_starts[None, :] ), 0, None );
            scores += ( overlap * scoring_fn( re - rs, in_lengths[None, :] ) ).sum( axis=0 );

        return np.divide( scores, in_lengths, out=np.zeros_like( scores ), where=in_lengths > 0 );

    def _delta_profile( self, ref_arrays, in_arrays, scoring_fn ) -> Tuple[int, np.ndarray]:
        """
        Score for every integer delta.

        Returns:
            (first_delta, scores) where scores[j] belongs to first_delta + j
        """
        ref_starts, ref_ends = ref_arrays;
        in_starts, in_ends = in_arrays;

        base = int( ref_starts.min() - in_ends.max() );
        top = int( ref_ends.max() - in_starts.min() );
        size = top - base + 2;

        second_diff = np.zeros( size, dtype=np.float64 );
        in_lengths = ( in_ends - in_starts )[None, :];

        for begin in range( 0, len( ref_starts ), self.block_size ):
            rs = ref_starts[begin:begin + self.block_size, None];
            re = ref_ends[begin:begin + self.block_size, None];
            ref_lengths = re - rs;

            weights = scoring_fn( ref_lengths, in_lengths );
            shortest = np.minimum( ref_lengths, in_lengths );

            rise_start = ( rs - in_ends[None, :] ) - base;
            fall_end = ( re - in_starts[None, :] ) - base;
            rise_end = rise_start + shortest;
            fall_start = fall_end - shortest;

            keep = ( weights != 0 ) & ( shortest > 0 );
            w = weights[keep];
            points = np.concatenate( ( rise_start[keep], rise_end[keep], fall_start[keep], fall_end[keep] ) );
            signed = np.concatenate( ( w, -w, -w, w ) );
            second_diff += np.bincount( points, weights=signed, minlength=size );

        # slope, then value; after the second pass index j holds the score at base + j + 1
        np.cumsum( second_diff, out=second_diff );
        np.cumsum( second_diff, out=second_diff );
        return base + 1, second_diff;

    @staticmethod
    def _best_index( first_delta: int, scores: np.ndarray ) -> int:
        """Index of the highest score; ties go to the delta closest to zero."""
        best = scores.max();
        tolerance = 1e-9 * max( 1.0, abs( best ) );
        ties = np.flatnonzero( scores >= best - tolerance );
        return int( ties[np.argmin( np.abs( ties + first_delta ) )] );

    def align_nosplit( self, ref_spans, in_spans, scoring_fn, progress=None ) -> Tuple[int, float]:
        progress = progress if progress is not None else NoProgress();
        progress.init( 1 );

        if not ref_spans or not in_spans:
            progress.finish();
            return 0, 0.0;

        try:
            first_delta, scores = self._delta_profile( _span_arrays( ref_spans ), _span_arrays( in_spans ), scoring_fn );
            index = self._best_index( first_delta, scores );
            progress.advance();
        finally:
            progress.finish();
        return first_delta + index, float( scores[index] );

    def _candidate_deltas( self, ref_arrays, in_arrays, first_delta: int, profile: np.ndarray, limit: int, separation: int ) -> List[int]:
        """
        Deltas worth trying per line, strongest global score first.

        Every pair of lines proposes the two deltas that line up their starts
        and their ends. Proposals are ranked by the global profile and kept
        greedily when at least ``separation`` ticks away from those already
        picked. The global best delta always comes first.
        """
        ref_starts, ref_ends = ref_arrays;
        in_starts, in_ends = in_arrays;

        # a proposal ranked below this within its block can never be picked
        keep = limit * ( 2 * separation + 2 );

        proposals = [];
        for begin in range( 0, len( ref_starts ), self.block_size ):
            rs = ref_starts[begin:begin + self.block_size, None];
            re = ref_ends[begin:begin + self.block_size, None];
            deltas = np.unique( np.concatenate( ( ( rs - in_starts[None, :] ).ravel(), ( re - in_ends[None, :] ).ravel() ) ) );
            indices = deltas - first_delta;
            deltas = deltas[( indices >= 0 ) & ( indices < len( profile ) )];
            if len( deltas ) > keep:
                deltas = deltas[np.argpartition( -profile[deltas - first_delta], keep - 1 )[:keep]];
            proposals.append( deltas );

        proposed = np.unique( np.concatenate( proposals ) );
        proposed = proposed[profile[proposed - first_delta] > 0];
        ranked = proposed[np.lexsort( ( np.abs( proposed ), -profile[proposed - first_delta] ) )];

        picked = [ first_delta + self._best_index( first_delta, profile ) ];
        for delta in ranked:
            if len( picked ) >= limit:
                break;
            delta = int( delta );
            if all( abs( delta - other ) >= separation for other in picked ):
                picked.append( delta );

        return picked;

    def align( self, ref_spans, in_spans, split_penalty, speed_optimization, scoring_fn, progress=None ) -> List[int]:
        progress = progress if progress is not None else NoProgress();
        line_count = len( in_spans );

        if line_count == 0:
            return [];
        if not ref_spans:
            return [ 0 ] * line_count;

        ref_arrays = _span_arrays( ref_spans );
        in_arrays = _span_arrays( in_spans );

        limit = self.max_candidates;
        if speed_optimization:
            limit = max( 4, int( round( self.max_candidates / ( 1.0 + speed_optimization ) ) ) );

        lengths = in_arrays[1] - in_arrays[0];
        separation = max( 1, int( np.median( lengths ) ) // 20 );

        first_delta, profile = self._delta_profile( ref_arrays, in_arrays, scoring_fn );
        candidates = self._candidate_deltas( ref_arrays, in_arrays, first_delta, profile, limit, separation );
        self.logger.debug( f"Split alignment: {len( candidates )} candidate deltas, penalty {split_penalty}" );

        progress.init( len( candidates ) + line_count );
        try:
            return self._choose_deltas( ref_arrays, in_arrays, candidates, split_penalty, scoring_fn, progress );
        finally:
            progress.finish();

    def _choose_deltas( self, ref_arrays, in_arrays, candidates: List[int], split_penalty: float, scoring_fn, progress ) -> List[int]:
        line_count = len( in_arrays[0] );
        order = np.argsort( in_arrays[0], kind='stable' );
        line_scores = np.empty( ( line_count, len( candidates ) ), dtype=np.float64 );
        for column, delta in enumerate( candidates ):
            line_scores[:, column] = self._line_scores( ref_arrays, in_arrays, delta, scoring_fn )[order];
            progress.advance();

        # Viterbi over lines in chronological order; changing delta costs split_penalty
        candidate_ids = np.arange( len( candidates ) );
        total = line_scores[0].copy();
        came_from = np.zeros( ( line_count, len( candidates ) ), dtype=np.int64 );
        progress.advance();

        for step in range( 1, line_count ):
            leader = int( np.argmax( total ) );
            switched = total[leader] - split_penalty;
            stay = total >= switched;
            came_from[step] = np.where( stay, candidate_ids, leader );
            total = np.where( stay, total, switched ) + line_scores[step];
            progress.advance();

        choice = int( np.argmax( total ) );
        chosen = np.empty( line_count, dtype=np.int64 );
        for step in range( line_count - 1, -1, -1 ):
            chosen[step] = choice;
            choice = int( came_from[step, choice] );

        deltas = [ 0 ] * line_count;
        for step, line_index in enumerate( order ):
            deltas[int( line_index )] = candidates[int( chosen[step] )];
        return deltas;
