"""
Framerate ratio guessing between a reference timeline and an input timeline.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .align import AlignmentEngine, overlap_scoring
from .logging import get_logger
from .progress import NoProgress, ProgressObserver
from .timespan import TimeSpan


def _ratio_catalog() -> List[Tuple[float, str]]:
    a, b, c = 25.0, 24.0, 23.976;
    return [
        ( a / b, "25/24" ),
        ( a / c, "25/23.976" ),
        ( b / a, "24/25" ),
        ( b / c, "24/23.976" ),
        ( c / a, "23.976/25" ),
        ( c / b, "23.976/24" ),
    ];


FRAMERATE_RATIOS = _ratio_catalog();


@dataclass
class FramerateGuess:
    """Outcome of the ratio search; ``index`` is None when identity won."""

    index: Optional[int];
    ratio: float;
    label: str;
    delta: int;     # diagnostic only, ticks
    score: float;

    @property
    def is_identity( self ) -> bool:
        return self.index is None;


def scale_spans( spans: Sequence[TimeSpan], factor: float ) -> List[TimeSpan]:
    return [ span.scaled( factor ) for span in spans ];


class FramerateRatioResolver:
    """
    Picks the 'reference FPS / input FPS' ratio that best explains the input.

    Runs the global-offset alignment once at ratio 1.0 and once per catalog
    entry with the input spans rescaled; only a strictly better score
    replaces the identity baseline.
    """

    def __init__( self, engine: AlignmentEngine, ratios: Sequence[Tuple[float, str]] = FRAMERATE_RATIOS, scoring_fn=overlap_scoring ):
        self.logger = get_logger();
        self.engine = engine;
        self.ratios = list( ratios );
        self.scoring_fn = scoring_fn;

    def resolve( self, ref_spans: Sequence[TimeSpan], in_spans: Sequence[TimeSpan], progress: Optional[ProgressObserver] = None ) -> FramerateGuess:
        progress = progress if progress is not None else NoProgress();
        progress.init( len( self.ratios ) + 1 );

        try:
            delta, score = self.engine.align_nosplit( ref_spans, in_spans, self.scoring_fn, NoProgress() );
            progress.advance();
            self.logger.debug( f"Framerate ratio 1: score {score:.3f}" );

            best = FramerateGuess( index=None, ratio=1.0, label="1", delta=delta, score=score );

            for index, ( ratio, label ) in enumerate( self.ratios ):
                stretched = scale_spans( in_spans, ratio );
                delta, score = self.engine.align_nosplit( ref_spans, stretched, self.scoring_fn, NoProgress() );
                progress.advance();
                self.logger.debug( f"Framerate ratio {label}: score {score:.3f}" );

                if score > best.score:
                    best = FramerateGuess( index=index, ratio=ratio, label=label, delta=delta, score=score );
        finally:
            progress.finish();
        return best;

    def validate_on_groups( self, ref_spans: Sequence[TimeSpan], group_spans: Sequence[Sequence[TimeSpan]], guess: FramerateGuess, min_lines: int = 5 ) -> Optional[bool]:
        """
        Re-check a non-identity guess on each shift group separately.

        Each group with at least ``min_lines`` unscaled tick spans is aligned
        alone with and without the ratio.

        Returns:
            True/False for whether most checked groups agree with the guess,
            None when nothing could be checked
        """
        if guess.is_identity:
            return None;

        agree = 0;
        checked = 0;
        for spans in group_spans:
            if len( spans ) < min_lines:
                continue;
            _, plain_score = self.engine.align_nosplit( ref_spans, spans, self.scoring_fn, NoProgress() );
            _, scaled_score = self.engine.align_nosplit( ref_spans, scale_spans( spans, guess.ratio ), self.scoring_fn, NoProgress() );
            checked += 1;
            if scaled_score >= plain_score:
                agree += 1;

        if checked == 0:
            return None;

        self.logger.debug( f"Framerate ratio {guess.label} confirmed by {agree}/{checked} shift groups" );
        return agree * 2 >= checked;
