"""
Grouping of per-line deltas into contiguous shift blocks for reporting.
"""
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Tuple

from .align import AlignmentEngine, standard_scoring
from .logging import get_logger
from .timespan import TimeSpan, delta_to_msecs, format_msecs, timespans_to_ticks


@dataclass
class ShiftGroup:
    """Maximal chronological run of lines sharing one delta (in ticks)."""

    delta: int;
    spans: List[TimeSpan] = field( default_factory=list );

    @property
    def min_start( self ) -> int:
        return min( span.start for span in self.spans );

    @property
    def max_start( self ) -> int:
        return max( span.start for span in self.spans );

    @property
    def duration( self ) -> int:
        return self.max_start - self.min_start;


@dataclass
class ShiftGroupReport:
    group: ShiftGroup;
    delta_ms: int;
    score: float;

    @property
    def score_per_line( self ) -> float:
        return self.score / len( self.group.spans ) if self.group.spans else 0.0;

    def describe( self ) -> str:
        group = self.group;
        return (
            f"shifted block of {len( group.spans )} subtitles from {format_msecs( group.min_start )} "
            f"to {format_msecs( group.max_start )} with length {format_msecs( group.duration )} "
            f"by {format_msecs( self.delta_ms )} (score: {self.score:.3f}, per subtitle: {self.score_per_line:.3f})"
        );


def group_by_delta( pairs: Iterable[Tuple[int, TimeSpan]] ) -> List[ShiftGroup]:
    """
    Split (delta, span) pairs into runs of equal delta.

    Pairs are stably sorted by the earlier endpoint of each span first, so
    the groups partition the chronologically sorted lines.
    """
    ordered = sorted( pairs, key=lambda pair: min( pair[1].start, pair[1].end ) );

    groups: List[ShiftGroup] = [];
    for delta, span in ordered:
        if groups and groups[-1].delta == delta:
            groups[-1].spans.append( span );
        else:
            groups.append( ShiftGroup( delta=delta, spans=[ span ] ) );
    return groups;


class DeltaGrouper:
    """
    Reports which blocks of lines were moved by how much.

    Scores are diagnostic: every group is re-scored against the whole
    reference, which costs one scoring pass per group.
    """

    def __init__( self, engine: AlignmentEngine, interval: int, scoring_fn=standard_scoring ):
        self.logger = get_logger();
        self.engine = engine;
        self.interval = interval;
        self.scoring_fn = scoring_fn;

    def group( self, deltas: Sequence[int], spans: Sequence[TimeSpan] ) -> List[ShiftGroup]:
        if len( deltas ) != len( spans ):
            raise ValueError( f"got {len( deltas )} deltas for {len( spans )} lines" );
        return group_by_delta( zip( deltas, spans ) );

    def report( self, groups: Sequence[ShiftGroup], ref_ticks: Sequence[TimeSpan], scaling_factor: float = 1.0 ) -> List[ShiftGroupReport]:
        reports = [];
        for group in groups:
            scaled = [ span.scaled( scaling_factor ) for span in group.spans ];
            shifted = [ span.shifted( group.delta ) for span in timespans_to_ticks( scaled, self.interval ) ];
            score = self.engine.score( ref_ticks, shifted, self.scoring_fn );
            reports.append( ShiftGroupReport(
                group=group,
                delta_ms=delta_to_msecs( group.delta, self.interval ),
                score=score
            ) );
        return reports;

    def log_reports( self, reports: Sequence[ShiftGroupReport] ):
        for report in reports:
            self.logger.info( report.describe() );
