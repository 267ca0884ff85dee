"""
Main subtitle synchronization controller that orchestrates the entire process.
"""
from pathlib import Path
from typing import List, Optional

from pysubs2.exceptions import Pysubs2Error

from .align import AlignmentEngine, OverlapAlignmentEngine, standard_scoring
from .audio import AudioVoiceAnalyzer
from .errors import (
    FileFormatMismatchError, InputFileError, InputSubtitleError, InputVideoError,
    SubtitleSerializationError, SubtitleUpdateError
)
from .framerate import FramerateGuess, FramerateRatioResolver, scale_spans
from .groups import DeltaGrouper
from .logging import get_logger
from .offset import TimestampSanitizer, correct_timespans, has_negative_timestamps
from .progress import make_progress
from .subtitles import (
    SubtitleFile, SubtitleFormat, create_debug_srt, is_subtitle_path,
    is_valid_extension_for_format, open_subtitle_file, write_data_to_file
)
from .timespan import TimeSpan, describe_timeline, deltas_to_msecs, format_msecs, timespans_to_ticks


DEBUG_DUMP_PATH = "_";


class SubtitleSynchronizer:
    """
    Main controller for subtitle synchronization process.

    Orchestrates:
    1. Loading the subtitle file to correct and the reference timeline
    2. Output format pre-flight check
    3. Framerate ratio guessing
    4. Alignment (split-aware or single offset)
    5. Shift group reporting
    6. Correction, negative timestamp handling and output
    """

    def __init__(
        self,
        reference_file: Path,
        incorrect_file: Path,
        output_file: Path,
        interval: int = 1,
        split_penalty: float = 7.0,
        allow_negative_timestamps: bool = False,
        sub_fps_ref: float = 30.0,
        sub_fps_inc: float = 30.0,
        encoding_ref: Optional[str] = None,
        encoding_inc: Optional[str] = None,
        guess_fps_ratio: bool = True,
        no_split: bool = False,
        speed_optimization: Optional[float] = 1.0,
        audio_index: Optional[int] = None,
        min_vad_span_ms: int = 500,
        vad_merge_gap: int = 0,
        debug: bool = False,
        engine: Optional[AlignmentEngine] = None,
        analyzer: Optional[AudioVoiceAnalyzer] = None,
        quiet_progress: bool = False
    ):
        if interval < 1:
            raise ValueError( f"interval must be at least 1, got {interval}" );

        self.reference_file = Path( reference_file );
        self.incorrect_file = Path( incorrect_file );
        self.output_file = Path( output_file );
        self.interval = interval;
        self.split_penalty = split_penalty;
        self.allow_negative_timestamps = allow_negative_timestamps;
        self.sub_fps_ref = sub_fps_ref;
        self.sub_fps_inc = sub_fps_inc;
        self.encoding_ref = encoding_ref;
        self.encoding_inc = encoding_inc;
        self.guess_fps_ratio = guess_fps_ratio;
        self.no_split = no_split;
        self.speed_optimization = speed_optimization;
        self.audio_index = audio_index;
        self.debug = debug;
        self.quiet_progress = quiet_progress;

        self.logger = get_logger( debug=debug );

        # Initialize components
        self.engine = engine if engine is not None else OverlapAlignmentEngine();
        self.analyzer = analyzer if analyzer is not None else AudioVoiceAnalyzer(
            merge_gap=vad_merge_gap,
            min_span_ms=min_vad_span_ms
        );
        self.framerate_resolver = FramerateRatioResolver( self.engine );
        self.grouper = DeltaGrouper( self.engine, interval );
        self.sanitizer = TimestampSanitizer( allow_negative=allow_negative_timestamps );

        # Results storage
        self.framerate_guess: Optional[FramerateGuess] = None;
        self.deltas_ms: List[int] = [];
        self.group_reports = [];

    @property
    def is_reference_dump( self ) -> bool:
        return str( self.incorrect_file ) == DEBUG_DUMP_PATH;

    def load_incorrect_subtitles( self ) -> SubtitleFile:
        """Load the subtitle file to correct."""
        self.logger.info( "=== STEP 1: LOADING SUBTITLES ===" );

        subtitle_file = open_subtitle_file( self.incorrect_file, self.encoding_inc, self.sub_fps_inc );
        self.logger.info( f"Loaded {len( subtitle_file.timespans() )} lines from {self.incorrect_file} " \
                          f"({subtitle_file.file_format.value}, {subtitle_file.encoding})" );
        return subtitle_file;

    def check_output_format( self, subtitle_file: SubtitleFile ):
        """The output extension must match the input format; there is no conversion."""
        if not is_valid_extension_for_format( self.output_file, subtitle_file.file_format ):
            raise FileFormatMismatchError( self.incorrect_file, self.output_file, subtitle_file.file_format );

        if subtitle_file.file_format is SubtitleFormat.VOBSUB_IDX:
            self.logger.warning( "writing to an '.idx' file can lead to unexpected results due to restrictions of this format" );

    def load_reference( self ) -> List[TimeSpan]:
        """
        Load the reference timeline.

        Subtitle files give their line timings; anything else is treated as
        a media file and gives its speech segments.

        Returns:
            Reference spans in milliseconds
        """
        self.logger.info( "=== STEP 2: LOADING REFERENCE ===" );

        if is_subtitle_path( self.reference_file ):
            try:
                reference = open_subtitle_file( self.reference_file, self.encoding_ref, self.sub_fps_ref );
            except InputSubtitleError as e:
                raise InputFileError( self.reference_file, "subtitle" ) from e;
            spans = reference.timespans();
            self.logger.info( f"Loaded {len( spans )} reference lines from {self.reference_file}" );
            return spans;

        progress = make_progress( 500, "Extracting audio and detecting voice activity...", self.quiet_progress );
        try:
            spans = self.analyzer.analyze( self.reference_file, self.audio_index, progress );
        except InputVideoError as e:
            raise InputFileError( self.reference_file, "video" ) from e;
        self.logger.info( f"Detected {len( spans )} speech segments in {self.reference_file}" );
        return spans;

    def log_timeline_analysis( self, name: str, spans: List[TimeSpan] ):
        stats = describe_timeline( spans );
        if not stats:
            return;

        self.logger.info(
            f"{name} timeline: {stats['lines']} lines from {format_msecs( stats['first_ms'] )} " \
            f"to {format_msecs( stats['last_ms'] )}, {format_msecs( stats['covered_ms'] )} covered " \
            f"({stats['coverage']:.1%}), median gap {format_msecs( int( stats['median_gap_ms'] ) )}"
        );

    def guess_framerate( self, ref_ticks: List[TimeSpan], inc_ticks: List[TimeSpan] ) -> FramerateGuess:
        """Pick the framerate ratio between reference and input."""
        self.logger.info( "=== STEP 3: FRAMERATE GUESSING ===" );

        progress = make_progress( 1, "Guessing framerate ratio...", self.quiet_progress );
        guess = self.framerate_resolver.resolve( ref_ticks, inc_ticks, progress );

        if guess.is_identity:
            self.logger.info( "Framerate ratio: 1 (unchanged)" );
        else:
            self.logger.info( f"Framerate ratio: {guess.label} ({guess.ratio:.5f})" );
        return guess;

    def compute_deltas( self, ref_ticks: List[TimeSpan], inc_ticks: List[TimeSpan] ) -> List[int]:
        """
        Run the alignment engine.

        Returns:
            One tick delta per input line, in input order
        """
        self.logger.info( "=== STEP 4: ALIGNMENT ===" );

        progress = make_progress( 1, "Aligning subtitles...", self.quiet_progress );

        if self.no_split:
            delta, score = self.engine.align_nosplit( ref_ticks, inc_ticks, standard_scoring, progress );
            self.logger.info( f"Single offset: {format_msecs( delta * self.interval )} (score: {score:.3f})" );
            return [ delta ] * len( inc_ticks );

        speed = self.speed_optimization if self.speed_optimization else None;
        return self.engine.align( ref_ticks, inc_ticks, self.split_penalty, speed, standard_scoring, progress );

    def report_groups( self, deltas: List[int], inc_spans: List[TimeSpan], ref_ticks: List[TimeSpan], ratio: float ):
        """Log the shift blocks; results are not used for the correction."""
        self.logger.info( "=== STEP 5: SHIFT GROUPS ===" );

        groups = self.grouper.group( deltas, inc_spans );
        self.group_reports = self.grouper.report( groups, ref_ticks, ratio );
        self.grouper.log_reports( self.group_reports );

        guess = self.framerate_guess;
        if guess is not None and not guess.is_identity:
            group_ticks = [ timespans_to_ticks( group.spans, self.interval ) for group in groups ];
            confirmed = self.framerate_resolver.validate_on_groups( ref_ticks, group_ticks, guess );
            if confirmed is False:
                self.logger.warning( f"Most shift groups fit better without the framerate ratio {guess.label}; " \
                                     f"consider '--disable-fps-guessing'" );

    def apply_corrections( self, inc_spans: List[TimeSpan], ratio: float ) -> List[TimeSpan]:
        """Rescale and shift every line, then keep timestamps non-negative."""
        self.logger.info( "=== STEP 6: APPLYING CORRECTIONS ===" );

        corrected = correct_timespans( inc_spans, self.deltas_ms, ratio );

        if has_negative_timestamps( corrected ):
            if self.allow_negative_timestamps:
                self.logger.warning( "some subtitles now have negative timestamps; keeping them since negative timestamps are allowed" );
            else:
                self.logger.warning( "some subtitles now have negative timestamps; moving the whole timeline forward " \
                                     "(use '--allow-negative-timestamps' to keep them)" );

        corrected = self.sanitizer.sanitize( corrected );
        if self.sanitizer.last_shift_ms:
            self.logger.info( f"Timeline moved forward by {format_msecs( self.sanitizer.last_shift_ms )}" );
        return corrected;

    def write_output( self, subtitle_file: SubtitleFile, spans: List[TimeSpan] ):
        try:
            subtitle_file.update_timespans( spans );
        except ( ValueError, TypeError ) as e:
            raise SubtitleUpdateError() from e;

        try:
            data = subtitle_file.to_data();
        except ( ValueError, LookupError, Pysubs2Error ) as e:
            raise SubtitleSerializationError() from e;

        write_data_to_file( self.output_file, data );
        self.logger.info( f"✓ Synchronized subtitles saved to: {self.output_file}" );

    def run_reference_dump( self ) -> List[TimeSpan]:
        """Write the reference timeline as an SRT file with 'line <n>' entries."""
        spans = self.load_reference();
        if not spans:
            self.logger.warning( "reference file has no subtitle lines or speech" );

        write_data_to_file( self.output_file, create_debug_srt( spans ) );
        self.logger.info( f"✓ Reference timeline written to: {self.output_file}" );
        return spans;

    def run( self ) -> List[TimeSpan]:
        """
        Run the complete synchronization process.

        Returns:
            Corrected spans in milliseconds, in input line order

        Raises:
            SubAlignError: on any failure; no output is written in that case
        """
        if self.is_reference_dump:
            return self.run_reference_dump();

        self.logger.info( "Starting SubAlign subtitle synchronization" );
        self.logger.info( f"Reference: {self.reference_file}" );
        self.logger.info( f"Subtitles: {self.incorrect_file}" );
        self.logger.info( f"Mode: {'single offset' if self.no_split else f'split-aware (penalty {self.split_penalty})'}" );

        subtitle_file = self.load_incorrect_subtitles();
        self.check_output_format( subtitle_file );
        ref_spans = self.load_reference();
        inc_spans = subtitle_file.timespans();

        if not ref_spans:
            self.logger.warning( "reference file has no subtitle lines or speech" );
        if not inc_spans:
            self.logger.warning( "file with incorrect subtitles has no lines" );

        self.log_timeline_analysis( "Reference", ref_spans );
        self.log_timeline_analysis( "Input", inc_spans );

        ref_ticks = timespans_to_ticks( ref_spans, self.interval );
        inc_ticks = timespans_to_ticks( inc_spans, self.interval );

        ratio = 1.0;
        self.framerate_guess = None;
        if self.guess_fps_ratio and ref_ticks and inc_ticks:
            self.framerate_guess = self.guess_framerate( ref_ticks, inc_ticks );
            ratio = self.framerate_guess.ratio;
            inc_ticks = scale_spans( inc_ticks, ratio );

        deltas = self.compute_deltas( ref_ticks, inc_ticks );
        self.deltas_ms = deltas_to_msecs( deltas, self.interval );

        if inc_spans:
            self.report_groups( deltas, inc_spans, ref_ticks, ratio );

        corrected = self.apply_corrections( inc_spans, ratio );
        self.write_output( subtitle_file, corrected );

        self.logger.info( "=== SYNCHRONIZATION COMPLETE ===" );
        return corrected;
