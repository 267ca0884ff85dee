"""
CLI entry point for SubAlign with argument parsing and environment variable loading.
"""
import argparse
import codecs
import os
import sys
from pathlib import Path
from dotenv import load_dotenv

from . import __version__
from .errors import BACKTRACE_ENV, InputArgumentsError, SubAlignError, print_error_chain
from .logging import setup_logging


class SubAlignCLI:
    """
    Command line interface for SubAlign subtitle synchronization.

    Numeric options are taken as strings and converted during validation so
    that a malformed value is reported together with the option name.
    """

    def __init__( self ):
        self.parser = self._create_parser();
        self.args = None;
        self.logger = None;

    def _create_parser( self ):
        """Create argument parser with all SubAlign options."""
        parser = argparse.ArgumentParser(
            prog="subalign",
            description="Align a subtitle file to a reference subtitle file or to the speech in a video",
            epilog=f"Environment variables: {BACKTRACE_ENV}, SUBALIGN_LOG_DIR"
        );

        parser.add_argument(
            "reference",
            type=Path,
            help="Reference subtitle file (.srt, .ass, .ssa, .sub, .idx) or video/audio file"
        );

        parser.add_argument(
            "incorrect",
            help="Subtitle file to correct, or '_' to write the reference timeline as SRT"
        );

        parser.add_argument(
            "output",
            type=Path,
            help="Output subtitle file (same format as the file to correct)"
        );

        # Alignment parameters
        parser.add_argument(
            "-p", "--split-penalty",
            default="7",
            help="Penalty for splitting the subtitles into differently shifted blocks (0-1000, default: 7)"
        );

        parser.add_argument(
            "-i", "--interval",
            default="1",
            help="Alignment resolution in milliseconds (default: 1)"
        );

        parser.add_argument(
            "-O", "--speed-optimization",
            default="1",
            help="Trade accuracy for speed; 0 disables the optimization (default: 1)"
        );

        parser.add_argument(
            "-l", "--no-split",
            action="store_true",
            help="Shift all subtitles by one offset"
        );

        parser.add_argument(
            "-n", "--allow-negative-timestamps",
            action="store_true",
            help="Keep negative timestamps instead of moving the whole timeline forward"
        );

        parser.add_argument(
            "-g", "--disable-fps-guessing", "--disable-framerate-guessing",
            action="store_true",
            dest="disable_fps_guessing",
            help="Do not try to detect a framerate mismatch (e.g. 25 vs 23.976 fps)"
        );

        # Subtitle reading
        parser.add_argument(
            "--sub-fps-ref",
            default="30",
            help="Frames per second of a frame based reference subtitle (MicroDVD, default: 30)"
        );

        parser.add_argument(
            "--sub-fps-inc",
            default="30",
            help="Frames per second of a frame based subtitle to correct (MicroDVD, default: 30)"
        );

        parser.add_argument(
            "--encoding-ref",
            default="auto",
            help="Charset of the reference subtitle file (default: auto)"
        );

        parser.add_argument(
            "--encoding-inc",
            default="auto",
            help="Charset of the subtitle file to correct (default: auto)"
        );

        # Voice activity
        parser.add_argument(
            "--index",
            default=None,
            help="Audio track index of the reference video (default: ffmpeg's choice)"
        );

        parser.add_argument(
            "--min-vad-span",
            default="500",
            help="Drop speech segments shorter than this many milliseconds (default: 500)"
        );

        parser.add_argument(
            "--vad-merge-gap",
            default="0",
            help="Bridge silences of at most this many 32ms chunks inside speech (default: 0)"
        );

        parser.add_argument(
            "--debug",
            action="store_true",
            help="Enable debug mode with verbose output"
        );

        parser.add_argument(
            "--version",
            action="version",
            version=f"%(prog)s {__version__}"
        );

        return parser;

    def _load_environment( self ):
        """Load environment variables from .env file and system."""
        env_file = Path( ".env" );
        if env_file.exists():
            load_dotenv( env_file );

        self.backtrace = os.getenv( BACKTRACE_ENV );

    @staticmethod
    def _parse_number( name: str, value: str, convert, check, requirement: str ):
        try:
            number = convert( value );
        except ( TypeError, ValueError ) as e:
            raise InputArgumentsError( name, value, f"expected {requirement}" ) from e;
        if not check( number ):
            raise InputArgumentsError( name, value, f"expected {requirement}" );
        return number;

    @staticmethod
    def _parse_encoding( name: str, value: str ):
        if value.lower() == "auto":
            return None;
        try:
            codecs.lookup( value );
        except LookupError as e:
            raise InputArgumentsError( name, value, "unknown encoding label" ) from e;
        return value;

    def _validate_arguments( self ):
        """Validate parsed arguments and convert numeric options in place."""
        errors = [];
        args = self.args;

        numeric = [
            ( "split_penalty", "split-penalty", float, lambda v: 0.0 <= v <= 1000.0, "a number between 0 and 1000" ),
            ( "interval", "interval", int, lambda v: v >= 1, "an integer of at least 1" ),
            ( "speed_optimization", "speed-optimization", float, lambda v: v >= 0.0, "a non-negative number" ),
            ( "sub_fps_ref", "sub-fps-ref", float, lambda v: v > 0.0, "a positive number" ),
            ( "sub_fps_inc", "sub-fps-inc", float, lambda v: v > 0.0, "a positive number" ),
            ( "min_vad_span", "min-vad-span", int, lambda v: v >= 0, "a non-negative integer" ),
            ( "vad_merge_gap", "vad-merge-gap", int, lambda v: v >= 0, "a non-negative integer" ),
        ];
        for attribute, name, convert, check, requirement in numeric:
            try:
                setattr( args, attribute, self._parse_number( name, getattr( args, attribute ), convert, check, requirement ) );
            except InputArgumentsError as e:
                errors.append( str( e ) );

        if args.index is not None:
            try:
                args.index = self._parse_number( "index", args.index, int, lambda v: v >= 0, "a non-negative integer" );
            except InputArgumentsError as e:
                errors.append( str( e ) );

        for attribute, name in ( ( "encoding_ref", "encoding-ref" ), ( "encoding_inc", "encoding-inc" ) ):
            try:
                setattr( args, attribute, self._parse_encoding( name, getattr( args, attribute ) ) );
            except InputArgumentsError as e:
                errors.append( str( e ) );

        # Check if files exist
        if not args.reference.exists():
            errors.append( f"Reference file not found: {args.reference}" );

        if args.incorrect != "_" and not Path( args.incorrect ).exists():
            errors.append( f"Subtitle file not found: {args.incorrect}" );

        return errors;

    def parse_args( self, argv=None ):
        """Parse command line arguments and validate configuration."""
        self.args = self.parser.parse_args( argv );

        # Load environment variables before the logger picks its log directory
        self._load_environment();

        # Setup logging based on debug flag
        self.logger = setup_logging( debug=self.args.debug );

        # Validate everything
        errors = self._validate_arguments();
        if errors:
            self.logger.error( "Configuration errors:" );
            for error in errors:
                self.logger.error( f"  - {error}" );
            sys.exit( 1 );

        # Log startup information
        self.logger.info( f"SubAlign v{__version__} starting..." );
        self.logger.debug( f"Reference: {self.args.reference}" );
        self.logger.debug( f"Subtitles: {self.args.incorrect}" );
        self.logger.debug( f"Output: {self.args.output}" );

        return self.args;


def main( argv=None ):
    """Main entry point for the SubAlign CLI."""
    cli = SubAlignCLI();
    args = cli.parse_args( argv );

    from .sync import SubtitleSynchronizer;

    try:
        synchronizer = SubtitleSynchronizer(
            reference_file=args.reference,
            incorrect_file=args.incorrect,
            output_file=args.output,
            interval=args.interval,
            split_penalty=args.split_penalty,
            allow_negative_timestamps=args.allow_negative_timestamps,
            sub_fps_ref=args.sub_fps_ref,
            sub_fps_inc=args.sub_fps_inc,
            encoding_ref=args.encoding_ref,
            encoding_inc=args.encoding_inc,
            guess_fps_ratio=not args.disable_fps_guessing,
            no_split=args.no_split,
            speed_optimization=args.speed_optimization,
            audio_index=args.index,
            min_vad_span_ms=args.min_vad_span,
            vad_merge_gap=args.vad_merge_gap,
            debug=args.debug
        );
        synchronizer.run();
    except KeyboardInterrupt:
        cli.logger.warning( "Interrupted by user" );
        sys.exit( 130 );
    except SubAlignError as e:
        print_error_chain( e, cli.logger );
        sys.exit( 1 );

    cli.logger.info( "Subtitle synchronization completed successfully!" );


if __name__ == "__main__":
    main();
