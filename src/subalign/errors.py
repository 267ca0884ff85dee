"""
Error taxonomy for SubAlign and cause-chain reporting.

Every error is raised ``from`` the error that caused it, so the whole chain
can be reported from the top level, one cause per line.
"""
import os
import traceback
from pathlib import Path
from typing import Iterator, List, Optional


BACKTRACE_ENV = "SUBALIGN_BACKTRACE";


class SubAlignError( Exception ):
    """Base class for all errors raised by SubAlign."""


class InputArgumentsError( SubAlignError ):
    """Malformed or out-of-range command line value."""

    def __init__( self, argument_name: str, value, message: str ):
        self.argument_name = argument_name;
        self.value = value;
        super().__init__( f"argument '{argument_name}' with value '{value}': {message}" );


class FileOperationError( SubAlignError ):
    """Opening, reading or writing a file failed."""

    def __init__( self, path: Path, operation: str ):
        self.path = Path( path );
        self.operation = operation;
        super().__init__( f"failed to {operation} file '{self.path}'" );


class InputSubtitleError( SubAlignError ):
    """A subtitle file could not be read, detected or parsed."""

    def __init__( self, path: Path, message: str ):
        self.path = Path( path );
        super().__init__( f"{message} '{self.path}'" );


class InputVideoError( SubAlignError ):
    """Extracting the speech timeline of a media file failed."""

    def __init__( self, path: Path, message: str ):
        self.path = Path( path );
        super().__init__( f"{message} '{self.path}'" );


class AudioDecodeError( InputVideoError ):
    def __init__( self, path: Path ):
        super().__init__( path, "failed to decode audio of" );


class VoiceModelError( InputVideoError ):
    def __init__( self, path: Path, reason: str = "" ):
        message = "voice activity model could not be created for";
        if reason:
            message = f"voice activity model could not be created ({reason}) for";
        super().__init__( path, message );


class InputFileError( SubAlignError ):
    """Wraps subtitle or video errors for a reference input."""

    def __init__( self, path: Path, kind: str ):
        self.path = Path( path );
        self.kind = kind;
        super().__init__( f"processing {kind} file '{self.path}' failed" );


class TopLevelError( SubAlignError ):
    """Errors raised by the synchronization pipeline itself."""


class FileFormatMismatchError( TopLevelError ):
    def __init__( self, input_path: Path, output_path: Path, input_format ):
        self.input_path = Path( input_path );
        self.output_path = Path( output_path );
        self.input_format = input_format;
        super().__init__(
            f"output file '{self.output_path}' seems to have a different format than input file "
            f"'{self.input_path}' with format '{input_format.value}' (this program does not perform conversions)"
        );


class SubtitleUpdateError( TopLevelError ):
    def __init__( self ):
        super().__init__( "failed to change lines in the subtitle" );


class SubtitleSerializationError( TopLevelError ):
    def __init__( self ):
        super().__init__( "failed to generate data for subtitle" );


def iter_error_chain( error: BaseException ) -> Iterator[BaseException]:
    """Yield the error followed by each of its causes."""
    seen = set();
    current: Optional[BaseException] = error;
    while current is not None and id( current ) not in seen:
        seen.add( id( current ) );
        yield current;
        if current.__cause__ is not None:
            current = current.__cause__;
        elif not current.__suppress_context__:
            current = current.__context__;
        else:
            current = None;


def backtrace_enabled() -> bool:
    value = os.getenv( BACKTRACE_ENV );
    return value is not None and value != "0";


def format_error_chain( error: BaseException ) -> List[str]:
    """
    Render an error and its causes, one per line.

    Returns:
        Lines like ``error: ...`` followed by ``caused by: ...`` entries
    """
    lines = [];
    for depth, link in enumerate( iter_error_chain( error ) ):
        prefix = "error" if depth == 0 else "caused by";
        text = str( link ) or type( link ).__name__;
        lines.append( f"{prefix}: {text}" );
    return lines;


def print_error_chain( error: BaseException, logger ):
    """Log the full cause chain, with stack traces if SUBALIGN_BACKTRACE is set."""
    show_backtrace = backtrace_enabled();

    for link, line in zip( iter_error_chain( error ), format_error_chain( error ) ):
        logger.error( line );
        if show_backtrace and link.__traceback__ is not None:
            trace = "".join( traceback.format_tb( link.__traceback__ ) );
            logger.error( f"stack trace:\n{trace}" );

    if not show_backtrace:
        logger.info( f"note: run with environment variable '{BACKTRACE_ENV}=1' for detailed stack traces" );
