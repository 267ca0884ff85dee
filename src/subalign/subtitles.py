"""
Subtitle file reading, retiming and writing for SRT, SSA/ASS, MicroDVD and VobSub IDX files.

Files are kept in their parsed form so that only timings change when they
are written back; there is no conversion between formats.
"""
import io
import re
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence

import chardet
import pysrt
import pysubs2
from pysubs2.exceptions import Pysubs2Error

from .errors import FileOperationError, InputSubtitleError
from .logging import get_logger
from .timespan import TimeSpan


class SubtitleFormat( Enum ):
    SUBRIP = "srt";
    ASS = "ass";
    SSA = "ssa";
    MICRODVD = "microdvd";
    VOBSUB_IDX = "idx";


SUBTITLE_EXTENSIONS = { ".srt", ".ass", ".ssa", ".sub", ".idx" };

_EXTENSION_FORMATS = {
    ".srt": SubtitleFormat.SUBRIP,
    ".ass": SubtitleFormat.ASS,
    ".ssa": SubtitleFormat.SSA,
    ".idx": SubtitleFormat.VOBSUB_IDX,
};

_VALID_EXTENSIONS = {
    SubtitleFormat.SUBRIP: { ".srt" },
    SubtitleFormat.ASS: { ".ass", ".ssa" },
    SubtitleFormat.SSA: { ".ass", ".ssa" },
    SubtitleFormat.MICRODVD: { ".sub" },
    SubtitleFormat.VOBSUB_IDX: { ".idx" },
};

MICRODVD_LINE_RE = re.compile( r'^\s*\{\d+\}\{\d*\}', re.MULTILINE );
SRT_TIMING_RE = re.compile( r'\d+:\d{2}:\d{2}[,.]\d{1,3}\s*-->\s*\d+:\d{2}:\d{2}[,.]\d{1,3}' );
IDX_TIMESTAMP_RE = re.compile( r'^(\s*timestamp:\s*)(\d+):(\d+):(\d+):(\d+)(.*)$', re.IGNORECASE );

PARSE_ERRORS = ( pysrt.Error, Pysubs2Error, ValueError, IndexError, KeyError );


def read_file_to_bytes( path: Path ) -> bytes:
    path = Path( path );
    try:
        handle = open( path, 'rb' );
    except OSError as e:
        raise FileOperationError( path, "open" ) from e;
    with handle:
        try:
            return handle.read();
        except OSError as e:
            raise FileOperationError( path, "read" ) from e;


def write_data_to_file( path: Path, data: bytes ):
    """Write the complete output in one call."""
    path = Path( path );
    try:
        handle = open( path, 'wb' );
    except OSError as e:
        raise FileOperationError( path, "open" ) from e;
    with handle:
        try:
            handle.write( data );
        except OSError as e:
            raise FileOperationError( path, "write" ) from e;


def detect_subtitle_format( path: Path, data: bytes ) -> SubtitleFormat:
    """
    Determine the subtitle format from the extension, falling back to content.

    Raises:
        ValueError: if the format cannot be recognized
    """
    extension = Path( path ).suffix.lower();
    if extension in _EXTENSION_FORMATS:
        return _EXTENSION_FORMATS[extension];

    sample = data[:8192].decode( 'latin-1' );

    if extension == ".sub":
        if MICRODVD_LINE_RE.search( sample ):
            return SubtitleFormat.MICRODVD;
        raise ValueError( "'.sub' file is not a MicroDVD subtitle (VobSub subtitles are opened through their '.idx' file)" );

    if SRT_TIMING_RE.search( sample ):
        return SubtitleFormat.SUBRIP;
    if "[script info]" in sample.lower():
        return SubtitleFormat.ASS if "v4.00+" in sample.lower() else SubtitleFormat.SSA;
    if MICRODVD_LINE_RE.search( sample ):
        return SubtitleFormat.MICRODVD;

    raise ValueError( f"unknown subtitle format for extension '{extension}'" );


def is_valid_extension_for_format( path: Path, file_format: SubtitleFormat ) -> bool:
    return Path( path ).suffix.lower() in _VALID_EXTENSIONS[file_format];


def is_subtitle_path( path: Path ) -> bool:
    return Path( path ).suffix.lower() in SUBTITLE_EXTENSIONS;


def resolve_encoding( data: bytes, encoding: Optional[str] = None ) -> str:
    """Explicit encoding, or the chardet guess (UTF-8 if chardet has none)."""
    if encoding:
        return encoding;
    detected = chardet.detect( data );
    return detected.get( "encoding" ) or "utf-8";


class SubtitleFile( ABC ):
    """Parsed subtitle file whose line timings can be replaced."""

    def __init__( self, path: Path, file_format: SubtitleFormat, encoding: str ):
        self.path = Path( path );
        self.file_format = file_format;
        self.encoding = encoding;

    @abstractmethod
    def timespans( self ) -> List[TimeSpan]:
        """Line timings in milliseconds, in file order."""
        pass

    @abstractmethod
    def update_timespans( self, spans: Sequence[TimeSpan] ):
        """Replace line timings; ``spans`` matches ``timespans()`` one to one."""
        pass

    @abstractmethod
    def to_text( self ) -> str:
        pass

    def to_data( self ) -> bytes:
        return self.to_text().encode( self.encoding );

    def _check_count( self, spans: Sequence[TimeSpan], expected: int ):
        if len( spans ) != expected:
            raise ValueError( f"expected {expected} timings, got {len( spans )}" );


class SrtSubtitleFile( SubtitleFile ):
    """SubRip file backed by pysrt."""

    def __init__( self, path: Path, text: str, encoding: str ):
        super().__init__( path, SubtitleFormat.SUBRIP, encoding );
        self.subs = pysrt.from_string( text );

    def timespans( self ) -> List[TimeSpan]:
        return [ TimeSpan( sub.start.ordinal, sub.end.ordinal ) for sub in self.subs ];

    def update_timespans( self, spans ):
        self._check_count( spans, len( self.subs ) );
        for sub, span in zip( self.subs, spans ):
            sub.start = pysrt.SubRipTime.from_ordinal( span.start );
            sub.end = pysrt.SubRipTime.from_ordinal( span.end );

    def to_text( self ) -> str:
        buffer = io.StringIO();
        self.subs.write_into( buffer );
        return buffer.getvalue();


class SsaSubtitleFile( SubtitleFile ):
    """
    SSA/ASS and MicroDVD files backed by pysubs2.

    MicroDVD stores frame numbers, so the file's fps hint is needed both to
    read and to write it. Comment events keep their timings.
    """

    def __init__( self, path: Path, text: str, encoding: str, file_format: SubtitleFormat, fps: float ):
        super().__init__( path, file_format, encoding );
        self.fps = fps;
        fps_arg = fps if file_format is SubtitleFormat.MICRODVD else None;
        self.subs = pysubs2.SSAFile.from_string( text, format_=file_format.value, fps=fps_arg );

    def _dialogue( self ):
        return [ event for event in self.subs.events if not event.is_comment ];

    def timespans( self ) -> List[TimeSpan]:
        return [ TimeSpan( event.start, event.end ) for event in self._dialogue() ];

    def update_timespans( self, spans ):
        events = self._dialogue();
        self._check_count( spans, len( events ) );
        for event, span in zip( events, spans ):
            event.start = span.start;
            event.end = span.end;

    def to_text( self ) -> str:
        fps_arg = self.fps if self.file_format is SubtitleFormat.MICRODVD else None;
        return self.subs.to_string( self.file_format.value, fps=fps_arg );


class VobSubIdxFile( SubtitleFile ):
    """
    VobSub index file; only the ``timestamp:`` lines are rewritten.

    The format has no end times: a line lasts until the next one starts and
    the last line has zero length.
    """

    def __init__( self, path: Path, text: str, encoding: str ):
        super().__init__( path, SubtitleFormat.VOBSUB_IDX, encoding );
        self.lines = text.splitlines( keepends=True );
        self.entry_lines = [
            number for number, line in enumerate( self.lines )
            if IDX_TIMESTAMP_RE.match( line.rstrip( "\r\n" ) )
        ];

    @staticmethod
    def _parse_msecs( line: str ) -> int:
        match = IDX_TIMESTAMP_RE.match( line.rstrip( "\r\n" ) );
        hours, minutes, seconds, millis = ( int( part ) for part in match.group( 2, 3, 4, 5 ) );
        return ( ( hours * 60 + minutes ) * 60 + seconds ) * 1000 + millis;

    @staticmethod
    def _format_msecs( msecs: int ) -> str:
        msecs = max( 0, msecs );
        return f"{msecs // 3600000:02d}:{msecs // 60000 % 60:02d}:{msecs // 1000 % 60:02d}:{msecs % 1000:03d}";

    def timespans( self ) -> List[TimeSpan]:
        starts = [ self._parse_msecs( self.lines[number] ) for number in self.entry_lines ];
        ends = starts[1:] + starts[-1:];
        return [ TimeSpan( start, end ) for start, end in zip( starts, ends ) ];

    def update_timespans( self, spans ):
        self._check_count( spans, len( self.entry_lines ) );
        for number, span in zip( self.entry_lines, spans ):
            line = self.lines[number];
            ending = line[len( line.rstrip( "\r\n" ) ):];
            match = IDX_TIMESTAMP_RE.match( line.rstrip( "\r\n" ) );
            self.lines[number] = f"{match.group( 1 )}{self._format_msecs( span.start )}{match.group( 6 )}{ending}";

    def to_text( self ) -> str:
        return "".join( self.lines );


def open_subtitle_file( path: Path, encoding: Optional[str] = None, fps: float = 30.0 ) -> SubtitleFile:
    """
    Read and parse a subtitle file.

    Args:
        path: Subtitle file path
        encoding: Charset label, or None to detect it
        fps: Frames per second for frame based formats (MicroDVD)

    Returns:
        Parsed SubtitleFile
    """
    path = Path( path );
    logger = get_logger();

    try:
        data = read_file_to_bytes( path );
    except FileOperationError as e:
        raise InputSubtitleError( path, "reading subtitle file failed for" ) from e;

    try:
        file_format = detect_subtitle_format( path, data );
    except ValueError as e:
        raise InputSubtitleError( path, "unknown subtitle format for" ) from e;

    encoding = resolve_encoding( data, encoding );
    try:
        text = data.decode( encoding );
    except ( UnicodeDecodeError, LookupError ) as e:
        raise InputSubtitleError( path, f"decoding subtitle file as '{encoding}' failed for" ) from e;

    try:
        if file_format is SubtitleFormat.SUBRIP:
            subtitle_file = SrtSubtitleFile( path, text, encoding );
        elif file_format is SubtitleFormat.VOBSUB_IDX:
            subtitle_file = VobSubIdxFile( path, text, encoding );
        else:
            subtitle_file = SsaSubtitleFile( path, text, encoding, file_format, fps );
    except PARSE_ERRORS as e:
        raise InputSubtitleError( path, "parsing subtitle failed for" ) from e;

    try:
        line_count = len( subtitle_file.timespans() );
    except PARSE_ERRORS as e:
        raise InputSubtitleError( path, "retrieving subtitle lines failed for" ) from e;

    logger.debug( f"Parsed {line_count} lines from {path} ({file_format.value}, {encoding})" );
    return subtitle_file;


def create_debug_srt( spans: Sequence[TimeSpan] ) -> bytes:
    """SRT file with one 'line <n>' entry per span, for inspecting a reference timeline."""
    subs = pysrt.SubRipFile();
    for number, span in enumerate( spans ):
        subs.append( pysrt.SubRipItem(
            index=number + 1,
            start=pysrt.SubRipTime.from_ordinal( span.start ),
            end=pysrt.SubRipTime.from_ordinal( span.end ),
            text=f"line {number}"
        ) );

    buffer = io.StringIO();
    subs.write_into( buffer );
    return buffer.getvalue().encode( "utf-8" );
