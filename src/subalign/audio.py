"""
Audio decoding and voice activity detection for video reference files.
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Optional

import ffmpeg
import numpy as np

from .errors import AudioDecodeError, VoiceModelError
from .logging import get_logger
from .progress import NoProgress, ProgressObserver
from .segments import VoiceSegmentExtractor, filter_min_duration
from .timespan import TimeSpan


SAMPLE_RATE = 16000;         # 16kHz mono, what the voice model expects
VAD_CHUNK_SIZE = 512;        # 32ms at 16kHz
DECODER_CHUNK_SIZE = 160;    # samples pushed per decoder step (10ms)
VOICE_THRESHOLD = 0.5;

SUPPORTED_MODEL_CONFIGS = { ( 16000, 512 ), ( 8000, 256 ) };


class AudioReceiver( ABC ):
    """Consumer of decoded signed 16-bit mono samples."""

    @abstractmethod
    def push_samples( self, samples: np.ndarray ):
        pass

    @abstractmethod
    def finish( self ):
        """Called once after the last chunk; returns the accumulated result."""
        pass


class AudioDecoder( ABC ):
    """Decodes one audio track of a media file into fixed-size sample chunks."""

    @abstractmethod
    def decode( self, path: Path, track_index: Optional[int], receiver: AudioReceiver, progress: ProgressObserver ):
        """
        Push every sample chunk of the track to ``receiver``.

        Returns:
            Whatever ``receiver.finish()`` returns
        """
        pass


class FFmpegAudioDecoder( AudioDecoder ):
    """
    FFmpeg based decoder streaming raw PCM through a pipe.

    Features:
    - Duration probe for progress totals
    - Audio track selection (0:a:<index>)
    - Conversion to 16kHz mono s16le
    """

    def __init__( self, sample_rate: int = SAMPLE_RATE, chunk_size: int = DECODER_CHUNK_SIZE ):
        self.logger = get_logger();
        self.sample_rate = sample_rate;
        self.chunk_size = chunk_size;

    def get_duration( self, path: Path ) -> Optional[float]:
        """Media duration in seconds, or None if FFprobe cannot tell."""
        try:
            probe = ffmpeg.probe( str( path ) );
            duration = float( probe['format']['duration'] );
            self.logger.debug( f"Media duration: {duration:.2f} seconds ({duration/60:.1f} minutes)" );
            return duration;
        except ( ffmpeg.Error, KeyError, ValueError ) as e:
            self.logger.debug( f"Could not determine media duration: {e}" );
            return None;

    def _build_stream( self, path: Path, track_index: Optional[int] ):
        stream = ffmpeg.input( str( path ) );
        output_args = {
            'format': 's16le',
            'acodec': 'pcm_s16le',
            'ac': 1,
            'ar': self.sample_rate,
        };
        if track_index is not None:
            output_args['map'] = f"0:a:{track_index}";
        stream = ffmpeg.output( stream, 'pipe:', **output_args );
        return stream.global_args( '-nostdin', '-loglevel', 'error' );

    def decode( self, path: Path, track_index: Optional[int], receiver: AudioReceiver, progress: ProgressObserver ):
        path = Path( path );
        if not path.exists():
            raise FileNotFoundError( f"media file not found: {path}" );

        duration = self.get_duration( path );
        total_chunks = int( duration * self.sample_rate / self.chunk_size ) if duration else 0;

        stream = self._build_stream( path, track_index );
        self.logger.debug( f"FFmpeg command: {' '.join( ffmpeg.compile( stream ) )}" );

        process = ffmpeg.run_async( stream, pipe_stdout=True, pipe_stderr=True );
        bytes_per_chunk = self.chunk_size * 2;

        progress.init( total_chunks );
        try:
            pending = b"";
            while True:
                data = process.stdout.read( bytes_per_chunk );
                if not data:
                    break;
                pending += data;
                usable = len( pending ) - len( pending ) % 2;
                if usable == 0:
                    continue;
                receiver.push_samples( np.frombuffer( pending[:usable], dtype='<i2' ) );
                pending = pending[usable:];
                progress.advance();

            stderr = process.stderr.read();
            return_code = process.wait();
        finally:
            if process.poll() is None:
                self.logger.debug( "Stopping ffmpeg after an interrupted decode" );
                process.kill();
                process.wait();
            progress.finish();

        if return_code != 0:
            message = stderr.decode( 'utf-8', errors='replace' ).strip() or "no error output";
            raise RuntimeError( f"ffmpeg exited with code {return_code}: {message}" );

        return receiver.finish();


class VoiceModel( ABC ):
    """Voice probability model over fixed-size sample chunks."""

    sample_rate: int;
    chunk_size: int;

    @abstractmethod
    def predict( self, chunk: np.ndarray ) -> float:
        """Probability in [0, 1] that ``chunk`` contains speech."""
        pass


class SileroVoiceModel( VoiceModel ):
    """Silero VAD running on torch."""

    def __init__( self, sample_rate: int = SAMPLE_RATE, chunk_size: int = VAD_CHUNK_SIZE ):
        if ( sample_rate, chunk_size ) not in SUPPORTED_MODEL_CONFIGS:
            raise ValueError( f"unsupported sample rate / chunk size combination: {sample_rate}Hz / {chunk_size}" );
        self.sample_rate = sample_rate;
        self.chunk_size = chunk_size;

        import torch;
        from silero_vad import load_silero_vad;

        self._torch = torch;
        self.model = load_silero_vad();

    def predict( self, chunk: np.ndarray ) -> float:
        samples = chunk.astype( np.float32 ) / 32768.0;
        with self._torch.no_grad():
            probability = self.model( self._torch.from_numpy( samples ), self.sample_rate );
        return float( probability.item() );


class VadReceiver( AudioReceiver ):
    """
    Buffers decoded samples and emits one voice flag per model chunk.

    Leftover samples at the end of the stream are zero-padded to a full
    chunk so trailing audio is not dropped.
    """

    def __init__( self, model: VoiceModel, threshold: float = VOICE_THRESHOLD ):
        self.model = model;
        self.threshold = threshold;
        self.chunk_size = model.chunk_size;
        self.flags: List[bool] = [];
        self._buffer = np.zeros( 0, dtype=np.int16 );

    def _classify( self, chunk: np.ndarray ):
        self.flags.append( self.model.predict( chunk ) > self.threshold );

    def push_samples( self, samples: np.ndarray ):
        self._buffer = np.concatenate( ( self._buffer, np.asarray( samples, dtype=np.int16 ) ) );

        offset = 0;
        while len( self._buffer ) - offset >= self.chunk_size:
            self._classify( self._buffer[offset:offset + self.chunk_size] );
            offset += self.chunk_size;
        self._buffer = self._buffer[offset:];

    def finish( self ) -> List[bool]:
        if len( self._buffer ) > 0:
            padded = np.zeros( self.chunk_size, dtype=np.int16 );
            padded[:len( self._buffer )] = self._buffer;
            self._buffer = np.zeros( 0, dtype=np.int16 );
            self._classify( padded );
        return self.flags;


class AudioVoiceAnalyzer:
    """
    Builds a speech timeline for a media file.

    Pipeline: decode audio track -> voice model per 32ms chunk ->
    speech segments -> minimum duration filter.
    """

    def __init__(
        self,
        decoder: Optional[AudioDecoder] = None,
        model_factory: Optional[Callable[[], VoiceModel]] = None,
        merge_gap: int = 0,
        min_span_ms: int = 500
    ):
        self.logger = get_logger();
        self.decoder = decoder if decoder is not None else FFmpegAudioDecoder();
        self.model_factory = model_factory if model_factory is not None else SileroVoiceModel;
        self.merge_gap = merge_gap;
        self.min_span_ms = min_span_ms;

    def _create_model( self, path: Path ) -> VoiceModel:
        try:
            return self.model_factory();
        except Exception as e:
            raise VoiceModelError( path, str( e ) ) from e;

    def detect_voice_flags( self, path: Path, track_index: Optional[int] = None, progress: Optional[ProgressObserver] = None ):
        """Run decode + voice model; returns (flags, chunk duration in ms)."""
        path = Path( path );
        progress = progress if progress is not None else NoProgress();

        model = self._create_model( path );
        receiver = VadReceiver( model );

        try:
            flags = self.decoder.decode( path, track_index, receiver, progress );
        except ( ffmpeg.Error, OSError, RuntimeError ) as e:
            raise AudioDecodeError( path ) from e;

        chunk_duration_ms = model.chunk_size * 1000 // model.sample_rate;
        return flags, chunk_duration_ms;

    def analyze( self, path: Path, track_index: Optional[int] = None, progress: Optional[ProgressObserver] = None ) -> List[TimeSpan]:
        """
        Detect the speech segments of a media file.

        Args:
            path: Media file path
            track_index: Audio track index (None = ffmpeg's default stream)
            progress: Observer for decode progress

        Returns:
            Sorted, disjoint speech segments in milliseconds
        """
        flags, chunk_duration_ms = self.detect_voice_flags( path, track_index, progress );

        extractor = VoiceSegmentExtractor( chunk_duration_ms=chunk_duration_ms, merge_gap=self.merge_gap );
        segments = extractor.extract( flags );
        kept = filter_min_duration( segments, self.min_span_ms );

        voiced = sum( 1 for flag in flags if flag );
        self.logger.info( f"Voice activity: {voiced}/{len( flags )} chunks voiced, " \
                          f"{len( segments )} segments, {len( kept )} kept (≥{self.min_span_ms}ms)" );
        return kept;
