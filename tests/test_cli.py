"""
Basic test cases for SubAlign CLI functionality.
"""
import pytest
from pathlib import Path
from unittest.mock import patch
import sys
import os

# Add src directory to path for testing
sys.path.insert( 0, str( Path( __file__ ).parent.parent / "src" ) );

from subalign.cli import SubAlignCLI, main
from subalign.errors import InputSubtitleError


@pytest.fixture
def subtitle_files( tmp_path ):
    reference = tmp_path / "ref.srt";
    incorrect = tmp_path / "inc.srt";
    reference.write_text( "1\n00:00:01,000 --> 00:00:02,000\nHello\n", encoding="utf-8" );
    incorrect.write_text( "1\n00:00:01,200 --> 00:00:02,200\nHello\n", encoding="utf-8" );
    return str( reference ), str( incorrect ), str( tmp_path / "out.srt" );


class TestSubAlignCLI:
    """Test cases for SubAlign CLI interface."""

    def test_cli_initialization( self ):
        """Test CLI object creation."""
        cli = SubAlignCLI();
        assert cli.parser is not None;
        assert cli.args is None;
        assert cli.logger is None;

    def test_argument_parsing_missing_required( self ):
        """Test CLI with missing required arguments."""
        cli = SubAlignCLI();

        with pytest.raises( SystemExit ):
            cli.parse_args( [] );

    def test_defaults( self, subtitle_files ):
        """Test default option values after conversion."""
        args = SubAlignCLI().parse_args( list( subtitle_files ) );

        assert args.split_penalty == 7.0;
        assert args.interval == 1;
        assert args.speed_optimization == 1.0;
        assert args.sub_fps_ref == 30.0;
        assert args.sub_fps_inc == 30.0;
        assert args.encoding_ref is None;
        assert args.encoding_inc is None;
        assert args.index is None;
        assert args.min_vad_span == 500;
        assert args.vad_merge_gap == 0;
        assert not args.no_split;
        assert not args.disable_fps_guessing;
        assert not args.allow_negative_timestamps;

    def test_argument_parsing_valid( self, subtitle_files ):
        """Test CLI with explicit options."""
        args = SubAlignCLI().parse_args( list( subtitle_files ) + [
            '-p', '3.5',
            '-i', '10',
            '--index', '1',
            '--encoding-inc', 'cp1252',
            '--disable-framerate-guessing',
            '-l',
            '-O', '0',
            '--debug'
        ] );

        assert args.split_penalty == 3.5;
        assert args.interval == 10;
        assert args.index == 1;
        assert args.encoding_inc == 'cp1252';
        assert args.disable_fps_guessing;
        assert args.no_split;
        assert args.speed_optimization == 0.0;
        assert args.debug == True;
        assert args.reference == Path( subtitle_files[0] );

    @pytest.mark.parametrize( "option,value", [
        ( '--split-penalty', 'abc' ),
        ( '--split-penalty', '1001' ),
        ( '--interval', '0' ),
        ( '--interval', '1.5' ),
        ( '--sub-fps-ref', '0' ),
        ( '--index', '-1' ),
        ( '--vad-merge-gap', 'two' ),
        ( '--encoding-ref', 'no-such-charset' ),
    ] )
    def test_invalid_values( self, subtitle_files, option, value ):
        """Test that malformed or out-of-range values exit with status 1."""
        with pytest.raises( SystemExit ) as info:
            SubAlignCLI().parse_args( list( subtitle_files ) + [ option, value ] );

        assert info.value.code == 1;

    def test_file_validation( self, tmp_path ):
        """Test file existence validation."""
        with pytest.raises( SystemExit ):
            SubAlignCLI().parse_args( [
                str( tmp_path / "nonexistent.srt" ),
                str( tmp_path / "nonexistent2.srt" ),
                str( tmp_path / "out.srt" )
            ] );

    def test_reference_dump_placeholder( self, subtitle_files ):
        """Test that '_' is accepted as the file to correct."""
        args = SubAlignCLI().parse_args( [ subtitle_files[0], '_', subtitle_files[2] ] );
        assert args.incorrect == '_';


class TestEnvironmentLoading:
    """Test environment variable loading."""

    @patch.dict( os.environ, { 'SUBALIGN_BACKTRACE': '1' } )
    def test_environment_variable_loading( self ):
        cli = SubAlignCLI();
        cli._load_environment();

        assert cli.backtrace == '1';


class TestMain:
    """Test cases for the entry point exit codes."""

    def test_success( self, subtitle_files ):
        with patch( 'subalign.sync.SubtitleSynchronizer' ) as synchronizer_class:
            main( list( subtitle_files ) );

        synchronizer_class.return_value.run.assert_called_once();
        kwargs = synchronizer_class.call_args[1];
        assert kwargs['guess_fps_ratio'] is True;
        assert kwargs['split_penalty'] == 7.0;

    def test_subalign_error_exits_1( self, subtitle_files ):
        with patch( 'subalign.sync.SubtitleSynchronizer' ) as synchronizer_class:
            synchronizer_class.return_value.run.side_effect = InputSubtitleError( Path( "inc.srt" ), "parsing subtitle failed for" );

            with pytest.raises( SystemExit ) as info:
                main( list( subtitle_files ) );

        assert info.value.code == 1;

    def test_interrupt_exits_130( self, subtitle_files ):
        with patch( 'subalign.sync.SubtitleSynchronizer' ) as synchronizer_class:
            synchronizer_class.return_value.run.side_effect = KeyboardInterrupt();

            with pytest.raises( SystemExit ) as info:
                main( list( subtitle_files ) );

        assert info.value.code == 130;

    def test_end_to_end( self, subtitle_files ):
        """Test a real run through the CLI."""
        main( list( subtitle_files ) + [ '--no-split' ] );

        output = Path( subtitle_files[2] ).read_text( encoding="utf-8" );
        assert "00:00:01,000 --> 00:00:02,000" in output;
