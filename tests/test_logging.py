"""
Test cases for the SubAlign logger wrapper.
"""
import logging
import pytest
import os
from pathlib import Path
from unittest.mock import patch
import sys

# Add src directory to path for testing
sys.path.insert( 0, str( Path( __file__ ).parent.parent / "src" ) );

from rich.logging import RichHandler

from subalign.logging import LOG_DIR_ENV, MAX_LOG_BYTES, SubAlignLogger


def console_level( logger: SubAlignLogger ) -> int:
    return next( handler.level for handler in logger.logger.handlers if isinstance( handler, RichHandler ) );


class TestSubAlignLogger:
    """Test cases for handlers, rotation and delegation."""

    def test_messages_reach_the_file( self, tmp_path ):
        with patch.dict( os.environ, { LOG_DIR_ENV: str( tmp_path ) } ):
            logger = SubAlignLogger( name="subalign-file-test" );

        logger.debug( "hidden on the console" );
        logger.warning( "shown everywhere" );
        for handler in logger.logger.handlers:
            handler.flush();

        text = ( tmp_path / "subalign-file-test.log" ).read_text( encoding="utf-8" );
        assert "DEBUG - hidden on the console" in text;
        assert "WARNING - shown everywhere" in text;
        assert console_level( logger ) == logging.INFO;

    def test_oversized_log_is_archived( self, tmp_path ):
        old_log = tmp_path / "subalign-rotate-test.log";
        old_log.write_bytes( b"x" * ( MAX_LOG_BYTES + 1 ) );

        with patch.dict( os.environ, { LOG_DIR_ENV: str( tmp_path ) } ):
            SubAlignLogger( name="subalign-rotate-test" );

        archived = [ path for path in tmp_path.iterdir() if path.name.startswith( "subalign-rotate-test." ) and path != old_log ];
        assert len( archived ) == 1;
        assert archived[0].stat().st_size == MAX_LOG_BYTES + 1;

    def test_set_debug_lowers_console_level( self, tmp_path ):
        with patch.dict( os.environ, { LOG_DIR_ENV: str( tmp_path ) } ):
            logger = SubAlignLogger( name="subalign-debug-test" );

        logger.set_debug( True );

        assert logger.debug_enabled;
        assert console_level( logger ) == logging.DEBUG;

    def test_unknown_attribute( self, tmp_path ):
        with patch.dict( os.environ, { LOG_DIR_ENV: str( tmp_path ) } ):
            logger = SubAlignLogger( name="subalign-attr-test" );

        assert logger.isEnabledFor( logging.DEBUG );
        with pytest.raises( AttributeError ):
            logger.no_such_method;
