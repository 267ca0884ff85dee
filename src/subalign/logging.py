"""
Logging system for SubAlign with startup rotation and Rich console output.
"""
import os
import logging
import shutil
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from rich.console import Console
from rich.logging import RichHandler


MAX_LOG_BYTES = 5 * 1024 * 1024;
LOG_DIR_ENV = "SUBALIGN_LOG_DIR";


class SubAlignLogger:
    """
    Logger for SubAlign: Rich console on stderr plus a rotating file log.

    The console is shared with the progress bars so log lines and bars do not
    overwrite each other. The log directory comes from SUBALIGN_LOG_DIR
    (default ``logs/``); a log left over from an earlier run that is already
    past MAX_LOG_BYTES is moved aside to a timestamped name first.
    """

    def __init__( self, name: str = "subalign", debug: bool = False ):
        self.name = name;
        self.debug_enabled = debug;
        self.console = Console( stderr=True );

        self.logs_dir = Path( os.getenv( LOG_DIR_ENV, "logs" ) );
        self.logs_dir.mkdir( parents=True, exist_ok=True );
        self.log_file = self.logs_dir / f"{name}.log";
        self._archive_oversized_log();

        self.logger = logging.getLogger( name );
        self.logger.setLevel( logging.DEBUG );
        self.logger.propagate = False;
        self.logger.handlers.clear();
        self.logger.addHandler( self._console_handler() );
        self.logger.addHandler( self._file_handler() );

    def _archive_oversized_log( self ):
        if self.log_file.exists() and self.log_file.stat().st_size > MAX_LOG_BYTES:
            timestamp = datetime.now().isoformat().replace( ":", "-" );
            shutil.move( str( self.log_file ), str( self.logs_dir / f"{self.name}.{timestamp}.log" ) );

    def _console_handler( self ) -> RichHandler:
        handler = RichHandler(
            console=self.console,
            rich_tracebacks=True,
            show_time=True,
            show_path=self.debug_enabled
        );
        handler.setLevel( logging.DEBUG if self.debug_enabled else logging.INFO );
        handler.setFormatter( logging.Formatter( "%(message)s" ) );
        return handler;

    def _file_handler( self ) -> RotatingFileHandler:
        """Everything down to DEBUG goes to the file, whatever the console shows."""
        handler = RotatingFileHandler( self.log_file, maxBytes=MAX_LOG_BYTES, backupCount=5, encoding="utf-8" );
        handler.setLevel( logging.DEBUG );
        handler.setFormatter( logging.Formatter( "%(asctime)s - %(name)s - %(levelname)s - %(message)s" ) );
        return handler;

    def set_debug( self, debug: bool ):
        """Switch the console verbosity after creation."""
        self.debug_enabled = debug;
        for handler in self.logger.handlers:
            if isinstance( handler, RichHandler ):
                handler.setLevel( logging.DEBUG if debug else logging.INFO );

    def __getattr__( self, name: str ):
        # debug(), info(), warning() and the rest come from the wrapped logger
        if name == "logger":
            raise AttributeError( name );
        return getattr( self.logger, name );


# Global logger instance
_logger = None;


def get_logger( debug: bool = False ) -> SubAlignLogger:
    """Get the global SubAlign logger instance."""
    global _logger;
    if _logger is None:
        _logger = SubAlignLogger( debug=debug );
    elif debug and not _logger.debug_enabled:
        _logger.set_debug( True );
    return _logger;


def setup_logging( debug: bool = False ):
    """Setup logging for the application."""
    logger = get_logger( debug=debug );
    logger.set_debug( debug );
    return logger;
