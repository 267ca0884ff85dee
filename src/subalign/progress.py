"""
Progress observers for the long running stages (decoding, framerate search, alignment).
"""
from abc import ABC, abstractmethod
from typing import Optional

from rich.progress import (
    BarColumn, Progress, TaskProgressColumn, TextColumn, TimeElapsedColumn
)

from .logging import get_logger


class ProgressObserver( ABC ):
    """Advisory progress callbacks; implementations must not affect results."""

    @abstractmethod
    def init( self, total: int ):
        pass

    @abstractmethod
    def advance( self ):
        pass

    @abstractmethod
    def finish( self ):
        pass


class NoProgress( ProgressObserver ):
    def init( self, total: int ):
        pass

    def advance( self ):
        pass

    def finish( self ):
        pass


class RichProgressObserver( ProgressObserver ):
    """
    Rich progress bar that moves one step every ``prescaler`` advances.

    The decoder reports one step per sample chunk, so it is created with a
    large prescaler to keep redraws cheap.
    """

    def __init__( self, prescaler: int = 1, init_message: Optional[str] = None ):
        self.prescaler = max( 1, prescaler );
        self.init_message = init_message;
        self.counter = 0;
        self.progress = None;
        self.task_id = None;

    def init( self, total: int ):
        logger = get_logger();
        if self.init_message:
            logger.info( self.init_message );

        self.counter = 0;
        self.progress = Progress(
            TextColumn( "[progress.description]{task.description}" ),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            console=logger.console,
            transient=True
        );
        self.progress.start();
        self.task_id = self.progress.add_task( "working", total=max( 1, total // self.prescaler ) );

    def advance( self ):
        if self.progress is None:
            return;
        self.counter += 1;
        if self.counter == self.prescaler:
            self.progress.advance( self.task_id );
            self.counter = 0;

    def finish( self ):
        if self.progress is None:
            return;
        self.progress.stop();
        self.progress = None;


def make_progress( prescaler: int = 1, init_message: Optional[str] = None, quiet: bool = False ) -> ProgressObserver:
    if quiet:
        return NoProgress();
    return RichProgressObserver( prescaler, init_message );
