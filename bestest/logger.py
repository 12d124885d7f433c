"""
Logging for bestest.

Every module logs through its own `logging.getLogger(__name__)`, so all
messages pass through the "bestest" logger.  initialize_logging() sets up
colored output on the root handler and attaches a Counter to it, which
the command line tool uses to summarize warnings and errors at exit.
"""

import logging
import sys

import colorlog

FORMAT = '%(log_color)s%(levelname)s %(message)s'


class Counter(logging.Filter):
    """
    A stateful filter than counts the number of warnings and errors it has seen.
    """

    def __init__(self):
        super().__init__()
        self.errors: int = 0
        self.warnings: int = 0

    def __str__(self) -> str:
        def p(x):
            return "" if x == 1 else "s"

        return f"{self.errors} error{p(self.errors)}, {self.warnings} warning{p(self.warnings)}"

    def filter(self, record) -> bool:
        if record.levelno == logging.WARNING:
            self.warnings += 1
        if record.levelno >= logging.ERROR:
            self.errors += 1
        return True


def initialize_logging(level: str = 'warning', stream=None) -> Counter:
    """Configure colored logging at the given level name.

    Returns:
        the Counter attached to the root handler.
    """
    colorlog.basicConfig(stream=stream or sys.stderr, format=FORMAT, level=getattr(logging, level.upper()), force=True)
    counter = Counter()
    for handler in logging.getLogger().handlers:
        handler.addFilter(counter)
    return counter
