"""The agentcolony logger tree.

Store, task and messaging modules log through ``get_logger(<area>)``. The CLI
calls ``setup_logging`` once per process; records go to ``logging.file`` (or
$COLONY_LOG) and to stderr only when stderr is a terminal.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from agentcolony.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

logger = logging.getLogger("agentcolony")

_initialized = False

_LEVEL_MAP = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "VERBOSE": VERBOSE,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# -v count: 0 errors, 1 warnings, 2 info, 3 CAS retries, 4 every record write
_VERBOSITY_MAP = {
    0: logging.ERROR,
    1: logging.WARNING,
    2: logging.INFO,
    3: VERBOSE,
    4: TRACE,
}


class _LowercaseLevelFormatter(logging.Formatter):
    """``12:00:01 warning: ...``"""

    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        return super().format(record)


def resolve_level(config: LoggingConfig | None) -> int:
    """Pick the effective level; ``verbose`` wins over ``level``."""
    if config is None:
        return logging.WARNING
    if config.verbose is not None:
        return _VERBOSITY_MAP.get(config.verbose, TRACE if config.verbose > 4 else logging.ERROR)
    if config.level:
        return _LEVEL_MAP.get(config.level.upper(), logging.WARNING)
    return logging.WARNING


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Install handlers on the agentcolony logger; repeat calls do nothing.

    Quiet by default: warnings only, and no stderr output when the CLI runs
    under a script or another agent's pane.
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    level = resolve_level(config)
    logger.setLevel(level)

    handler = _file_handler(config) or _terminal_handler()
    if handler is None:
        return
    handler.setLevel(level)
    handler.setFormatter(
        _LowercaseLevelFormatter("%(asctime)s %(levelname)s: %(message)s", datefmt="%H:%M:%S")
    )
    logger.addHandler(handler)


def reset_logging() -> None:
    """Drop handlers and allow ``setup_logging`` to run again (tests)."""
    global _initialized
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    _initialized = False


def _file_handler(config: LoggingConfig | None) -> logging.Handler | None:
    path = (config.file if config else None) or os.environ.get("COLONY_LOG")
    if not path:
        return None
    path = os.path.expanduser(path)
    try:
        return logging.FileHandler(path, mode="a", encoding="utf-8")
    except OSError as e:
        if sys.stderr.isatty():
            print(f"agentcolony: cannot write log file {path}: {e}", file=sys.stderr)
        return None


def _terminal_handler() -> logging.Handler | None:
    if not sys.stderr.isatty():
        return None
    return logging.StreamHandler(sys.stderr)


def get_logger(name: str | None = None) -> logging.Logger:
    """``agentcolony.<name>``, or the package logger itself."""
    if name:
        return logger.getChild(name)
    return logger
