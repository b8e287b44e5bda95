"""Logging setup for the gba command line."""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Union

from ..core.constants import LOG_LEVEL_ENV

HUMAN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class JsonFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            'time': self.formatTime(record),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        if record.exc_info:
            payload['exception'] = self.formatException(record.exc_info)
        return json.dumps(payload)


def resolve_level(level: Union[str, int, None], default: str = 'warning') -> int:
    """Map a level name (or the GBA_LOG_LEVEL environment variable) to a logging level."""
    if isinstance(level, int):
        return level
    name = (level or os.environ.get(LOG_LEVEL_ENV) or default).upper()
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.WARNING


def configure_logging(
    level: Union[str, int, None] = None,
    log_file: Optional[Union[str, Path]] = None,
    to_console: bool = True,
    fmt: str = 'human',
) -> None:
    """Configure the ``gba`` logger hierarchy.

    Console output goes to stderr so it never mixes with agent output on
    stdout. Calling this again replaces the previous handlers.
    """
    logger = logging.getLogger('gba')
    logger.setLevel(resolve_level(level))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = JsonFormatter() if fmt == 'json' else logging.Formatter(HUMAN_FORMAT)

    if to_console:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(formatter)
        logger.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding='utf-8')
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
