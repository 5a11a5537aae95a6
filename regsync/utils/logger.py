"""Logging utilities for regsync."""

import logging
import sys
from typing import Optional


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Loggers of the docker SDK and its HTTP stack, which log every request.
LIBRARY_LOGGERS = ('docker', 'urllib3', 'requests')


def setup_logging(level: str = "INFO", log_file: Optional[str] = None):
    """Configure the root logger.

    Console output goes to stderr so that image lists and JSON summaries on
    stdout can be piped.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))
