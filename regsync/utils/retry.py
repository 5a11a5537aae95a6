"""Whole-operation retry with a fixed delay."""

import logging
import time
from typing import Callable, Optional, TypeVar

from ..errors import StreamProtocolError, TransportError
from .deadline import Deadline


logger = logging.getLogger(__name__)

T = TypeVar('T')

RETRYABLE_ERRORS = (TransportError, StreamProtocolError)


def retry_operation(func: Callable[[], T], description: str, attempts: int = 3,
                    delay: float = 5, deadline: Optional[Deadline] = None) -> T:
    """Call func, retrying transport and stream failures.

    Errors outside RETRYABLE_ERRORS propagate immediately. After the final
    attempt the last error is re-raised.
    """
    attempt = 1
    while True:
        try:
            return func()
        except RETRYABLE_ERRORS as e:
            if attempt >= attempts:
                raise
            if deadline is not None and deadline.remaining() <= delay:
                raise
            logger.warning(f"[RETRY] Unable to {description}: {e} (Retrying #{attempt})")
            attempt += 1
            time.sleep(delay)
