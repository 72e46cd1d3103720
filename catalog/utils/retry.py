# catalog/utils/retry.py
import time
import logging
from typing import Callable, TypeVar

from ..exceptions import RemoteUnavailable

T = TypeVar("T")


def call_with_retries(
    func: Callable[..., T],
    *args,
    retries: int = 2,
    delay: float = 1.0,
    logger: logging.Logger = None,
    **kwargs
) -> T:
    """
    Call a remote fetch, retrying on RemoteUnavailable with exponential backoff.

    Only idempotent GETs go through here, so retrying is always safe.
    Any other exception propagates immediately.

    Args:
        func: The fetch to call
        retries: Number of retries after the first attempt
        delay: Initial delay in seconds, doubled after each failed attempt
        logger: Logger used for retry warnings

    Returns:
        Whatever func returns

    Raises:
        RemoteUnavailable: If every attempt failed
    """
    attempt = 0
    while True:
        try:
            return func(*args, **kwargs)
        except RemoteUnavailable as e:
            if attempt >= retries:
                raise
            attempt += 1
            if logger:
                logger.warning(f"Remote call failed ({e}). Retry {attempt}/{retries} in {delay} seconds.")
            if delay > 0:
                time.sleep(delay)
            delay *= 2
