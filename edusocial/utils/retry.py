import logging
import time
from typing import Callable, TypeVar

from edusocial.exceptions import EduSocialError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_read(operation: Callable[[], T], description: str, max_retries: int = 1, wait_seconds: float = 0.5) -> T:
    """
    Run an idempotent read, retrying on transient failure.

    Application errors (EduSocialError) are not retried. Never use this for
    writes: the backend exposes no idempotency keys.

    Args:
        operation: Zero-argument callable performing the read
        description: Human readable name used in log lines
        max_retries: Number of retries after the first attempt (default: 1)
        wait_seconds: Delay before each retry

    Returns:
        Whatever the operation returns

    Raises:
        The last exception raised by the operation
    """
    retry_count = 0

    while True:
        try:
            return operation()
        except EduSocialError:
            raise
        except Exception as e:
            retry_count += 1
            if retry_count > max_retries:
                logger.error(f"{description} failed after {max_retries} retries: {e}")
                raise
            logger.warning(f"{description} failed, retry {retry_count}/{max_retries} in {wait_seconds}s: {e}")
            time.sleep(wait_seconds)
