"""Bounded polling primitive."""

import logging
import time
from typing import Callable, Optional, TypeVar

from elasticache_reconciler.aws.exceptions import PollTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def poll_immediate(
    condition: Callable[[], Optional[T]],
    interval: float,
    timeout: float,
    operation: str = "condition",
    clock: Optional[Callable[[], float]] = None,
    sleep: Optional[Callable[[float], None]] = None,
    deadline: Optional[float] = None,
) -> T:
    """Evaluate ``condition`` now and then every ``interval`` seconds until it yields.

    ``condition`` returns ``None`` to mean "not ready yet" and any other value
    to finish the poll. Exceptions it raises are logged and treated as
    "not ready yet"; the last one is attached to the timeout error.

    Args:
        condition: Zero-argument callable probed on every attempt
        interval: Seconds between attempts
        timeout: Seconds after the first attempt when polling gives up
        operation: Name used in log lines and the timeout error
        clock: Monotonic time source (default: time.monotonic)
        sleep: Sleep function (default: time.sleep)
        deadline: Absolute time on ``clock`` at which the caller wants the
            poll abandoned, if earlier than ``timeout`` allows

    Returns:
        The first non-None value returned by ``condition``

    Raises:
        PollTimeoutError: If ``condition`` has not yielded within ``timeout``
            or by ``deadline``
    """
    clock = clock or time.monotonic
    sleep = sleep or time.sleep
    start = clock()
    if deadline is not None:
        timeout = max(min(timeout, deadline - start), 0)
    stop_at = start + timeout
    attempt = 0
    last_error: Optional[Exception] = None

    while True:
        attempt += 1
        try:
            result = condition()
        except Exception as e:
            last_error = e
            logger.warning(f"{operation} not ready (attempt {attempt}): {e}")
        else:
            if result is not None:
                return result
            logger.debug(f"{operation} not ready (attempt {attempt})")

        remaining = stop_at - clock()
        if remaining <= 0:
            raise PollTimeoutError(operation, timeout, last_error)
        sleep(min(interval, remaining))
