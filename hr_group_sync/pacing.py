"""
Pacing utilities for rate-limited remote calls.

Group membership changes are dispatched one at a time with a fixed minimum
interval between consecutive calls. Failed calls are not retried; the
exception propagates to the caller unchanged.
"""

import time
import logging
import functools
from typing import Callable, Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 0.25


class Pacer:
    """
    Enforces a minimum interval between consecutive dispatches.

    The first call goes through immediately; each later call sleeps for
    whatever remains of the interval since the previous dispatch started.

    Example:
        pacer = Pacer(0.25)
        for email in emails:
            pacer.call(client.remove_member, group, email)
    """

    def __init__(
        self,
        interval: float = DEFAULT_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ):
        if interval < 0:
            raise ValueError(f"Pacing interval must not be negative: {interval}")
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._last_dispatch: Optional[float] = None
        self.dispatch_count = 0

    def wait(self) -> float:
        """
        Block until the next dispatch is allowed and record it.

        Returns:
            Seconds slept (0.0 when no wait was needed)
        """
        slept = 0.0
        if self._last_dispatch is not None:
            remaining = self.interval - (self._clock() - self._last_dispatch)
            if remaining > 0:
                self._sleep(remaining)
                slept = remaining
        self._last_dispatch = self._clock()
        self.dispatch_count += 1
        return slept

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """Wait for the next slot, then call func(*args, **kwargs)."""
        self.wait()
        return func(*args, **kwargs)


def paced(pacer: Pacer):
    """
    Decorator that routes every call of the wrapped function through pacer.

    Args:
        pacer: Shared Pacer instance

    Returns:
        Decorated function
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            return pacer.call(func, *args, **kwargs)
        return wrapper
    return decorator


def pacer_from_config(config: Dict[str, Any]) -> Pacer:
    """
    Create a Pacer from the sync configuration section.

    Args:
        config: Dictionary containing pace_seconds (optional)

    Returns:
        Pacer configured from the provided settings
    """
    interval = float(config.get('pace_seconds', DEFAULT_INTERVAL))
    logger.debug(f"Pacing remote membership calls at {interval:.2f}s intervals")
    return Pacer(interval)
