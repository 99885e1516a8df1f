"""
Waiting - Cooperative polling, fixed pauses and timeout races for remote calls
"""
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Tuple, Type, TypeVar

from selenium.common.exceptions import InvalidSessionIdException, WebDriverException

from mobile_e2e.utils.errors import WaitTimeoutError

T = TypeVar("T")

DEFAULT_INTERVAL = 0.5

# Exceptions a polling condition may raise that only mean "not yet"
TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (WebDriverException,)


def now() -> float:
    """Monotonic clock used by every deadline in the harness"""
    return time.monotonic()


def pause(seconds: float):
    """Block the calling flow for a fixed delay"""
    if seconds > 0:
        time.sleep(seconds)


def poll_until(
    condition: Callable[[], T],
    timeout: float,
    expected: str,
    interval: float = DEFAULT_INTERVAL,
    ignored: Tuple[Type[BaseException], ...] = TRANSIENT_ERRORS,
) -> T:
    """
    Evaluate condition at a fixed interval until it returns a truthy value

    Args:
        condition: Zero-argument callable; a truthy result ends the wait
        timeout: Deadline in seconds
        expected: Description of the awaited condition, used in the timeout error
        interval: Delay between evaluations
        ignored: Exception types treated as a falsy result

    Returns:
        The first truthy value returned by condition

    Raises:
        WaitTimeoutError: The deadline passed without a truthy result
    """
    deadline = now() + timeout
    while True:
        try:
            result = condition()
        except InvalidSessionIdException:
            raise
        except ignored:
            result = None
        if result:
            return result
        if now() >= deadline:
            raise WaitTimeoutError(expected, timeout)
        pause(interval)


def run_with_timeout(func: Callable[[], T], timeout: float, name: str = "operation") -> T:
    """
    Race a blocking call against a deadline

    The call runs on a helper thread while the caller blocks on its result;
    a call that outlives the deadline is abandoned, not cancelled.

    Args:
        func: Zero-argument callable
        timeout: Deadline in seconds
        name: Label used in the timeout error

    Returns:
        Whatever func returned
    """
    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(func)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError:
        raise WaitTimeoutError(name, timeout, message=f"{name} timeout after {timeout:g}s") from None
    finally:
        executor.shutdown(wait=False)

