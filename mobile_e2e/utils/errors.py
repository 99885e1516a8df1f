"""
Harness Errors - The failure kinds surfaced by screen reconciliation and element lookup
"""
from typing import Optional


class HarnessError(Exception):
    """Base class for harness failures"""


class WaitTimeoutError(HarnessError, TimeoutError):
    """A bounded wait exceeded its deadline"""

    def __init__(self, expected: str, timeout: Optional[float] = None, message: Optional[str] = None):
        """
        Args:
            expected: The condition that never became true (e.g. "AUTH screen")
            timeout: Deadline in seconds
            message: Full message; built from expected/timeout when omitted
        """
        self.expected = expected
        self.timeout = timeout
        if message is None:
            if timeout is None:
                message = f"{expected} did not appear"
            else:
                message = f"{expected} did not appear after {timeout:g}s"
        super().__init__(message)


class PreconditionError(HarnessError):
    """No automatic path exists from the current screen to the requested one"""

    def __init__(self, message: str, current=None, target=None):
        self.current = current
        self.target = target
        super().__init__(message)


class NotFoundError(HarnessError):
    """Every locate or tap strategy was exhausted"""

    def __init__(
        self,
        message: str,
        anchor: str = "",
        attempts: int = 0,
        last_error: Optional[BaseException] = None,
        artifact_path: Optional[str] = None,
    ):
        self.anchor = anchor
        self.attempts = attempts
        self.last_error = last_error
        self.artifact_path = artifact_path
        super().__init__(message)
