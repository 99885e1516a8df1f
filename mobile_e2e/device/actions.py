"""
Device Actions - Redundant tap mechanisms and native gestures
"""
from typing import Callable, List, Optional, Tuple

from selenium.common.exceptions import InvalidSessionIdException, WebDriverException

from mobile_e2e.device.strategies import try_in_order
from mobile_e2e.utils import wait
from mobile_e2e.utils.config import Timeouts
from mobile_e2e.utils.errors import NotFoundError, WaitTimeoutError
from mobile_e2e.utils.logging import StepLogger


class DeviceActions:
    """Device interaction primitives"""

    # Hold time of the W3C pointer tap
    POINTER_HOLD = 0.15
    RELEASE_TIMEOUT = 1.0
    PRESSURE = 0.5
    # Pause after a tap lands, lets the tapped control react
    POST_TAP_DELAY = 0.3

    def __init__(self, session, logger: Optional[StepLogger] = None, timeouts: Optional[Timeouts] = None):
        """
        Initialize device actions

        Args:
            session: AutomationSession
            logger: Step logger
            timeouts: Tap retry/timeout/backoff settings
        """
        self.session = session
        self.logger = logger or StepLogger()
        self.timeouts = timeouts or Timeouts()

    def pointer_tap(self, x: int, y: int):
        """W3C pointer sequence: move, down, hold, up; then release pointer state"""
        self.session.pointer_tap(x, y, hold=self.POINTER_HOLD)
        try:
            wait.run_with_timeout(self.session.release_actions, self.RELEASE_TIMEOUT, "releaseActions")
        except InvalidSessionIdException:
            raise
        except (WaitTimeoutError, WebDriverException) as e:
            # The tap itself already landed
            self.logger.debug(f"releaseActions ignored: {e}")

    def native_tap(self, x: int, y: int):
        self.session.execute("mobile: tap", {"x": x, "y": y})

    def pressure_tap(self, x: int, y: int):
        self.session.execute("mobile: tap", {"x": x, "y": y, "pressure": self.PRESSURE})

    def tap_mechanisms(self, x: int, y: int) -> List[Tuple[str, Callable[[], None]]]:
        """Tap mechanisms in the order they are tried"""
        return [
            ("W3C Actions", lambda: self.pointer_tap(x, y)),
            ("mobile: tap", lambda: self.native_tap(x, y)),
            ("mobile: tap with pressure", lambda: self.pressure_tap(x, y)),
        ]

    def tap_smart(
        self,
        x: int,
        y: int,
        description: str = "",
        retries: Optional[int] = None,
        per_attempt_timeout: Optional[float] = None,
    ):
        """
        Tap at coordinates, falling back across tap mechanisms and retrying

        Each mechanism is raced against per_attempt_timeout; the first one
        that completes ends the tap. When every mechanism of an attempt
        fails, the whole attempt is retried after a fixed backoff.

        Args:
            x: X coordinate in points
            y: Y coordinate in points
            description: What is being tapped, for logs
            retries: Number of attempts (default: timeouts.tap_retries)
            per_attempt_timeout: Deadline per mechanism (default: timeouts.tap_timeout)

        Raises:
            NotFoundError: Every mechanism failed on every attempt; the
                message includes the last underlying error
        """
        retries = retries or self.timeouts.tap_retries
        per_attempt_timeout = per_attempt_timeout or self.timeouts.tap_timeout
        name = f"tapSmart {description}".strip()
        self.logger.log_step(name, f"({x}, {y})")

        last_error: Optional[BaseException] = None
        mechanisms = self.tap_mechanisms(x, y)
        for attempt in range(1, retries + 1):
            timed = [
                (label, lambda run=run, label=label: wait.run_with_timeout(run, per_attempt_timeout, label))
                for label, run in mechanisms
            ]
            try:
                winner, _ = try_in_order(timed, name, self.logger)
            except NotFoundError as e:
                last_error = e.last_error
                self.logger.log_step(name, f"Attempt {attempt}/{retries} failed")
                if attempt < retries:
                    wait.pause(self.timeouts.tap_backoff)
                continue
            wait.pause(self.POST_TAP_DELAY)
            self.logger.log_success(name, f"({x}, {y}) via {winner}")
            return

        raise NotFoundError(
            f"Failed to tap at ({x}, {y}) after {retries} attempts: {last_error}",
            anchor=description or f"({x}, {y})",
            attempts=retries * len(mechanisms),
            last_error=last_error,
        )

    def tap_center(self, handle, description: str = ""):
        """
        Tap the center of an element's frame with tap_smart

        Args:
            handle: ElementHandle to tap
            description: What is being tapped, for logs
        """
        rect = handle.rect()
        x = rect["x"] + rect["width"] // 2
        y = rect["y"] + rect["height"] // 2
        self.tap_smart(x, y, description or handle.description)

    def scroll(self, direction: str = "down", element_id: Optional[str] = None, predicate: Optional[str] = None):
        """
        Native scroll

        Args:
            direction: "up", "down", "left" or "right"
            element_id: Scroll inside this element instead of the whole screen
            predicate: Scroll until an element matching this predicate is visible
        """
        params = {"direction": direction}
        if element_id:
            params["elementId"] = element_id
        if predicate:
            params["predicateString"] = predicate
        self.session.execute("mobile: scroll", params)
