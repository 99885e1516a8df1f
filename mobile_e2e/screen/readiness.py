"""
Readiness Gate - Block until loading indicators clear and a usable screen is up
"""
from typing import Optional, Tuple

from mobile_e2e.screen.markers import ScreenMarkers
from mobile_e2e.utils import wait
from mobile_e2e.utils.logging import StepLogger


class ReadinessGate:
    """Polls page sources until the UI has settled"""

    def __init__(
        self,
        session,
        markers: Optional[ScreenMarkers] = None,
        logger: Optional[StepLogger] = None,
        interval: float = wait.DEFAULT_INTERVAL,
        settle_delay: float = 0.5,
    ):
        """
        Initialize readiness gate

        Args:
            session: AutomationSession
            markers: Marker vocabulary
            logger: Step logger
            interval: Delay between snapshot polls
            settle_delay: Fixed pause after readiness, absorbs trailing animations
        """
        self.session = session
        self.markers = markers or ScreenMarkers()
        self.logger = logger or StepLogger()
        self.interval = interval
        self.settle_delay = settle_delay

    def _known_markers(self):
        m = self.markers
        return (
            m.auth_title,
            m.auth_checkbox,
            *m.main_menu,
            *m.main_feed,
            m.pin_create_title,
            m.pin_confirm_title,
            m.pin_login_header,
            m.auth_provider_button,
            m.greeting_prefix,
        )

    def check(self, snapshot: Optional[str]) -> Tuple[bool, str]:
        """
        Decide whether a snapshot shows a ready screen

        Args:
            snapshot: Serialized UI tree

        Returns:
            Tuple of (ready, reason)
        """
        if not snapshot:
            return False, "empty snapshot"
        m = self.markers

        if any(marker in snapshot for marker in self._known_markers()):
            # Auth screen counts only once its primary control is enabled
            if m.auth_provider_button in snapshot or m.auth_checkbox in snapshot:
                if any(marker in snapshot for marker in m.auth_provider_enabled):
                    return True, "auth screen ready with enabled elements"

            if (
                m.has_main(snapshot)
                or m.pin_create_title in snapshot
                or m.pin_confirm_title in snapshot
                or m.pin_login_header in snapshot
                or m.greeting_prefix in snapshot
            ):
                return True, "known screen structure found"

        # Unknown screen: ready when nothing is loading and controls exist
        if m.loading_text not in snapshot and m.interactive_control in snapshot:
            return True, "no loading text, buttons present"

        return False, "still loading"

    def _poll(self) -> bool:
        ready, reason = self.check(self.session.page_source())
        if ready:
            self.logger.log_step("waitForLoadingToComplete", reason)
        return ready

    def await_ready(self, timeout: float = 30.0):
        """
        Block until a ready screen is present, then settle briefly

        Args:
            timeout: Deadline in seconds

        Raises:
            WaitTimeoutError: Loading indicators persisted past the deadline
        """
        with self.logger.step("waitForLoadingToComplete", f"timeout={timeout:g}s"):
            wait.poll_until(
                self._poll,
                timeout,
                "Interactive screen (loading indicator still present)",
                interval=self.interval,
            )
            wait.pause(self.settle_delay)
