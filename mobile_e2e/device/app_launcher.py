"""
App Launcher - Terminate, activate and query the app under test
"""
from enum import IntEnum
from typing import Optional

from selenium.common.exceptions import InvalidSessionIdException, WebDriverException

from mobile_e2e.utils import wait
from mobile_e2e.utils.logging import StepLogger


class AppState(IntEnum):
    """Values returned by mobile: queryAppState"""
    NOT_INSTALLED = 0
    NOT_RUNNING = 1
    RUNNING_IN_BACKGROUND_SUSPENDED = 2
    RUNNING_IN_BACKGROUND = 3
    RUNNING_IN_FOREGROUND = 4


class AppLauncher:
    """App lifecycle management over XCUITest mobile: commands"""

    def __init__(self, session, bundle_id: str, logger: Optional[StepLogger] = None):
        """
        Initialize app launcher

        Args:
            session: AutomationSession
            bundle_id: Bundle identifier of the app under test
            logger: Step logger
        """
        self.session = session
        self.bundle_id = bundle_id
        self.logger = logger or StepLogger()

    def terminate(self) -> bool:
        """
        Terminate the app

        Returns:
            True if the app was running and got terminated
        """
        try:
            result = self.session.execute("mobile: terminateApp", {"bundleId": self.bundle_id})
        except InvalidSessionIdException:
            raise
        except WebDriverException as e:
            self.logger.warning(f"Could not terminate {self.bundle_id}: {e}")
            return False
        return bool(result)

    def activate(self):
        """Bring the app to the foreground, launching it if needed"""
        self.session.execute("mobile: activateApp", {"bundleId": self.bundle_id})

    def relaunch(self, pause: float = 1.5):
        """
        Terminate and reactivate the app

        Args:
            pause: Delay between terminate and activate
        """
        with self.logger.step("restartApp", self.bundle_id):
            self.terminate()
            wait.pause(pause)
            self.activate()

    def app_state(self) -> AppState:
        """Query the app's current run state"""
        state = self.session.execute("mobile: queryAppState", {"bundleId": self.bundle_id})
        return AppState(int(state))

    def is_foreground(self) -> bool:
        """Check if the app is currently in the foreground"""
        try:
            return self.app_state() is AppState.RUNNING_IN_FOREGROUND
        except InvalidSessionIdException:
            raise
        except (WebDriverException, ValueError):
            return False
