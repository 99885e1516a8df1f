"""
Automation Session - Appium connection and raw remote calls
"""
from pathlib import Path
from typing import Any, Dict, List, Optional

from appium import webdriver
from appium.options.ios import XCUITestOptions
from appium.webdriver.appium_connection import AppiumConnection
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.common.actions import interaction
from selenium.webdriver.common.actions.action_builder import ActionBuilder
from selenium.webdriver.common.actions.pointer_input import PointerInput
from selenium.webdriver.remote.client_config import ClientConfig
from selenium.webdriver.remote.webelement import WebElement

from mobile_e2e.utils.logging import StepLogger


class AutomationSession:
    """Wrapper for one Appium/XCUITest session against the app under test"""

    def __init__(
        self,
        server_url: str,
        capabilities: Dict[str, Any],
        logger: Optional[StepLogger] = None,
        command_timeout: float = 60.0,
    ):
        """
        Initialize automation session

        Args:
            server_url: Appium server URL (e.g. http://127.0.0.1:4723)
            capabilities: W3C capabilities with appium: prefixes
            logger: Step logger
            command_timeout: Seconds before a single HTTP command is abandoned
        """
        self.server_url = server_url
        self.capabilities = capabilities
        self.command_timeout = command_timeout
        self.logger = logger or StepLogger()
        self._driver: Optional[webdriver.Remote] = None

    def connect(self) -> bool:
        """
        Start the remote session

        Returns:
            True if the session started, False otherwise
        """
        app_path = self.capabilities.get("appium:app")
        if app_path and not Path(app_path).exists():
            self.logger.error(
                f"iOS app not found at {app_path}. Set IOS_APP_PATH or build the app "
                f"into ./ios-app/ first"
            )
            return False

        try:
            options = XCUITestOptions()
            options.load_capabilities(self.capabilities)
            client_config = ClientConfig(remote_server_addr=self.server_url, timeout=self.command_timeout)
            executor = AppiumConnection(client_config=client_config)
            self._driver = webdriver.Remote(command_executor=executor, options=options)
            self.logger.log_success("connect", f"session={self._driver.session_id}")
            return True
        except WebDriverException as e:
            self.logger.log_error("connect", self.server_url, e)
            self._driver = None
            return False

    @property
    def driver(self) -> webdriver.Remote:
        if self._driver is None:
            raise RuntimeError("Automation session is not connected")
        return self._driver

    def is_connected(self) -> bool:
        """Check if a remote session is open"""
        return self._driver is not None

    def disconnect(self):
        """Close the remote session"""
        if self.is_connected():
            try:
                self._driver.quit()
            except WebDriverException as e:
                self.logger.warning(f"Error closing session: {e}")
            self._driver = None

    def page_source(self) -> str:
        """Fetch the full serialized UI tree"""
        return self.driver.page_source

    def find_element(self, by: str, value: str) -> WebElement:
        return self.driver.find_element(by, value)

    def find_elements(self, by: str, value: str) -> List[WebElement]:
        return self.driver.find_elements(by, value)

    def execute(self, command: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Run a mobile: extension command

        Args:
            command: Command name (e.g. "mobile: tap")
            params: Command arguments
        """
        return self.driver.execute_script(command, params or {})

    def pointer_tap(self, x: int, y: int, hold: float = 0.15):
        """
        Tap through a W3C touch pointer sequence: move, down, pause, up

        Args:
            x: X coordinate
            y: Y coordinate
            hold: Seconds between pointer down and up
        """
        actions = ActionBuilder(self.driver)
        finger = PointerInput(interaction.POINTER_TOUCH, "finger1")
        actions.add_pointer_input(finger)
        finger.create_pointer_move(duration=0, x=x, y=y)
        finger.create_pointer_down(button=0)
        finger.create_pause(hold)
        finger.create_pointer_up(button=0)
        actions.perform()

    def release_actions(self):
        """Release any pointer state left by a gesture"""
        ActionBuilder(self.driver).clear_actions()

    def save_screenshot(self, path: str) -> bool:
        return self.driver.get_screenshot_as_file(path)
