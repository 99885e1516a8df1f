"""
Mobile Harness - Wires the harness components and exposes the test case surface
"""
from typing import Optional, Tuple, Union

from mobile_e2e.agent.assertions import ScreenAssertions
from mobile_e2e.agent.auth_flows import AuthFlows
from mobile_e2e.agent.documents import DocumentFlows
from mobile_e2e.agent.reconciler import SUPPORTED_TARGETS, StateReconciler
from mobile_e2e.agent.state import RecoveryAction, ScreenState
from mobile_e2e.device.actions import DeviceActions
from mobile_e2e.device.app_launcher import AppLauncher
from mobile_e2e.device.locator import ElementHandle, ElementLocator
from mobile_e2e.device.session import AutomationSession
from mobile_e2e.device.strategies import StrategyExecutor
from mobile_e2e.screen.classifier import ScreenClassifier
from mobile_e2e.screen.readiness import ReadinessGate
from mobile_e2e.utils import wait
from mobile_e2e.utils.artifacts import ArtifactStore
from mobile_e2e.utils.config import Config
from mobile_e2e.utils.logging import StepLogger

PinCode = Union[str, int]


class MobileHarness:
    """Entry point used by test suites: screen reconciliation plus user flows"""

    def __init__(
        self,
        config: Optional[Config] = None,
        session: Optional[AutomationSession] = None,
        logger: Optional[StepLogger] = None,
    ):
        """
        Initialize harness

        Args:
            config: Configuration instance
            session: Already-connected session (a new one is connected when omitted)
            logger: Step logger shared by every component
        """
        self.config = config or Config()
        self.logger = logger or StepLogger()

        if session is None:
            session = AutomationSession(
                self.config.get_server_url(),
                self.config.get_capabilities().to_capabilities(),
                logger=self.logger,
                command_timeout=self.config.get_timeouts().command,
            )
            if not session.connect():
                raise RuntimeError(f"Failed to start Appium session at {self.config.get_server_url()}")
        self.session = session

        self._initialize_components()

    @classmethod
    def from_session(cls, session, config: Optional[Config] = None,
                     logger: Optional[StepLogger] = None) -> "MobileHarness":
        """Build a harness around an existing session"""
        return cls(config=config, session=session, logger=logger)

    def _initialize_components(self):
        """Initialize all harness components"""
        self.timeouts = self.config.get_timeouts()
        self.markers = self.config.get_markers()
        self.artifacts = ArtifactStore(self.config.get_artifacts_dir())

        auth_token = self.config.get_auth_token()
        self.logger.add_secret(auth_token)

        # Device layer
        self.locator = ElementLocator(self.session, self.markers, self.logger)
        self.actions = DeviceActions(self.session, self.logger, self.timeouts)
        self.launcher = AppLauncher(self.session, self.config.get_capabilities().bundle_id, self.logger)
        self.executor = StrategyExecutor(self.session, self.artifacts, self.logger)

        # Screen layer
        self.classifier = ScreenClassifier(self.markers, self.logger)
        self.readiness = ReadinessGate(
            self.session,
            self.markers,
            self.logger,
            interval=self.timeouts.poll_interval,
            settle_delay=self.timeouts.settle_delay,
        )

        # Agent layer
        self.reconciler = StateReconciler(
            self.session,
            self.classifier,
            self.readiness,
            self.locator,
            self.logger,
            self.timeouts,
        )
        self.assertions = ScreenAssertions(
            self.session,
            self.locator,
            self.classifier,
            self.markers,
            self.logger,
            self.timeouts,
        )
        self.flows = AuthFlows(
            self.session,
            self.locator,
            self.readiness,
            self.reconciler,
            self.launcher,
            self.actions,
            self.assertions,
            self.markers,
            self.logger,
            self.timeouts,
            auth_token=auth_token,
        )
        self.documents = DocumentFlows(
            self.session,
            self.locator,
            self.executor,
            self.actions,
            self.markers,
            self.logger,
            self.timeouts,
        )

        self.reconciler.register_action(RecoveryAction.RESTART, self.flows.restart)
        self.reconciler.register_action(RecoveryAction.SIGN_OUT, self.flows.sign_out)
        self.reconciler.register_action(RecoveryAction.FORGOT_CODE, self.flows.forgot_code)
        self.reconciler.register_action(RecoveryAction.DIRECT_NAVIGATE, self.flows.leave_settings)

    @property
    def history(self):
        return self.reconciler.history

    def close(self):
        """End the automation session"""
        self.session.disconnect()

    # Screen state

    def detect_screen(self) -> ScreenState:
        return self.reconciler.current_state()

    def ensure_state(self, target: Union[ScreenState, str], timeout: Optional[float] = None, force: bool = False):
        self.reconciler.ensure_state(target, timeout=timeout, force=force)

    def _menu_visible(self) -> bool:
        return self.locator.menu_button().is_visible()

    def setup_test_state(
        self,
        target: Union[ScreenState, str],
        pin_code: Optional[PinCode] = None,
        timeout: Optional[float] = None,
    ):
        """
        Put the app into the precondition a test starts from

        Args:
            target: AUTH, PIN_LOGIN or MAIN
            pin_code: PIN digit the account should use (required for PIN_LOGIN and MAIN)
            timeout: Deadline for each bounded wait (default: timeouts.setup)

        Raises:
            ValueError: Unsupported target, or pin_code missing
        """
        target = ScreenState(target)
        if target not in SUPPORTED_TARGETS:
            raise ValueError(f"setupTestState: Unsupported target state {target.value}")
        if target is not ScreenState.AUTH and pin_code is None:
            raise ValueError(f"setupTestState: pinCode is required for {target.name} state")
        timeout = timeout or self.timeouts.setup

        details = f'target="{target.value}" pinCode="{pin_code if pin_code is not None else "none"}"'
        with self.logger.step("setupTestState", details):
            self.readiness.await_ready(timeout)
            wait.pause(self.timeouts.settle_delay)

            current = self.reconciler.current_state()
            if self.flows.on_settings():
                self.reconciler.perform(RecoveryAction.DIRECT_NAVIGATE, current, target)
                current = self.reconciler.current_state()

            if target is ScreenState.AUTH:
                self._setup_auth(current, timeout)
            elif target is ScreenState.PIN_LOGIN:
                self._setup_pin_login(current, pin_code, timeout)
            else:
                self._setup_main(current, pin_code, timeout)

    def _setup_auth(self, current: ScreenState, timeout: float):
        target = ScreenState.AUTH
        if current is target:
            self.logger.log_step("setupTestState", "Already on AUTH screen")
            return
        if current is ScreenState.MAIN:
            if self._menu_visible():
                self.reconciler.perform(RecoveryAction.SIGN_OUT, current, target)
            else:
                self.reconciler.perform(RecoveryAction.RESTART, current, target)
                self.ensure_state(target, timeout=timeout)
        elif current is ScreenState.PIN_LOGIN:
            self.reconciler.perform(RecoveryAction.FORGOT_CODE, current, target)
            self.ensure_state(target, timeout=timeout)
        else:
            self.ensure_state(target, timeout=timeout)

    def _authorize_fresh(self, pin_code: PinCode):
        self.authorize(pin_code)
        self.assert_greeting()

    def _setup_pin_login(self, current: ScreenState, pin_code: PinCode, timeout: float):
        target = ScreenState.PIN_LOGIN
        if current is target:
            self.logger.log_step("setupTestState", "Already on PIN_LOGIN screen")
            return

        # Authorize with the requested PIN first so the lock screen accepts it
        if current is ScreenState.AUTH:
            self._authorize_fresh(pin_code)
        elif current is ScreenState.MAIN:
            action = RecoveryAction.SIGN_OUT if self._menu_visible() else RecoveryAction.RESTART
            self.reconciler.perform(action, current, target)
            self.ensure_state(ScreenState.AUTH, timeout=timeout)
            self._authorize_fresh(pin_code)
        else:
            self.ensure_state(ScreenState.AUTH, timeout=timeout)
            self._authorize_fresh(pin_code)
            wait.pause(1.0)

        self.reconciler.perform(RecoveryAction.RESTART, self.reconciler.current_state(), target)
        self.ensure_state(target, timeout=timeout)

    def _setup_main(self, current: ScreenState, pin_code: PinCode, timeout: float):
        target = ScreenState.MAIN
        if current is ScreenState.AUTH:
            self._authorize_fresh(pin_code)
        elif current is ScreenState.PIN_LOGIN:
            self.login(pin_code)
            self.assert_greeting()
        elif current is ScreenState.MAIN:
            if self._menu_visible():
                self.logger.log_step("setupTestState", "Already on MAIN screen with user logged in")
                wait.pause(0.3)
                return
            self.logger.log_step("setupTestState", "On MAIN but menu not visible, logging in again")
            self.ensure_state(ScreenState.PIN_LOGIN, timeout=timeout)
            self.login(pin_code)
            self.assert_greeting()
        else:
            self.reconciler.perform(RecoveryAction.RESTART, current, target)
            landed = self.reconciler.current_state()
            if landed is ScreenState.PIN_LOGIN:
                self.login(pin_code)
            elif landed is ScreenState.AUTH:
                self.authorize(pin_code)
                wait.pause(1.0)
            else:
                self.ensure_state(ScreenState.PIN_LOGIN, timeout=timeout)
                self.login(pin_code)
            self.assert_greeting()

    # Flows

    def restart(self):
        self.flows.restart()

    def authorize(self, code_digit: PinCode):
        self.flows.authorize(code_digit)

    def login(self, code_digit: PinCode):
        self.flows.login(code_digit)

    def forgot_code(self):
        self.flows.forgot_code()

    def enter_pin_code(self, code_digit: PinCode):
        self.flows.enter_pin_code(code_digit)

    def sign_out(self):
        self.flows.sign_out()

    def change_pin_code(self, current_digit: PinCode, new_digit: PinCode):
        self.flows.change_pin_code(current_digit, new_digit)

    def confirm_reauthorization(self):
        self.flows.confirm_reauthorization()

    # Assertions

    def assert_greeting(self, timeout: Optional[float] = None):
        self.assertions.assert_greeting(timeout)

    def assert_popup(self, title: str = "", message: str = "", timeout: Optional[float] = None):
        self.assertions.assert_popup(title, message, timeout)

    def assert_text_view(self, container_id: str, expected: str, normalize_newlines: bool = True,
                         timeout: float = 20.0):
        self.assertions.assert_text_view(container_id, expected, normalize_newlines, timeout)

    # Documents

    def open_documents(self):
        self.documents.open_documents()

    def scroll_to_element(self, handle: ElementHandle, direction: str = "down"):
        self.documents.scroll_to_element(handle, direction)

    def find_more_options_button(self, near_text: Optional[str] = None) -> ElementHandle:
        return self.documents.find_more_options_button(near_text)

    def find_and_click_more_options_button(
        self,
        near_text: Optional[str] = None,
        coordinates: Optional[Tuple[int, int]] = None,
    ) -> Optional[ElementHandle]:
        return self.documents.find_and_click_more_options_button(near_text, coordinates)

    def click_by_coordinates(self, x: int, y: int, description: str = ""):
        self.documents.click_by_coordinates(x, y, description)

    def tap_smart(self, x: int, y: int, description: str = "", retries: Optional[int] = None,
                  per_attempt_timeout: Optional[float] = None):
        self.actions.tap_smart(x, y, description, retries, per_attempt_timeout)

    # Diagnostics

    def save_failure_artifacts(self, label: str):
        """
        Save a screenshot and the page source for a failed test

        Args:
            label: Test title

        Returns:
            Tuple of (screenshot path or None, page source path or None)
        """
        screenshot = None
        source_path = None
        try:
            screenshot = self.artifacts.save_screenshot(self.session, label)
        except Exception as e:
            self.logger.warning(f"Failed to save screenshot for {label}: {e}")
        try:
            source_path = self.artifacts.save_page_source(self.session.page_source(), label)
        except Exception as e:
            self.logger.warning(f"Failed to save page source for {label}: {e}")
        if screenshot:
            self.logger.info(f"Screenshot saved: {screenshot}")
        if source_path:
            self.logger.info(f"Page source saved: {source_path}")
        return screenshot, source_path
