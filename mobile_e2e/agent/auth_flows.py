"""
Auth Flows - Authorization, PIN entry, sign-out and restart sequences
"""
from typing import Optional, Union

from mobile_e2e.agent.assertions import ScreenAssertions
from mobile_e2e.agent.reconciler import StateReconciler
from mobile_e2e.agent.state import POST_AUTH_STATES, SETTLED_STATES, ScreenState
from mobile_e2e.device.actions import DeviceActions
from mobile_e2e.device.app_launcher import AppLauncher
from mobile_e2e.device.locator import ElementHandle, ElementLocator
from mobile_e2e.device.strategies import try_in_order
from mobile_e2e.screen.markers import ScreenMarkers
from mobile_e2e.screen.readiness import ReadinessGate
from mobile_e2e.utils import wait
from mobile_e2e.utils.config import Timeouts
from mobile_e2e.utils.errors import NotFoundError, PreconditionError, WaitTimeoutError
from mobile_e2e.utils.logging import StepLogger

# The PIN pad always takes four taps of the same digit
PIN_LENGTH = 4

# Pauses while retyping a truncated token
CHAR_TYPE_PAUSE = 0.03
FIELD_SETTLE_PAUSE = 0.3

CHECKED_VALUES = ("1", "true")


def check_digit(code_digit: Union[str, int]) -> str:
    """
    Validate a PIN digit

    Args:
        code_digit: Single digit, as str or int

    Returns:
        The digit as a one-character string

    Raises:
        ValueError: Not exactly one decimal digit
    """
    digit = str(code_digit)
    if len(digit) != 1 or not digit.isdigit():
        raise ValueError(f"PIN code must be a single digit, got {code_digit!r}")
    return digit


class AuthFlows:
    """Linear user journeys through the authorization and PIN screens"""

    def __init__(
        self,
        session,
        locator: ElementLocator,
        readiness: ReadinessGate,
        reconciler: StateReconciler,
        launcher: AppLauncher,
        actions: DeviceActions,
        assertions: ScreenAssertions,
        markers: Optional[ScreenMarkers] = None,
        logger: Optional[StepLogger] = None,
        timeouts: Optional[Timeouts] = None,
        auth_token: Optional[str] = None,
    ):
        """
        Initialize auth flows

        Args:
            session: AutomationSession
            locator: Element locator
            readiness: Readiness gate
            reconciler: State reconciler
            launcher: App launcher
            actions: Device actions
            assertions: Screen assertions (popup checks)
            markers: Screen markers
            logger: Step logger
            timeouts: Timeout configuration
            auth_token: Provider test token typed into the web view
        """
        self.session = session
        self.locator = locator
        self.readiness = readiness
        self.reconciler = reconciler
        self.launcher = launcher
        self.actions = actions
        self.assertions = assertions
        self.markers = markers or ScreenMarkers()
        self.logger = logger or StepLogger()
        self.timeouts = timeouts or Timeouts()
        self.auth_token = auth_token

    # App lifecycle

    def restart(self):
        """Terminate and relaunch the app, then wait until a real screen is up"""
        with self.logger.step("restart"):
            self.launcher.relaunch(self.timeouts.restart_pause)
            wait.poll_until(
                self.launcher.is_foreground,
                self.timeouts.element,
                f"{self.launcher.bundle_id} in foreground",
                interval=self.timeouts.poll_interval,
            )
            self.readiness.await_ready(self.timeouts.ready)
            state = self.reconciler.wait_for_state(
                *SETTLED_STATES,
                timeout=self.timeouts.ready,
                expected="App loaded after restart (screen state unknown)",
            )
            self.logger.log_step("restart", f"App loaded - detected screen: {state.value}")

    def on_settings(self) -> bool:
        """Check if the Settings screen (back control plus title) is showing"""
        back = self.locator.by_id(self.markers.settings_back)
        title = self.locator.by_id(self.markers.settings_title)
        return back.is_visible() and title.is_visible()

    def leave_settings(self):
        """Go back from the Settings screen to the main screen"""
        self.logger.log_step("setupTestState", "Detected Settings screen, going back to MAIN")
        self.locator.by_id(self.markers.settings_back).click()
        wait.pause(1.0)

    # PIN

    def enter_pin_code(self, code_digit: Union[str, int]):
        """
        Tap the given digit on the PIN pad four times

        Args:
            code_digit: The digit repeated across all four positions
        """
        digit = check_digit(code_digit)
        with self.logger.step("enterPinCode", f"codeDigit={digit}"):
            button = self.locator.by_text(digit)
            button.wait_displayed(self.timeouts.flow)
            for _ in range(PIN_LENGTH):
                button.click()
                wait.pause(self.timeouts.pin_tap_pause)

    def login(self, code_digit: Union[str, int]):
        """
        Log in from the PIN login screen

        Raises:
            PreconditionError: The app is on the authorization screen
        """
        digit = check_digit(code_digit)
        with self.logger.step("login", f"codeDigit={digit}"):
            self.readiness.await_ready(self.timeouts.flow)
            self.reconciler.ensure_pin_login(self.timeouts.flow)
            current = self.reconciler.current_state()
            if current is not ScreenState.PIN_LOGIN:
                raise PreconditionError(
                    f"login: Expected PIN_LOGIN screen, but detected {current.value}",
                    current=current, target=ScreenState.PIN_LOGIN,
                )
            self.enter_pin_code(digit)

    def forgot_code(self):
        """Reset the PIN from the login screen, leaving the app on authorization"""
        with self.logger.step("forgotCode"):
            self.readiness.await_ready(self.timeouts.flow)
            self.reconciler.ensure_pin_login(self.timeouts.flow)

            self.logger.log_step("forgotCode", 'Looking for "Forgot code" button')
            forgot = self.locator.button_containing(*self.markers.forgot_code)
            forgot.wait_displayed(self.timeouts.element)
            forgot.click()

            self.logger.log_step("forgotCode", 'Looking for "Authorize" button')
            confirm = self.locator.button_named(self.markers.forgot_code_confirm, enabled=True)
            confirm.wait_displayed(self.timeouts.element)
            confirm.click()
            self.logger.log_step("forgotCode", "PIN reset, back to AUTH screen")

    def change_pin_code(self, current_digit: Union[str, int], new_digit: Union[str, int]):
        """
        Change the login PIN through Settings

        Args:
            current_digit: Digit of the PIN in use
            new_digit: Digit of the new PIN
        """
        current = check_digit(current_digit)
        new = check_digit(new_digit)
        m = self.markers
        element_timeout = self.timeouts.element

        with self.logger.step("changePinCode", f"from={current} to={new}"):
            self.locator.menu_button().wait_displayed(self.timeouts.flow).click()
            self.locator.by_id(m.settings_menu_item).wait_displayed(element_timeout).click()
            self.locator.by_id(m.change_pin_item).wait_displayed(element_timeout).click()

            self.locator.by_id(m.pin_repeat_header).wait_displayed(element_timeout)
            self.enter_pin_code(current)
            self.locator.by_id(m.pin_new_header).wait_displayed(element_timeout)
            self.enter_pin_code(new)
            self.locator.by_id(m.pin_repeat_header).wait_displayed(element_timeout)
            self.enter_pin_code(new)

            self.assertions.assert_popup(m.pin_changed_title, m.pin_changed_message)
            ack = self.locator.by_class_chain(
                "Button", f'name == "{m.pin_changed_ack}" OR label == "{m.pin_changed_ack}"'
            )
            ack.wait_displayed(element_timeout).click()
            self.locator.by_id(m.settings_title).wait_displayed(element_timeout)

    def confirm_reauthorization(self):
        """Accept the lockout popup shown after three wrong PINs"""
        m = self.markers
        with self.logger.step("confirmReauthorization"):
            self.assertions.assert_popup(m.lockout_title, m.lockout_message)
            button = self.locator.by_class_chain(
                "Button", f'name == "{m.forgot_code_confirm}" OR label == "{m.forgot_code_confirm}"'
            )
            button.wait_displayed(self.timeouts.element).click()
            self.reconciler.wait_for_state(
                ScreenState.AUTH,
                timeout=self.timeouts.element,
                expected="Authorization screen after reauthorization",
            )

    # Sign out

    def _menu_opened(self) -> bool:
        snapshot = self.session.page_source()
        return any(item in snapshot for item in self.markers.menu_items)

    def sign_out(self):
        """Sign out through the menu and confirm the dialog"""
        m = self.markers
        with self.logger.step("signOut"):
            if self.reconciler.current_state() is not ScreenState.MAIN:
                self.reconciler.ensure_main(self.timeouts.flow)

            menu = self.locator.menu_button()
            try:
                menu.wait_displayed(self.timeouts.flow)
            except WaitTimeoutError:
                raise WaitTimeoutError(
                    "Menu button", self.timeouts.flow, message="Menu button not found - cannot sign out"
                ) from None
            menu.click()

            wait.pause(1.0)
            wait.poll_until(
                self._menu_opened,
                self.timeouts.element,
                "Menu (no menu elements found)",
                interval=self.timeouts.poll_interval,
            )

            self.actions.scroll(
                "down", predicate=f'name == "{m.sign_out_button}" OR label == "{m.sign_out_button}"'
            )
            sign_out = self.locator.by_class_chain(
                "Button", f'name == "{m.sign_out_button}" AND enabled == true AND visible == true'
            )
            sign_out.wait_displayed(self.timeouts.element).click()

            confirm = self.locator.by_class_chain(
                "Button", f'name == "{m.sign_out_button}" AND enabled == true'
            )
            confirm.wait_displayed(5.0).click()

            self.readiness.await_ready(self.timeouts.flow)
            self.reconciler.wait_for_state(
                ScreenState.AUTH,
                timeout=self.timeouts.element,
                expected="Authorization screen after sign out",
            )

    # Authorization

    def _auth_screen_loaded(self) -> bool:
        snapshot = self.session.page_source()
        m = self.markers
        return any(marker in snapshot for marker in (m.auth_checkbox, m.auth_title, m.auth_provider))

    def _accept_consent(self):
        checkbox = self.locator.by_id(self.markers.auth_checkbox)
        try:
            checkbox.wait_displayed(5.0)
        except WaitTimeoutError:
            self.logger.log_step("authorize", "Checkbox not found - proceeding with provider button only")
            return
        if (checkbox.value() or "").lower() in CHECKED_VALUES:
            return
        checkbox.click()

    def _token_field(self) -> ElementHandle:
        _, field = try_in_order(
            [
                ("accessibility id", lambda: self.locator.by_id(self.markers.token_field_id).wait_displayed(0.2)),
                ("text field predicate", lambda: self.locator.by_predicate(
                    'type == "XCUIElementTypeTextField" AND enabled == true AND visible == true'
                ).wait_displayed(1.0)),
            ],
            "authorize token field",
            self.logger,
        )
        return field

    def _enter_token(self, field: ElementHandle, token: str):
        """Type the token, retyping it character by character if the field truncated it"""
        field.click()
        wait.pause(self.timeouts.pin_tap_pause)
        field.set_value(token)
        wait.poll_until(field.value, 3.0, "Token entered into field", interval=0.1)

        entered = field.value() or ""
        if entered == token:
            self.logger.log_step("authorize", "Token entered correctly")
            return

        self.logger.warning(
            f"Token truncated: expected {len(token)} characters, got {len(entered)}. "
            f"Retyping character by character"
        )
        field.clear()
        wait.pause(0.1)
        for char in token:
            field.add_value(char)
            wait.pause(CHAR_TYPE_PAUSE)
        wait.pause(FIELD_SETTLE_PAUSE)
        retyped = field.value() or ""
        self.logger.log_step("authorize", f"Value length after retyping: {len(retyped)}")

    def _continue_after_sign_in(self):
        """Tap "Next" after sign-in, unless the app already jumped to PIN creation"""
        m = self.markers
        pin_create = self.locator.by_id(m.pin_create_title)
        next_chain = self.locator.by_class_chain("Button", f'name == "{m.next_button}"')
        next_predicate = self.locator.button_named(m.next_button)

        self.logger.log_step("authorize", f'Waiting for "{m.next_button}" button or PIN create screen after SignIn')
        try:
            wait.poll_until(
                lambda: pin_create.is_visible() or next_chain.is_visible() or next_predicate.is_visible(),
                30.0,
                f'Button "{m.next_button}" or PIN create screen',
                interval=self.timeouts.poll_interval,
            )
        except WaitTimeoutError:
            if not pin_create.is_visible():
                raise

        if pin_create.is_visible():
            self.logger.log_step("authorize", f'Already on PIN create screen, skipping "{m.next_button}" button')
            return

        try:
            _, button = try_in_order(
                [
                    ("class chain", lambda: next_chain.wait_displayed(5.0)),
                    ("predicate", lambda: next_predicate.wait_displayed(5.0)),
                ],
                f'authorize "{m.next_button}" button',
                self.logger,
            )
        except NotFoundError:
            # The button goes away once the app moves on to PIN creation
            if pin_create.is_visible():
                self.logger.log_step("authorize", f'"{m.next_button}" gone, PIN create screen is showing')
                return
            raise
        button.click()
        wait.pause(0.5)

    def _complete_pin_setup(self, landed: ScreenState, digit: str):
        if landed is ScreenState.PIN_CREATE:
            self.enter_pin_code(digit)
            after_create = self.reconciler.wait_for_state(
                ScreenState.PIN_CONFIRM, ScreenState.PIN_LOGIN, ScreenState.MAIN,
                timeout=self.timeouts.ensure_state,
                expected="PIN confirm/login or MAIN screen after PIN create",
            )
            if after_create in (ScreenState.PIN_CONFIRM, ScreenState.PIN_LOGIN):
                self.enter_pin_code(digit)
        elif landed in (ScreenState.PIN_CONFIRM, ScreenState.PIN_LOGIN):
            self.enter_pin_code(digit)

    def authorize(self, code_digit: Union[str, int]):
        """
        Authorize through the bank provider web view and set up the PIN

        Skips everything when the main menu is already visible. After
        sign-in the app lands on PIN creation, PIN confirmation, PIN login
        or the main screen depending on the account; the PIN is entered as
        often as the landing screen requires.

        Args:
            code_digit: Digit used for the PIN

        Raises:
            ValueError: Malformed digit or no auth token configured
            WaitTimeoutError: A screen or control did not appear
        """
        digit = check_digit(code_digit)
        m = self.markers
        with self.logger.step("authorize", f"codeDigit={digit}"):
            self.readiness.await_ready(self.timeouts.ready)

            if self.locator.menu_button().is_visible():
                self.logger.log_step("authorize", "User already authorized, skipping authorization flow")
                return

            if not self.auth_token:
                raise ValueError("No auth token configured (auth.token in config.yaml or E2E_AUTH_TOKEN)")

            wait.poll_until(
                self._auth_screen_loaded,
                self.timeouts.ensure_state,
                "Authorization screen (neither checkbox nor provider button found)",
                interval=self.timeouts.poll_interval,
            )
            self._accept_consent()

            provider = self.locator.button_containing(m.auth_provider)
            provider.wait_displayed(self.timeouts.element).click()

            self.logger.log_step("authorize", f'Waiting for WebView to load - looking for "{m.webview_bank_button}"')
            bank = self.locator.by_text(m.webview_bank_button)
            bank.wait_displayed(self.timeouts.flow).click()
            wait.pause(0.5)

            self._enter_token(self._token_field(), self.auth_token)

            self.locator.by_id(m.sign_in_id).wait_displayed(self.timeouts.element).click()

            self._continue_after_sign_in()

            self.logger.log_step("authorize", "Waiting for PIN create/confirm/login or MAIN screen")
            landed = self.reconciler.wait_for_state(
                *POST_AUTH_STATES,
                timeout=self.timeouts.ensure_state,
                expected="PIN create/confirm/login or MAIN screen after sign in",
            )
            self._complete_pin_setup(landed, digit)
