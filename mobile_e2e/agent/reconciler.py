"""
State Reconciler - Drive the app from whatever screen it shows to a target screen
"""
from typing import Callable, Dict, Optional, Union

from mobile_e2e.agent.state import (
    ReconcileHistory,
    RecoveryAction,
    ScreenState,
)
from mobile_e2e.device.locator import ElementLocator
from mobile_e2e.screen.classifier import ScreenClassifier
from mobile_e2e.screen.readiness import ReadinessGate
from mobile_e2e.utils import wait
from mobile_e2e.utils.config import Timeouts
from mobile_e2e.utils.errors import PreconditionError
from mobile_e2e.utils.logging import StepLogger

SUPPORTED_TARGETS = (ScreenState.MAIN, ScreenState.PIN_LOGIN, ScreenState.AUTH)


class StateReconciler:
    """
    Bounded set of recovery actions that move the app between screens.

    The actions themselves (restart, sign out, forgot code) live in the flow
    layer and are registered here, so this class only decides which one to
    run. Every action performed is appended to `history`.
    """

    def __init__(
        self,
        session,
        classifier: ScreenClassifier,
        readiness: ReadinessGate,
        locator: ElementLocator,
        logger: Optional[StepLogger] = None,
        timeouts: Optional[Timeouts] = None,
        history: Optional[ReconcileHistory] = None,
    ):
        """
        Initialize state reconciler

        Args:
            session: AutomationSession
            classifier: Screen classifier
            readiness: Readiness gate
            locator: Element locator (for the menu control check)
            logger: Step logger
            timeouts: Timeout configuration
            history: Recovery history (a fresh one when omitted)
        """
        self.session = session
        self.classifier = classifier
        self.readiness = readiness
        self.locator = locator
        self.logger = logger or StepLogger()
        self.timeouts = timeouts or Timeouts()
        self.history = history if history is not None else ReconcileHistory()
        self._actions: Dict[RecoveryAction, Callable[[], None]] = {}

    def register_action(self, action: RecoveryAction, handler: Callable[[], None]):
        """Bind a recovery action to the callable that performs it"""
        self._actions[action] = handler

    def perform(self, action: RecoveryAction, current: ScreenState, target: ScreenState):
        """Run a registered recovery action and record it in the history"""
        handler = self._actions.get(action)
        if handler is None:
            raise RuntimeError(f"No handler registered for recovery action {action.value}")
        self.logger.log_step("ensureState", f"{action.value}: {current.name} -> {target.name}")
        self.history.record(action, current, target)
        handler()

    def current_state(self) -> ScreenState:
        """Classify one fresh snapshot"""
        state = self.classifier.detect(self.session)
        self.history.observe(state)
        return state

    def wait_for_state(self, *states: ScreenState, timeout: Optional[float] = None,
                       expected: Optional[str] = None) -> ScreenState:
        """
        Poll classification until it yields one of the given states

        Args:
            states: Acceptable states
            timeout: Deadline in seconds (default: timeouts.ensure_state)
            expected: Description for the timeout error

        Returns:
            The state that was reached

        Raises:
            WaitTimeoutError: None of the states appeared in time
        """
        timeout = timeout or self.timeouts.ensure_state
        expected = expected or " or ".join(f"{s.name} screen" for s in states)

        def reached() -> Optional[ScreenState]:
            state = self.current_state()
            return state if state in states else None

        return wait.poll_until(reached, timeout, expected, interval=self.timeouts.poll_interval)

    def ensure_state(
        self,
        target: Union[ScreenState, str],
        timeout: Optional[float] = None,
        force: bool = False,
    ):
        """
        Make the app show the target screen

        Args:
            target: MAIN, PIN_LOGIN or AUTH
            timeout: Deadline for every bounded wait (default: timeouts.ensure_state)
            force: Run reconciliation even when the target is already showing

        Raises:
            ValueError: Unsupported target
            PreconditionError: No automatic path from the current screen
            WaitTimeoutError: The target never appeared
        """
        target = ScreenState(target)
        if target not in SUPPORTED_TARGETS:
            raise ValueError(f"ensureState: Unsupported target state {target.value}")
        timeout = timeout or self.timeouts.ensure_state

        with self.logger.step("ensureState", f'target="{target.value}"'):
            self.readiness.await_ready(timeout)
            current = self.current_state()

            if current is target and not force:
                self.logger.log_step("ensureState", f"Already on {target.value} screen")
                return

            self.logger.log_step("ensureState", f"Current: {current.value}, Target: {target.value}")
            if target is ScreenState.MAIN:
                self.ensure_main(timeout)
            elif target is ScreenState.PIN_LOGIN:
                self.ensure_pin_login(timeout)
            else:
                self.ensure_auth(timeout)

    def ensure_main(self, timeout: float):
        """Reach MAIN; refuses to guess credentials from PIN_LOGIN or AUTH"""
        target = ScreenState.MAIN
        current = self.current_state()
        if current is target:
            return
        if current is ScreenState.PIN_LOGIN:
            raise PreconditionError(
                "ensureOnMainScreen: On PIN login screen but PIN not provided. Use login() first.",
                current=current, target=target,
            )
        if current is ScreenState.AUTH:
            raise PreconditionError(
                "ensureOnMainScreen: On auth screen. Use authorize() first.",
                current=current, target=target,
            )
        self.perform(RecoveryAction.RESTART, current, target)
        self.wait_for_state(target, timeout=timeout, expected="Main screen")

    def ensure_pin_login(self, timeout: float):
        """Reach PIN_LOGIN; a restart from MAIN locks the app again"""
        target = ScreenState.PIN_LOGIN
        current = self.current_state()
        if current is target:
            return
        if current is ScreenState.AUTH:
            raise PreconditionError(
                "ensureOnPinLoginScreen: On auth screen. User needs to authorize first.",
                current=current, target=target,
            )
        if current is ScreenState.MAIN:
            self.perform(RecoveryAction.RESTART, current, target)
        self.wait_for_state(target, timeout=timeout, expected="PIN login screen")

    def ensure_auth(self, timeout: float):
        """Reach AUTH through sign-out, forgot-code or restart"""
        target = ScreenState.AUTH
        self.readiness.await_ready(timeout)
        current = self.current_state()
        if current is target:
            return

        if current is ScreenState.MAIN:
            if self.locator.menu_button().is_visible():
                self.perform(RecoveryAction.SIGN_OUT, current, target)
                self.readiness.await_ready(timeout)
                self.wait_for_state(target, timeout=timeout, expected="Authorization screen after sign out")
                return
            self.logger.log_step("ensureAuthorized", "Menu not visible, restarting instead of sign out")
            self.perform(RecoveryAction.RESTART, current, target)
            self.readiness.await_ready(timeout)
        elif current is ScreenState.PIN_LOGIN:
            self.perform(RecoveryAction.FORGOT_CODE, current, target)
            self.readiness.await_ready(timeout)
            self.wait_for_state(target, timeout=timeout, expected="Authorization screen after forgotCode")
            return
        elif current in (ScreenState.PIN_CREATE, ScreenState.PIN_CONFIRM):
            self.perform(RecoveryAction.RESTART, current, target)
            self.readiness.await_ready(timeout)

        self.wait_for_state(target, timeout=timeout, expected="Authorization screen")
