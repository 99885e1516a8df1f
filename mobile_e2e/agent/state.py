"""
State Model - Logical screens, recovery actions and reconciliation history
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class ScreenState(Enum):
    """Logical screen the app is showing; derived from a snapshot, never stored"""
    AUTH = "auth"
    PIN_LOGIN = "pin_login"
    PIN_CREATE = "pin_create"
    PIN_CONFIRM = "pin_confirm"
    MAIN = "main"
    LOADING = "loading"
    UNKNOWN = "unknown"


# States reachable after sign-in, depending on whether a PIN is already set
POST_AUTH_STATES = (
    ScreenState.PIN_CREATE,
    ScreenState.PIN_CONFIRM,
    ScreenState.PIN_LOGIN,
    ScreenState.MAIN,
)

# States where the app has finished booting
SETTLED_STATES = tuple(
    s for s in ScreenState if s not in (ScreenState.UNKNOWN, ScreenState.LOADING)
)


class RecoveryAction(Enum):
    """Remediations the reconciler may perform"""
    RESTART = "restart"
    SIGN_OUT = "sign_out"
    FORGOT_CODE = "forgot_code"
    DIRECT_NAVIGATE = "direct_navigate"


@dataclass
class ReconcileStep:
    """One recovery action taken while reconciling"""
    action: RecoveryAction
    from_state: ScreenState
    target: ScreenState


@dataclass
class ReconcileHistory:
    """Recovery actions performed during a test run, oldest first"""

    steps: List[ReconcileStep] = field(default_factory=list)
    last_observed: Optional[ScreenState] = None

    def record(self, action: RecoveryAction, from_state: ScreenState, target: ScreenState):
        self.steps.append(ReconcileStep(action, from_state, target))

    def observe(self, state: ScreenState):
        self.last_observed = state

    def actions(self) -> List[RecoveryAction]:
        return [step.action for step in self.steps]

    def count(self, action: RecoveryAction) -> int:
        return sum(1 for step in self.steps if step.action is action)
