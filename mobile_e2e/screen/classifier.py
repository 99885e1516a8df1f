"""
Screen Classifier - Map a UI-tree snapshot to the logical screen it shows
"""
from typing import Callable, List, NamedTuple, Optional, Tuple

from mobile_e2e.agent.state import ScreenState
from mobile_e2e.screen.markers import ScreenMarkers
from mobile_e2e.utils.logging import StepLogger

# Shorter page sources are half-rendered trees, not screens
MIN_SNAPSHOT_LENGTH = 100


class SignatureRule(NamedTuple):
    """One row of the signature table"""
    name: str
    matches: Callable[[str, ScreenMarkers], bool]
    state: ScreenState


def _has_interactive_markers(s: str, m: ScreenMarkers) -> bool:
    return (
        m.auth_checkbox in s
        or m.auth_provider_button in s
        or m.menu_prefix in s
        or m.pin_create_title in s
        or m.pin_confirm_title in s
        or m.has_forgot_code(s)
    )


# Evaluated top-down, first match wins. The row order is the tie-break
# priority: MAIN > AUTH > PIN_CREATE > PIN_CONFIRM > PIN_LOGIN > LOADING.
# The auth rows precede the loading row because the auth screen keeps the
# loading text in a container even once it is interactive.
SIGNATURE_TABLE: List[SignatureRule] = [
    SignatureRule(
        "main_menu",
        lambda s, m: any(marker in s for marker in m.main_menu),
        ScreenState.MAIN,
    ),
    SignatureRule(
        "main_feed",
        lambda s, m: any(marker in s for marker in m.main_feed),
        ScreenState.MAIN,
    ),
    SignatureRule(
        "auth_checkbox",
        lambda s, m: m.auth_checkbox in s,
        ScreenState.AUTH,
    ),
    SignatureRule(
        "auth_title_with_provider",
        lambda s, m: m.auth_title in s and m.auth_provider in s,
        ScreenState.AUTH,
    ),
    SignatureRule(
        "auth_provider_button",
        lambda s, m: m.auth_provider_button in s and m.menu_prefix not in s,
        ScreenState.AUTH,
    ),
    SignatureRule(
        "pin_create_title",
        lambda s, m: m.pin_create_title in s,
        ScreenState.PIN_CREATE,
    ),
    SignatureRule(
        "pin_confirm_title",
        lambda s, m: m.pin_confirm_title in s,
        ScreenState.PIN_CONFIRM,
    ),
    SignatureRule(
        "pin_login_header",
        lambda s, m: (
            m.pin_login_header in s
            and m.pin_create_title not in s
            and m.pin_confirm_title not in s
        ),
        ScreenState.PIN_LOGIN,
    ),
    SignatureRule(
        "forgot_code_button",
        lambda s, m: m.has_forgot_code(s),
        ScreenState.PIN_LOGIN,
    ),
    SignatureRule(
        "loading",
        lambda s, m: m.loading_text in s and not _has_interactive_markers(s, m),
        ScreenState.LOADING,
    ),
]


class ScreenClassifier:
    """Ordered signature matching over raw page sources"""

    def __init__(
        self,
        markers: Optional[ScreenMarkers] = None,
        logger: Optional[StepLogger] = None,
        rules: Optional[List[SignatureRule]] = None,
        min_length: int = MIN_SNAPSHOT_LENGTH,
    ):
        """
        Initialize screen classifier

        Args:
            markers: Marker vocabulary of the app under test
            logger: Step logger
            rules: Signature table (default: SIGNATURE_TABLE)
            min_length: Snapshots shorter than this classify as UNKNOWN
        """
        self.markers = markers or ScreenMarkers()
        self.logger = logger or StepLogger()
        self.rules = list(SIGNATURE_TABLE if rules is None else rules)
        self.min_length = min_length

    def match(self, snapshot: Optional[str]) -> Tuple[ScreenState, str]:
        """
        Classify a snapshot and report which rule decided it

        Args:
            snapshot: Serialized UI tree (may be None)

        Returns:
            Tuple of (state, rule name); the rule name explains UNKNOWN too
        """
        if not snapshot:
            return ScreenState.UNKNOWN, "empty_snapshot"
        if len(snapshot) < self.min_length:
            return ScreenState.UNKNOWN, "short_snapshot"
        try:
            for rule in self.rules:
                if rule.matches(snapshot, self.markers):
                    return rule.state, rule.name
        except Exception as e:
            self.logger.warning(f"Screen signature matching failed: {e}")
            return ScreenState.UNKNOWN, "matching_error"
        return ScreenState.UNKNOWN, "no_match"

    def classify(self, snapshot: Optional[str]) -> ScreenState:
        """
        Pure, total classification of a snapshot. Never raises.

        Args:
            snapshot: Serialized UI tree

        Returns:
            Exactly one ScreenState
        """
        state, _ = self.match(snapshot)
        return state

    def detect(self, session) -> ScreenState:
        """
        Fetch one fresh snapshot and classify it

        Args:
            session: AutomationSession

        Returns:
            Current ScreenState; UNKNOWN when the snapshot cannot be fetched
        """
        try:
            snapshot = session.page_source()
        except Exception as e:
            self.logger.log_step("detectScreen", f"Failed to get page source: {e}")
            return ScreenState.UNKNOWN
        state, rule = self.match(snapshot)
        self.logger.log_step("detectScreen", f"{state.name} ({rule})")
        return state
