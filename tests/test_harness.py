"""
Test harness wiring and test-state setup
"""
import pytest

from mobile_e2e.agent.state import RecoveryAction, ScreenState
from mobile_e2e.device.locator import ElementHandle
from mobile_e2e.utils.errors import NotFoundError
from tests.conftest import AUTH_SOURCE, MAIN_SOURCE, PIN_LOGIN_SOURCE, UNKNOWN_SOURCE, FakeElement, snapshot


def test_token_is_registered_as_secret(mobile):
    """Test the configured token is redacted from logs"""
    assert mobile.logger._redact("B7B5908CFBA2DBDA1BE9") == "[REDACTED]"


def test_setup_test_state_validation(mobile):
    """Test unsupported targets and missing PINs are rejected"""
    with pytest.raises(ValueError):
        mobile.setup_test_state("loading")
    with pytest.raises(ValueError, match="pinCode is required"):
        mobile.setup_test_state(ScreenState.MAIN)


def test_setup_auth_when_already_there(session, mobile):
    """Test no recovery happens when the app already shows AUTH"""
    session.source = AUTH_SOURCE

    mobile.setup_test_state(ScreenState.AUTH)

    assert mobile.history.actions() == []


def test_setup_auth_from_pin_login(session, mobile):
    """Test AUTH is reached from the lock screen through forgot code"""
    session.source = PIN_LOGIN_SOURCE
    mobile.reconciler.register_action(
        RecoveryAction.FORGOT_CODE, lambda: setattr(session, "source", AUTH_SOURCE)
    )

    mobile.setup_test_state("auth")

    assert mobile.history.actions() == [RecoveryAction.FORGOT_CODE]


def test_setup_main_when_logged_in(session, mobile):
    """Test a logged-in main screen needs no work"""
    session.source = MAIN_SOURCE
    session.add(mobile.locator.menu_button(), FakeElement("menuSettingsInactive"))

    mobile.setup_test_state(ScreenState.MAIN, pin_code="1")

    assert mobile.history.actions() == []


def test_setup_main_from_pin_login(session, mobile):
    """Test MAIN is reached from the lock screen by logging in"""
    session.source = PIN_LOGIN_SOURCE
    markers = mobile.markers

    def pin_tapped():
        if key.clicks == 4:
            session.source = MAIN_SOURCE

    key = session.add(mobile.locator.by_text("2"), FakeElement("2", on_click=pin_tapped))
    session.add(mobile.locator.by_id(markers.greeting_text), FakeElement(markers.greeting_text))

    mobile.setup_test_state(ScreenState.MAIN, pin_code=2)

    assert key.clicks == 4
    assert mobile.history.actions() == []


def moves_to(session, *sources):
    """Recovery action stand-in: each call puts the app on the next screen"""
    remaining = list(sources)

    def act():
        session.source = remaining.pop(0)

    return act


@pytest.fixture
def authorized(session, mobile, monkeypatch):
    """Replace the authorization journey with a jump to MAIN; returns the digits used"""
    digits = []

    def authorize(code_digit):
        digits.append(code_digit)
        session.source = MAIN_SOURCE

    monkeypatch.setattr(mobile.flows, "authorize", authorize)
    greeting = mobile.markers.greeting_text
    session.add(mobile.locator.by_id(greeting), FakeElement(greeting))
    return digits


@pytest.mark.parametrize("menu_visible, recovery", [
    (True, RecoveryAction.SIGN_OUT),
    (False, RecoveryAction.RESTART),
])
def test_setup_auth_from_main(session, mobile, menu_visible, recovery):
    """Test MAIN signs out when the menu shows and restarts otherwise"""
    session.source = MAIN_SOURCE
    if menu_visible:
        session.add(mobile.locator.menu_button(), FakeElement("menuSettingsInactive"))
    mobile.reconciler.register_action(recovery, moves_to(session, AUTH_SOURCE))

    mobile.setup_test_state(ScreenState.AUTH)

    assert mobile.history.actions() == [recovery]
    assert mobile.detect_screen() is ScreenState.AUTH


def test_setup_pin_login_from_auth(session, mobile, authorized):
    """Test the lock screen is reached by authorizing, then restarting"""
    session.source = AUTH_SOURCE
    mobile.reconciler.register_action(RecoveryAction.RESTART, moves_to(session, PIN_LOGIN_SOURCE))

    mobile.setup_test_state(ScreenState.PIN_LOGIN, pin_code="5")

    assert authorized == ["5"]
    assert mobile.history.actions() == [RecoveryAction.RESTART]
    assert mobile.detect_screen() is ScreenState.PIN_LOGIN


@pytest.mark.parametrize("menu_visible, actions", [
    (True, [RecoveryAction.SIGN_OUT, RecoveryAction.RESTART]),
    (False, [RecoveryAction.RESTART, RecoveryAction.RESTART]),
])
def test_setup_pin_login_from_main(session, mobile, authorized, menu_visible, actions):
    """Test an existing session is dropped and the account authorized with the requested PIN"""
    session.source = MAIN_SOURCE
    if menu_visible:
        session.add(mobile.locator.menu_button(), FakeElement("menuSettingsInactive"))
        mobile.reconciler.register_action(RecoveryAction.SIGN_OUT, moves_to(session, AUTH_SOURCE))
        mobile.reconciler.register_action(RecoveryAction.RESTART, moves_to(session, PIN_LOGIN_SOURCE))
    else:
        mobile.reconciler.register_action(
            RecoveryAction.RESTART, moves_to(session, AUTH_SOURCE, PIN_LOGIN_SOURCE)
        )

    mobile.setup_test_state(ScreenState.PIN_LOGIN, pin_code=7)

    assert authorized == [7]
    assert mobile.history.actions() == actions
    assert mobile.detect_screen() is ScreenState.PIN_LOGIN


def test_setup_pin_login_from_unknown(session, mobile, authorized):
    """Test an unrecognized screen is waited out until AUTH shows"""
    session.sources = [UNKNOWN_SOURCE] * 4 + [AUTH_SOURCE]
    mobile.reconciler.register_action(RecoveryAction.RESTART, moves_to(session, PIN_LOGIN_SOURCE))

    mobile.setup_test_state(ScreenState.PIN_LOGIN, pin_code="1")

    assert authorized == ["1"]
    assert mobile.history.actions() == [RecoveryAction.RESTART]
    assert mobile.history.steps[0].from_state is ScreenState.MAIN
    assert mobile.detect_screen() is ScreenState.PIN_LOGIN


def test_setup_main_from_unknown_lands_on_pin_login(session, mobile, authorized):
    """Test a restart that lands on the lock screen is followed by login"""
    session.source = UNKNOWN_SOURCE

    def pin_tapped():
        if key.clicks == 4:
            session.source = MAIN_SOURCE

    key = session.add(mobile.locator.by_text("3"), FakeElement("3", on_click=pin_tapped))
    mobile.reconciler.register_action(RecoveryAction.RESTART, moves_to(session, PIN_LOGIN_SOURCE))

    mobile.setup_test_state(ScreenState.MAIN, pin_code="3")

    assert key.clicks == 4
    assert authorized == []
    assert mobile.history.actions() == [RecoveryAction.RESTART]
    assert mobile.detect_screen() is ScreenState.MAIN


def test_setup_main_from_unknown_lands_on_auth(session, mobile, authorized):
    """Test a restart that lands on authorization is followed by authorize"""
    session.source = UNKNOWN_SOURCE
    mobile.reconciler.register_action(RecoveryAction.RESTART, moves_to(session, AUTH_SOURCE))

    mobile.setup_test_state(ScreenState.MAIN, pin_code="3")

    assert authorized == ["3"]
    assert mobile.history.actions() == [RecoveryAction.RESTART]
    assert mobile.detect_screen() is ScreenState.MAIN


def test_setup_leaves_settings_first(session, mobile):
    """Test the settings screen is left before reconciling"""
    markers = mobile.markers
    settings = snapshot('<XCUIElementTypeImage name="menuSettingsActive"/>')
    session.source = settings
    session.add(mobile.locator.menu_button(), FakeElement("menuSettingsActive"))
    back = session.add(mobile.locator.by_id(markers.settings_back), FakeElement(markers.settings_back))
    session.add(mobile.locator.by_id(markers.settings_title), FakeElement(markers.settings_title))

    mobile.setup_test_state(ScreenState.MAIN, pin_code="1")

    assert back.clicks == 1
    assert mobile.history.actions() == [RecoveryAction.DIRECT_NAVIGATE]


def test_click_more_options_by_coordinates(session, mobile):
    """Test coordinates skip element lookup"""
    assert mobile.find_and_click_more_options_button(coordinates=(300, 150)) is None
    assert session.pointer_taps == [(300, 150)]


def test_click_more_options_located(session, mobile):
    """Test the located button is clicked"""
    button = FakeElement("more", rect=(320, 110, 32, 32))
    session.add_matching("ancestor::XCUIElementTypeOther[1]", FakeElement("card")).add_child(
        "XCUIElementTypeButton", button
    )

    handle = mobile.find_and_click_more_options_button()

    assert handle.resolve() is button
    assert button.clicks == 1


def test_more_options_not_found_saves_artifact(session, mobile, config):
    """Test total locate failure reports the saved page source"""
    with pytest.raises(NotFoundError) as exc_info:
        mobile.find_more_options_button(near_text="Водій")

    assert exc_info.value.attempts == 5
    assert exc_info.value.artifact_path.startswith(config.get_artifacts_dir())


def test_save_failure_artifacts(session, mobile, config):
    """Test a failed test leaves a screenshot and page source behind"""
    session.source = MAIN_SOURCE

    screenshot, source_path = mobile.save_failure_artifacts("test login with wrong pin")

    assert screenshot.exists()
    assert source_path.read_text(encoding="utf-8") == MAIN_SOURCE
    assert screenshot.name.startswith("test_login_with_wrong_pin-")


def test_close_disconnects(session, mobile):
    """Test closing the harness ends the session"""
    mobile.close()
    assert session.disconnected


def test_open_documents_and_scroll(session, mobile):
    """Test switching to the documents tab and scrolling to a card"""
    tab = session.add(mobile.locator.by_id(mobile.markers.documents_tab), FakeElement("Документи"))
    card = FakeElement("card")

    mobile.open_documents()
    mobile.scroll_to_element(ElementHandle.pinned(session, card), direction="up")

    assert tab.clicks == 1
    assert session.commands == [("mobile: scroll", {"direction": "up", "elementId": card.id})]
