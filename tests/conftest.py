"""
Shared fixtures: an in-memory automation session and a fake clock
"""
from typing import Callable, Dict, List, Optional, Tuple

import pytest
from selenium.common.exceptions import NoSuchElementException

from mobile_e2e.agent.harness import MobileHarness
from mobile_e2e.device.locator import ElementHandle, Query
from mobile_e2e.screen.markers import ScreenMarkers
from mobile_e2e.utils import config as config_module
from mobile_e2e.utils import wait
from mobile_e2e.utils.config import Config
from mobile_e2e.utils.logging import StepLogger

PADDING = "<XCUIElementTypeOther type=\"XCUIElementTypeOther\"/>" * 4


def snapshot(*fragments: str) -> str:
    """Page source long enough to classify, holding the given fragments"""
    body = "".join(fragments)
    return f"<AppiumAUT><XCUIElementTypeApplication name=\"app\">{body}{PADDING}</XCUIElementTypeApplication></AppiumAUT>"


CONFIG_YAML = """
ios:
  bundle_id: "ua.gov.diia.opensource.app"
  app_path: null
auth:
  token: "B7B5908CFBA2DBDA1BE9"
artifacts:
  dir: "{artifacts}"
"""

ENV_OVERRIDES = (
    "APPIUM_SERVER_URL",
    "IOS_APP_PATH",
    "IOS_BUNDLE_ID",
    "IOS_DEVICE_NAME",
    "IOS_PLATFORM_VERSION",
    "E2E_AUTH_TOKEN",
    "E2E_ARTIFACTS_DIR",
)

MARKERS = ScreenMarkers()

MAIN_SOURCE = snapshot('<XCUIElementTypeImage name="menuSettingsInactive"/>')
AUTH_SOURCE = snapshot(
    '<XCUIElementTypeButton name="checkbox_conditions_bordered_auth"/>',
    '<XCUIElementTypeButton name="BankID НБУ  . "/>',
)
PIN_LOGIN_SOURCE = snapshot(
    '<XCUIElementTypeStaticText name="Код для входу"/>',
    '<XCUIElementTypeButton name="1"/>',
)
PIN_CREATE_SOURCE = snapshot(
    '<XCUIElementTypeStaticText name="title_pincreate"/>',
    '<XCUIElementTypeButton name="1"/>',
)
LOADING_SOURCE = snapshot('<XCUIElementTypeStaticText name="Триває завантаження даних"/>')
UNKNOWN_SOURCE = snapshot('<XCUIElementTypeButton name="Something else"/>')


class FakeElement:
    """Stand-in for a remote WebElement"""

    _next_id = 0

    def __init__(
        self,
        name: str = "",
        text: Optional[str] = None,
        displayed: bool = True,
        rect: Tuple[int, int, int, int] = (0, 0, 44, 44),
        value: Optional[str] = None,
        truncate_to: Optional[int] = None,
        on_click: Optional[Callable[[], None]] = None,
    ):
        FakeElement._next_id += 1
        self.id = f"element-{FakeElement._next_id}"
        self.name = name
        self._text = text if text is not None else name
        self.displayed = displayed
        self.x, self.y, self.width, self.height = rect
        self._value = value
        self.truncate_to = truncate_to
        self.on_click = on_click
        self.clicks = 0
        self.typed: List[str] = []
        self.children: List[Tuple[Callable[[str, str], bool], "FakeElement"]] = []

    @property
    def text(self) -> str:
        return self._text

    @property
    def location(self) -> Dict[str, int]:
        return {"x": self.x, "y": self.y}

    @property
    def size(self) -> Dict[str, int]:
        return {"width": self.width, "height": self.height}

    def is_displayed(self) -> bool:
        return self.displayed

    def get_attribute(self, name: str) -> Optional[str]:
        if name == "value":
            return self._value
        if name == "name":
            return self.name
        return None

    def click(self):
        self.clicks += 1
        if self.on_click:
            self.on_click()

    def clear(self):
        self._value = ""

    def send_keys(self, text: str):
        self.typed.append(text)
        if self.truncate_to is not None and len(text) > 1:
            text = text[:self.truncate_to]
        self._value = (self._value or "") + text

    def add_child(self, fragment: str, element: "FakeElement") -> "FakeElement":
        """Register a descendant returned for every query whose selector contains the fragment"""
        self.children.append((lambda b, v: fragment in v, element))
        return element

    def find_elements(self, by: str, value: str) -> List["FakeElement"]:
        return [el for matches, el in self.children if matches(by, value)]

    def find_element(self, by: str, value: str) -> "FakeElement":
        found = self.find_elements(by, value)
        if not found:
            raise NoSuchElementException(f"{by}={value}")
        return found[0]


class FakeSession:
    """
    In-memory AutomationSession.

    The page source is whatever `source` holds (or the next entry of
    `sources` while any remain). Elements are registered against the exact
    query that will look them up.
    """

    def __init__(self, source: str = ""):
        self.source = source
        self.sources: List[str] = []
        self.source_reads = 0
        self.source_error: Optional[Exception] = None
        self._elements: List[Tuple[Callable[[str, str], bool], FakeElement]] = []
        self.commands: List[Tuple[str, dict]] = []
        # The app is in the foreground unless a test says otherwise
        self.command_handlers: Dict[str, Callable[[dict], object]] = {
            "mobile: queryAppState": lambda params: 4,
        }
        self.pointer_taps: List[Tuple[int, int]] = []
        self.pointer_error: Optional[Exception] = None
        self.released = 0
        self.screenshots: List[str] = []
        self.disconnected = False

    # Page source

    def page_source(self) -> str:
        self.source_reads += 1
        if self.source_error is not None:
            raise self.source_error
        if self.sources:
            self.source = self.sources.pop(0)
        return self.source

    # Elements

    def add(self, query, element: FakeElement) -> FakeElement:
        """Register an element for a Query, an ElementHandle or a (by, value) pair"""
        if isinstance(query, ElementHandle):
            query = query.query
        if isinstance(query, Query):
            by, value = query.by, query.value
        else:
            by, value = query
        self._elements.append((lambda b, v: b == by and v == value, element))
        return element

    def add_matching(self, fragment: str, element: FakeElement) -> FakeElement:
        """Register an element for every query whose selector contains the fragment"""
        self._elements.append((lambda b, v: fragment in v, element))
        return element

    def find_elements(self, by: str, value: str) -> List[FakeElement]:
        return [el for matches, el in self._elements if matches(by, value)]

    def find_element(self, by: str, value: str) -> FakeElement:
        found = self.find_elements(by, value)
        if not found:
            raise NoSuchElementException(f"{by}={value}")
        return found[0]

    # Commands and gestures

    def execute(self, command: str, params: Optional[dict] = None):
        params = params or {}
        self.commands.append((command, params))
        handler = self.command_handlers.get(command)
        if handler is not None:
            return handler(params)
        return None

    def command_names(self) -> List[str]:
        return [name for name, _ in self.commands]

    def pointer_tap(self, x: int, y: int, hold: float = 0.15):
        if self.pointer_error is not None:
            raise self.pointer_error
        self.pointer_taps.append((x, y))

    def release_actions(self):
        self.released += 1

    def save_screenshot(self, path: str) -> bool:
        with open(path, "wb") as f:
            f.write(b"\x89PNG")
        self.screenshots.append(path)
        return True

    def disconnect(self):
        self.disconnected = True


class FakeClock:
    """Replaces wait.now / wait.pause so polling runs instantly"""

    def __init__(self):
        self.current = 0.0
        self.pauses: List[float] = []

    def now(self) -> float:
        return self.current

    def pause(self, seconds: float):
        self.pauses.append(seconds)
        self.current += seconds


@pytest.fixture
def fake_clock(monkeypatch):
    """Create fake clock fixture"""
    clock = FakeClock()
    monkeypatch.setattr(wait, "now", clock.now)
    monkeypatch.setattr(wait, "pause", clock.pause)
    return clock


@pytest.fixture
def session():
    """Create fake automation session fixture"""
    return FakeSession(UNKNOWN_SOURCE)


@pytest.fixture
def markers():
    return MARKERS


@pytest.fixture
def logger():
    return StepLogger(name="mobile_e2e.tests")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep a developer .env and shell overrides out of the tests"""
    monkeypatch.setattr(config_module, "load_dotenv", lambda: None)
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config(tmp_path):
    """Create config fixture backed by a temporary config.yaml"""
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML.format(artifacts=tmp_path / "artifacts"), encoding="utf-8")
    return Config(str(path))


@pytest.fixture
def mobile(session, config, logger, fake_clock):
    """Create harness fixture around the fake session"""
    return MobileHarness.from_session(session, config=config, logger=logger)
