"""
Element Locator - Lazy element handles over the remote UI tree
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

from appium.webdriver.common.appiumby import AppiumBy
from selenium.common.exceptions import InvalidSessionIdException, WebDriverException
from selenium.webdriver.remote.webelement import WebElement

from mobile_e2e.screen.markers import ScreenMarkers
from mobile_e2e.utils import wait
from mobile_e2e.utils.logging import StepLogger


@dataclass(frozen=True)
class Query:
    """A locator strategy plus its selector"""
    by: str
    value: str

    def describe(self) -> str:
        return f'{self.by}="{self.value}"'


class ElementHandle:
    """
    Reference to "the element matching this query".

    Nothing is looked up until an operation runs, and every operation looks
    the element up again, so a handle survives screen re-renders. A handle
    pinned to an already-resolved element (from a multi-element query) skips
    the lookup.
    """

    def __init__(
        self,
        session,
        query: Optional[Query] = None,
        element: Optional[WebElement] = None,
        description: str = "",
    ):
        if query is None and element is None:
            raise ValueError("ElementHandle needs a query or a resolved element")
        self.session = session
        self.query = query
        self._element = element
        self.description = description or (query.describe() if query else "element")

    @classmethod
    def pinned(cls, session, element: WebElement, description: str = "") -> "ElementHandle":
        return cls(session, element=element, description=description)

    def __repr__(self) -> str:
        return f"ElementHandle({self.description})"

    def resolve(self) -> WebElement:
        """Look the element up now; raises NoSuchElementException if absent"""
        if self._element is not None:
            return self._element
        return self.session.find_element(self.query.by, self.query.value)

    def find_all(self, by: str, value: str) -> List[WebElement]:
        """Resolve every descendant matching a query"""
        return self.resolve().find_elements(by, value)

    def click(self):
        self.resolve().click()

    def clear(self):
        self.resolve().clear()

    def set_value(self, text: str):
        """Replace the element's value"""
        element = self.resolve()
        element.clear()
        element.send_keys(text)

    def add_value(self, text: str):
        """Append to the element's value"""
        self.resolve().send_keys(text)

    def text(self) -> str:
        return self.resolve().text or ""

    def value(self) -> Optional[str]:
        return self.resolve().get_attribute("value")

    def get_attribute(self, name: str) -> Optional[str]:
        return self.resolve().get_attribute(name)

    def is_displayed(self) -> bool:
        return self.resolve().is_displayed()

    def is_visible(self) -> bool:
        """Like is_displayed, but a failed lookup counts as not visible"""
        try:
            return bool(self.is_displayed())
        except InvalidSessionIdException:
            raise
        except WebDriverException:
            return False

    def rect(self) -> Dict[str, int]:
        """Location and size in one dict: x, y, width, height"""
        element = self.resolve()
        location = element.location
        size = element.size
        return {"x": location["x"], "y": location["y"], "width": size["width"], "height": size["height"]}

    def wait_displayed(self, timeout: float = 10.0, interval: float = wait.DEFAULT_INTERVAL) -> "ElementHandle":
        """
        Block until the element is displayed

        Args:
            timeout: Deadline in seconds
            interval: Poll interval

        Returns:
            self, for chaining

        Raises:
            WaitTimeoutError: The element never became visible
        """
        wait.poll_until(self.is_visible, timeout, f"{self.description} displayed", interval=interval)
        return self


class ElementLocator:
    """Builds element handles using the XCUITest locator strategies"""

    def __init__(self, session, markers: Optional[ScreenMarkers] = None, logger: Optional[StepLogger] = None):
        """
        Args:
            session: AutomationSession
            markers: Screen markers
            logger: Step logger
        """
        self.session = session
        self.markers = markers or ScreenMarkers()
        self.logger = logger or StepLogger()

    def _handle(self, by: str, value: str, description: str = "") -> ElementHandle:
        return ElementHandle(self.session, Query(by, value), description=description)

    def by_text(self, text: str) -> ElementHandle:
        """Static text or button whose label contains the text (trimmed)"""
        self.logger.debug(f'by_text text="{text}"')
        normalized = text.strip()
        xpath = (
            f'//XCUIElementTypeStaticText[contains(@label, "{normalized}")]'
            f' | //XCUIElementTypeButton[contains(@label, "{normalized}")]'
        )
        return self._handle(AppiumBy.XPATH, xpath, description=f'text "{normalized}"')

    def by_id(self, accessibility_id: str) -> ElementHandle:
        """Element by accessibility identifier (fastest, most stable)"""
        self.logger.debug(f'by_id id="{accessibility_id}"')
        return self._handle(AppiumBy.ACCESSIBILITY_ID, accessibility_id, description=f'id "{accessibility_id}"')

    def by_predicate(self, predicate: str) -> ElementHandle:
        self.logger.debug(f'by_predicate predicate="{predicate}"')
        return self._handle(AppiumBy.IOS_PREDICATE, predicate)

    def by_class_chain(self, element_type: str, predicate: str = "") -> ElementHandle:
        """
        Element by iOS class chain

        Args:
            element_type: Either a full chain starting with "**/" or a bare
                type name such as "Button"
            predicate: Optional predicate applied to the bare type
        """
        if element_type.startswith("**/"):
            chain = element_type
        elif predicate:
            chain = f"**/XCUIElementType{element_type}[`{predicate}`]"
        else:
            chain = f"**/XCUIElementType{element_type}"
        self.logger.debug(f'by_class_chain chain="{chain}"')
        return self._handle(AppiumBy.IOS_CLASS_CHAIN, chain)

    def static_text(self, name: str) -> ElementHandle:
        """Static text whose name equals the given value"""
        return self.by_class_chain(f'**/XCUIElementTypeStaticText[`name == "{name}"`]')

    def button_named(self, name: str, enabled: bool = False, visible: bool = False) -> ElementHandle:
        """Button matched by name or label, optionally required to be enabled/visible"""
        predicate = f'type == "XCUIElementTypeButton" AND (name == "{name}" OR label == "{name}")'
        if enabled:
            predicate += " AND enabled == true"
        if visible:
            predicate += " AND visible == true"
        return self.by_predicate(predicate)

    def button_containing(self, *fragments: str) -> ElementHandle:
        """Button whose name or label contains any of the fragments"""
        clauses = " OR ".join(
            f'name CONTAINS "{f}" OR label CONTAINS "{f}"' for f in fragments
        )
        return self.by_predicate(f'type == "XCUIElementTypeButton" AND ({clauses})')

    def menu_button(self) -> ElementHandle:
        """Main-screen menu control, active or inactive"""
        names = " OR ".join(
            f'name == "{m}" OR label == "{m}"' for m in self.markers.main_menu
        )
        return self.by_predicate(f'type == "XCUIElementTypeImage" AND ({names})')

