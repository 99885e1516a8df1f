"""
Screen Assertions - Greeting, popup and text-view checks
"""
import re
from typing import List, Optional

from appium.webdriver.common.appiumby import AppiumBy
from selenium.common.exceptions import InvalidSessionIdException, WebDriverException

from mobile_e2e.agent.state import ScreenState
from mobile_e2e.device.locator import ElementHandle, ElementLocator
from mobile_e2e.device.strategies import try_in_order
from mobile_e2e.screen.classifier import ScreenClassifier
from mobile_e2e.screen.markers import ScreenMarkers
from mobile_e2e.utils import wait
from mobile_e2e.utils.config import Timeouts
from mobile_e2e.utils.errors import NotFoundError, WaitTimeoutError
from mobile_e2e.utils.logging import StepLogger

POPUP_CONTAINER_TYPES = ("XCUIElementTypeAlert", "XCUIElementTypeSheet")


def normalize_text(text: Optional[str]) -> str:
    """Collapse newlines and runs of whitespace into single spaces"""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text.replace("\n", " ")).strip()


def _compare_form(text: Optional[str], normalize_newlines: bool) -> str:
    text = text or ""
    if normalize_newlines:
        text = text.replace("\n", " ")
    return text.strip()


class ScreenAssertions:
    """Assertions on what the current screen shows"""

    def __init__(
        self,
        session,
        locator: ElementLocator,
        classifier: ScreenClassifier,
        markers: Optional[ScreenMarkers] = None,
        logger: Optional[StepLogger] = None,
        timeouts: Optional[Timeouts] = None,
    ):
        self.session = session
        self.locator = locator
        self.classifier = classifier
        self.markers = markers or ScreenMarkers()
        self.logger = logger or StepLogger()
        self.timeouts = timeouts or Timeouts()

    # Greeting

    def _main_loaded(self) -> bool:
        if self.classifier.detect(self.session) is ScreenState.MAIN:
            return True
        if self.locator.menu_button().is_visible():
            return True
        return self.locator.by_id(self.markers.greeting_text).is_visible()

    def assert_greeting(self, timeout: Optional[float] = None):
        """
        Check that the main screen loaded and shows the user greeting

        Args:
            timeout: Deadline for the main screen (default: timeouts.flow)

        Raises:
            WaitTimeoutError: Main screen did not load
            NotFoundError: Greeting not found by any lookup
        """
        timeout = timeout or self.timeouts.flow
        element_timeout = self.timeouts.element
        greeting = self.markers.greeting_text
        prefix = self.markers.greeting_prefix.rstrip(",")

        with self.logger.step("assertGreeting"):
            wait.pause(self.timeouts.settle_delay)
            wait.poll_until(
                self._main_loaded,
                timeout,
                "Main screen after authorization",
                interval=self.timeouts.poll_interval,
            )
            try_in_order(
                [
                    ("accessibility id", lambda: self.locator.by_id(greeting).wait_displayed(element_timeout)),
                    ("exact predicate", lambda: self.locator.by_predicate(
                        f'label == "{greeting}" OR name == "{greeting}" OR value == "{greeting}"'
                    ).wait_displayed(element_timeout)),
                    ("contains predicate", lambda: self.locator.by_predicate(
                        f'label CONTAINS "{prefix}" OR name CONTAINS "{prefix}"'
                    ).wait_displayed(element_timeout)),
                ],
                "assertGreeting",
                self.logger,
            )

    # Popups

    def _popup_container(self) -> Optional[ElementHandle]:
        for container_type in POPUP_CONTAINER_TYPES:
            handle = self.locator.by_predicate(f'type == "{container_type}"')
            if handle.is_visible():
                return handle
        return None

    def _find_text_element(self, text: str, container: Optional[ElementHandle]) -> Optional[ElementHandle]:
        if not text:
            return None
        predicate = (
            '(type == "XCUIElementTypeStaticText" OR type == "XCUIElementTypeButton") AND '
            f'(name CONTAINS "{text}" OR label CONTAINS "{text}" OR value CONTAINS "{text}")'
        )
        if container is None:
            handle = self.locator.by_predicate(predicate)
            return handle if handle.is_visible() else None

        for element in container.find_all(AppiumBy.IOS_PREDICATE, predicate):
            try:
                if not element.is_displayed():
                    continue
                actual = normalize_text(element.text)
            except InvalidSessionIdException:
                raise
            except WebDriverException:
                continue
            if text in actual or (actual and actual in text):
                return ElementHandle.pinned(self.session, element, description=f'popup text "{text}"')
        return None

    def _assert_popup_text(self, kind: str, raw: str, normalized: str, container: Optional[ElementHandle]):
        if self._find_text_element(normalized, container) is not None:
            return
        try:
            self.locator.by_id(raw).wait_displayed(2.0)
        except WaitTimeoutError:
            raise AssertionError(f'Popup {kind} "{raw}" not found') from None

    def assert_popup(self, title: str = "", message: str = "", timeout: Optional[float] = None):
        """
        Check that an alert or sheet shows the given title and/or message

        Text is compared whitespace-normalized. The search is scoped to the
        alert/sheet container when one is displayed.

        Args:
            title: Expected popup title (skipped when empty)
            message: Expected popup message (skipped when empty)
            timeout: Deadline for the popup to appear (default: timeouts.element)

        Raises:
            WaitTimeoutError: No popup text appeared
            AssertionError: The popup appeared but the title or message is missing
        """
        if not title and not message:
            raise ValueError("assert_popup needs a title or a message")
        timeout = timeout or self.timeouts.element
        normalized_title = normalize_text(title)
        normalized_message = normalize_text(message)

        with self.logger.step("assertPopup", f'title="{title}" msg="{message}"'):
            container = self._popup_container()

            def appeared() -> bool:
                if title and self._find_text_element(normalized_title, container):
                    return True
                return bool(message and self._find_text_element(normalized_message, container))

            wait.poll_until(appeared, timeout, f'Popup with title "{title}"', interval=self.timeouts.poll_interval)

            if title:
                self._assert_popup_text("title", title, normalized_title, container)
            if message:
                self._assert_popup_text("message", message, normalized_message, container)

    # Text views

    def get_container(self, accessibility_id: str, timeout: Optional[float] = None) -> ElementHandle:
        """Displayed container by accessibility id"""
        with self.logger.step("getContainer", f'id="{accessibility_id}"'):
            return self.locator.by_id(accessibility_id).wait_displayed(timeout or self.timeouts.element)

    def scroll_container_into_view(self, accessibility_id: str, timeout: float = 30.0) -> ElementHandle:
        """
        Scroll down until the container is displayed

        Args:
            accessibility_id: Container accessibility id
            timeout: Deadline once scrolling started

        Returns:
            Handle of the displayed container
        """
        with self.logger.step("scrollContainerIntoView", f'id="{accessibility_id}"'):
            container = self.locator.by_id(accessibility_id)
            try:
                return container.wait_displayed(2.0)
            except WaitTimeoutError:
                self.session.execute("mobile: scroll", {
                    "direction": "down",
                    "predicateString": f'name == "{accessibility_id}"',
                })
            return container.wait_displayed(timeout)

    def _static_texts(self, container: ElementHandle) -> List:
        return container.find_all(AppiumBy.XPATH, ".//XCUIElementTypeStaticText")

    def find_text_view_by_text(
        self,
        container: ElementHandle,
        expected: str,
        normalize_newlines: bool = True,
    ) -> ElementHandle:
        """
        Static text inside a container whose text equals the expected text

        Raises:
            NotFoundError: No static text in the container matches
        """
        wanted = _compare_form(expected, normalize_newlines)
        for element in self._static_texts(container):
            try:
                actual = _compare_form(element.text, normalize_newlines)
            except InvalidSessionIdException:
                raise
            except WebDriverException:
                continue
            if actual == wanted:
                return ElementHandle.pinned(self.session, element, description=f'text "{expected}"')
        raise NotFoundError(
            f'No StaticText found with text "{expected}" in {container.description}',
            anchor=container.description,
        )

    def assert_text_view(
        self,
        container_id: str,
        expected: str,
        normalize_newlines: bool = True,
        timeout: float = 20.0,
    ):
        """
        Check that a container shows a static text equal to the expected text

        Args:
            container_id: Container accessibility id
            expected: Expected text
            normalize_newlines: Treat newlines as spaces on both sides
            timeout: Deadline for the text to be displayed

        Raises:
            WaitTimeoutError: The text never became visible in the container
        """
        details = f'id="{container_id}" expectedText="{expected}" normalizeNewlines={normalize_newlines}'
        with self.logger.step("assertTextView", details):
            container = self.scroll_container_into_view(container_id)

            def displayed() -> bool:
                try:
                    handle = self.find_text_view_by_text(container, expected, normalize_newlines)
                except NotFoundError:
                    return False
                return handle.is_visible()

            wait.poll_until(
                displayed,
                timeout,
                f'Text "{expected}" in container with accessibilityId "{container_id}"',
                interval=self.timeouts.poll_interval,
            )
