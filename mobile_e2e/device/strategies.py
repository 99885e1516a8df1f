"""
Strategies - Ordered fallbacks for locating unreliable elements
"""
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar

from appium.webdriver.common.appiumby import AppiumBy
from selenium.common.exceptions import InvalidSessionIdException, WebDriverException
from selenium.webdriver.remote.webelement import WebElement

from mobile_e2e.device.locator import ElementHandle, ElementLocator
from mobile_e2e.utils.artifacts import ArtifactStore
from mobile_e2e.utils.errors import NotFoundError
from mobile_e2e.utils.logging import StepLogger

T = TypeVar("T")

Attempt = Tuple[str, Callable[[], T]]
Constraint = Callable[[WebElement], bool]

ENABLED_VISIBLE_BUTTONS = 'type == "XCUIElementTypeButton" AND enabled == true AND visible == true'


def try_in_order(
    attempts: Sequence[Attempt],
    description: str,
    logger: Optional[StepLogger] = None,
) -> Tuple[str, T]:
    """
    Run attempts in order and return the first that does not raise

    A failing attempt is logged and the next one is tried; only exhausting
    the whole list is an error. A terminated session is never retried.

    Args:
        attempts: (name, zero-argument callable) pairs
        description: What is being attempted, for logs and the final error
        logger: Step logger

    Returns:
        Tuple of (winning attempt name, its result)

    Raises:
        NotFoundError: Every attempt raised; carries the last error
    """
    last_error: Optional[BaseException] = None
    for index, (name, run) in enumerate(attempts, start=1):
        try:
            result = run()
        except InvalidSessionIdException:
            raise
        except Exception as e:
            last_error = e
            if logger:
                logger.log_step(description, f"Strategy {index} ({name}) failed: {e}")
            continue
        if logger:
            logger.log_success(description, f"Strategy {index} ({name})")
        return name, result

    last_message = str(last_error) if last_error else "no strategies configured"
    raise NotFoundError(
        f"{description}: all {len(attempts)} strategies failed. Last error: {last_message}",
        anchor=description,
        attempts=len(attempts),
        last_error=last_error,
    )


# Constraints

def displayed(element: WebElement) -> bool:
    return bool(element.is_displayed())


def small_control(max_width: int = 60, max_height: int = 60) -> Constraint:
    """Displayed, small, roughly square control such as an icon button"""

    def check(element: WebElement) -> bool:
        if not element.is_displayed():
            return False
        size = element.size
        return size["width"] <= max_width and size["height"] <= max_height

    return check


# Locator strategies

class StrategyKind(Enum):
    BOUNDING_BOX = "bounding_box"
    PARENT_CHILD = "parent_child"
    CONTAINER_SCOPED = "container_scoped"
    ANCHOR_PROXIMITY = "anchor_proximity"
    STRUCTURAL_PATH = "structural_path"


@dataclass(frozen=True)
class LocatorStrategy:
    """
    One independent way of producing candidate elements.

    candidates(session) yields elements in preference order; the executor
    returns the first one that passes the caller's constraint.
    """
    kind: StrategyKind
    name: str
    candidates: Callable[[object], Iterable[WebElement]]


@dataclass(frozen=True)
class ProximityWindow:
    """Search area around an anchor rect, in points"""
    left: int = 50
    top: int = 50
    right: int = 200
    bottom: int = 200

    def contains(self, anchor: dict, location: dict) -> bool:
        return (
            anchor["x"] - self.left < location["x"] < anchor["x"] + anchor["width"] + self.right
            and anchor["y"] - self.top < location["y"] < anchor["y"] + anchor["height"] + self.bottom
        )


def bounding_box(anchor: ElementHandle, window: ProximityWindow = ProximityWindow(),
                 anchor_timeout: float = 5.0) -> LocatorStrategy:
    """Enabled, visible buttons whose origin lies in a window around the anchor"""

    def candidates(session) -> Iterable[WebElement]:
        buttons = session.find_elements(AppiumBy.IOS_PREDICATE, ENABLED_VISIBLE_BUTTONS)
        anchor.wait_displayed(anchor_timeout)
        anchor_rect = anchor.rect()
        for button in buttons:
            try:
                location = button.location
            except WebDriverException:
                continue
            if window.contains(anchor_rect, location):
                yield button

    return LocatorStrategy(StrategyKind.BOUNDING_BOX, f"bounding box around {anchor.description}", candidates)


def parent_child(anchor_name: str) -> LocatorStrategy:
    """Buttons inside the nearest container that holds the anchor text"""
    parent_xpath = f'//XCUIElementTypeStaticText[@name="{anchor_name}"]/ancestor::XCUIElementTypeOther[1]'

    def candidates(session) -> Iterable[WebElement]:
        parent = session.find_element(AppiumBy.XPATH, parent_xpath)
        return parent.find_elements(AppiumBy.IOS_CLASS_CHAIN, "**/XCUIElementTypeButton")

    return LocatorStrategy(StrategyKind.PARENT_CHILD, f'parent container of "{anchor_name}"', candidates)


def container_scoped(container_types: Sequence[str] = ("ScrollView", "Table")) -> LocatorStrategy:
    """Buttons inside any displayed scroll or table container"""

    def candidates(session) -> Iterable[WebElement]:
        containers: List[WebElement] = []
        for container_type in container_types:
            containers.extend(
                session.find_elements(AppiumBy.IOS_CLASS_CHAIN, f"**/XCUIElementType{container_type}")
            )
        for container in containers:
            try:
                if not container.is_displayed():
                    continue
                buttons = container.find_elements(AppiumBy.IOS_CLASS_CHAIN, "**/XCUIElementTypeButton")
            except WebDriverException:
                continue
            yield from buttons

    names = "/".join(container_types)
    return LocatorStrategy(StrategyKind.CONTAINER_SCOPED, f"{names} containers", candidates)


def anchor_proximity(anchor: ElementHandle, max_dx: int = 100, max_dy: int = 30,
                     anchor_timeout: float = 2.0) -> LocatorStrategy:
    """Enabled, visible buttons just right of the anchor on the same row"""

    def candidates(session) -> Iterable[WebElement]:
        buttons = session.find_elements(AppiumBy.IOS_PREDICATE, ENABLED_VISIBLE_BUTTONS)
        anchor.wait_displayed(anchor_timeout)
        anchor_rect = anchor.rect()
        right_edge = anchor_rect["x"] + anchor_rect["width"]
        for button in buttons:
            try:
                location = button.location
            except WebDriverException:
                continue
            if right_edge < location["x"] < right_edge + max_dx and abs(location["y"] - anchor_rect["y"]) < max_dy:
                yield button

    return LocatorStrategy(StrategyKind.ANCHOR_PROXIMITY, f"right of {anchor.description}", candidates)


def structural_path(xpath: str) -> LocatorStrategy:
    """Raw XPath query"""

    def candidates(session) -> Iterable[WebElement]:
        return session.find_elements(AppiumBy.XPATH, xpath)

    return LocatorStrategy(StrategyKind.STRUCTURAL_PATH, f"xpath {xpath}", candidates)


def more_options_strategies(locator: ElementLocator, document_title: str,
                            near_text: Optional[str] = None) -> List[LocatorStrategy]:
    """
    Strategies for the unlabeled "more options" button on a document card.
    Text-independent strategies come first; the ones anchored on near_text
    are added only when it is given.
    """
    title = locator.static_text(document_title)
    strategies = [
        bounding_box(title),
        parent_child(document_title),
        container_scoped(),
    ]
    if near_text:
        strategies.append(anchor_proximity(locator.static_text(near_text)))
        strategies.append(structural_path(
            f'//XCUIElementTypeStaticText[@name="{near_text}"]/following-sibling::XCUIElementTypeButton[1]'
        ))
    return strategies


class StrategyExecutor:
    """Runs locator strategies in order and dumps the UI when all of them miss"""

    def __init__(self, session, artifacts: Optional[ArtifactStore] = None, logger: Optional[StepLogger] = None):
        """
        Args:
            session: AutomationSession
            artifacts: Where to dump snapshots after total failure
            logger: Step logger
        """
        self.session = session
        self.artifacts = artifacts or ArtifactStore()
        self.logger = logger or StepLogger()

    def _first_accepted(self, strategy: LocatorStrategy, constraint: Constraint) -> ElementHandle:
        checked = 0
        for element in strategy.candidates(self.session):
            checked += 1
            try:
                accepted = constraint(element)
            except InvalidSessionIdException:
                raise
            except WebDriverException:
                continue
            if accepted:
                return ElementHandle.pinned(self.session, element, description=strategy.name)
        raise LookupError(f"no candidate passed the constraint ({checked} checked)")

    def find_by(
        self,
        strategies: Sequence[LocatorStrategy],
        constraint: Constraint = displayed,
        anchor: str = "element",
    ) -> ElementHandle:
        """
        Return the first strategy result that resolves and passes the constraint

        Args:
            strategies: Ordered locator strategies
            constraint: Visibility/size predicate applied to each candidate
            anchor: Description of what is being located, for logs and errors

        Returns:
            ElementHandle pinned to the accepted element

        Raises:
            NotFoundError: Every strategy failed; a UI snapshot was saved
        """
        attempts = [
            (s.name, lambda s=s: self._first_accepted(s, constraint))
            for s in strategies
        ]
        try:
            _, handle = try_in_order(attempts, f"findBy {anchor}", self.logger)
            return handle
        except NotFoundError as e:
            artifact_path = self._dump_snapshot(anchor)
            raise NotFoundError(
                f'Could not find {anchor} using any of {len(strategies)} strategies. '
                f'Last error: {e.last_error}. Page source: {artifact_path or "not saved"}',
                anchor=anchor,
                attempts=len(strategies),
                last_error=e.last_error,
                artifact_path=artifact_path,
            ) from e

    def _dump_snapshot(self, anchor: str) -> Optional[str]:
        try:
            source = self.session.page_source()
            path = self.artifacts.save_debug_source(source, anchor)
        except (WebDriverException, OSError) as e:
            self.logger.warning(f"Failed to save page source for {anchor}: {e}")
            return None
        self.logger.log_step("findBy", f"Page source saved to: {path}")
        return str(path)
