"""
Document Flows - Locate and operate controls on document cards
"""
from typing import Optional, Tuple

from mobile_e2e.device.actions import DeviceActions
from mobile_e2e.device.locator import ElementHandle, ElementLocator
from mobile_e2e.device.strategies import StrategyExecutor, more_options_strategies, small_control
from mobile_e2e.screen.markers import ScreenMarkers
from mobile_e2e.utils.config import Timeouts
from mobile_e2e.utils.logging import StepLogger

MORE_OPTIONS_ANCHOR = "moreOptionsButton"


class DocumentFlows:
    """Document screen interactions"""

    def __init__(
        self,
        session,
        locator: ElementLocator,
        executor: StrategyExecutor,
        actions: DeviceActions,
        markers: Optional[ScreenMarkers] = None,
        logger: Optional[StepLogger] = None,
        timeouts: Optional[Timeouts] = None,
    ):
        self.session = session
        self.locator = locator
        self.executor = executor
        self.actions = actions
        self.markers = markers or ScreenMarkers()
        self.logger = logger or StepLogger()
        self.timeouts = timeouts or Timeouts()

    def open_documents(self):
        """Switch to the documents tab"""
        with self.logger.step("openDocuments"):
            self.locator.by_id(self.markers.documents_tab).wait_displayed(self.timeouts.element).click()

    def find_more_options_button(self, near_text: Optional[str] = None) -> ElementHandle:
        """
        Locate the unlabeled "more options" button of the document card

        Args:
            near_text: Text printed next to the button; enables the
                proximity and sibling strategies

        Returns:
            Handle pinned to the button

        Raises:
            NotFoundError: Every strategy failed; a page source was saved
        """
        with self.logger.step("findMoreOptionsButton", f'nearText="{near_text}"'):
            strategies = more_options_strategies(self.locator, self.markers.document_title, near_text)
            return self.executor.find_by(strategies, small_control(), anchor=MORE_OPTIONS_ANCHOR)

    def click_by_coordinates(self, x: int, y: int, description: str = ""):
        details = f"x={x}, y={y}" + (f', description="{description}"' if description else "")
        with self.logger.step("clickByCoordinates", details):
            self.actions.tap_smart(x, y, description, retries=3, per_attempt_timeout=3.0)

    def find_and_click_more_options_button(
        self,
        near_text: Optional[str] = None,
        coordinates: Optional[Tuple[int, int]] = None,
    ) -> Optional[ElementHandle]:
        """
        Tap the "more options" button

        Args:
            near_text: Text printed next to the button
            coordinates: (x, y) to tap directly instead of locating the button

        Returns:
            The located button, or None when coordinates were used
        """
        details = f'nearText="{near_text}", coordinates={coordinates}'
        with self.logger.step("findAndClickMoreOptionsButton", details):
            if coordinates is not None:
                self.logger.log_step("findAndClickMoreOptionsButton", "Using provided coordinates to click")
                x, y = coordinates
                self.click_by_coordinates(x, y)
                return None
            button = self.find_more_options_button(near_text)
            button.click()
            return button

    def scroll_to_element(self, handle: ElementHandle, direction: str = "down"):
        """Native scroll with an element as the scroll target"""
        with self.logger.step("scrollToElement", f'direction="{direction}"'):
            self.actions.scroll(direction, element_id=handle.resolve().id)
