"""
Test multi-strategy element location
"""
import pytest
from selenium.common.exceptions import InvalidSessionIdException, NoSuchElementException

from mobile_e2e.device.locator import ElementLocator
from mobile_e2e.device.strategies import (
    LocatorStrategy,
    ProximityWindow,
    StrategyExecutor,
    StrategyKind,
    displayed,
    more_options_strategies,
    small_control,
    try_in_order,
)
from mobile_e2e.utils.artifacts import ArtifactStore
from mobile_e2e.utils.errors import NotFoundError
from tests.conftest import FakeElement, FakeSession, snapshot


def strategy(name, run):
    return LocatorStrategy(StrategyKind.STRUCTURAL_PATH, name, lambda session: run())


@pytest.fixture
def executor(session, tmp_path, logger):
    """Create strategy executor fixture writing artifacts into a temp dir"""
    return StrategyExecutor(session, ArtifactStore(str(tmp_path)), logger)


def test_try_in_order_returns_first_success(logger):
    """Test later attempts are skipped once one succeeds"""
    calls = []

    def failing():
        calls.append("first")
        raise NoSuchElementException("missing")

    def succeeding():
        calls.append("second")
        return "value"

    def unused():
        calls.append("third")
        return "other"

    name, result = try_in_order(
        [("first", failing), ("second", succeeding), ("third", unused)], "lookup", logger
    )

    assert (name, result) == ("second", "value")
    assert calls == ["first", "second"]


def test_try_in_order_exhaustion_keeps_last_error(logger):
    """Test total failure carries the count and the last error"""

    def fail(message):
        def run():
            raise RuntimeError(message)
        return run

    with pytest.raises(NotFoundError) as exc_info:
        try_in_order([("a", fail("first")), ("b", fail("second"))], "lookup", logger)

    error = exc_info.value
    assert error.attempts == 2
    assert str(error.last_error) == "second"
    assert "Last error: second" in str(error)


def test_try_in_order_does_not_retry_dead_session(logger):
    """Test a terminated session stops the fallback chain"""
    calls = []

    def dead():
        raise InvalidSessionIdException("session gone")

    with pytest.raises(InvalidSessionIdException):
        try_in_order([("dead", dead), ("next", lambda: calls.append(1))], "lookup", logger)
    assert calls == []


def test_find_by_returns_second_strategy_without_trying_third(executor):
    """Test [S1 throws, S2 succeeds, S3] returns S2's element and never runs S3"""
    target = FakeElement("more")
    ran = []

    def s1():
        ran.append("s1")
        raise NoSuchElementException("no parent")

    def s2():
        ran.append("s2")
        return [target]

    def s3():
        ran.append("s3")
        return [FakeElement("other")]

    handle = executor.find_by([strategy("s1", s1), strategy("s2", s2), strategy("s3", s3)])

    assert handle.resolve() is target
    assert ran == ["s1", "s2"]


def test_find_by_applies_constraint(executor):
    """Test candidates failing the constraint are skipped"""
    hidden = FakeElement("hidden", displayed=False)
    wide = FakeElement("wide", rect=(0, 0, 300, 44))
    small = FakeElement("small", rect=(0, 0, 24, 24))

    handle = executor.find_by([strategy("all", lambda: [hidden, wide, small])], small_control())

    assert handle.resolve() is small


def test_find_by_failure_saves_snapshot(session, executor, tmp_path):
    """Test total failure raises NotFoundError and leaves a page source artifact"""
    session.source = snapshot('<XCUIElementTypeButton name="unrelated"/>')

    def missing():
        raise NoSuchElementException("nothing here")

    with pytest.raises(NotFoundError) as exc_info:
        executor.find_by([strategy("a", missing), strategy("b", lambda: [])], anchor="moreOptionsButton")

    error = exc_info.value
    assert error.anchor == "moreOptionsButton"
    assert error.attempts == 2
    assert error.artifact_path is not None
    dumps = list((tmp_path / "debug").glob("pageSource-moreOptionsButton-*.xml"))
    assert len(dumps) == 1
    assert "unrelated" in dumps[0].read_text(encoding="utf-8")


def test_constraints():
    """Test the visibility and size predicates"""
    assert displayed(FakeElement())
    assert not displayed(FakeElement(displayed=False))
    assert small_control()(FakeElement(rect=(0, 0, 60, 60)))
    assert not small_control()(FakeElement(rect=(0, 0, 61, 20)))


def test_proximity_window():
    """Test the search window around an anchor"""
    window = ProximityWindow()
    anchor = {"x": 100, "y": 100, "width": 100, "height": 20}
    assert window.contains(anchor, {"x": 250, "y": 110})
    assert not window.contains(anchor, {"x": 40, "y": 110})
    assert not window.contains(anchor, {"x": 250, "y": 400})


def test_more_options_strategy_set(logger):
    """Test text-anchored strategies are only added with near_text"""
    locator = ElementLocator(FakeSession(), logger=logger)

    basic = more_options_strategies(locator, "Посвідчення водія")
    anchored = more_options_strategies(locator, "Посвідчення водія", near_text="Водій")

    assert [s.kind for s in basic] == [
        StrategyKind.BOUNDING_BOX,
        StrategyKind.PARENT_CHILD,
        StrategyKind.CONTAINER_SCOPED,
    ]
    assert [s.kind for s in anchored[3:]] == [StrategyKind.ANCHOR_PROXIMITY, StrategyKind.STRUCTURAL_PATH]


def test_bounding_box_strategy_finds_button_near_title(session, executor, logger):
    """Test the bounding-box strategy picks the button beside the card title"""
    locator = ElementLocator(session, logger=logger)
    title = locator.static_text("Посвідчення водія")
    session.add(title, FakeElement("Посвідчення водія", rect=(20, 100, 150, 24)))

    far = FakeElement("far", rect=(20, 700, 44, 44))
    near = FakeElement("near", rect=(300, 105, 32, 32))
    session.add_matching("enabled == true AND visible == true", far)
    session.add_matching("enabled == true AND visible == true", near)

    strategies = more_options_strategies(locator, "Посвідчення водія")
    handle = executor.find_by(strategies[:1], small_control())

    assert handle.resolve() is near
