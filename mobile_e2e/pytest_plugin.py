"""
Pytest Plugin - Device harness fixture and failure artifacts
"""
import pytest

from mobile_e2e.agent.harness import MobileHarness
from mobile_e2e.utils.config import Config


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """Keep each phase's report on the item so fixtures can see the outcome"""
    outcome = yield
    report = outcome.get_result()
    setattr(item, f"rep_{report.when}", report)


@pytest.fixture(scope="session")
def harness_session():
    """One Appium session shared by the whole run"""
    try:
        harness = MobileHarness(Config())
    except RuntimeError as e:
        pytest.skip(str(e))
    yield harness
    harness.close()


@pytest.fixture
def harness(request, harness_session):
    """Harness for one test; saves a screenshot and page source if the test fails"""
    yield harness_session
    report = getattr(request.node, "rep_call", None)
    if report is not None and report.failed:
        harness_session.save_failure_artifacts(request.node.name)
