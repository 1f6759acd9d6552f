"""
Playwright E2E Test Configuration and Fixtures

This module provides shared fixtures, configuration, and utilities
for end-to-end browser testing with Playwright.
"""
import logging
import os
import signal
import subprocess
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Generator

import pytest

# Skip entire module if playwright not installed
pytest.importorskip("playwright")

import requests
from playwright.sync_api import Browser, BrowserContext, BrowserType, Page
from playwright.sync_api import Error as PlaywrightError

from retail_e2e.config_loader import LIVE_BASE_URL, load_settings

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent

# =============================================================================
# Configuration
# =============================================================================

_settings = load_settings()


class E2EConfig:
    """E2E test configuration."""

    SETTINGS = _settings

    # Target
    TARGET = _settings.target
    BASE_URL = _settings.base_url
    LIVE_URL = LIVE_BASE_URL
    HOST = _settings.host
    PORT = _settings.port
    LIVE_ENABLED = _settings.live

    # Scenario
    SEARCH_SELECTOR = _settings.search_selector
    SEARCH_QUERY = _settings.search_query

    # Timeouts (milliseconds)
    DEFAULT_TIMEOUT = _settings.default_timeout
    NAVIGATION_TIMEOUT = _settings.navigation_timeout

    # Browser settings
    HEADLESS = _settings.headless
    SLOW_MO = _settings.slow_mo
    VIEWPORT = _settings.viewport

    # Screenshots and video
    SCREENSHOT_ON_FAILURE = _settings.screenshot_on_failure
    ARTIFACTS_DIR = (
        _settings.artifacts_dir
        if _settings.artifacts_dir.is_absolute()
        else Path(__file__).parent / _settings.artifacts_dir
    )
    RECORD_VIDEO = _settings.record_video

    @classmethod
    def to_dict(cls) -> Dict[str, Any]:
        return cls.SETTINGS.to_dict()


# =============================================================================
# Storefront Fixtures
# =============================================================================


def _wait_for_health(
    base_url: str, proc: subprocess.Popen, log_path: Path, max_wait: int = 30
) -> None:
    for _ in range(max_wait * 2):
        if proc.poll() is not None:
            break
        try:
            resp = requests.get(f"{base_url}/health", timeout=1)
            if resp.status_code == 200:
                return
        except requests.exceptions.RequestException:
            pass
        time.sleep(0.5)

    proc.kill()
    proc.wait()
    raise RuntimeError(
        f"Stub storefront failed to start within {max_wait}s\n"
        f"output: {log_path.read_text(errors='replace')}"
    )


@pytest.fixture(scope="session")
def storefront_url() -> Generator[str, None, None]:
    """
    Base URL of the storefront under test.

    With the stub target this starts the stub storefront once per session;
    with the live target it is the real site.
    """
    if E2EConfig.TARGET == "live":
        yield E2EConfig.BASE_URL
        return

    env = os.environ.copy()
    env.update({"HOST": E2EConfig.HOST, "PORT": str(E2EConfig.PORT)})

    E2EConfig.ARTIFACTS_DIR.mkdir(parents=True, exist_ok=True)
    log_path = E2EConfig.ARTIFACTS_DIR / "stub_store.log"
    log_file = open(log_path, "w")

    proc = subprocess.Popen(
        [
            sys.executable,
            "-m",
            "retail_e2e",
            "serve-stub",
            "--host",
            E2EConfig.HOST,
            "--port",
            str(E2EConfig.PORT),
        ],
        env=env,
        stdout=log_file,
        stderr=subprocess.STDOUT,
        cwd=str(PROJECT_ROOT),
    )

    try:
        _wait_for_health(E2EConfig.BASE_URL, proc, log_path)
    except RuntimeError:
        log_file.close()
        raise
    logger.info(f"Stub storefront started on {E2EConfig.BASE_URL}")

    yield E2EConfig.BASE_URL

    proc.send_signal(signal.SIGTERM)
    try:
        proc.wait(timeout=10)
    except subprocess.TimeoutExpired:
        proc.kill()
    log_file.close()


# =============================================================================
# Browser Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def browser_type_launch_args() -> Dict[str, Any]:
    """Browser launch arguments."""
    return {
        "headless": E2EConfig.HEADLESS,
        "slow_mo": E2EConfig.SLOW_MO,
    }


@pytest.fixture(scope="session")
def browser_context_args() -> Dict[str, Any]:
    """Browser context arguments."""
    args = {
        "viewport": dict(E2EConfig.VIEWPORT),
        "ignore_https_errors": True,
    }

    if E2EConfig.RECORD_VIDEO:
        E2EConfig.ARTIFACTS_DIR.mkdir(parents=True, exist_ok=True)
        args["record_video_dir"] = str(E2EConfig.ARTIFACTS_DIR / "videos")

    return args


@pytest.fixture(scope="session")
def browser(
    browser_type: BrowserType, browser_type_launch_args: Dict
) -> Generator[Browser, None, None]:
    """Launch the browser once per session, skipping when it is not installed."""
    try:
        browser = browser_type.launch(**browser_type_launch_args)
    except PlaywrightError as e:
        pytest.skip(f"{browser_type.name} could not be launched: {e}")

    yield browser

    browser.close()


@pytest.fixture
def context(browser: Browser, browser_context_args: Dict) -> Generator[BrowserContext, None, None]:
    """Create a new browser context for each test."""
    context = browser.new_context(**browser_context_args)
    context.set_default_timeout(E2EConfig.DEFAULT_TIMEOUT)
    context.set_default_navigation_timeout(E2EConfig.NAVIGATION_TIMEOUT)

    yield context

    context.close()


@pytest.fixture
def page(request, context: BrowserContext, storefront_url) -> Generator[Page, None, None]:
    """Create a new page for each test, capturing a screenshot if the test fails."""
    page = context.new_page()

    yield page

    rep_call = getattr(request.node, "rep_call", None)
    if rep_call is not None and rep_call.failed and E2EConfig.SCREENSHOT_ON_FAILURE:
        save_failure_screenshot(page, request.node.name)

    page.close()


def save_failure_screenshot(page: Page, test_name: str) -> None:
    """Save a screenshot of the page into the artifacts directory."""
    E2EConfig.ARTIFACTS_DIR.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    safe_name = test_name.replace("/", "_").replace(":", "_")
    screenshot_path = E2EConfig.ARTIFACTS_DIR / f"failure_{safe_name}_{timestamp}.png"
    try:
        page.screenshot(path=str(screenshot_path))
    except PlaywrightError as e:
        logger.warning(f"Could not save failure screenshot: {e}")
        return
    print(f"\n[E2E] Screenshot saved: {screenshot_path}")


# =============================================================================
# Hooks
# =============================================================================


@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """Store test results for use in fixtures."""
    outcome = yield
    rep = outcome.get_result()
    setattr(item, f"rep_{rep.when}", rep)


def pytest_collection_modifyitems(config, items):
    """Mark browser tests and gate live ones."""
    skip_live = pytest.mark.skip(reason="live site tests disabled (set E2E_LIVE=true)")
    for item in items:
        if "/e2e/" not in "/" + item.nodeid.replace("\\", "/"):
            continue
        item.add_marker(pytest.mark.e2e)
        if "live" in item.keywords and not E2EConfig.LIVE_ENABLED:
            item.add_marker(skip_live)
