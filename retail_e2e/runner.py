"""
Data-Driven Test Runner

Executes declarative browser suites with Playwright.
All test specifics come from the suite data.
"""

import asyncio
import logging
import os
import re
from datetime import datetime
from typing import Any, Callable, Dict, Optional
from urllib.parse import urljoin

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .config_loader import BROWSERS
from .keystrokes import type_sequence_async
from .models import (
    StepResult,
    StepType,
    SuiteResult,
    TestCase,
    TestResult,
    TestStatus,
    TestStep,
    TestSuite,
)

logger = logging.getLogger(__name__)

_VAR_RE = re.compile(r"\$\{(\w+)\}")


class StepFailure(AssertionError):
    """An assertion step did not hold."""


def _is_failure(result) -> bool:
    return result.status in (TestStatus.FAILED, TestStatus.ERROR)


class TestRunner:
    """
    Generic test runner that executes tests from data definitions.

    The runner has no knowledge of what it's testing.
    """

    __test__ = False

    def __init__(
        self,
        browser_name: str = "chromium",
        headless: bool = True,
        slow_mo: int = 0,
        base_url: str = None,
        screenshot_dir: str = None,
        default_timeout: int = 4000,
        navigation_timeout: int = 60000,
        page=None,
    ):
        if browser_name not in BROWSERS:
            raise ValueError(f"Unknown browser: {browser_name} (expected one of {BROWSERS})")

        self.browser_name = browser_name
        self.headless = headless
        self.slow_mo = slow_mo
        self.base_url = base_url.rstrip("/") if base_url else None
        self.screenshot_dir = screenshot_dir
        self.default_timeout = default_timeout
        self.navigation_timeout = navigation_timeout

        # Runtime state
        self._variables: Dict[str, Any] = {}
        self._playwright = None
        self._browser = None
        self._page = page
        self._owns_page = page is None

        # Step handlers - map step types to execution functions
        self._handlers: Dict[StepType, Callable] = {
            # Browser actions
            StepType.NAVIGATE: self._handle_navigate,
            StepType.CLICK: self._handle_click,
            StepType.FILL: self._handle_fill,
            StepType.TYPE: self._handle_type,
            StepType.PRESS: self._handle_press,
            StepType.SELECT: self._handle_select,
            StepType.WAIT: self._handle_wait,
            StepType.WAIT_FOR: self._handle_wait_for,
            StepType.SCREENSHOT: self._handle_screenshot,
            # Assertions
            StepType.ASSERT_TEXT: self._handle_assert_text,
            StepType.ASSERT_ELEMENT: self._handle_assert_element,
            StepType.ASSERT_URL: self._handle_assert_url,
            StepType.ASSERT_TITLE: self._handle_assert_title,
            StepType.ASSERT_VALUE: self._handle_assert_value,
            StepType.ASSERT_VISIBLE: self._handle_assert_visible,
            StepType.ASSERT_NOT_VISIBLE: self._handle_assert_not_visible,
            # Data operations
            StepType.EXTRACT: self._handle_extract,
            StepType.STORE: self._handle_store,
        }

    def _interpolate(self, value: Any) -> Any:
        """Replace ${variable} placeholders with values."""
        if not isinstance(value, str):
            return value

        whole = _VAR_RE.fullmatch(value)
        if whole and whole.group(1) in self._variables:
            return self._variables[whole.group(1)]  # Keep actual type

        def substitute(match):
            name = match.group(1)
            if name in self._variables:
                return str(self._variables[name])
            return match.group(0)

        return _VAR_RE.sub(substitute, value)

    def _timeout(self, step: TestStep) -> Optional[float]:
        """Step timeout in milliseconds, None for the page default."""
        return step.timeout * 1000 if step.timeout is not None else None

    def _resolve_url(self, target: str) -> str:
        base = self._variables.get("base_url")
        if base and not re.match(r"^[a-z][a-z0-9+.-]*:", target, re.IGNORECASE):
            return urljoin(base.rstrip("/") + "/", target.lstrip("/"))
        return target

    async def _ensure_browser(self):
        """Ensure browser is started."""
        if self._page is None:
            from playwright.async_api import async_playwright

            self._playwright = await async_playwright().start()
            launcher = getattr(self._playwright, self.browser_name)
            self._browser = await launcher.launch(headless=self.headless, slow_mo=self.slow_mo)
            self._page = await self._browser.new_page()
            self._page.set_default_timeout(self.default_timeout)
            self._page.set_default_navigation_timeout(self.navigation_timeout)
            logger.debug(f"Launched {self.browser_name} (headless={self.headless})")

    async def _close_browser(self):
        """Close browser if this runner launched it."""
        if not self._owns_page:
            return
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        self._page = None

    # =========================================================================
    # Step Handlers - Browser
    # =========================================================================

    async def _handle_navigate(self, step: TestStep) -> StepResult:
        """Navigate to URL."""
        await self._ensure_browser()
        url = self._resolve_url(self._interpolate(step.target) or "/")
        await self._page.goto(url, timeout=self._timeout(step))
        return StepResult(step=step, status=TestStatus.PASSED)

    async def _handle_click(self, step: TestStep) -> StepResult:
        """Click element."""
        await self._ensure_browser()
        selector = self._interpolate(step.target)
        await self._page.locator(selector).first.click(timeout=self._timeout(step))
        return StepResult(step=step, status=TestStatus.PASSED)

    async def _handle_fill(self, step: TestStep) -> StepResult:
        """Fill form field."""
        await self._ensure_browser()
        selector = self._interpolate(step.target)
        value = self._interpolate(step.value)
        await self._page.locator(selector).first.fill(
            "" if value is None else str(value), timeout=self._timeout(step)
        )
        return StepResult(step=step, status=TestStatus.PASSED)

    async def _handle_type(self, step: TestStep) -> StepResult:
        """Type a keystroke sequence into an element."""
        await self._ensure_browser()
        selector = self._interpolate(step.target)
        sequence = str(self._interpolate(step.value))
        locator = self._page.locator(selector).first
        await locator.wait_for(state="visible", timeout=self._timeout(step))
        await type_sequence_async(locator, sequence, delay=step.options.get("delay", 0))
        return StepResult(step=step, status=TestStatus.PASSED)

    async def _handle_press(self, step: TestStep) -> StepResult:
        """Press a single key on an element."""
        await self._ensure_browser()
        selector = self._interpolate(step.target)
        key = str(self._interpolate(step.value))
        await self._page.locator(selector).first.press(key, timeout=self._timeout(step))
        return StepResult(step=step, status=TestStatus.PASSED)

    async def _handle_select(self, step: TestStep) -> StepResult:
        """Select dropdown option."""
        await self._ensure_browser()
        selector = self._interpolate(step.target)
        value = self._interpolate(step.value)
        await self._page.select_option(selector, value, timeout=self._timeout(step))
        return StepResult(step=step, status=TestStatus.PASSED)

    async def _handle_wait(self, step: TestStep) -> StepResult:
        """Wait for specified time (seconds)."""
        value = self._interpolate(step.value)
        duration = float(value) if value is not None else 1.0
        await asyncio.sleep(duration)
        return StepResult(step=step, status=TestStatus.PASSED)

    async def _handle_wait_for(self, step: TestStep) -> StepResult:
        """Wait for element to reach a state."""
        await self._ensure_browser()
        selector = self._interpolate(step.target)
        state = step.options.get("state", "visible")
        await self._page.wait_for_selector(selector, state=state, timeout=self._timeout(step))
        return StepResult(step=step, status=TestStatus.PASSED)

    async def _handle_screenshot(self, step: TestStep) -> StepResult:
        """Take screenshot."""
        await self._ensure_browser()
        filename = (
            self._interpolate(step.value)
            or f"screenshot_{datetime.now().strftime('%Y%m%d_%H%M%S')}.png"
        )
        if self.screenshot_dir:
            os.makedirs(self.screenshot_dir, exist_ok=True)
            filename = os.path.join(self.screenshot_dir, filename)
        await self._page.screenshot(path=filename)
        return StepResult(step=step, status=TestStatus.PASSED, screenshot=filename)

    # =========================================================================
    # Step Handlers - Assertions
    # =========================================================================

    async def _handle_assert_text(self, step: TestStep) -> StepResult:
        """Assert text is present on page or in element."""
        await self._ensure_browser()
        expected = str(self._interpolate(step.value))

        if step.target:
            selector = self._interpolate(step.target)
            element = await self._page.wait_for_selector(selector, timeout=self._timeout(step))
            actual = await element.text_content() or ""
        else:
            actual = await self._page.content()

        if expected not in actual:
            raise StepFailure(f"Expected text '{expected}' not found")
        return StepResult(step=step, status=TestStatus.PASSED)

    async def _handle_assert_element(self, step: TestStep) -> StepResult:
        """Assert element exists."""
        await self._ensure_browser()
        selector = self._interpolate(step.target)
        await self._page.wait_for_selector(selector, state="attached", timeout=self._timeout(step))
        return StepResult(step=step, status=TestStatus.PASSED)

    async def _handle_assert_url(self, step: TestStep) -> StepResult:
        """Assert current URL contains or matches pattern."""
        await self._ensure_browser()
        expected = str(self._interpolate(step.value))
        try:
            pattern = re.compile(expected, re.IGNORECASE)
        except re.error:
            # Not a valid regex, so only a literal match is possible
            pattern = None

        def matches(url: str) -> bool:
            if expected in url:
                return True
            return pattern is not None and pattern.search(url) is not None

        # Submitting a form navigates asynchronously
        try:
            await self._page.wait_for_url(matches, timeout=self._timeout(step))
        except PlaywrightTimeoutError:
            raise StepFailure(f"URL mismatch. Expected: {expected}, Actual: {self._page.url}")
        return StepResult(step=step, status=TestStatus.PASSED)

    async def _handle_assert_title(self, step: TestStep) -> StepResult:
        """Assert page title contains text."""
        await self._ensure_browser()
        expected = str(self._interpolate(step.value))
        actual = await self._page.title()
        if expected not in actual:
            raise StepFailure(f"Title mismatch. Expected: {expected}, Actual: {actual}")
        return StepResult(step=step, status=TestStatus.PASSED)

    async def _handle_assert_value(self, step: TestStep) -> StepResult:
        """Assert input value equals expected."""
        await self._ensure_browser()
        selector = self._interpolate(step.target)
        expected = str(self._interpolate(step.value))
        actual = await self._page.locator(selector).first.input_value(timeout=self._timeout(step))
        if actual != expected:
            raise StepFailure(f"Value mismatch at {selector}. Expected: {expected}, Actual: {actual}")
        return StepResult(step=step, status=TestStatus.PASSED)

    async def _handle_assert_visible(self, step: TestStep) -> StepResult:
        """Assert element is visible."""
        await self._ensure_browser()
        selector = self._interpolate(step.target)
        await self._page.wait_for_selector(selector, state="visible", timeout=self._timeout(step))
        return StepResult(step=step, status=TestStatus.PASSED)

    async def _handle_assert_not_visible(self, step: TestStep) -> StepResult:
        """Assert element is hidden or absent."""
        await self._ensure_browser()
        selector = self._interpolate(step.target)
        await self._page.wait_for_selector(selector, state="hidden", timeout=self._timeout(step))
        return StepResult(step=step, status=TestStatus.PASSED)

    # =========================================================================
    # Step Handlers - Data Operations
    # =========================================================================

    async def _handle_extract(self, step: TestStep) -> StepResult:
        """Extract element text into a variable."""
        await self._ensure_browser()
        selector = self._interpolate(step.target)
        var_name = step.value

        element = await self._page.wait_for_selector(selector, timeout=self._timeout(step))
        text = (await element.text_content() or "").strip()
        self._variables[var_name] = text
        return StepResult(step=step, status=TestStatus.PASSED, extracted_data={var_name: text})

    async def _handle_store(self, step: TestStep) -> StepResult:
        """Store value in variable."""
        self._variables[step.target] = self._interpolate(step.value)
        return StepResult(step=step, status=TestStatus.PASSED)

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute_step(self, step: TestStep) -> StepResult:
        """Execute a single test step."""
        handler = self._handlers.get(step.type)
        if not handler:
            return StepResult(
                step=step, status=TestStatus.ERROR, error=f"No handler for step type: {step.type}"
            )

        start = datetime.now()
        try:
            result = await handler(step)
        except StepFailure as e:
            result = StepResult(step=step, status=TestStatus.FAILED, error=str(e))
        except Exception as e:
            result = StepResult(
                step=step,
                status=TestStatus.FAILED if step.optional else TestStatus.ERROR,
                error=f"{type(e).__name__}: {e}",
            )
        result.duration = (datetime.now() - start).total_seconds()

        if result.status != TestStatus.PASSED:
            logger.warning(f"Step '{step.label()}' {result.status.value}: {result.error}")
        return result

    async def _capture_failure(self, test_case: TestCase, step_result: StepResult) -> None:
        """Attach a screenshot of the page to a failing step."""
        if not self.screenshot_dir or self._page is None:
            return

        os.makedirs(self.screenshot_dir, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        path = os.path.join(self.screenshot_dir, f"failure_{test_case.id}_{timestamp}.png")
        try:
            await self._page.screenshot(path=path)
        except PlaywrightError as e:
            logger.warning(f"Could not capture failure screenshot: {e}")
            return
        step_result.screenshot = path
        logger.info(f"Screenshot saved: {path}")

    async def _run_attempt(self, test_case: TestCase) -> TestResult:
        """Run setup, steps and teardown once."""
        result = TestResult(
            test_case=test_case, status=TestStatus.RUNNING, started_at=datetime.now().isoformat()
        )

        self._variables.update(test_case.variables)

        for step in test_case.setup:
            step_result = await self.execute_step(step)
            result.step_results.append(step_result)
            if step_result.status in (TestStatus.FAILED, TestStatus.ERROR) and not step.optional:
                result.status = TestStatus.ERROR
                result.error = f"Setup failed: {step_result.error}"
                await self._capture_failure(test_case, step_result)
                break

        if result.status == TestStatus.RUNNING:
            for step in test_case.steps:
                step_result = await self.execute_step(step)
                result.step_results.append(step_result)

                if step_result.status in (TestStatus.FAILED, TestStatus.ERROR) and not step.optional:
                    result.status = step_result.status
                    result.error = step_result.error
                    await self._capture_failure(test_case, step_result)
                    break

        # Teardown always runs
        for step in test_case.teardown:
            step_result = await self.execute_step(step)
            result.step_results.append(step_result)

        if result.status == TestStatus.RUNNING:
            result.status = TestStatus.PASSED

        result.completed_at = datetime.now().isoformat()
        result.duration = sum(s.duration for s in result.step_results)
        result.variables = dict(self._variables)
        return result

    async def execute_test_case(self, test_case: TestCase) -> TestResult:
        """Execute a single test case, retrying on failure."""
        if test_case.skip:
            logger.info(f"Skipping test: {test_case.name}")
            return TestResult(test_case=test_case, status=TestStatus.SKIPPED)

        logger.info(f"Running test: {test_case.name}")

        attempt = 0
        while True:
            result = await self._run_attempt(test_case)
            result.retry_count = attempt
            if result.status == TestStatus.PASSED or attempt >= test_case.retry:
                break
            attempt += 1
            logger.info(f"Retrying {test_case.name} ({attempt}/{test_case.retry})")

        logger.info(f"Test {test_case.name}: {result.status.value}")
        return result

    async def execute_suite(self, suite: TestSuite) -> SuiteResult:
        """Execute a test suite."""
        logger.info(f"Running suite: {suite.name}")

        result = SuiteResult(
            suite=suite, status=TestStatus.RUNNING, started_at=datetime.now().isoformat()
        )

        self._variables = dict(suite.global_variables)
        base_url = self.base_url or suite.target_url
        if base_url:
            self._variables["base_url"] = base_url

        setup_error = None
        try:
            for step in suite.global_setup:
                step_result = await self.execute_step(step)
                result.setup_results.append(step_result)
                if _is_failure(step_result) and not step.optional:
                    setup_error = f"Global setup failed: {step_result.error}"
                    break

            if setup_error:
                logger.error(f"{suite.name}: {setup_error}")
                for test_case in suite.test_cases:
                    result.test_results.append(
                        TestResult(test_case=test_case, status=TestStatus.ERROR, error=setup_error)
                    )
            else:
                for test_case in suite.test_cases:
                    test_result = await self.execute_test_case(test_case)
                    result.test_results.append(test_result)

                    if _is_failure(test_result) and suite.stop_on_failure:
                        break

            for step in suite.global_teardown:
                result.teardown_results.append(await self.execute_step(step))

        finally:
            await self._close_browser()

        teardown_failed = any(
            _is_failure(r) and not r.step.optional for r in result.teardown_results
        )
        if result.failed > 0 or result.errored > 0 or setup_error or teardown_failed:
            result.status = TestStatus.FAILED
        else:
            result.status = TestStatus.PASSED

        result.completed_at = datetime.now().isoformat()
        result.duration = sum(r.duration for r in result.test_results)

        logger.info(f"Suite {suite.name}: {result.passed}/{result.total} passed")
        return result
