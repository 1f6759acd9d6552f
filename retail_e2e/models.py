"""
Test Framework Models

Data structures for declarative browser suites.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class StepType(str, Enum):
    """Types of test steps."""

    # Browser actions
    NAVIGATE = "navigate"
    CLICK = "click"
    FILL = "fill"
    TYPE = "type"
    PRESS = "press"
    SELECT = "select"
    WAIT = "wait"
    WAIT_FOR = "wait_for"
    SCREENSHOT = "screenshot"

    # Assertions
    ASSERT_TEXT = "assert_text"
    ASSERT_ELEMENT = "assert_element"
    ASSERT_URL = "assert_url"
    ASSERT_TITLE = "assert_title"
    ASSERT_VALUE = "assert_value"
    ASSERT_VISIBLE = "assert_visible"
    ASSERT_NOT_VISIBLE = "assert_not_visible"

    # Data operations
    EXTRACT = "extract"
    STORE = "store"

    @classmethod
    def parse(cls, value: str) -> "StepType":
        """Resolve a step type name, accepting aliases."""
        name = str(value).strip().lower()
        return cls(STEP_ALIASES.get(name, name))


STEP_ALIASES = {
    "visit": StepType.NAVIGATE.value,
    "get": StepType.ASSERT_ELEMENT.value,
}


class TestStatus(str, Enum):
    """Test execution status."""

    __test__ = False

    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    ERROR = "error"


def slugify(name: str) -> str:
    """Derive an id from a display name."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "unnamed"


def tag_list(value) -> List[str]:
    """Tags as a list; a single tag may be written as a plain string."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


@dataclass
class TestStep:
    """A single test step."""

    __test__ = False

    type: StepType
    target: Optional[str] = None  # Selector, URL, or variable name
    value: Optional[Any] = None
    options: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None
    timeout: Optional[float] = None  # Seconds; None uses the page default
    optional: bool = False  # If True, failure doesn't stop test

    @classmethod
    def from_dict(cls, data: Dict) -> "TestStep":
        """Create from dictionary (loaded from data file)."""
        timeout = data.get("timeout")
        return cls(
            type=StepType.parse(data["type"]),
            target=data.get("target"),
            value=data.get("value"),
            options=data.get("options") or {},
            description=data.get("description"),
            timeout=float(timeout) if timeout is not None else None,
            optional=data.get("optional", False),
        )

    def label(self) -> str:
        if self.description:
            return self.description
        if self.target:
            return f"{self.type.value} {self.target}"
        return self.type.value


@dataclass
class TestCase:
    """A single test case containing multiple steps."""

    __test__ = False

    id: str
    name: str
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    steps: List[TestStep] = field(default_factory=list)
    setup: List[TestStep] = field(default_factory=list)
    teardown: List[TestStep] = field(default_factory=list)
    variables: Dict[str, Any] = field(default_factory=dict)
    retry: int = 0  # Extra attempts after a failure
    skip: bool = False

    @classmethod
    def from_dict(cls, data: Dict) -> "TestCase":
        """Create from dictionary (loaded from data file)."""
        return cls(
            id=data.get("id") or slugify(data["name"]),
            name=data["name"],
            description=data.get("description"),
            tags=tag_list(data.get("tags")),
            steps=[TestStep.from_dict(s) for s in data.get("steps") or []],
            setup=[TestStep.from_dict(s) for s in data.get("setup") or []],
            teardown=[TestStep.from_dict(s) for s in data.get("teardown") or []],
            variables=data.get("variables") or {},
            retry=int(data.get("retry", 0)),
            skip=bool(data.get("skip", False)),
        )


@dataclass
class TestSuite:
    """
    A collection of test cases.

    Loaded from a data file (JSON/YAML).
    """

    __test__ = False

    id: str
    name: str
    description: Optional[str] = None
    target_url: Optional[str] = None  # Base URL
    tags: List[str] = field(default_factory=list)
    test_cases: List[TestCase] = field(default_factory=list)
    global_setup: List[TestStep] = field(default_factory=list)
    global_teardown: List[TestStep] = field(default_factory=list)
    global_variables: Dict[str, Any] = field(default_factory=dict)
    stop_on_failure: bool = False  # Stop suite on first failure
    source: Optional[str] = None  # File the suite was loaded from

    @classmethod
    def from_dict(cls, data: Dict) -> "TestSuite":
        """Create from dictionary (loaded from data file)."""
        return cls(
            id=data.get("id") or slugify(data["name"]),
            name=data["name"],
            description=data.get("description"),
            target_url=data.get("target_url"),
            tags=tag_list(data.get("tags")),
            test_cases=[TestCase.from_dict(tc) for tc in data.get("test_cases") or []],
            global_setup=[TestStep.from_dict(s) for s in data.get("global_setup") or []],
            global_teardown=[TestStep.from_dict(s) for s in data.get("global_teardown") or []],
            global_variables=data.get("global_variables") or {},
            stop_on_failure=data.get("stop_on_failure", False),
        )


@dataclass
class StepResult:
    """Result of a single step execution."""

    step: TestStep
    status: TestStatus
    duration: float = 0.0
    error: Optional[str] = None
    screenshot: Optional[str] = None
    extracted_data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "step": self.step.label(),
            "type": self.step.type.value,
            "status": self.status.value,
            "duration": self.duration,
            "error": self.error,
            "screenshot": self.screenshot,
        }


@dataclass
class TestResult:
    """Result of a test case execution."""

    __test__ = False

    test_case: TestCase
    status: TestStatus
    step_results: List[StepResult] = field(default_factory=list)
    duration: float = 0.0
    error: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    retry_count: int = 0
    variables: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        """Convert to dictionary for reports."""
        return {
            "test_id": self.test_case.id,
            "test_name": self.test_case.name,
            "status": self.status.value,
            "duration": self.duration,
            "error": self.error,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "retry_count": self.retry_count,
            "steps_passed": sum(1 for s in self.step_results if s.status == TestStatus.PASSED),
            "steps_failed": sum(
                1 for s in self.step_results if s.status in (TestStatus.FAILED, TestStatus.ERROR)
            ),
            "steps_total": len(self.step_results),
            "steps": [s.to_dict() for s in self.step_results],
        }


@dataclass
class SuiteResult:
    """Result of a test suite execution."""

    suite: TestSuite
    status: TestStatus
    test_results: List[TestResult] = field(default_factory=list)
    setup_results: List[StepResult] = field(default_factory=list)
    teardown_results: List[StepResult] = field(default_factory=list)
    duration: float = 0.0
    started_at: Optional[str] = None
    completed_at: Optional[str] = None

    @property
    def passed(self) -> int:
        return sum(1 for r in self.test_results if r.status == TestStatus.PASSED)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.test_results if r.status == TestStatus.FAILED)

    @property
    def errored(self) -> int:
        return sum(1 for r in self.test_results if r.status == TestStatus.ERROR)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.test_results if r.status == TestStatus.SKIPPED)

    @property
    def total(self) -> int:
        return len(self.test_results)

    def to_dict(self) -> Dict:
        """Convert to dictionary for reports."""
        return {
            "suite_id": self.suite.id,
            "suite_name": self.suite.name,
            "status": self.status.value,
            "duration": self.duration,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "passed": self.passed,
            "failed": self.failed,
            "errored": self.errored,
            "skipped": self.skipped,
            "total": self.total,
            "global_setup": [s.to_dict() for s in self.setup_results],
            "global_teardown": [s.to_dict() for s in self.teardown_results],
            "tests": [r.to_dict() for r in self.test_results],
        }
