"""
Retail Storefront E2E

Browser tests for a retail site's search, as page-object pytest tests and
as declarative suites run by a Playwright runner.

Suite Data Structure:
- test_data/: built-in suite definitions (YAML/JSON)
- Each suite lists test cases; each case lists steps
- Steps name an action or assertion, a target selector or URL, and a value
"""

from .keystrokes import Keystroke, KeystrokeError, parse_keystrokes
from .loader import SuiteLoadError, load_all_suites, load_test_suite
from .models import StepType, TestCase, TestResult, TestStatus, TestStep, TestSuite
from .runner import TestRunner

__version__ = "0.1.0"

__all__ = [
    "TestRunner",
    "TestSuite",
    "TestCase",
    "TestStep",
    "TestResult",
    "TestStatus",
    "StepType",
    "Keystroke",
    "KeystrokeError",
    "SuiteLoadError",
    "parse_keystrokes",
    "load_test_suite",
    "load_all_suites",
]
