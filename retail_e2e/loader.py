"""
Test Data Loader

Loads declarative test suites from data files (JSON/YAML).
"""

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from .keystrokes import KeystrokeError, parse_keystrokes
from .models import StepType, TestSuite

logger = logging.getLogger(__name__)

# Suites shipped with the package
TEST_DATA_DIR = Path(__file__).parent / "test_data"

SUITE_SUFFIXES = (".json", ".yaml", ".yml")

_NEEDS_TARGET = {StepType.CLICK, StepType.FILL, StepType.TYPE, StepType.PRESS, StepType.SELECT}
_NEEDS_VALUE = {StepType.TYPE, StepType.PRESS}


class SuiteLoadError(Exception):
    """Raised when a suite file cannot be loaded."""

    def __init__(self, path: str, errors: List[str]):
        self.path = path
        self.errors = errors
        super().__init__(f"{path}: " + "; ".join(errors))


def read_suite_data(file_path: str) -> Dict:
    """Read raw suite data from a JSON or YAML file."""
    path = Path(file_path)

    if not path.exists():
        raise SuiteLoadError(str(path), ["file not found"])

    try:
        with open(path) as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise SuiteLoadError(str(path), [f"parse error: {e}"]) from e
    except OSError as e:
        raise SuiteLoadError(str(path), [str(e)]) from e

    if not isinstance(data, dict):
        raise SuiteLoadError(str(path), ["top level must be a mapping"])
    return data


def load_test_suite(file_path: str) -> TestSuite:
    """
    Load a test suite from a data file.

    Args:
        file_path: Path to JSON or YAML file

    Returns:
        TestSuite

    Raises:
        SuiteLoadError: file missing, unparseable, or invalid
    """
    data = read_suite_data(file_path)

    errors = validate_test_suite(data)
    if errors:
        raise SuiteLoadError(str(file_path), errors)

    try:
        suite = TestSuite.from_dict(data)
    except (TypeError, ValueError, AttributeError) as e:
        raise SuiteLoadError(str(file_path), [f"invalid suite data: {e}"]) from e
    suite.source = str(file_path)
    logger.debug(f"Loaded suite {suite.name!r} with {len(suite.test_cases)} cases from {file_path}")
    return suite


def suite_files(directory: Optional[str] = None) -> List[Path]:
    """List suite files under a directory, sorted by path."""
    dir_path = Path(directory) if directory else TEST_DATA_DIR

    if not dir_path.exists():
        logger.warning(f"Test data directory not found: {dir_path}")
        return []

    return sorted(p for p in dir_path.rglob("*") if p.is_file() and p.suffix in SUITE_SUFFIXES)


def load_all_suites(directory: Optional[str] = None) -> List[TestSuite]:
    """
    Load all test suites from a directory.

    Args:
        directory: Path to test data directory (defaults to the built-in suites)

    Returns:
        List of TestSuite objects
    """
    return [load_test_suite(str(path)) for path in suite_files(directory)]


def load_suites(paths: List[str]) -> List[TestSuite]:
    """Load suites from a mix of files and directories."""
    if not paths:
        return load_all_suites()

    suites = []
    for p in paths:
        if Path(p).is_dir():
            suites.extend(load_all_suites(p))
        else:
            suites.append(load_test_suite(p))
    return suites


def filter_suites_by_tag(suites: List[TestSuite], tag: str) -> List[TestSuite]:
    """
    Keep suites matching a tag.

    A suite tagged with it is kept whole. Otherwise it is narrowed to the
    cases tagged with it, and dropped if none are.
    """
    selected = []
    for suite in suites:
        if tag in suite.tags:
            selected.append(suite)
            continue
        cases = [tc for tc in suite.test_cases if tag in tc.tags]
        if cases:
            selected.append(replace(suite, test_cases=cases))
    return selected


def validate_test_suite(data: Dict) -> List[str]:
    """
    Validate a test suite data structure.

    Returns list of validation errors.
    """
    errors = []

    if not data.get("name"):
        errors.append("Missing required field: name")
    elif not isinstance(data["name"], str):
        errors.append("name must be a string")
    errors.extend(_validate_tags(data, "suite"))

    cases = data.get("test_cases")
    if cases is None:
        cases = []
    if not isinstance(cases, list):
        return errors + ["test_cases must be a list"]

    for i, tc in enumerate(cases):
        where = f"test_cases[{i}]"
        if not isinstance(tc, dict):
            errors.append(f"{where}: must be a mapping")
            continue
        if not tc.get("name"):
            errors.append(f"{where}: Missing required field: name")
        elif not isinstance(tc["name"], str):
            errors.append(f"{where}: name must be a string")
        errors.extend(_validate_tags(tc, where))

        retry = tc.get("retry", 0)
        if isinstance(retry, bool) or not isinstance(retry, int) or retry < 0:
            errors.append(f"{where}: retry must be a non-negative integer")

        for section in ("setup", "steps", "teardown"):
            errors.extend(_validate_steps(tc.get(section), f"{where}.{section}"))

    for section in ("global_setup", "global_teardown"):
        errors.extend(_validate_steps(data.get(section), section))

    return errors


def _validate_tags(data: Dict, where: str) -> List[str]:
    tags = data.get("tags")
    if tags is None or isinstance(tags, str):
        return []
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        return [f"{where}: tags must be a string or a list of strings"]
    return []


def _validate_steps(steps, where: str) -> List[str]:
    if steps is None:
        return []
    if not isinstance(steps, list):
        return [f"{where}: must be a list"]

    errors = []
    for j, step in enumerate(steps):
        errors.extend(_validate_step(step, f"{where}[{j}]"))
    return errors


def _validate_step(step, where: str) -> List[str]:
    if not isinstance(step, dict):
        return [f"{where}: must be a mapping"]
    if "type" not in step:
        return [f"{where}: Missing required field: type"]

    try:
        step_type = StepType.parse(step["type"])
    except ValueError:
        return [f"{where}: Unknown step type: {step['type']}"]

    errors = []
    timeout = step.get("timeout")
    if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, (int, float))):
        errors.append(f"{where}: timeout must be a number of seconds")
    if not isinstance(step.get("options") or {}, dict):
        errors.append(f"{where}: options must be a mapping")

    if step_type in _NEEDS_TARGET and not step.get("target"):
        errors.append(f"{where}: {step_type.value} step requires a target")
    if step_type in _NEEDS_VALUE and step.get("value") in (None, ""):
        errors.append(f"{where}: {step_type.value} step requires a value")
    elif step_type == StepType.TYPE and "${" not in str(step["value"]):
        try:
            parse_keystrokes(str(step["value"]))
        except KeystrokeError as e:
            errors.append(f"{where}: {e}")
    return errors
