"""
Pytest fixtures for storefront E2E tests
"""
import importlib.util
from pathlib import Path

import pytest


def pytest_configure(config):
    """Register markers."""
    config.addinivalue_line("markers", "e2e: End-to-end tests (require playwright)")
    config.addinivalue_line("markers", "smoke: marks tests as smoke tests")
    config.addinivalue_line("markers", "live: runs against the real site (needs E2E_LIVE=true)")
    config.addinivalue_line("markers", "slow: marks tests as slow")


def is_e2e_item(item) -> bool:
    return "/e2e/" in "/" + item.nodeid.replace("\\", "/")


def pytest_collection_modifyitems(config, items):
    """Run e2e tests last, and skip them if playwright is not installed."""
    # The sync Playwright session must not start before tests that use asyncio.run
    items[:] = [i for i in items if not is_e2e_item(i)] + [i for i in items if is_e2e_item(i)]

    _playwright_spec = importlib.util.find_spec("playwright.sync_api")
    if _playwright_spec is None:
        skip_e2e = pytest.mark.skip(reason="Playwright not installed")
        for item in items:
            if is_e2e_item(item):
                item.add_marker(skip_e2e)


@pytest.fixture
def suite_dict():
    """A valid suite as loaded from a data file."""
    return {
        "name": "simple search",
        "target_url": "https://www.amazon.com",
        "tags": ["search"],
        "global_variables": {"search_box": '[name="field-keywords"]', "query": "Keyboard"},
        "test_cases": [
            {
                "name": "should be able to perform a search in Amazon.com",
                "tags": ["smoke"],
                "steps": [
                    {"type": "visit", "target": "/"},
                    {"type": "type", "target": "${search_box}", "value": "${query}{enter}"},
                    {"type": "assert_url", "value": "[?&]k=${query}"},
                ],
            },
            {
                "name": "keeps the query",
                "steps": [
                    {"type": "visit", "target": "/"},
                    {"type": "fill", "target": "${search_box}", "value": "${query}"},
                    {"type": "assert_value", "target": "${search_box}", "value": "${query}"},
                ],
            },
        ],
    }


@pytest.fixture
def suite_file(tmp_path: Path, suite_dict):
    """The suite written out as YAML."""
    import yaml

    path = tmp_path / "suite.yaml"
    path.write_text(yaml.safe_dump(suite_dict))
    return path
