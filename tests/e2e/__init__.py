"""
Storefront Search E2E Test Suite

End-to-end browser tests using Playwright.

Structure:
    conftest.py           - Fixtures and configuration
    pages/                - Page Object Models
    test_search.py        - Search scenario and search bar tests
    test_live_search.py   - Search scenario against the real site
    test_suites.py        - Built-in declarative suites via the CLI runner

Running Tests:
    # Install dependencies
    pip install -e ".[test]"
    playwright install chromium

    # Run all tests (stub storefront started automatically)
    pytest tests/e2e/

    # Run with visible browser
    pytest tests/e2e/ --headed

    # Run specific browser
    pytest tests/e2e/ --browser firefox

    # Run smoke tests only
    pytest tests/e2e/ -m smoke

    # Run against the real site
    E2E_TARGET=live E2E_LIVE=true pytest tests/e2e/
"""
