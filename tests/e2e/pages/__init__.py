"""
Page Object Models for Playwright E2E Tests

This package provides page objects that encapsulate UI interactions
and provide a clean API for test code.
"""

from .base_page import BasePage
from .home_page import HomePage
from .search_results_page import SearchResultsPage

__all__ = [
    "BasePage",
    "HomePage",
    "SearchResultsPage",
]
