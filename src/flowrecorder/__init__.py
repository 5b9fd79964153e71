"""Record browser sessions and turn them into Playwright and Selenium tests."""

__version__ = "0.1.0"
