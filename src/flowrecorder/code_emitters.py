from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Iterable, Literal

from .events import (
    AssertionEvent,
    CheckEvent,
    ClickEvent,
    DoubleClickEvent,
    HoverEvent,
    InputEvent,
    NavigationEvent,
    PressEvent,
    RecordedEvent,
    SelectEvent,
    SubmitEvent,
)
from .models import LocatorRef
from .selector_rules import escape_double_quoted, escape_single_quoted

LocatorStrategy = Literal["framework", "xpath", "css", "fallback"]

PLAYWRIGHT = "playwright"
SELENIUM_PYTHON = "selenium-python"
SELENIUM_JAVA = "selenium-java"

OUTPUT_FILENAMES: dict[str, str] = {
    PLAYWRIGHT: "recorded.spec.js",
    SELENIUM_PYTHON: "recorded_selenium.py",
    SELENIUM_JAVA: "RecordedTest.java",
}

# Playwright key names to Selenium ``Keys`` members; the names match in Python and Java.
SELENIUM_KEY_NAMES: dict[str, str] = {
    "Enter": "ENTER",
    "Tab": "TAB",
    "Escape": "ESCAPE",
    "Backspace": "BACK_SPACE",
    "Delete": "DELETE",
    "Space": "SPACE",
    "ArrowUp": "ARROW_UP",
    "ArrowDown": "ARROW_DOWN",
    "ArrowLeft": "ARROW_LEFT",
    "ArrowRight": "ARROW_RIGHT",
    "Home": "HOME",
    "End": "END",
    "PageUp": "PAGE_UP",
    "PageDown": "PAGE_DOWN",
}

_CSS_SHORTHANDS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r'\[role="([^"]+)"\]'), "getByRole"),
    (re.compile(r'\[aria-label="([^"]+)"\]'), "getByLabel"),
    (re.compile(r'\[placeholder="([^"]+)"\]'), "getByPlaceholder"),
    (re.compile(r'\[data-testid="([^"]+)"\]'), "getByTestId"),
    (re.compile(r':has-text\("([^"]+)"\)'), "getByText"),
)


@dataclass(frozen=True, slots=True)
class ChosenLocator:
    strategy: LocatorStrategy
    expression: str


def choose_locator(locator: LocatorRef) -> ChosenLocator:
    if locator.framework:
        return ChosenLocator(strategy="framework", expression=locator.framework)
    if locator.xpath:
        return ChosenLocator(strategy="xpath", expression=locator.xpath)
    if locator.css:
        return ChosenLocator(strategy="css", expression=locator.css)
    return ChosenLocator(strategy="fallback", expression="")


def selenium_key_name(key: str) -> str | None:
    if key in SELENIUM_KEY_NAMES:
        return SELENIUM_KEY_NAMES[key]
    if re.fullmatch(r"F\d{1,2}", key):
        return key
    return None


class PlaywrightEmitter:
    """Playwright statements using the JavaScript fluent API."""

    name = PLAYWRIGHT

    def emit(self, events: Iterable[RecordedEvent]) -> str:
        lines = [self.statement(event) for event in events]
        return "\n".join(line for line in lines if line)

    def statement(self, event: RecordedEvent) -> str | None:
        if isinstance(event, NavigationEvent):
            return f"await page.goto('{escape_single_quoted(event.url)}');"

        target = self.locator_expression(event.locator)
        if isinstance(event, ClickEvent):
            return f"await {target}.click();"
        if isinstance(event, DoubleClickEvent):
            return f"await {target}.dblclick();"
        if isinstance(event, InputEvent):
            return f"await {target}.fill('{escape_single_quoted(event.value)}');"
        if isinstance(event, CheckEvent):
            return f"await {target}.setChecked({'true' if event.checked else 'false'});"
        if isinstance(event, SelectEvent):
            return f"await {target}.selectOption('{escape_single_quoted(event.value)}');"
        if isinstance(event, PressEvent):
            return f"await {target}.press('{escape_single_quoted(event.key)}');"
        if isinstance(event, HoverEvent):
            return f"await {target}.hover();"
        if isinstance(event, SubmitEvent):
            return f"await {target}.evaluate(form => form.submit());"
        if isinstance(event, AssertionEvent):
            return self._assertion(target, event)
        return None

    def locator_expression(self, locator: LocatorRef) -> str:
        chosen = choose_locator(locator)
        if chosen.strategy == "framework":
            return f"page.{chosen.expression}"
        if chosen.strategy == "xpath":
            return f"page.locator('xpath={escape_single_quoted(chosen.expression)}')"
        if chosen.strategy == "css":
            for pattern, method in _CSS_SHORTHANDS:
                match = pattern.search(chosen.expression)
                if match:
                    return f"page.{method}('{escape_single_quoted(match.group(1))}')"
            return f"page.locator('{escape_single_quoted(chosen.expression)}')"
        return "page.locator('')"

    @staticmethod
    def _assertion(target: str, event: AssertionEvent) -> str | None:
        value = escape_single_quoted(event.value)
        if event.assert_type == "containsText":
            return f"await expect({target}).toContainText('{value}');"
        if event.assert_type == "isVisible":
            return f"await expect({target}).toBeVisible();"
        if event.assert_type == "hasValue":
            return f"await expect({target}).toHaveValue('{value}');"
        if event.assert_type == "isEnabled":
            return f"await expect({target}).toBeEnabled();"
        return None


def _selenium_target(locator: LocatorRef) -> tuple[str, str] | None:
    # Framework shorthands have no Selenium form; fall back to their siblings.
    if locator.xpath:
        return "xpath", locator.xpath
    if locator.css:
        return "css", locator.css
    return None


class SeleniumPythonEmitter:
    name = SELENIUM_PYTHON

    def emit(self, events: Iterable[RecordedEvent]) -> str:
        lines = [self.statement(event) for event in events]
        return "\n".join(line for line in lines if line)

    def statement(self, event: RecordedEvent) -> str | None:
        if isinstance(event, NavigationEvent):
            return f"driver.get('{escape_single_quoted(event.url)}')"

        target = _selenium_target(event.locator)
        if target is None:
            return None
        by = "By.XPATH" if target[0] == "xpath" else "By.CSS_SELECTOR"
        element = f"driver.find_element({by}, '{escape_single_quoted(target[1])}')"

        if isinstance(event, ClickEvent):
            return f"{element}.click()"
        if isinstance(event, DoubleClickEvent):
            return f"ActionChains(driver).double_click({element}).perform()"
        if isinstance(event, InputEvent):
            return f"{element}.send_keys('{escape_single_quoted(event.value)}')"
        if isinstance(event, CheckEvent):
            return f"{element}.click()" if event.checked else None
        if isinstance(event, SelectEvent):
            return f"Select({element}).select_by_value('{escape_single_quoted(event.value)}')"
        if isinstance(event, PressEvent):
            key_name = selenium_key_name(event.key)
            if key_name:
                return f"{element}.send_keys(Keys.{key_name})"
            return f"{element}.send_keys('{escape_single_quoted(event.key)}')"
        if isinstance(event, HoverEvent):
            return f"ActionChains(driver).move_to_element({element}).perform()"
        if isinstance(event, SubmitEvent):
            return f"{element}.submit()"
        if isinstance(event, AssertionEvent):
            value = escape_single_quoted(event.value)
            if event.assert_type == "containsText":
                return f"assert '{value}' in {element}.text"
            if event.assert_type == "isVisible":
                return f"assert {element}.is_displayed()"
            if event.assert_type == "hasValue":
                return f"assert {element}.get_attribute('value') == '{value}'"
            if event.assert_type == "isEnabled":
                return f"assert {element}.is_enabled()"
        return None


class SeleniumJavaEmitter:
    name = SELENIUM_JAVA

    def emit(self, events: Iterable[RecordedEvent]) -> str:
        lines = [self.statement(event) for event in events]
        return "\n".join(line for line in lines if line)

    def statement(self, event: RecordedEvent) -> str | None:
        if isinstance(event, NavigationEvent):
            return f'driver.get("{escape_double_quoted(event.url)}");'

        target = _selenium_target(event.locator)
        if target is None:
            return None
        by = "By.xpath" if target[0] == "xpath" else "By.cssSelector"
        element = f'driver.findElement({by}("{escape_double_quoted(target[1])}"))'

        if isinstance(event, ClickEvent):
            return f"{element}.click();"
        if isinstance(event, DoubleClickEvent):
            return f"new Actions(driver).doubleClick({element}).perform();"
        if isinstance(event, InputEvent):
            return f'{element}.sendKeys("{escape_double_quoted(event.value)}");'
        if isinstance(event, CheckEvent):
            return f"{element}.click();" if event.checked else None
        if isinstance(event, SelectEvent):
            return f'new Select({element}).selectByValue("{escape_double_quoted(event.value)}");'
        if isinstance(event, PressEvent):
            key_name = selenium_key_name(event.key)
            if key_name:
                return f"{element}.sendKeys(Keys.{key_name});"
            return f'{element}.sendKeys("{escape_double_quoted(event.key)}");'
        if isinstance(event, HoverEvent):
            return f"new Actions(driver).moveToElement({element}).perform();"
        if isinstance(event, SubmitEvent):
            return f"{element}.submit();"
        if isinstance(event, AssertionEvent):
            value = escape_double_quoted(event.value)
            if event.assert_type == "containsText":
                return f'assertTrue({element}.getText().contains("{value}"));'
            if event.assert_type == "isVisible":
                return f"assertTrue({element}.isDisplayed());"
            if event.assert_type == "hasValue":
                return f'assertEquals("{value}", {element}.getAttribute("value"));'
            if event.assert_type == "isEnabled":
                return f"assertTrue({element}.isEnabled());"
        return None


EMITTERS = (PlaywrightEmitter(), SeleniumPythonEmitter(), SeleniumJavaEmitter())


def emit_all(events: Iterable[RecordedEvent]) -> dict[str, str]:
    """Statement blocks keyed by target framework name."""
    frozen = tuple(events)
    return {emitter.name: emitter.emit(frozen) for emitter in EMITTERS}


def build_test_file(target: str, body: str) -> str:
    """Wrap emitted statements into a runnable test source file."""
    if target == PLAYWRIGHT:
        return (
            "const { test, expect } = require('@playwright/test');\n"
            "\n"
            "test('recorded flow', async ({ page }) => {\n"
            f"{_indent(body, 2)}"
            "});\n"
        )
    if target == SELENIUM_PYTHON:
        python_body = _indent(body, 4) or "    pass\n"
        return (
            "from selenium import webdriver\n"
            "from selenium.webdriver.common.action_chains import ActionChains\n"
            "from selenium.webdriver.common.by import By\n"
            "from selenium.webdriver.common.keys import Keys\n"
            "from selenium.webdriver.support.ui import Select\n"
            "\n"
            "\n"
            "def test_recorded_flow(driver):\n"
            f"{python_body}"
            "\n"
            "\n"
            "if __name__ == \"__main__\":\n"
            "    driver = webdriver.Chrome()\n"
            "    try:\n"
            "        test_recorded_flow(driver)\n"
            "    finally:\n"
            "        driver.quit()\n"
        )
    if target == SELENIUM_JAVA:
        return (
            "import static org.junit.jupiter.api.Assertions.assertEquals;\n"
            "import static org.junit.jupiter.api.Assertions.assertTrue;\n"
            "\n"
            "import org.junit.jupiter.api.AfterEach;\n"
            "import org.junit.jupiter.api.BeforeEach;\n"
            "import org.junit.jupiter.api.Test;\n"
            "import org.openqa.selenium.By;\n"
            "import org.openqa.selenium.Keys;\n"
            "import org.openqa.selenium.WebDriver;\n"
            "import org.openqa.selenium.chrome.ChromeDriver;\n"
            "import org.openqa.selenium.interactions.Actions;\n"
            "import org.openqa.selenium.support.ui.Select;\n"
            "\n"
            "public class RecordedTest {\n"
            "\n"
            "    private WebDriver driver;\n"
            "\n"
            "    @BeforeEach\n"
            "    void setUp() {\n"
            "        driver = new ChromeDriver();\n"
            "    }\n"
            "\n"
            "    @AfterEach\n"
            "    void tearDown() {\n"
            "        driver.quit();\n"
            "    }\n"
            "\n"
            "    @Test\n"
            "    void recordedFlow() {\n"
            f"{_indent(body, 8)}"
            "    }\n"
            "}\n"
        )
    raise ValueError(f"Unknown emitter target: {target}")


def _indent(body: str, width: int) -> str:
    if not body:
        return ""
    pad = " " * width
    return "".join(f"{pad}{line}\n" for line in body.splitlines())
