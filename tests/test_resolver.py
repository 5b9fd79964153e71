from flowrecorder.code_emitters import SeleniumPythonEmitter
from flowrecorder.events import ClickEvent
from flowrecorder.locator_generator import generate
from flowrecorder.models import ElementSnapshot, LocatorCandidate
from flowrecorder.resolver import (
    UsedLocatorRegistry,
    build_ancestor_css,
    build_positional_xpath,
    resolve,
)
from flowrecorder.validation import StaticMatchOracle


class _ExplodingOracle:
    def match_count(self, kind, expression) -> int:
        raise RuntimeError("page is gone")


def _list_item() -> ElementSnapshot:
    wrapper = ElementSnapshot(tag="div", nth_of_type=2, same_tag_sibling_count=3)
    menu = ElementSnapshot(tag="ul", parent=wrapper)
    return ElementSnapshot(tag="li", nth_of_type=3, same_tag_sibling_count=5, parent=menu)


def test_unique_top_candidate_is_kept() -> None:
    candidate = LocatorCandidate(kind="testid", css='[data-testid="save"]', score=110, match_count=1)
    snapshot = ElementSnapshot(tag="button", attributes={"data-testid": "save"})

    resolution = resolve(snapshot, [candidate])

    assert resolution.strategy == "top"
    assert resolution.candidate is candidate
    assert resolution.expression == '[data-testid="save"]'


def test_ambiguous_top_candidate_is_scoped_to_anchored_ancestor() -> None:
    cart = ElementSnapshot(tag="div", attributes={"id": "cart"})
    snapshot = ElementSnapshot(tag="button", attributes={"class": "buy"}, text="Buy", parent=cart)
    candidate = LocatorCandidate(
        kind="text",
        css='button:has-text("Buy")',
        framework="getByRole('button', { name: 'Buy' })",
        score=70,
    )
    oracle = StaticMatchOracle(counts={"#cart > button.buy": 1}, default=2)

    resolution = resolve(snapshot, [candidate], oracle)

    assert resolution.strategy == "ancestor-css"
    assert resolution.candidate.css == "#cart > button.buy"
    assert resolution.candidate.framework == "getByRole('button', { name: 'Buy' })"
    assert resolution.match_count == 1


def test_ancestor_css_uses_nth_of_type_on_ancestors_only() -> None:
    assert build_ancestor_css(_list_item()) == "div:nth-of-type(2) > ul > li"


def test_positional_xpath_is_last_resort() -> None:
    snapshot = _list_item()
    candidates = generate(snapshot, StaticMatchOracle(default=5))

    resolution = resolve(snapshot, candidates, StaticMatchOracle(default=5))

    assert resolution.strategy == "positional-xpath"
    assert resolution.candidate.xpath == "/html/body/div[2]/ul[1]/li[3]"
    assert resolution.candidate.css is None
    assert resolution.match_count == 1


def test_positional_xpath_for_truncated_ancestry() -> None:
    top = ElementSnapshot(tag="section", nth_of_type=4, ancestry_truncated=True)
    snapshot = ElementSnapshot(tag="p", parent=top)

    assert build_positional_xpath(snapshot) == "//section[4]/p[1]"


def test_registry_forces_distinct_locators_within_a_scan() -> None:
    snapshot = ElementSnapshot(tag="button", attributes={"data-testid": "x"})
    oracle = StaticMatchOracle(default=1)
    candidates = generate(snapshot, oracle)
    registry = UsedLocatorRegistry()

    first = resolve(snapshot, candidates, oracle, registry)
    second = resolve(snapshot, candidates, oracle, registry)
    third = resolve(snapshot, candidates, oracle, registry)

    assert [first.strategy, second.strategy, third.strategy] == ["top", "alternate", "positional-xpath"]
    assert first.expression == '[data-testid="x"]'
    assert second.expression == "button:nth-of-type(1)"
    assert third.expression == "/html/body/button[1]"
    assert second.candidate.framework == "getByTestId('x')"
    assert len(registry) == 3
    assert '[data-testid="x"]' in registry


def test_fresh_registry_per_scan() -> None:
    snapshot = ElementSnapshot(tag="button", attributes={"data-testid": "x"})
    oracle = StaticMatchOracle(default=1)
    candidates = generate(snapshot, oracle)

    assert resolve(snapshot, candidates, oracle, UsedLocatorRegistry()).strategy == "top"
    assert resolve(snapshot, candidates, oracle, UsedLocatorRegistry()).strategy == "top"


def test_oracle_failure_falls_through_to_positional_xpath() -> None:
    snapshot = ElementSnapshot(tag="a", attributes={"class": "more"})
    candidate = LocatorCandidate(kind="cssPath", css="a.more", score=40)

    resolution = resolve(snapshot, [candidate], _ExplodingOracle())

    assert resolution.strategy == "positional-xpath"
    assert resolution.candidate.xpath == "/html/body/a[1]"


def test_no_candidates_still_resolves() -> None:
    resolution = resolve(ElementSnapshot(tag="span"), [])

    assert resolution.strategy == "positional-xpath"
    assert resolution.candidate.xpath == "/html/body/span[1]"


def _price() -> ElementSnapshot:
    card = ElementSnapshot(tag="div", attributes={"class": "card"}, nth_of_type=2, same_tag_sibling_count=3)
    return ElementSnapshot(tag="span", attributes={"class": "price"}, text="9.99", parent=card)


def test_ambiguous_xpath_sibling_is_dropped_from_unique_css() -> None:
    candidate = LocatorCandidate(kind="cssPath", css="div.card > span.price", xpath="//div[2]/span[1]", score=40)
    oracle = StaticMatchOracle(counts={"div.card > span.price": 1, "//div[2]/span[1]": 4})

    resolution = resolve(_price(), [candidate], oracle)

    assert resolution.strategy == "top"
    assert resolution.candidate.css == "div.card > span.price"
    assert resolution.candidate.xpath is None
    statement = SeleniumPythonEmitter().statement(ClickEvent(timestamp=1, locator=resolution.candidate.to_locator()))
    assert statement == "driver.find_element(By.CSS_SELECTOR, 'div.card > span.price').click()"


def test_unique_xpath_sibling_is_kept() -> None:
    candidate = LocatorCandidate(kind="cssPath", css="div.card > span.price", xpath="//div[2]/span[1]", score=40)
    oracle = StaticMatchOracle(counts={"div.card > span.price": 1, "//div[2]/span[1]": 1})

    resolution = resolve(_price(), [candidate], oracle)

    assert resolution.candidate is candidate


def test_alternate_keeps_only_verified_xpath() -> None:
    top = LocatorCandidate(kind="text", css='span:has-text("9.99")', score=60)
    loose = LocatorCandidate(kind="filter", css=".price", xpath='//*[contains(@class, "price")]', score=50)
    oracle = StaticMatchOracle(counts={'span:has-text("9.99")': 2, ".price": 1, '//*[contains(@class, "price")]': 3})

    resolution = resolve(_price(), [top, loose], oracle)

    assert resolution.strategy == "alternate"
    assert resolution.candidate.css == ".price"
    assert resolution.candidate.xpath is None
