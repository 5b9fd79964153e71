from flowrecorder.locator_generator import build_css_path, build_structural_xpath, generate, generate_locator_candidates
from flowrecorder.models import ElementSnapshot, SiblingSnapshot
from flowrecorder.validation import StaticMatchOracle


def _snapshot(**overrides) -> ElementSnapshot:
    base = {
        "tag": "button",
        "attributes": {},
        "text": None,
    }
    base.update(overrides)
    return ElementSnapshot(**base)


def test_testid_button_ranks_testid_first() -> None:
    snapshot = _snapshot(attributes={"data-testid": "login"}, text="Log in")

    candidates = generate(snapshot)

    assert [candidate.kind for candidate in candidates] == ["testid", "role", "text", "cssPath", "xpath-basic"]
    top = candidates[0]
    assert top.css == '[data-testid="login"]'
    assert top.xpath == '//*[@data-testid="login"]'
    assert top.framework == "getByTestId('login')"
    assert top.score == 110


def test_generation_is_deterministic() -> None:
    snapshot = _snapshot(
        tag="a",
        attributes={"href": "/pricing", "class": "nav-link"},
        text="Pricing",
        parent=ElementSnapshot(tag="nav", attributes={"data-testid": "main-nav"}),
    )
    oracle = StaticMatchOracle(default=2)

    assert generate(snapshot, oracle) == generate(snapshot, oracle)


def test_testid_beats_minified_classes() -> None:
    snapshot = _snapshot(tag="div", attributes={"data-testid": "save", "class": "a1b2c3 xY9kLm"})

    candidates = generate(snapshot)

    assert candidates[0].kind == "testid"
    css_path = next(candidate for candidate in candidates if candidate.kind == "cssPath")
    assert css_path.dynamic_warning is True
    assert css_path.css == "div:nth-of-type(1)"
    assert css_path.score == 10


def test_dynamic_id_is_skipped() -> None:
    snapshot = _snapshot(tag="input", attributes={"id": "input-1700000000000", "name": "email"})

    kinds = [candidate.kind for candidate in generate(snapshot)]

    assert "id" not in kinds
    assert kinds[0] == "name"


def test_role_candidate_uses_explicit_role_selector() -> None:
    snapshot = _snapshot(tag="div", attributes={"role": "tab", "aria-label": "Billing"})

    role = next(candidate for candidate in generate(snapshot) if candidate.kind == "role")

    assert role.framework == "getByRole('tab', { name: 'Billing' })"
    assert role.css == '[role="tab"]'
    assert role.xpath == '//*[@role="tab"]'
    assert role.score == 95
    assert role.match_count is None


def test_label_candidate_needs_no_oracle() -> None:
    snapshot = _snapshot(tag="input", attributes={"id": "email"}, label_text="Email address")

    label = next(candidate for candidate in generate(snapshot) if candidate.kind == "label")

    assert label.framework == "getByLabel('Email address')"
    assert label.css == '[id="email"]'
    assert label.match_count == 1


def test_match_counts_come_from_oracle_and_failures_are_unknown() -> None:
    snapshot = _snapshot(tag="input", attributes={"name": "q", "type": "search"})
    oracle = StaticMatchOracle(counts={'input[type="search"]': 1}, default=3, invalid=frozenset({'[name="q"]'}))

    candidates = {candidate.kind: candidate for candidate in generate(snapshot, oracle)}

    assert candidates["name"].match_count is None
    assert candidates["type"].match_count == 1


def test_filter_and_chain_candidates() -> None:
    parent = ElementSnapshot(tag="section", attributes={"data-testid": "checkout"})
    snapshot = _snapshot(attributes={"class": "btn primary"}, text="Pay now", parent=parent)

    candidates = {candidate.kind: candidate for candidate in generate(snapshot)}

    assert candidates["filter"].framework == "locator('.btn').filter({ hasText: 'Pay now' })"
    assert candidates["filter"].css == ".btn"
    assert candidates["chain"].framework == "getByTestId('checkout').locator('button')"
    assert candidates["chain"].css == '[data-testid="checkout"] button'


def test_advanced_fallbacks_only_without_unique_candidate() -> None:
    form = ElementSnapshot(tag="form", attributes={"id": "loginForm"})
    snapshot = ElementSnapshot(
        tag="input",
        attributes={"type": "text", "class": "field"},
        nth_of_type=2,
        same_tag_sibling_count=2,
        child_index=2,
        previous_sibling=SiblingSnapshot(tag="label", text="Username"),
        parent=form,
    )

    ambiguous = {candidate.kind: candidate for candidate in generate(snapshot, StaticMatchOracle(default=3))}
    assert ambiguous["xpath-parent"].xpath == '//*[@id="loginForm"]/*[2]'
    assert ambiguous["xpath-ancestor"].xpath == '//*[@id="loginForm"]//input[2]'
    assert ambiguous["xpath-sibling-text"].xpath == '//*[contains(text(),"Username")]/following-sibling::input[1]'
    assert ambiguous["xpath-multi-attr"].xpath == '//input[contains(@class,"field") and @type="text"]'

    unique = [candidate.kind for candidate in generate(snapshot, StaticMatchOracle(default=1))]
    assert not any(kind.startswith("xpath-") and kind != "xpath-basic" for kind in unique)


def test_structural_paths() -> None:
    body_child = ElementSnapshot(tag="main", attributes={"class": "content active"})
    row = ElementSnapshot(tag="div", attributes={"class": "row"}, nth_of_type=3, parent=body_child)
    snapshot = ElementSnapshot(tag="span", nth_of_type=2, parent=row)

    assert build_css_path(snapshot) == "div.row > span:nth-of-type(2)"
    assert build_css_path(body_child) == "main.content"
    assert build_structural_xpath(snapshot) == "//main[1]/div[3]/span[2]"


class _FakeElement:
    def evaluate(self, _script: str) -> dict:
        return {
            "nodes": [
                {
                    "tag": "BUTTON",
                    "attributes": {"data-testid": "save-btn"},
                    "text": "Save",
                    "nth_of_type": 1,
                    "same_tag_sibling_count": 1,
                    "child_index": 1,
                }
            ],
            "truncated": False,
        }


class _FakeLocator:
    def count(self) -> int:
        return 1


class _FakePage:
    def locator(self, _selector: str) -> _FakeLocator:
        return _FakeLocator()

    def query_selector_all(self, _selector: str) -> list[object]:
        return [object()]


def test_live_element_candidates_come_from_its_snapshot() -> None:
    candidates = generate_locator_candidates(_FakePage(), _FakeElement())

    assert candidates[0].kind == "testid"
    assert candidates[0].framework == "getByTestId('save-btn')"


def test_implicit_role_is_framework_only() -> None:
    snapshot = _snapshot(tag="a", text="Pricing")

    role = next(candidate for candidate in generate(snapshot) if candidate.kind == "role")

    assert role.framework == "getByRole('link', { name: 'Pricing' })"
    assert role.css is None
    assert role.xpath is None
