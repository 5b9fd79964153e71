from flowrecorder.models import LocatorCandidate
from flowrecorder.scoring import BASE_KIND_SCORES, score, sort_candidates


def test_base_scores_follow_stability_order() -> None:
    ordered = ["data-testid", "data-test", "id", "name", "aria-label", "placeholder", "type", "role", "text", "class", "css-path", "xpath"]
    values = [BASE_KIND_SCORES[kind] for kind in ordered]
    assert values == sorted(values, reverse=True)


def test_short_stable_value_gets_bonus() -> None:
    assert score("data-testid", "login") == 110


def test_dynamic_value_is_penalized() -> None:
    assert score("id", "1700000000000") == 50


def test_long_value_is_penalized() -> None:
    long_path = "div.content > ul.list " * 6
    assert len(long_path) > 100
    assert score("css-path", long_path) == 10


def test_unknown_kind_and_negative_scores() -> None:
    assert score("something-else", "abc") == 20
    assert score("xpath", "x" * 120) == -50


def test_sort_is_descending_and_stable() -> None:
    first = LocatorCandidate(kind="text", css="button:has-text(\"A\")", score=70)
    second = LocatorCandidate(kind="name", css='[name="a"]', score=95)
    third = LocatorCandidate(kind="type", css='input[type="text"]', score=70)

    ordered = sort_candidates([first, second, third])

    assert ordered == [second, first, third]
