"""Tests for fuzzy timer name resolution."""

from dataclasses import dataclass

from pysimmer.core import resolve_timer_name, significant_words


@dataclass
class Named:
    id: str
    name: str


TIMERS = [
    Named("t1", "Pasta boil timer"),
    Named("t2", "Rice"),
    Named("t3", "Simmer sauce"),
]


def test_exact_match_is_case_insensitive():
    assert resolve_timer_name("RICE", TIMERS) == "t2"
    assert resolve_timer_name("  pasta   boil timer ", TIMERS) == "t1"


def test_qualifier_is_toggled():
    assert resolve_timer_name("rice timer", TIMERS) == "t2"
    assert resolve_timer_name("pasta boil", TIMERS) == "t1"


def test_keyword_containment():
    assert resolve_timer_name("pasta", TIMERS) == "t1"
    assert resolve_timer_name("the sauce please", TIMERS) == "t3"


def test_substring_fallback():
    assert resolve_timer_name("simmer sau", TIMERS) == "t3"


def test_no_shared_token_fails():
    assert resolve_timer_name("carrots", TIMERS) is None
    assert resolve_timer_name("", TIMERS) is None
    assert resolve_timer_name("pasta", []) is None


def test_short_queries_do_not_match_everything():
    assert resolve_timer_name("a", TIMERS) is None
    assert resolve_timer_name("ri", TIMERS) is None


def test_earlier_strategy_wins_over_insertion_order():
    timers = [Named("a", "Pasta sauce"), Named("b", "Sauce")]

    assert resolve_timer_name("sauce", timers) == "b"


def test_insertion_order_breaks_ties_within_a_strategy():
    timers = [Named("a", "Tomato sauce"), Named("b", "Cheese sauce")]

    assert resolve_timer_name("sauce", timers) == "a"


def test_significant_words_drop_stop_words_and_short_words():
    assert significant_words("Stop the pasta timer for me") == ["stop", "pasta"]
