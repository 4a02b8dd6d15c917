from datetime import date, timedelta

import pytest

from dailyhistory.engine.selector import (
    FALLBACK_MAX_ATTEMPTS,
    Candidate,
    SelectionConfig,
    calculate_span,
    config_for_date,
    select_events,
    select_with_fallback,
    shuffle_events,
)
from dailyhistory.errors import SelectionExhausted


def _pool(years):
    return [Candidate(id=f"e{i}", year=y, text=f"event {i}") for i, y in enumerate(years)]


SPREAD = _pool([y for y in range(0, 3000, 100)])


def test_selection_is_deterministic():
    config = SelectionConfig(min_span=500, max_span=5000, max_attempts=20)
    first = select_events(SPREAD, 99, config)
    second = select_events(SPREAD, 99, config)
    assert [e.id for e in first.events] == [e.id for e in second.events]
    assert first.state == second.state


def test_selection_honours_span_and_count():
    config = SelectionConfig(count=6, min_span=500, max_span=2000, max_attempts=200)
    selection = select_events(SPREAD, 7, config)
    assert len(selection.events) == 6
    assert len({e.id for e in selection.events}) == 6
    assert 500 <= calculate_span(selection.events) <= 2000


def test_selection_honours_excluded_years():
    excluded = frozenset({0, 100, 200, 300, 400, 500, 600, 700})
    config = SelectionConfig(min_span=500, max_span=5000, exclude_years=excluded, max_attempts=300)
    selection = select_events(SPREAD, 3, config)
    assert not any(e.year in excluded for e in selection.events)


def test_small_pool_is_exhausted_immediately():
    with pytest.raises(SelectionExhausted) as err:
        select_events(SPREAD[:5], 1, SelectionConfig())
    assert err.value.attempts == 0


def test_impossible_span_exhausts_budget():
    same_year = _pool([1900] * 10)
    with pytest.raises(SelectionExhausted) as err:
        select_events(same_year, 1, SelectionConfig(min_span=50, max_span=500, max_attempts=5))
    assert err.value.attempts == 5
    with pytest.raises(SelectionExhausted):
        select_with_fallback(same_year, 1, SelectionConfig(min_span=50, max_span=500, max_attempts=5))


def test_fallback_widens_the_window():
    narrow = SelectionConfig(min_span=6000, max_span=7000, max_attempts=10, label="focused")
    selection = select_with_fallback(SPREAD, 11, narrow)
    assert selection.used_fallback
    assert selection.attempts > narrow.max_attempts
    assert selection.config.label == "fallback"
    assert selection.config.max_attempts == FALLBACK_MAX_ATTEMPTS
    assert 500 <= selection.span <= 5000


def test_config_for_date_is_reproducible_and_varied():
    start = date(2024, 1, 1)
    labels = [config_for_date("salt", (start + timedelta(days=i)).isoformat()).label for i in range(2000)]
    again = [config_for_date("salt", (start + timedelta(days=i)).isoformat()).label for i in range(2000)]
    assert labels == again

    focused = labels.count("focused") / len(labels)
    moderate = labels.count("moderate") / len(labels)
    wide = labels.count("wide") / len(labels)
    assert 0.05 < focused < 0.25
    assert 0.18 < moderate < 0.42
    assert 0.40 < wide < 0.70


def test_config_for_date_windows():
    windows = {
        "focused": (50, 500, 30),
        "moderate": (200, 1500, 25),
        "wide": (500, 5000, 20),
    }
    for i in range(60):
        config = config_for_date("salt", f"2025-01-{(i % 28) + 1:02d}", exclude_years=[1969])
        assert (config.min_span, config.max_span, config.max_attempts) == windows[config.label]
        assert config.exclude_years == frozenset({1969})


def test_shuffle_is_a_deterministic_permutation():
    events = SPREAD[:6]
    once = shuffle_events(events, 12345)
    twice = shuffle_events(events, 12345)
    assert once == twice
    assert sorted(e.id for e in once) == sorted(e.id for e in events)
    assert events == SPREAD[:6]
