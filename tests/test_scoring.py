from __future__ import annotations

import pytest

from deep_web_research.search.scoring import raw_search_score, score_search_result, url_quality_bonus


def test_top_ranked_exact_match_on_code_host_is_clipped_to_one():
    raw = raw_search_score(0, "Observer pattern in Python", "the observer pattern explained", "https://github.com/x", "observer pattern")
    assert raw == pytest.approx(1.75)
    assert score_search_result(0, "Observer pattern in Python", "the observer pattern explained", "https://github.com/x", "observer pattern") == 1.0


def test_low_rank_without_match_on_unknown_domain_stays_unclipped():
    raw = raw_search_score(9, "Unrelated", "nothing here", "https://example.com/page", "observer pattern")
    assert raw == pytest.approx(0.2)
    assert score_search_result(9, "Unrelated", "nothing here", "https://example.com/page", "observer pattern") == pytest.approx(0.2)


def test_rank_decay_floors_at_zero():
    assert score_search_result(15, "", "", "https://example.com", "anything") == pytest.approx(0.1)


def test_title_bonus_requires_the_whole_query():
    matched = raw_search_score(3, "Observer Pattern explained", "", "https://example.com", "observer pattern")
    reordered = raw_search_score(3, "pattern for an observer", "", "https://example.com", "observer pattern")
    assert matched - reordered == pytest.approx(0.3)


def test_snippet_bonus():
    with_snippet = raw_search_score(2, "", "an observer pattern walkthrough", "https://example.com", "Observer Pattern")
    without = raw_search_score(2, "", "unrelated", "https://example.com", "Observer Pattern")
    assert with_snippet - without == pytest.approx(0.2)


@pytest.mark.parametrize(
    ("url", "bonus"),
    [
        ("https://cs.stanford.edu/notes", 0.3),
        ("https://www.nasa.gov/", 0.3),
        ("https://github.com/org/repo", 0.25),
        ("https://www.github.com/org/repo", 0.25),
        ("https://stackoverflow.com/questions/1", 0.25),
        ("https://docs.python.org/3/", 0.25),
        ("https://notgithub.com/", 0.1),
        ("https://example.com/", 0.1),
        ("not a url", 0.1),
    ],
)
def test_url_quality_bonus(url, bonus):
    assert url_quality_bonus(url) == pytest.approx(bonus)


def test_scores_always_within_bounds():
    for rank in range(0, 20):
        score = score_search_result(rank, "q", "q", "https://docs.example.edu", "q")
        assert 0.0 <= score <= 1.0


def test_clip_hides_rank_difference_between_strong_results():
    top = raw_search_score(0, "Quantum key distribution", "quantum key distribution overview", "https://www.mit.edu/qkd", "quantum key distribution")
    fourth = raw_search_score(4, "Quantum key distribution", "quantum key distribution overview", "https://example.com/qkd", "quantum key distribution")

    assert top == pytest.approx(1.8)
    assert fourth == pytest.approx(1.2)
    assert top > fourth
    assert score_search_result(0, "Quantum key distribution", "quantum key distribution overview", "https://www.mit.edu/qkd", "quantum key distribution") == 1.0
    assert score_search_result(4, "Quantum key distribution", "quantum key distribution overview", "https://example.com/qkd", "quantum key distribution") == 1.0
