"""
Tests for the confidence scorer.
"""

from dataclasses import replace

import pytest

from careerpulse.models import ApplicationStatus, ExtractionResult
from careerpulse.scoring import ConfidenceScorer, is_placeholder

FULL = ExtractionResult(
    is_job_related=True,
    company="Acme",
    title="Senior Engineer",
    status=ApplicationStatus.INTERVIEW,
    location="Remote",
)


def test_complete_model_result_scores_100():
    assert ConfidenceScorer().score(FULL) == 100


def test_non_job_and_missing_results_score_zero():
    scorer = ConfidenceScorer()

    assert scorer.score(None) == 0
    assert scorer.score(ExtractionResult.not_job_related()) == 0


def test_placeholders_count_as_missing():
    scorer = ConfidenceScorer()
    vague = replace(FULL, title="Not specified", location="unknown")

    assert scorer.score(vague) == 100 - 20 - 10


@pytest.mark.parametrize("value", [None, "", "  ", "N/A", "Unknown Company", "Not Specified"])
def test_is_placeholder(value):
    assert is_placeholder(value)


def test_adding_a_field_never_lowers_the_score():
    scorer = ConfidenceScorer()
    sparse = replace(FULL, company="Unknown", title="", location="Not specified")

    scores = [
        scorer.score(sparse),
        scorer.score(replace(sparse, company="Acme")),
        scorer.score(replace(sparse, company="Acme", title="Engineer")),
        scorer.score(replace(sparse, company="Acme", title="Engineer", location="Austin, TX")),
    ]

    assert scores == sorted(scores)
    assert all(0 <= s <= 100 for s in scores)


def test_heuristic_results_score_lower_than_model_results():
    scorer = ConfidenceScorer()
    heuristic = replace(FULL, source=ExtractionResult.SOURCE_HEURISTIC)

    assert scorer.score(heuristic) < scorer.score(FULL)
    assert scorer.score(heuristic) == 65


def test_cache_hit_does_not_change_score():
    scorer = ConfidenceScorer()

    assert scorer.score(FULL, was_cache_hit=True) == scorer.score(FULL, was_cache_hit=False)


def test_custom_weights_are_clamped():
    scorer = ConfidenceScorer(field_weights={"company": 90, "title": 90}, model_bonus=0)

    assert scorer.score(FULL) == 100


def test_negative_weights_rejected():
    with pytest.raises(ValueError):
        ConfidenceScorer(model_bonus=-1)
