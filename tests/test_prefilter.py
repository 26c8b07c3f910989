"""
Tests for the local keyword pre-filter.
"""

import pytest

from careerpulse.email.prefilter import JOB_KEYWORDS, STATUS_KEYWORDS, PreFilter


@pytest.mark.parametrize(
    "subject,body",
    [
        ("Thanks for applying to Acme", ""),
        ("Quick update", "We'd like to schedule a PHONE SCREEN next week."),
        ("Your APPLICATION was received", ""),
        ("Congratulations!", "Please find the attached offer."),
        ("Re: next steps", ""),
    ],
)
def test_job_mail_passes(subject, body):
    assert PreFilter().is_candidate(subject, body)


def test_newsletter_is_skipped():
    """Unrelated mail never reaches the extractor."""
    assert not PreFilter().is_candidate(
        "This week in gardening", "Tomatoes, compost tips and seasonal planting."
    )


def test_empty_message_is_skipped():
    assert not PreFilter().is_candidate("", "")
    assert not PreFilter().is_candidate(None, None)


def test_status_keywords_survive_custom_list():
    """A custom keyword list cannot drop the canonical status words."""
    prefilter = PreFilter(keywords=["Internship"])

    assert prefilter.is_candidate("Summer internship program", "")
    for keyword in STATUS_KEYWORDS:
        assert prefilter.is_candidate(f"You were {keyword}", "")
    assert not prefilter.is_candidate("Recruiting event", "")


def test_default_keywords_include_status_keywords():
    assert set(STATUS_KEYWORDS) <= set(JOB_KEYWORDS)
    assert len(PreFilter().keywords) == len(set(JOB_KEYWORDS))
