"""
Unit tests for the fuzzy matcher.
"""

import pytest

from models.fuzzy import FuzzyMatchResult, MatchReason
from services.fuzzy_matcher import (
    FuzzyMatcher,
    get_fuzzy_matcher,
    jaro_winkler_similarity,
    levenshtein_similarity,
)


@pytest.fixture
def matcher():
    return FuzzyMatcher()


# ===================
# RULE TESTS
# ===================

class TestMatchRules:
    """Tests for the fixed-score rules."""

    @pytest.mark.parametrize("source,target", [
        ("", "anything"),
        ("anything", ""),
        (None, "Id"),
        ("Id", None),
        ("   ", "Id"),
    ])
    def test_blank_is_no_match(self, matcher, source, target):
        result = matcher.match(source, target)

        assert result.score == 0.0
        assert result.reason == MatchReason.NO_MATCH

    @pytest.mark.parametrize("value", ["Id", "Base kV", "x", "1/2 Cycle Duty"])
    def test_identical_is_exact(self, matcher, value):
        result = matcher.match(value, value)

        assert result.score == 1.0
        assert result.reason == MatchReason.EXACT

    def test_case_insensitive(self, matcher):
        result = matcher.match("Id", "ID")

        assert result.score == 0.98
        assert result.reason == MatchReason.CASE_INSENSITIVE

    def test_normalized(self, matcher):
        result = matcher.match("LV Breakers", "LVBreakers")

        assert result.score == 0.96
        assert result.reason == MatchReason.NORMALIZED

    def test_normalized_ignores_separators(self, matcher):
        """Spaces, underscores, dashes and slashes are all ignored."""
        assert matcher.match("AC/DC", "acdc").reason == MatchReason.NORMALIZED
        assert matcher.match("Bus_Rating-A", "BusRatingA").reason == MatchReason.NORMALIZED

    def test_case_sensitive_skips_case_rule(self, matcher):
        """With case_sensitive the case rule is skipped."""
        result = matcher.match("Id", "ID", case_sensitive=True)

        assert result.reason != MatchReason.CASE_INSENSITIVE


# ===================
# BLENDED SCORE TESTS
# ===================

class TestBlendedScore:
    """Tests for the Levenshtein / Jaro-Winkler blend."""

    def test_similar_strings_score_between_rules(self, matcher):
        result = matcher.match("Incident Energy", "IncidentEnrgy")

        assert 0.0 < result.score < 0.96
        assert result.reason in (MatchReason.HYBRID, MatchReason.LEVENSHTEIN, MatchReason.JARO_WINKLER)

    def test_unrelated_strings_score_low(self, matcher):
        assert matcher.match("Base kV", "Manufacturer").score < 0.5

    def test_closer_string_scores_higher(self, matcher):
        close = matcher.match("Breaker Mfr", "BreakerMfg")
        far = matcher.match("Breaker Mfr", "TripStyle")

        assert close.score > far.score

    def test_score_bounded(self, matcher):
        for source, target in [("a", "b"), ("Status", "State"), ("No/Ph", "NoPerPhase")]:
            result = matcher.match(source, target)
            assert 0.0 <= result.score <= 1.0

    def test_similarity_helpers(self):
        assert levenshtein_similarity("", "") == 1.0
        assert levenshtein_similarity("kitten", "kitten") == 1.0
        assert levenshtein_similarity("abc", "xyz") == 0.0
        assert jaro_winkler_similarity("status", "status") == 1.0


# ===================
# BEST MATCH TESTS
# ===================

class TestFindBestMatches:
    """Tests for ranking candidates."""

    def test_empty_query_returns_empty(self, matcher):
        assert matcher.find_best_matches("", ["Id"]) == []
        assert matcher.find_best_matches(None, ["Id"]) == []

    def test_no_candidates_returns_empty(self, matcher):
        assert matcher.find_best_matches("Id", []) == []
        assert matcher.find_best_matches("Id", None) == []

    def test_sorted_by_score(self, matcher):
        results = matcher.find_best_matches("Status", ["STATUS", "Status", "status_"])

        assert [r.target for r in results] == ["Status", "STATUS", "status_"]
        assert [r.score for r in results] == [1.0, 0.98, 0.96]

    def test_ties_prefer_shorter_target(self, matcher):
        """Equal scores are ordered by target length."""
        results = matcher.find_best_matches("basekv", ["Base_k_V", "Base kV"])

        assert results[0].score == results[1].score == 0.96
        assert [r.target for r in results] == ["Base kV", "Base_k_V"]

    def test_max_results(self, matcher):
        candidates = ["Status", "STATUS", "status_", "Stat", "State"]

        assert len(matcher.find_best_matches("Status", candidates, max_results=2)) == 2
        assert matcher.find_best_matches("Status", candidates, max_results=0) == []

    def test_min_score(self, matcher):
        results = matcher.find_best_matches("Status", ["Status", "STATUS", "Manufacturer"], min_score=0.97)

        assert [r.target for r in results] == ["Status", "STATUS"]
        assert all(r.score >= 0.97 for r in results)

    def test_blank_candidates_skipped(self, matcher):
        results = matcher.find_best_matches("Id", ["", "  ", "Id"])

        assert [r.target for r in results] == ["Id"]


# ===================
# RESULT TESTS
# ===================

class TestFuzzyMatchResult:
    """Tests for the result type."""

    def test_display_text(self):
        result = FuzzyMatchResult("Bus ID", "BusId", 0.96, MatchReason.NORMALIZED)

        assert result.display_text == "Bus ID → BusId (96% confidence, Normalized)"

    def test_to_dict(self):
        result = FuzzyMatchResult("Id", "ID", 0.98, MatchReason.CASE_INSENSITIVE)

        assert result.to_dict() == {
            "source": "Id",
            "target": "ID",
            "score": 0.98,
            "reason": "CaseInsensitive",
        }

    def test_singleton(self):
        assert get_fuzzy_matcher() is get_fuzzy_matcher()
