"""
Fuzzy string matching for mapping authoring.

Scores how well a source column header matches a target field name.
Not used during import; the import path matches headers exactly.

Rules, first match wins:
    1. Either side blank → 0.0 (NoMatch)
    2. Identical → 1.0 (Exact)
    3. Equal ignoring case → 0.98 (CaseInsensitive)
    4. Equal ignoring case and " _-/" → 0.96 (Normalized)
    5. Blend of Levenshtein and Jaro-Winkler similarity
"""

from typing import Iterable, Optional
import structlog

from rapidfuzz.distance import JaroWinkler, Levenshtein

from models.fuzzy import FuzzyMatchResult, MatchReason
from utils.text_utils import condense_name, is_blank

logger = structlog.get_logger(__name__)

SCORE_EXACT = 1.0
SCORE_CASE_INSENSITIVE = 0.98
SCORE_NORMALIZED = 0.96

# Short strings (ids, units like "kV") are dominated by prefix effects
SHORT_STRING_LENGTH = 4
SHORT_STRING_JW_WEIGHT = 0.6
DEFAULT_JW_WEIGHT = 0.5
HYBRID_AGREEMENT = 0.05
JW_PREFIX_WEIGHT = 0.1


class FuzzyMatcher:
    """Stateless scorer; one instance can be shared freely."""

    def match(
        self,
        source: Optional[str],
        target: Optional[str],
        case_sensitive: bool = False
    ) -> FuzzyMatchResult:
        """
        Score the similarity of two strings.

        Args:
            source: Typically a source column header
            target: Typically a target property name
            case_sensitive: Disable rule 3 and case folding in rule 5

        Returns:
            FuzzyMatchResult with score in [0, 1]
        """
        if is_blank(source) or is_blank(target):
            return FuzzyMatchResult(source or "", target or "", 0.0, MatchReason.NO_MATCH)

        if source == target:
            return FuzzyMatchResult(source, target, SCORE_EXACT, MatchReason.EXACT)

        if not case_sensitive and source.lower() == target.lower():
            return FuzzyMatchResult(source, target, SCORE_CASE_INSENSITIVE, MatchReason.CASE_INSENSITIVE)

        if condense_name(source) == condense_name(target):
            return FuzzyMatchResult(source, target, SCORE_NORMALIZED, MatchReason.NORMALIZED)

        left, right = (source, target) if case_sensitive else (source.lower(), target.lower())
        levenshtein_score = levenshtein_similarity(left, right)
        jaro_winkler_score = jaro_winkler_similarity(left, right)

        short = len(source) <= SHORT_STRING_LENGTH or len(target) <= SHORT_STRING_LENGTH
        weight = SHORT_STRING_JW_WEIGHT if short else DEFAULT_JW_WEIGHT
        score = jaro_winkler_score * weight + levenshtein_score * (1 - weight)

        if abs(levenshtein_score - jaro_winkler_score) < HYBRID_AGREEMENT:
            reason = MatchReason.HYBRID
        elif jaro_winkler_score > levenshtein_score:
            reason = MatchReason.JARO_WINKLER
        else:
            reason = MatchReason.LEVENSHTEIN

        return FuzzyMatchResult(source, target, score, reason)

    def find_best_matches(
        self,
        query: Optional[str],
        candidates: Optional[Iterable[str]],
        max_results: int = 5,
        min_score: float = 0.0,
        case_sensitive: bool = False
    ) -> list[FuzzyMatchResult]:
        """
        Rank candidates against a query.

        Blank candidates are skipped. Results below min_score are dropped.
        Sorted by score descending, then by shorter target.

        Returns:
            At most max_results results; [] for an empty query or no candidates
        """
        if is_blank(query):
            logger.debug("find_best_matches_empty_query")
            return []

        candidate_list = list(candidates or [])
        if not candidate_list:
            logger.debug("find_best_matches_no_candidates", query=query)
            return []

        results = []
        for candidate in candidate_list:
            if is_blank(candidate):
                continue
            result = self.match(query, candidate, case_sensitive)
            if result.score >= min_score:
                results.append(result)

        results.sort(key=lambda r: (-r.score, len(r.target)))
        top = results[:max(max_results, 0)]

        logger.debug(
            "find_best_matches",
            query=query,
            candidates=len(candidate_list),
            matches=len(top),
            min_score=min_score
        )
        return top


def levenshtein_similarity(a: str, b: str) -> float:
    """1 - edit_distance / max(len(a), len(b)); 1.0 for two empty strings."""
    if not a and not b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b)


def jaro_winkler_similarity(a: str, b: str) -> float:
    """Jaro-Winkler with a 0.1 prefix scale over at most four characters."""
    return JaroWinkler.similarity(a, b, prefix_weight=JW_PREFIX_WEIGHT)


# Singleton instance
_fuzzy_matcher: Optional[FuzzyMatcher] = None


def get_fuzzy_matcher() -> FuzzyMatcher:
    """Get or create FuzzyMatcher instance."""
    global _fuzzy_matcher
    if _fuzzy_matcher is None:
        _fuzzy_matcher = FuzzyMatcher()
    return _fuzzy_matcher
