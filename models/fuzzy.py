"""Fuzzy match result types."""

from dataclasses import dataclass
from enum import Enum


class MatchReason(str, Enum):
    """Which rule produced a fuzzy match score."""
    EXACT = "Exact"
    CASE_INSENSITIVE = "CaseInsensitive"
    NORMALIZED = "Normalized"
    HYBRID = "Hybrid"
    LEVENSHTEIN = "Levenshtein"
    JARO_WINKLER = "JaroWinkler"
    NO_MATCH = "NoMatch"


@dataclass(frozen=True)
class FuzzyMatchResult:
    """Similarity of one source string to one target string."""
    source: str
    target: str
    score: float
    reason: MatchReason

    @property
    def display_text(self) -> str:
        """e.g. "Bus ID → BusId (96% confidence, Normalized)"."""
        return f"{self.source} → {self.target} ({self.score:.0%} confidence, {self.reason.value})"

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "target": self.target,
            "score": round(self.score, 4),
            "reason": self.reason.value,
        }
