"""Domain models for recipe matching results."""

from dataclasses import dataclass
from enum import Enum

from meal_planner.domain.meals import Recipe


class ConfidenceTier(Enum):
    """Confidence bucket derived from a similarity score."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def from_score(cls, score: float) -> "ConfidenceTier":
        """Return the tier for a similarity score."""
        if score >= 0.9:
            return cls.HIGH
        if score >= 0.8:
            return cls.MEDIUM
        return cls.LOW


class PartialKind(Enum):
    """How a substring match relates the searched name and the title."""

    CONTAINS = "contains"
    CONTAINED_IN = "contained_in"


@dataclass(frozen=True)
class ExactMatch:
    """Normalized name equals the recipe title."""

    recipe: Recipe

    @property
    def score(self) -> float:
        return 1.0

    @property
    def match_type(self) -> str:
        return "exact"


@dataclass(frozen=True)
class FuzzyMatch:
    """Edit-distance match above the fuzzy threshold."""

    recipe: Recipe
    score: float
    confidence: ConfidenceTier

    @property
    def match_type(self) -> str:
        return "fuzzy"


@dataclass(frozen=True)
class PartialMatch:
    """Substring match, reported as a low-confidence fallback."""

    recipe: Recipe
    kind: PartialKind
    score: float = 0.7

    @property
    def match_type(self) -> str:
        return "partial"


MatchResult = ExactMatch | FuzzyMatch | PartialMatch | None


@dataclass(frozen=True)
class MatchCandidates:
    """All candidates found for a name in one catalog pass."""

    exact: Recipe | None
    fuzzy: list[FuzzyMatch]
    partial: list[PartialMatch]

    @property
    def is_empty(self) -> bool:
        return self.exact is None and not self.fuzzy and not self.partial


@dataclass(frozen=True)
class RecipeSuggestion:
    """Recipe offered to a human resolving an unmatched event."""

    recipe: Recipe
    score: float


@dataclass(frozen=True)
class TypoCheck:
    """Whether a name looks like a misspelling of a catalog recipe."""

    is_likely_typo: bool
    suggested_recipe: Recipe | None
    confidence: float
