"""Match free-text recipe names against the recipe catalog."""

from dataclasses import dataclass

from meal_planner.domain.matching import (
    ConfidenceTier,
    ExactMatch,
    FuzzyMatch,
    MatchCandidates,
    MatchResult,
    PartialKind,
    PartialMatch,
    RecipeSuggestion,
    TypoCheck,
)
from meal_planner.domain.meals import Recipe
from meal_planner.services.event_parser import normalize_for_matching


def levenshtein_distance(left: str, right: str) -> int:
    """Unit-cost insertion/deletion/substitution distance."""
    if left == right:
        return 0
    if not left:
        return len(right)
    if not right:
        return len(left)
    previous = list(range(len(right) + 1))
    for i, left_char in enumerate(left, start=1):
        current = [i]
        for j, right_char in enumerate(right, start=1):
            cost = 0 if left_char == right_char else 1
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + cost,
                )
            )
        previous = current
    return previous[-1]


def similarity(left: str, right: str) -> float:
    """Similarity in [0, 1] of two names after normalization."""
    normalized_left = normalize_for_matching(left)
    normalized_right = normalize_for_matching(right)
    return _normalized_similarity(normalized_left, normalized_right)


def _normalized_similarity(left: str, right: str) -> float:
    if left == right:
        return 1.0 if left else 0.0
    longest = max(len(left), len(right))
    return 1.0 - levenshtein_distance(left, right) / longest


@dataclass(frozen=True)
class _CatalogEntry:
    recipe: Recipe
    normalized_title: str


@dataclass
class RecipeMatcher:
    """Exact, fuzzy and substring matching of recipe names.

    Fuzzy candidates with equal scores keep catalog order, so the first
    recipe in the catalog wins a tie.
    """

    fuzzy_threshold: float = 0.8
    acceptance_threshold: float = 0.85
    suggestion_min_score: float = 0.5

    def candidates(self, name: str, catalog: list[Recipe]) -> MatchCandidates:
        """Collect the exact match plus ranked fuzzy and partial candidates."""
        normalized_name = normalize_for_matching(name)
        if not normalized_name or not catalog:
            return MatchCandidates(exact=None, fuzzy=[], partial=[])

        exact: Recipe | None = None
        scored: list[tuple[float, _CatalogEntry]] = []
        partial: list[PartialMatch] = []
        for entry in _catalog_entries(catalog):
            title = entry.normalized_title
            if title == normalized_name:
                if exact is None:
                    exact = entry.recipe
                continue
            score = _normalized_similarity(normalized_name, title)
            if score >= self.fuzzy_threshold:
                scored.append((score, entry))
            if normalized_name in title:
                partial.append(PartialMatch(entry.recipe, PartialKind.CONTAINS))
            elif title in normalized_name:
                partial.append(PartialMatch(entry.recipe, PartialKind.CONTAINED_IN))

        scored.sort(key=lambda item: -item[0])
        fuzzy = [
            FuzzyMatch(
                recipe=entry.recipe,
                score=score,
                confidence=ConfidenceTier.from_score(score),
            )
            for score, entry in scored
        ]
        return MatchCandidates(exact=exact, fuzzy=fuzzy, partial=partial)

    def match(self, name: str, catalog: list[Recipe]) -> MatchResult:
        """Return the strongest candidate at the fuzzy threshold."""
        return self._collapse(self.candidates(name, catalog), self.fuzzy_threshold)

    def find_best_match(self, name: str, catalog: list[Recipe]) -> MatchResult:
        """Return a single match suitable for unattended bulk import."""
        return self._collapse(
            self.candidates(name, catalog), self.acceptance_threshold
        )

    def batch_match(
        self, names: list[str], catalog: list[Recipe]
    ) -> list[tuple[str, MatchResult]]:
        """Find the best match for each name."""
        return [(name, self.find_best_match(name, catalog)) for name in names]

    def get_suggestions(
        self, name: str, catalog: list[Recipe], limit: int = 5
    ) -> list[RecipeSuggestion]:
        """Return the closest recipes for manual resolution."""
        normalized_name = normalize_for_matching(name)
        if not normalized_name or limit <= 0:
            return []
        scored = [
            (_normalized_similarity(normalized_name, entry.normalized_title), entry)
            for entry in _catalog_entries(catalog)
        ]
        scored = [item for item in scored if item[0] >= self.suggestion_min_score]
        scored.sort(key=lambda item: -item[0])
        return [
            RecipeSuggestion(recipe=entry.recipe, score=score)
            for score, entry in scored[:limit]
        ]

    def is_likely_typo(self, name: str, catalog: list[Recipe]) -> TypoCheck:
        """Report whether the name is probably a misspelled catalog recipe."""
        result = self._collapse(self.candidates(name, catalog), 0.7)
        if result is None:
            return TypoCheck(
                is_likely_typo=False, suggested_recipe=None, confidence=0.0
            )
        likely = isinstance(result, FuzzyMatch) and result.score >= 0.85
        return TypoCheck(
            is_likely_typo=likely,
            suggested_recipe=result.recipe if likely else None,
            confidence=result.score,
        )

    @staticmethod
    def _collapse(candidates: MatchCandidates, threshold: float) -> MatchResult:
        if candidates.exact is not None:
            return ExactMatch(candidates.exact)
        if candidates.fuzzy and candidates.fuzzy[0].score >= threshold:
            return candidates.fuzzy[0]
        if candidates.partial:
            return candidates.partial[0]
        return None


def _catalog_entries(catalog: list[Recipe]) -> list[_CatalogEntry]:
    entries: list[_CatalogEntry] = []
    for recipe in catalog:
        normalized_title = normalize_for_matching(recipe.title)
        # Empty titles would be a substring of every name.
        if not normalized_title:
            continue
        entries.append(_CatalogEntry(recipe, normalized_title))
    return entries
