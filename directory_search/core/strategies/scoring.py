import logging
from abc import ABC, abstractmethod
from typing import Iterable, Optional

from ..models.profile import Availability
from ..models.query import ParsedQuery, StrictFilters
from ..models.search import HybridResult, ResultType

logger = logging.getLogger(__name__)


def _contains(haystack: Optional[str], needle: str) -> bool:
    return bool(haystack) and needle.lower() in haystack.lower()


def location_matches(location: Optional[str], wanted: Iterable[str]) -> list[str]:
    """Wanted locations found (case-insensitive substring) in a location."""
    return [w for w in wanted if _contains(location, w)]


def terms_match(values: Iterable[str], wanted: Iterable[str]) -> list[str]:
    """Values that contain, or are contained in, any wanted term."""
    wanted = [w.lower() for w in wanted if w]
    matched = []
    for value in values:
        lowered = value.lower()
        if lowered and any(w in lowered or lowered in w for w in wanted):
            matched.append(value)
    return matched


def company_matches(
    headline: Optional[str], display_name: Optional[str], wanted: Iterable[str]
) -> list[str]:
    return [w for w in wanted if _contains(headline, w) or _contains(display_name, w)]


def availability_matches(
    availability: Optional[Availability], wanted: dict[str, bool]
) -> list[str]:
    if availability is None:
        return []
    return [flag for flag in wanted if getattr(availability, flag, False)]


class ScoringStrategy(ABC):
    """Base class for scoring strategies."""

    @abstractmethod
    def apply(
        self, parsed: ParsedQuery, results: list[HybridResult]
    ) -> list[HybridResult]:
        """Apply strategy to results."""
        ...


class StrictFilterStrategy(ScoringStrategy):
    """Drop candidates that miss any non-empty strict category."""

    def apply(
        self, parsed: ParsedQuery, results: list[HybridResult]
    ) -> list[HybridResult]:
        strict = parsed.strict_filters
        if strict.is_empty() or not results:
            return results

        filtered = [r for r in results if self.matches(r, strict)]

        logger.info(f"Strict filters: {len(results)} → {len(filtered)}")
        return filtered

    @staticmethod
    def matches(result: HybridResult, strict: StrictFilters) -> bool:
        if strict.locations and not location_matches(result.location, strict.locations):
            return False

        if strict.skills and not terms_match(result.skills, strict.skills):
            return False

        if strict.companies and not company_matches(
            result.headline, result.display_name, strict.companies
        ):
            return False

        wanted = strict.availability.requested()
        if wanted and len(availability_matches(result.availability, wanted)) < len(wanted):
            return False

        return True


class ExplicitMatchBoostStrategy(ScoringStrategy):
    """Boost profiles whose fields explicitly match extracted entities."""

    DEFAULT_WEIGHTS = {
        "skill": 0.3,
        "interest": 0.2,
        "location": 0.15,
        "company": 0.25,
        "availability": 0.1,
    }

    def __init__(self, weights: dict[str, float] | None = None):
        """Initialize strategy.

        Args:
            weights: Boost per match type; skill, interest, company and
                availability boosts are multiplied by the match count.
        """
        self._weights = {**self.DEFAULT_WEIGHTS, **(weights or {})}

    def boost_for(self, parsed: ParsedQuery, result: HybridResult) -> float:
        if result.type is not ResultType.PROFILE:
            return 0.0

        w = self._weights
        boost = 0.0
        if parsed.skills:
            boost += w["skill"] * len(terms_match(result.skills, parsed.skills))
        if parsed.interests:
            boost += w["interest"] * len(terms_match(result.interests, parsed.interests))
        if parsed.locations and location_matches(result.location, parsed.locations):
            boost += w["location"]
        if parsed.companies:
            matched = [c for c in parsed.companies if _contains(result.headline, c)]
            boost += w["company"] * len(matched)
        wanted = parsed.availability.requested()
        if wanted:
            boost += w["availability"] * len(
                availability_matches(result.availability, wanted)
            )
        return boost

    def apply(
        self, parsed: ParsedQuery, results: list[HybridResult]
    ) -> list[HybridResult]:
        boosted = 0
        for result in results:
            boost = self.boost_for(parsed, result)
            if boost > 0:
                result.score += boost
                boosted += 1

        if boosted:
            logger.info(f"Explicit match boost: {boosted} results boosted")

        return sorted(results, key=lambda r: (-r.score, r.id))


class RerankSkipPolicy:
    """Decide whether explicit field matches already dominate the top results."""

    def __init__(
        self,
        window: int = 10,
        ratio_window: int = 5,
        min_ratio: float = 0.6,
        min_average: float = 0.4,
        multi_field_ratio: float = 0.4,
    ):
        self._window = window
        self._ratio_window = ratio_window
        self._min_ratio = min_ratio
        self._min_average = min_average
        self._multi_field_ratio = multi_field_ratio
        self._scorer = ExplicitMatchBoostStrategy({"availability": 0.0})

    def should_skip(self, parsed: ParsedQuery, results: list[HybridResult]) -> bool:
        top = results[: self._window]
        if not top:
            return False

        match_count = 0
        total = 0.0
        for result in top:
            score = self._scorer.boost_for(parsed, result)
            if score > 0:
                match_count += 1
                total += score

        ratio = match_count / min(len(top), self._ratio_window)
        average = total / match_count if match_count else 0.0
        multi_field = parsed.entity_count >= 2

        skip = (
            ratio >= self._min_ratio
            or average >= self._min_average
            or (multi_field and ratio >= self._multi_field_ratio)
        )

        logger.info(
            f"Rerank decision: {match_count} explicit matches, "
            f"avg={average:.3f}, ratio={ratio:.2f} -> {'skip' if skip else 'apply'}"
        )
        return skip
