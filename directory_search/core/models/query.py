"""Parsed query models."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class QueryIntent(Enum):
    """Primary search intent."""
    FIND_PEOPLE = "find_people"
    FIND_PROJECTS = "find_projects"
    FIND_COMPANIES = "find_companies"
    GENERAL = "general"


@dataclass(frozen=True)
class AvailabilityIntent:
    """Tri-state availability wishes: True, False or None (unset)."""
    hire: Optional[bool] = None
    collab: Optional[bool] = None
    hiring: Optional[bool] = None

    def requested(self) -> dict[str, bool]:
        """Flags explicitly requested as True."""
        return {
            name: True
            for name in ("hire", "collab", "hiring")
            if getattr(self, name) is True
        }


@dataclass(frozen=True)
class StrictFilters:
    """Hard inclusion predicates ("only in Amsterdam")."""
    locations: tuple[str, ...] = ()
    skills: tuple[str, ...] = ()
    companies: tuple[str, ...] = ()
    availability: AvailabilityIntent = field(default_factory=AvailabilityIntent)

    def is_empty(self) -> bool:
        return not (
            self.locations
            or self.skills
            or self.companies
            or self.availability.requested()
        )


@dataclass(frozen=True)
class ParsedQuery:
    """Structured representation of a free-text query."""
    original_query: str
    companies: tuple[str, ...] = ()
    locations: tuple[str, ...] = ()
    skills: tuple[str, ...] = ()
    interests: tuple[str, ...] = ()
    availability: AvailabilityIntent = field(default_factory=AvailabilityIntent)
    strict_filters: StrictFilters = field(default_factory=StrictFilters)
    intent: QueryIntent = QueryIntent.GENERAL
    freeform_query: str = ""
    confidence: float = 0.0

    @classmethod
    def fallback(cls, query: str) -> "ParsedQuery":
        """Query used when the parser is unavailable."""
        return cls(
            original_query=query,
            intent=QueryIntent.GENERAL,
            freeform_query=query,
            confidence=0.1,
        )

    @property
    def entity_count(self) -> int:
        return (
            len(self.companies)
            + len(self.locations)
            + len(self.skills)
            + len(self.interests)
        )

    def to_dict(self) -> dict:
        return {
            "originalQuery": self.original_query,
            "companies": list(self.companies),
            "locations": list(self.locations),
            "skills": list(self.skills),
            "interests": list(self.interests),
            "availability": {
                "hire": self.availability.hire,
                "collab": self.availability.collab,
                "hiring": self.availability.hiring,
            },
            "strictFilters": {
                "locations": list(self.strict_filters.locations),
                "skills": list(self.strict_filters.skills),
                "companies": list(self.strict_filters.companies),
                "availability": self.strict_filters.availability.requested(),
            },
            "intent": self.intent.value,
            "freeformQuery": self.freeform_query,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class StructuredFilters:
    """Exact-match filters derived from a parsed query.

    Loose fields boost candidates; only ``strict`` excludes them.
    """
    locations: tuple[str, ...] = ()
    skills: tuple[str, ...] = ()
    interests: tuple[str, ...] = ()
    availability: dict[str, bool] = field(default_factory=dict)
    strict: StrictFilters = field(default_factory=StrictFilters)

    def has_loose(self) -> bool:
        return bool(
            self.locations or self.skills or self.interests or self.availability
        )

    def is_empty(self) -> bool:
        return not self.has_loose() and self.strict.is_empty()
