"""Query parser - natural language query to structured search intent."""

import asyncio
import logging
import re
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.query import (
    AvailabilityIntent,
    ParsedQuery,
    QueryIntent,
    StrictFilters,
    StructuredFilters,
)
from ..protocols.llm import StructuredLLMProtocol

logger = logging.getLogger(__name__)

COMMON_COMPANIES = [
    "OpenAI", "Anthropic", "Vercel", "Stripe", "Linear", "Supabase",
    "Cloudflare", "Hugging Face", "Google", "Meta", "Microsoft", "GitHub",
]
COMMON_SKILLS = [
    "JavaScript", "TypeScript", "Python", "Go", "Rust", "React", "Next.js",
    "Node.js", "Django", "FastAPI", "PostgreSQL", "Docker", "Kubernetes",
    "AI", "Machine Learning",
]
COMMON_LOCATIONS = [
    "Berlin", "San Francisco", "London", "Amsterdam", "Toronto", "Remote",
    "New York", "Paris", "Tokyo", "Singapore", "Europe",
]
COMMON_INTERESTS = [
    "music", "photography", "climbing", "hiking", "cycling", "running",
    "coffee", "travel", "gaming", "chess", "design", "open source",
]

SYSTEM_PROMPT = f"""You are a search query parser for a developer directory.
Extract structured information from natural language search queries.
Only extract entities that are clearly mentioned or strongly implied.

Guidelines:
- companies: company names, startups and big tech
- locations: cities, countries, regions, or "remote"
- skills: programming languages, frameworks, tools, technologies
- interests: hobbies, personal interests, activities
- availability: hire (available for hire), collab (open to collaboration),
  hiring (is hiring); true/false only when explicitly mentioned, otherwise null
- intent: one of find_people, find_projects, find_companies, general

Strict filters: words like "only", "exclusively", "just", "must be" mark hard
requirements. Put such entities in strictFilters AND in the regular lists.
- "only in Amsterdam" -> locations: ["Amsterdam"], strictFilters.locations: ["Amsterdam"]
- "only Python developers" -> skills: ["Python"], strictFilters.skills: ["Python"]
- "exclusively remote" -> locations: ["remote"], strictFilters.locations: ["remote"]
- "must be available for hire" -> availability.hire: true, strictFilters.availability.hire: true

Examples:
- "AI developers in Berlin" -> locations: ["Berlin"], skills: ["AI"], intent: "find_people"
- "only Next.js experts who like music" -> skills: ["Next.js"], interests: ["music"],
  strictFilters.skills: ["Next.js"], intent: "find_people"

Common entities:
Companies: {", ".join(COMMON_COMPANIES)}
Skills: {", ".join(COMMON_SKILLS)}
Locations: {", ".join(COMMON_LOCATIONS)}
Interests: {", ".join(COMMON_INTERESTS)}

Respond with a JSON object with keys: companies, locations, skills, interests,
availability {{hire, collab, hiring}}, strictFilters {{locations, skills,
companies, availability {{hire, collab, hiring}}}}, intent, freeformQuery,
confidence (0-1)."""

USER_PROMPT = """Parse this search query: "{query}"

Be conservative: only extract entities that are clearly present.
Put the remaining semantic content in freeformQuery."""

STRICT_MARKERS = r"(?:only|exclusively|just|must\s+be)"
LOCATION_PREPOSITIONS = r"(?:(?:based\s+)?(?:in|at|from)\s+)?"
STRICT_AVAILABILITY_PATTERNS = {
    "hire": re.compile(r"\bmust\s+be\s+available\s+for\s+hire\b", re.IGNORECASE),
    "collab": re.compile(
        r"\bmust\s+be\s+open\s+to\s+collab(?:oration|orate|orating)?\b", re.IGNORECASE
    ),
    "hiring": re.compile(r"\bmust\s+be\s+hiring\b", re.IGNORECASE),
}


class AvailabilitySchema(BaseModel):
    hire: Optional[bool] = None
    collab: Optional[bool] = None
    hiring: Optional[bool] = None


def _string_list(value) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ValueError("expected a list of strings")
    items = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError("expected a list of strings")
        if item.strip():
            items.append(item.strip())
    return items


class StrictFiltersSchema(BaseModel):
    locations: list[str] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)
    companies: list[str] = Field(default_factory=list)
    availability: AvailabilitySchema = Field(default_factory=AvailabilitySchema)

    normalize_lists = field_validator("locations", "skills", "companies", mode="before")(
        _string_list
    )


class ParsedQuerySchema(BaseModel):
    """Structured output expected from the LLM."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    companies: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)
    availability: AvailabilitySchema = Field(default_factory=AvailabilitySchema)
    strict_filters: StrictFiltersSchema = Field(
        default_factory=StrictFiltersSchema, alias="strictFilters"
    )
    intent: Literal["find_people", "find_projects", "find_companies", "general"] = "general"
    freeform_query: str = Field(default="", alias="freeformQuery")
    confidence: float = 0.5

    normalize_lists = field_validator(
        "companies", "locations", "skills", "interests", mode="before"
    )(_string_list)

    @field_validator("availability", "strict_filters", mode="before")
    @classmethod
    def _null_to_default(cls, value):
        return {} if value is None else value

    @field_validator("freeform_query", mode="before")
    @classmethod
    def _null_to_empty(cls, value):
        return "" if value is None else value

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value):
        if value is None:
            return 0.5
        return min(max(float(value), 0.0), 1.0)


def _merge(*groups) -> tuple[str, ...]:
    """Concatenate, dropping case-insensitive duplicates."""
    seen = set()
    merged = []
    for group in groups:
        for item in group:
            key = item.lower()
            if key not in seen:
                seen.add(key)
                merged.append(item)
    return tuple(merged)


def _marked_strict(query: str, entities, allow_prepositions: bool) -> list[str]:
    """Entities directly preceded by a strictness marker in the query."""
    prefix = STRICT_MARKERS + r"\s+" + (LOCATION_PREPOSITIONS if allow_prepositions else "")
    marked = []
    for entity in entities:
        pattern = rf"\b{prefix}{re.escape(entity)}(?!\w)"
        if re.search(pattern, query, re.IGNORECASE):
            marked.append(entity)
    return marked


def promote_strict_entities(query: str, parsed: ParsedQuery) -> ParsedQuery:
    """Apply strictness markers and mirror strict entities into the loose lists."""
    strict = parsed.strict_filters

    strict_locations = _merge(
        strict.locations, _marked_strict(query, parsed.locations, True)
    )
    strict_skills = _merge(strict.skills, _marked_strict(query, parsed.skills, False))
    strict_companies = _merge(
        strict.companies, _marked_strict(query, parsed.companies, True)
    )

    strict_availability = {
        name: True if getattr(strict.availability, name) is True else None
        for name in ("hire", "collab", "hiring")
    }
    for name, pattern in STRICT_AVAILABILITY_PATTERNS.items():
        if pattern.search(query):
            strict_availability[name] = True

    loose_availability = {
        name: True if strict_availability[name] else getattr(parsed.availability, name)
        for name in ("hire", "collab", "hiring")
    }

    return ParsedQuery(
        original_query=parsed.original_query,
        companies=_merge(parsed.companies, strict_companies),
        locations=_merge(parsed.locations, strict_locations),
        skills=_merge(parsed.skills, strict_skills),
        interests=_merge(parsed.interests),
        availability=AvailabilityIntent(**loose_availability),
        strict_filters=StrictFilters(
            locations=strict_locations,
            skills=strict_skills,
            companies=strict_companies,
            availability=AvailabilityIntent(**strict_availability),
        ),
        intent=parsed.intent,
        freeform_query=parsed.freeform_query,
        confidence=parsed.confidence,
    )


class QueryParser:
    """Extracts entities, availability and strict filters from a query."""

    def __init__(
        self,
        llm: StructuredLLMProtocol,
        timeout: float = 5.0,
        temperature: float = 0.1,
    ):
        """Initialize query parser.

        Args:
            llm: Structured generation client.
            timeout: Seconds to wait for the LLM before falling back.
            temperature: Sampling temperature.
        """
        self._llm = llm
        self._timeout = timeout
        self._temperature = temperature

    async def parse(self, query: str) -> ParsedQuery:
        """Parse a query; never raises."""
        if not query.strip():
            return ParsedQuery.fallback(query)

        try:
            data = await asyncio.wait_for(
                self._llm.generate_json(
                    SYSTEM_PROMPT,
                    USER_PROMPT.format(query=query),
                    temperature=self._temperature,
                ),
                timeout=self._timeout,
            )
            schema = ParsedQuerySchema.model_validate(data)
        except asyncio.TimeoutError:
            logger.warning(f"Query parser timed out after {self._timeout}s")
            return ParsedQuery.fallback(query)
        except Exception as e:
            logger.warning(f"Query parser failed, using fallback: {e}")
            return ParsedQuery.fallback(query)

        parsed = promote_strict_entities(query, self._to_parsed_query(query, schema))

        logger.info(
            f"Query parsed: '{query[:60]}' -> skills={list(parsed.skills)} "
            f"locations={list(parsed.locations)} companies={list(parsed.companies)} "
            f"strict={not parsed.strict_filters.is_empty()} "
            f"intent={parsed.intent.value} confidence={parsed.confidence:.2f}"
        )
        return parsed

    @staticmethod
    def _to_parsed_query(query: str, schema: ParsedQuerySchema) -> ParsedQuery:
        strict = schema.strict_filters
        return ParsedQuery(
            original_query=query,
            companies=tuple(schema.companies),
            locations=tuple(schema.locations),
            skills=tuple(schema.skills),
            interests=tuple(schema.interests),
            availability=AvailabilityIntent(**schema.availability.model_dump()),
            strict_filters=StrictFilters(
                locations=tuple(strict.locations),
                skills=tuple(strict.skills),
                companies=tuple(strict.companies),
                availability=AvailabilityIntent(**strict.availability.model_dump()),
            ),
            intent=QueryIntent(schema.intent),
            freeform_query=schema.freeform_query,
            confidence=schema.confidence,
        )


def build_keyword_query(parsed: ParsedQuery) -> str:
    """Entities plus freeform text, for BM25."""
    parts = [
        *parsed.companies,
        *parsed.locations,
        *parsed.skills,
        *parsed.interests,
    ]
    if parsed.freeform_query.strip():
        parts.append(parsed.freeform_query.strip())
    return " ".join(parts).strip() or parsed.original_query


def build_semantic_query(parsed: ParsedQuery) -> str:
    """Freeform text plus entities, for embedding."""
    parts = []
    if parsed.freeform_query.strip():
        parts.append(parsed.freeform_query.strip())
    parts.extend(parsed.companies)
    parts.extend(parsed.skills)
    parts.extend(parsed.interests)
    return " ".join(parts).strip() or parsed.original_query


def build_structured_filters(parsed: ParsedQuery) -> StructuredFilters:
    return StructuredFilters(
        locations=parsed.locations,
        skills=parsed.skills,
        interests=parsed.interests,
        availability=parsed.availability.requested(),
        strict=parsed.strict_filters,
    )
