import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from directory_search.core.models.profile import (
    Availability,
    ProfileRecord,
    ProjectRecord,
)
from directory_search.core.models.query import StructuredFilters
from directory_search.core.strategies.scoring import (
    availability_matches,
    location_matches,
    terms_match,
)

logger = logging.getLogger(__name__)


def _get(data: dict, snake: str, camel: str, default: Any = None) -> Any:
    if snake in data:
        return data[snake]
    return data.get(camel, default)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _recency_key(created_at: Optional[datetime]) -> float:
    return created_at.timestamp() if created_at is not None else float("-inf")


def profile_from_dict(data: dict) -> ProfileRecord:
    availability = data.get("availability")
    if availability is None:
        availability = {
            "hire": _get(data, "available_for_hire", "availableForHire"),
            "collab": _get(data, "open_to_collab", "openToCollab"),
            "hiring": _get(data, "is_hiring", "isHiring"),
        }
    return ProfileRecord(
        user_id=str(_get(data, "user_id", "userId")),
        handle=data.get("handle") or "",
        display_name=_get(data, "display_name", "displayName"),
        headline=data.get("headline"),
        bio=data.get("bio"),
        location=data.get("location"),
        skills=list(data.get("skills") or []),
        interests=list(data.get("interests") or []),
        availability=Availability.from_dict(availability),
        created_at=_parse_datetime(_get(data, "created_at", "createdAt")),
    )


def project_from_dict(data: dict) -> ProjectRecord:
    return ProjectRecord(
        id=str(data["id"]),
        user_id=str(_get(data, "user_id", "userId")),
        name=data.get("name") or "",
        oneliner=data.get("oneliner"),
        description=data.get("description"),
        url=data.get("url"),
        featured=bool(data.get("featured")),
        created_at=_parse_datetime(_get(data, "created_at", "createdAt")),
    )


class InMemoryProfileStore:
    """Profile/project store backed by in-process dicts."""

    def __init__(
        self,
        profiles: Optional[list[ProfileRecord]] = None,
        projects: Optional[list[ProjectRecord]] = None,
    ):
        self._lock = threading.RLock()
        self._profiles: dict[str, ProfileRecord] = {}
        self._projects: dict[str, ProjectRecord] = {}
        for profile in profiles or []:
            self.put_profile(profile)
        for project in projects or []:
            self.put_project(project)

    @classmethod
    def from_json(cls, path: str | Path) -> "InMemoryProfileStore":
        """Load ``{"profiles": [...], "projects": [...]}`` from a JSON file.

        Keys may be snake_case or camelCase.
        """
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        profiles = [profile_from_dict(p) for p in data.get("profiles", [])]
        projects = [project_from_dict(p) for p in data.get("projects", [])]
        logger.info(
            f"Loaded {len(profiles)} profiles and {len(projects)} projects from {path}"
        )
        return cls(profiles, projects)

    def _with_owner(self, project: ProjectRecord) -> ProjectRecord:
        owner = self._profiles.get(project.user_id)
        if owner is not None:
            project.owner_handle = owner.handle
            project.owner_display_name = owner.display_name
        return project

    # Mutations

    def put_profile(self, profile: ProfileRecord) -> None:
        with self._lock:
            self._profiles[profile.user_id] = profile
            for project in self._projects.values():
                if project.user_id == profile.user_id:
                    self._with_owner(project)

    def delete_profile(self, user_id: str) -> None:
        with self._lock:
            self._profiles.pop(user_id, None)

    def put_project(self, project: ProjectRecord) -> None:
        with self._lock:
            self._projects[project.id] = self._with_owner(project)

    def delete_project(self, project_id: str) -> None:
        with self._lock:
            self._projects.pop(project_id, None)

    # Queries

    def list_profiles(self) -> list[ProfileRecord]:
        with self._lock:
            return list(self._profiles.values())

    def list_projects(self) -> list[ProjectRecord]:
        with self._lock:
            return list(self._projects.values())

    def get_profiles(self, user_ids: list[str]) -> dict[str, ProfileRecord]:
        with self._lock:
            return {uid: self._profiles[uid] for uid in user_ids if uid in self._profiles}

    def get_projects(self, project_ids: list[str]) -> dict[str, ProjectRecord]:
        with self._lock:
            return {
                pid: self._projects[pid] for pid in project_ids if pid in self._projects
            }

    def get_projects_for_user(self, user_id: str, limit: int = 3) -> list[ProjectRecord]:
        with self._lock:
            owned = [p for p in self._projects.values() if p.user_id == user_id]
        owned.sort(key=lambda p: (not p.featured, -_recency_key(p.created_at), p.id))
        return owned[:limit]

    def recent_profiles(self, limit: int = 200) -> list[ProfileRecord]:
        with self._lock:
            profiles = list(self._profiles.values())
        profiles.sort(key=lambda p: (-_recency_key(p.created_at), p.user_id))
        return profiles[:limit]

    def recent_projects(self, limit: int = 200) -> list[ProjectRecord]:
        with self._lock:
            projects = [self._with_owner(p) for p in self._projects.values()]
        projects.sort(key=lambda p: (-_recency_key(p.created_at), p.id))
        return projects[:limit]

    def find_by_filters(self, filters: StructuredFilters, limit: int = 50) -> list[str]:
        """Profiles matching any loose location, skill, interest or availability."""
        if not filters.has_loose():
            return []

        matched = []
        for profile in self.recent_profiles(limit=len(self._profiles)):
            if (
                (filters.locations and location_matches(profile.location, filters.locations))
                or (filters.skills and terms_match(profile.skills, filters.skills))
                or (filters.interests and terms_match(profile.interests, filters.interests))
                or (
                    filters.availability
                    and availability_matches(profile.availability, filters.availability)
                )
            ):
                matched.append(profile.doc_id)
                if len(matched) >= limit:
                    break
        return matched
