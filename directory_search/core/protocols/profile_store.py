"""Profile/project store protocol for dependency injection."""
from typing import Protocol, runtime_checkable

from ..models.profile import ProfileRecord, ProjectRecord
from ..models.query import StructuredFilters


@runtime_checkable
class ProfileStoreProtocol(Protocol):
    """Source of truth for profiles and projects."""

    def list_profiles(self) -> list[ProfileRecord]:
        """All profiles, for index building."""
        ...

    def list_projects(self) -> list[ProjectRecord]:
        """All projects, for index building."""
        ...

    def get_profiles(self, user_ids: list[str]) -> dict[str, ProfileRecord]:
        """Profiles by user id; missing ids are absent from the result."""
        ...

    def get_projects(self, project_ids: list[str]) -> dict[str, ProjectRecord]:
        """Projects by id; missing ids are absent from the result."""
        ...

    def get_projects_for_user(self, user_id: str, limit: int = 3) -> list[ProjectRecord]:
        """Projects of one owner, featured first, then newest."""
        ...

    def recent_profiles(self, limit: int = 200) -> list[ProfileRecord]:
        """Most recently created profiles."""
        ...

    def recent_projects(self, limit: int = 200) -> list[ProjectRecord]:
        """Most recently created projects."""
        ...

    def find_by_filters(self, filters: StructuredFilters, limit: int = 50) -> list[str]:
        """Document ids of profiles matching any loose structured filter."""
        ...
