"""Profile and project records as yielded by the data store."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .document import PROFILE_KIND, PROJECT_KIND, make_doc_id


@dataclass
class Availability:
    """Availability flags of a profile."""
    hire: bool = False
    collab: bool = False
    hiring: bool = False

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Availability":
        data = data or {}
        return cls(
            hire=bool(data.get("hire")),
            collab=bool(data.get("collab")),
            hiring=bool(data.get("hiring")),
        )

    def to_dict(self) -> dict:
        return {"hire": self.hire, "collab": self.collab, "hiring": self.hiring}


@dataclass
class ProfileRecord:
    """Directory profile."""
    user_id: str
    handle: str
    display_name: Optional[str] = None
    headline: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    skills: list[str] = field(default_factory=list)
    interests: list[str] = field(default_factory=list)
    availability: Availability = field(default_factory=Availability)
    created_at: Optional[datetime] = None

    @property
    def doc_id(self) -> str:
        return make_doc_id(PROFILE_KIND, self.user_id)


@dataclass
class ProjectRecord:
    """Project showcased by a profile owner."""
    id: str
    user_id: str
    name: str
    oneliner: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    featured: bool = False
    created_at: Optional[datetime] = None
    owner_handle: Optional[str] = None
    owner_display_name: Optional[str] = None

    @property
    def doc_id(self) -> str:
        return make_doc_id(PROJECT_KIND, self.id)
