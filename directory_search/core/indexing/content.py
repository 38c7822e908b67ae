"""Searchable text built from profile and project records."""

import hashlib
from typing import Iterable, Optional

from ..models.document import Document
from ..models.profile import ProfileRecord, ProjectRecord

MAX_EMBEDDED_PROJECTS = 3


def profile_keyword_content(profile: ProfileRecord) -> str:
    parts = [
        profile.display_name,
        profile.headline,
        profile.bio,
        profile.location,
        *profile.skills,
        *profile.interests,
    ]
    return " ".join(p for p in parts if p)


def project_keyword_content(project: ProjectRecord) -> str:
    parts = [project.name, project.oneliner, project.description]
    return " ".join(p for p in parts if p)


def build_keyword_documents(
    profiles: Iterable[ProfileRecord], projects: Iterable[ProjectRecord]
) -> list[Document]:
    """Flatten every record into one keyword document."""
    documents = [
        Document(id=p.doc_id, content=profile_keyword_content(p)) for p in profiles
    ]
    documents.extend(
        Document(id=p.doc_id, content=project_keyword_content(p)) for p in projects
    )
    return documents


def profile_embedding_content(
    profile: ProfileRecord, projects: Optional[list[ProjectRecord]] = None
) -> str:
    """Rich profile description for semantic search."""
    parts: list[str] = []

    if profile.display_name:
        parts.append(profile.display_name)
    if profile.headline:
        parts.append(profile.headline)
    if profile.location:
        parts.append(f"Based in {profile.location}")
    if profile.skills:
        parts.append(f"Skills: {', '.join(profile.skills)}")
    if profile.interests:
        parts.append(f"Interests: {', '.join(profile.interests)}")
    if profile.bio:
        parts.append(profile.bio)

    availability = []
    if profile.availability.hire:
        availability.append("available for hire")
    if profile.availability.collab:
        availability.append("open to collaboration")
    if profile.availability.hiring:
        availability.append("hiring")
    if availability:
        parts.append(f"Currently {' and '.join(availability)}")

    if projects:
        described = []
        for project in projects[:MAX_EMBEDDED_PROJECTS]:
            if project.oneliner:
                described.append(f"{project.name}: {project.oneliner}")
            else:
                described.append(project.name)
        parts.append(f"Projects: {'. '.join(described)}")

    return ". ".join(parts)


def project_embedding_content(
    project: ProjectRecord, owner: Optional[ProfileRecord] = None
) -> str:
    parts = [project.name]
    if project.oneliner:
        parts.append(project.oneliner)
    if project.description:
        parts.append(project.description)

    if owner is not None:
        context = []
        if owner.display_name:
            context.append(f"Created by {owner.display_name}")
        if owner.location:
            context.append(f"based in {owner.location}")
        if context:
            parts.append(" ".join(context))

    return ". ".join(p for p in parts if p)


def content_hash(content: str) -> str:
    """SHA-256 of the content, used to skip unchanged re-embeddings."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()
