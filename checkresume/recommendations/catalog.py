from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from checkresume.core.scoring import read_yaml_mapping

from .models import CourseCandidate

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_ROLE = "general"

_SLUG_RE = re.compile(r"[^a-z0-9+#]+")


def role_key(job_role: str | None) -> str:
    """'Software Engineer' -> 'software-engineer'."""
    if not job_role:
        return ""
    return _SLUG_RE.sub("-", job_role.strip().lower()).strip("-")


@dataclass(frozen=True)
class RoleProfile:
    category: str
    skills: tuple[str, ...]


@dataclass(frozen=True)
class CourseCatalog:
    courses: tuple[CourseCandidate, ...] = ()
    roles: dict[str, RoleProfile] = field(default_factory=dict)

    def role(self, job_role: str | None) -> RoleProfile | None:
        key = role_key(job_role)
        if not key:
            return None
        return self.roles.get(key) or self.roles.get(DEFAULT_ROLE)

    def __len__(self) -> int:
        return len(self.courses)


def _resolve(path: str | Path) -> Path:
    candidate = Path(path)
    if candidate.is_absolute() or candidate.exists():
        return candidate
    return PROJECT_ROOT / candidate


def parse_catalog(raw: dict[str, Any], source: str = "<memory>") -> CourseCatalog:
    roles: dict[str, RoleProfile] = {}
    for key, entry in (raw.get("roles") or {}).items():
        if not isinstance(entry, dict):
            raise RuntimeError(f"Invalid role entry '{key}' in course catalog '{source}'.")
        roles[role_key(str(key))] = RoleProfile(
            category=str(entry.get("category") or ""),
            skills=tuple(str(skill) for skill in entry.get("skills") or ()),
        )

    courses: list[CourseCandidate] = []
    seen: set[str] = set()
    for entry in raw.get("courses") or ():
        try:
            course = CourseCandidate.model_validate(entry)
        except ValidationError as exc:
            raise RuntimeError(f"Invalid course in catalog '{source}': {exc}") from exc
        if course.id in seen:
            logger.warning("course_catalog_duplicate id=%s source=%s", course.id, source)
            continue
        seen.add(course.id)
        courses.append(course)
    return CourseCatalog(courses=tuple(courses), roles=roles)


def load_catalog(path: str | Path) -> CourseCatalog:
    """Load the course catalog YAML (courses plus role skill table)."""
    resolved = _resolve(path)
    raw = read_yaml_mapping(resolved, "course catalog")
    catalog = parse_catalog(raw, source=str(resolved))
    logger.info("course_catalog_loaded path=%s courses=%s roles=%s", resolved, len(catalog.courses), len(catalog.roles))
    return catalog
