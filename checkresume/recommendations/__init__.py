from .catalog import CourseCatalog, RoleProfile, load_catalog, parse_catalog, role_key
from .engine import RecommendationEngine, skill_matches
from .models import CourseCandidate, CoursePrice, CourseRecommendation, RecommendationRequest

__all__ = [
    "CourseCandidate",
    "CourseCatalog",
    "CoursePrice",
    "CourseRecommendation",
    "RecommendationEngine",
    "RecommendationRequest",
    "RoleProfile",
    "load_catalog",
    "parse_catalog",
    "role_key",
    "skill_matches",
]
