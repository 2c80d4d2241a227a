"""SQLAlchemy models package."""

from app.models.profile import Profile

__all__ = [
    "Profile",
]
