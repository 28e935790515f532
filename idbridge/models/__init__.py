"""SQLAlchemy ORM models."""

from idbridge.models.base import Base
from idbridge.models.role import Role
from idbridge.models.user import User

__all__ = ["Base", "Role", "User"]
