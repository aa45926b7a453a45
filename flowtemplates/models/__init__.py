"""
Database Models Package

SQLAlchemy ORM models for the process template service.
"""

from .base import Base, BaseModel
from .project import Project
from .template import ProcessTemplate

__all__ = [
    "Base",
    "BaseModel",
    "Project",
    "ProcessTemplate",
]
