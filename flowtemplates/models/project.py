"""
Project Model

Projects are owned by the surrounding platform; only the columns the template
engine reads are mapped here.
"""

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from .base import BaseModel


class Project(BaseModel):
    """Project model - namespace for process templates"""

    __tablename__ = "projects"

    name = Column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="Project name (unique)",
    )

    templates = relationship(
        "ProcessTemplate",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Project(id={self.id}, name={self.name})>"
