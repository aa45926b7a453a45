"""
Process Template Models

Reusable, project-scoped task graphs that the scheduler instantiates into
process instances.
"""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String, TEXT, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class ProcessTemplate(BaseModel):
    """Process template model - a named task graph within a project"""

    __tablename__ = "process_templates"

    # Template details
    name = Column(
        String(255),
        nullable=False,
        index=True,
        comment="Template name (unique within project)",
    )

    project_id = Column(
        Integer,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owning project",
    )

    user_id = Column(
        Integer,
        nullable=False,
        index=True,
        comment="Template owner",
    )

    modify_by = Column(
        String(255),
        nullable=True,
        comment="Name of the user who last modified the template",
    )

    # Lifecycle
    release_state = Column(
        String(20),
        nullable=False,
        default="OFFLINE",
        index=True,
        comment="Release state: OFFLINE | ONLINE",
    )

    flag = Column(
        String(10),
        nullable=False,
        default="YES",
        comment="Validity flag: YES | NO",
    )

    version = Column(
        Integer,
        nullable=False,
        default=1,
        comment="Payload version, incremented on update",
    )

    description = Column(
        TEXT,
        nullable=True,
        comment="Template description",
    )

    # UI layout, passed through untouched
    locations = Column(TEXT, nullable=True, comment="Node positions")
    connects = Column(TEXT, nullable=True, comment="Node connections")

    # Graph definition
    payload = Column(
        TEXT,
        nullable=False,
        comment="Task graph JSON: {tasks, globalParams, tenantId}",
    )

    global_params = Column(
        TEXT,
        nullable=True,
        comment='Deduplicated global params JSON: [{"prop": ..., "value": ...}]',
    )

    resource_ids = Column(
        TEXT,
        nullable=True,
        comment="Comma-joined resource ids referenced by task params",
    )

    tenant_id = Column(
        Integer,
        nullable=False,
        default=-1,
        comment="Tenant the template runs as",
    )

    # Classification metadata, opaque to the engine
    biz_type_id = Column(Integer, nullable=True, comment="Business type id")
    biz_form_url = Column(String(1024), nullable=True, comment="Business form url")

    # Constraints
    __table_args__ = (
        UniqueConstraint("project_id", "name", name="uq_process_template_project_name"),
        CheckConstraint(
            "release_state IN ('OFFLINE', 'ONLINE')",
            name="chk_process_template_release_state",
        ),
        CheckConstraint(
            "flag IN ('YES', 'NO')",
            name="chk_process_template_flag",
        ),
        CheckConstraint(
            "version >= 1",
            name="chk_process_template_version",
        ),
    )

    # Relationships
    project = relationship("Project", back_populates="templates", lazy="joined")

    def __repr__(self):
        return f"<ProcessTemplate(id={self.id}, name={self.name}, project_id={self.project_id})>"
