"""Template Store - persistence of process templates on an AsyncSession

The store never commits; transaction boundaries belong to the service that
owns the operation.
"""

from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from flowtemplates.logging_config import get_logger
from flowtemplates.models import ProcessTemplate, Project

logger = get_logger(__name__)


class TemplateStore:
    """Row-level access to ``process_templates`` and the owning ``projects``"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert(self, template: ProcessTemplate) -> ProcessTemplate:
        """Add a template and flush so its id is assigned."""
        self.db.add(template)
        await self.db.flush()
        await self.db.refresh(template)
        logger.debug("Template row inserted", template_id=template.id, name=template.name)
        return template

    async def update(self, template: ProcessTemplate, values: Dict[str, Any]) -> ProcessTemplate:
        for key, value in values.items():
            setattr(template, key, value)
        await self.db.flush()
        await self.db.refresh(template)
        return template

    async def delete(self, template: ProcessTemplate) -> None:
        await self.db.delete(template)
        await self.db.flush()

    async def select_by_id(self, template_id: int) -> Optional[ProcessTemplate]:
        result = await self.db.execute(
            select(ProcessTemplate).where(ProcessTemplate.id == template_id)
        )
        return result.unique().scalar_one_or_none()

    async def select_by_name(self, project_id: int, name: str) -> Optional[ProcessTemplate]:
        result = await self.db.execute(
            select(ProcessTemplate).where(
                ProcessTemplate.project_id == project_id,
                ProcessTemplate.name == name,
            )
        )
        return result.unique().scalar_one_or_none()

    async def exists_name_prefix(self, project_id: int, prefix: str) -> bool:
        """Whether a template of the project has a name starting with ``prefix`` (taken literally)."""
        result = await self.db.execute(
            select(ProcessTemplate.id)
            .where(
                ProcessTemplate.project_id == project_id,
                ProcessTemplate.name.startswith(prefix, autoescape=True),
            )
            .limit(1)
        )
        return result.first() is not None

    async def list_by_project(self, project_id: int) -> List[ProcessTemplate]:
        result = await self.db.execute(
            select(ProcessTemplate)
            .where(ProcessTemplate.project_id == project_id)
            .order_by(ProcessTemplate.id)
        )
        return list(result.unique().scalars().all())

    async def list_by_ids(self, template_ids: Sequence[int]) -> List[ProcessTemplate]:
        """Templates for the given ids in id order; unknown ids are skipped."""
        if not template_ids:
            return []
        result = await self.db.execute(
            select(ProcessTemplate)
            .where(ProcessTemplate.id.in_(list(template_ids)))
            .order_by(ProcessTemplate.id)
        )
        return list(result.unique().scalars().all())

    async def get_project(self, project_id: int) -> Optional[Project]:
        return await self.db.get(Project, project_id)
