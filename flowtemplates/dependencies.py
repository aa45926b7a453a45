"""
FastAPI dependencies: database session, settings, the acting operator and
the template service wired to its collaborators.
"""

from typing import AsyncGenerator

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from flowtemplates.config import Settings, get_settings
from flowtemplates.database import get_db as get_db_session
from flowtemplates.schemas.operator import Operator
from flowtemplates.services.collaborators import (
    InMemoryEnvironmentResolver,
    InMemoryPermissionChecker,
    ResourcePermissionChecker,
)
from flowtemplates.services.template_service import TemplateService
from flowtemplates.workflows.transforms import EnvironmentResolver

# Process-wide collaborators; deployments replace them through
# app.dependency_overrides with clients of the real platform services.
_permission_checker = InMemoryPermissionChecker()
_environment_resolver = InMemoryEnvironmentResolver()


# ==================== Database ====================


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_db_session():
        yield session


# ==================== Settings ====================


def get_app_settings() -> Settings:
    return get_settings()


# ==================== Operator ====================


async def get_current_operator(
    x_user_id: int = Header(..., description="Acting user id, set by the gateway"),
    x_user_name: str = Header(default="", description="Acting user name"),
    x_user_admin: bool = Header(default=False, description="Whether the acting user is an administrator"),
) -> Operator:
    """
    Acting user, as asserted by the upstream gateway

    Authentication happens before requests reach this service; the gateway
    forwards the identity in X-User-Id, X-User-Name and X-User-Admin.
    """
    return Operator(id=x_user_id, name=x_user_name, is_admin=x_user_admin)


# ==================== Collaborators ====================


def get_permission_checker() -> ResourcePermissionChecker:
    return _permission_checker


def get_environment_resolver() -> EnvironmentResolver:
    return _environment_resolver


async def get_template_service(
    db: AsyncSession = Depends(get_db),
    permission_checker: ResourcePermissionChecker = Depends(get_permission_checker),
    resolver: EnvironmentResolver = Depends(get_environment_resolver),
    settings: Settings = Depends(get_app_settings),
) -> TemplateService:
    """A TemplateService bound to the request's session"""
    return TemplateService(
        db,
        permission_checker=permission_checker,
        resolver=resolver,
        settings=settings,
    )
