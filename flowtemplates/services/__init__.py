"""
Services Package

Business logic and collaborators of the process template engine.
"""

from .collaborators import (
    InMemoryEnvironmentResolver,
    InMemoryPermissionChecker,
    ResourcePermissionChecker,
)
from .subprocess_materializer import SubProcessMaterializer
from .template_service import TemplateService
from .template_store import TemplateStore

__all__ = [
    "InMemoryEnvironmentResolver",
    "InMemoryPermissionChecker",
    "ResourcePermissionChecker",
    "SubProcessMaterializer",
    "TemplateService",
    "TemplateStore",
]
