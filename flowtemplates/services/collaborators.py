"""
Collaborator interfaces and in-memory implementations

The template engine depends on two outside services that live elsewhere in
the platform: resource permissions (release checks) and the environment
lookups used by export/import transforms. Both are protocols here, with
in-memory implementations used by the default wiring and the tests.
"""

from typing import Dict, Iterable, Mapping, Optional, Protocol, Set, Tuple

from flowtemplates.exceptions import ErrorCode, PermissionDeniedError
from flowtemplates.logging_config import get_logger

logger = get_logger(__name__)


class ResourcePermissionChecker(Protocol):
    """Confirms that a user may still use a set of resource files."""

    async def check_resources_accessible(self, resource_ids: Iterable[int], user_id: int) -> None:
        """
        Raises:
            PermissionDeniedError: If any resource is deleted or not granted
        """
        ...


class InMemoryPermissionChecker:
    """
    Permission checker backed by a user -> granted resource ids mapping.

    ``existing`` restricts which resource ids exist at all; when omitted every
    granted id is assumed to exist.
    """

    def __init__(
        self,
        grants: Optional[Mapping[int, Iterable[int]]] = None,
        existing: Optional[Iterable[int]] = None,
    ):
        self._grants: Dict[int, Set[int]] = {
            user_id: set(ids) for user_id, ids in (grants or {}).items()
        }
        self._existing: Optional[Set[int]] = set(existing) if existing is not None else None

    def grant(self, user_id: int, *resource_ids: int) -> None:
        self._grants.setdefault(user_id, set()).update(resource_ids)

    def revoke(self, user_id: int, *resource_ids: int) -> None:
        self._grants.get(user_id, set()).difference_update(resource_ids)

    async def check_resources_accessible(self, resource_ids: Iterable[int], user_id: int) -> None:
        requested = set(resource_ids)
        granted = self._grants.get(user_id, set())
        denied = requested - granted
        if self._existing is not None:
            denied |= requested - self._existing

        if denied:
            logger.warning(
                "Resource permission check failed",
                user_id=user_id,
                denied_resource_ids=sorted(denied),
            )
            raise PermissionDeniedError(
                "Resource not exist or no permission, please view the task node and remove error resource",
                details={"resource_ids": sorted(denied)},
                error_code=ErrorCode.AUTH_RESOURCE_NOT_PERMITTED,
            )


class InMemoryEnvironmentResolver:
    """
    Environment lookups from static tables.

    Args:
        datasources: datasource id -> datasource name
        definitions: (project id, definition id) -> (project name, definition name)
    """

    def __init__(
        self,
        datasources: Optional[Mapping[int, str]] = None,
        definitions: Optional[Mapping[Tuple[int, int], Tuple[str, str]]] = None,
    ):
        self._datasource_names: Dict[int, str] = dict(datasources or {})
        self._datasource_ids: Dict[str, int] = {
            name: datasource_id for datasource_id, name in self._datasource_names.items()
        }
        self._definition_names: Dict[Tuple[int, int], Tuple[str, str]] = dict(definitions or {})
        self._definition_ids: Dict[Tuple[str, str], Tuple[int, int]] = {
            names: ids for ids, names in self._definition_names.items()
        }

    async def datasource_name(self, datasource_id: int) -> Optional[str]:
        return self._datasource_names.get(datasource_id)

    async def datasource_id(self, name: str) -> Optional[int]:
        return self._datasource_ids.get(name)

    async def dependency_names(self, project_id: int, definition_id: int) -> Optional[Tuple[str, str]]:
        return self._definition_names.get((project_id, definition_id))

    async def dependency_ids(self, project_name: str, definition_name: str) -> Optional[Tuple[int, int]]:
        return self._definition_ids.get((project_name, definition_name))
