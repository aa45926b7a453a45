"""Template Service - Business logic for process template management"""

import json
import time
from typing import Any, BinaryIO, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from flowtemplates.config import Settings, get_settings
from flowtemplates.exceptions import (
    AppException,
    ConflictError,
    ErrorCode,
    ExportWriteError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from flowtemplates.logging_config import get_logger, template_log_context
from flowtemplates.models import ProcessTemplate, Project
from flowtemplates.schemas.operator import Operator
from flowtemplates.schemas.template import (
    BatchDeleteResult,
    Flag,
    ImportResult,
    ReleaseState,
    TaskNode,
    TemplateData,
    TemplateMeta,
)
from flowtemplates.services import template_validator
from flowtemplates.services.collaborators import (
    InMemoryEnvironmentResolver,
    InMemoryPermissionChecker,
    ResourcePermissionChecker,
)
from flowtemplates.services.subprocess_materializer import (
    SubProcessMaterializer,
    rewrite_sub_process_ids,
)
from flowtemplates.services.template_store import TemplateStore
from flowtemplates.workflows.transforms import (
    EnvironmentResolver,
    TransformRegistry,
    correct_payload_for_export,
    correct_tasks_for_import,
    default_transform_registry,
    dump_payload,
    load_payload,
)

logger = get_logger(__name__)

REQUIRED_IMPORT_FIELDS = ("project_name", "process_template_name", "process_template_json")


def _now_millis() -> int:
    return int(time.time() * 1000)


class TemplateService:
    """Service for process template lifecycle operations"""

    def __init__(
        self,
        db: AsyncSession,
        permission_checker: Optional[ResourcePermissionChecker] = None,
        resolver: Optional[EnvironmentResolver] = None,
        registry: Optional[TransformRegistry] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize TemplateService

        Args:
            db: Database session
            permission_checker: Resource permission collaborator used on release
            resolver: Environment lookups for export/import transforms
            registry: Per-task-type transform registry
            settings: Application settings
        """
        self.db = db
        self.store = TemplateStore(db)
        self.materializer = SubProcessMaterializer(self.store)
        self.permission_checker = permission_checker or InMemoryPermissionChecker()
        self.resolver = resolver or InMemoryEnvironmentResolver()
        self.registry = registry or default_transform_registry()
        self.settings = settings or get_settings()

    # ==================== Validation ====================

    def validate_payload(self, payload_json: Any) -> TemplateData:
        """Parse a payload and run the full structural validation on it.

        Raises:
            ValidationError: If the payload is malformed, has no tasks, has a
                cycle or a node with invalid params
        """
        data = template_validator.validate_payload(payload_json)
        template_validator.check_process_node_list(data)
        return data

    async def verify_template_name(self, project_id: int, name: str) -> None:
        """
        Raises:
            NotFoundError: If the project does not exist
            ConflictError: If the name is already used in the project
        """
        await self._get_project(project_id)
        if await self.store.select_by_name(project_id, name) is not None:
            raise ConflictError(
                f"Process template name {name} already exists",
                details={"project_id": project_id, "name": name},
                error_code=ErrorCode.RESOURCE_ALREADY_EXISTS,
            )

    # ==================== Queries ====================

    async def get_template(self, template_id: int) -> ProcessTemplate:
        template = await self.store.select_by_id(template_id)
        if template is None:
            raise NotFoundError("ProcessTemplate", template_id)
        return template

    async def list_templates(self, project_id: int) -> List[ProcessTemplate]:
        await self._get_project(project_id)
        return await self.store.list_by_project(project_id)

    async def get_task_nodes(self, template_id: int) -> List[TaskNode]:
        """Task list of a stored template"""
        template = await self.get_template(template_id)
        return template_validator.validate_payload(template.payload).tasks or []

    async def get_task_nodes_by_ids(self, template_ids: Iterable[int]) -> Dict[int, List[TaskNode]]:
        """Task lists of several templates keyed by id; unknown ids are skipped"""
        templates = await self.store.list_by_ids(list(template_ids))
        return {
            template.id: template_validator.validate_payload(template.payload).tasks or []
            for template in templates
        }

    # ==================== Create / Update / Copy ====================

    async def create_template(
        self,
        operator: Operator,
        project_id: int,
        name: str,
        payload: str,
        description: Optional[str] = None,
        locations: Optional[str] = None,
        connects: Optional[str] = None,
        biz_type_id: Optional[int] = None,
        biz_form_url: Optional[str] = None,
    ) -> ProcessTemplate:
        """Create a new process template

        Args:
            operator: Acting user, becomes the owner
            project_id: Owning project
            name: Template name (unique within project)
            payload: Task graph JSON
            description: Template description
            locations: Node positions, stored as is
            connects: Node connections, stored as is
            biz_type_id: Business type id
            biz_form_url: Business form url

        Returns:
            ProcessTemplate: Created template (OFFLINE, version 1)

        Raises:
            NotFoundError: If the project does not exist
            ValidationError: If the payload does not validate
            ConflictError: If the name is already used in the project
        """
        with template_log_context("create", project_id=project_id):
            logger.info("Creating process template", name=name, user_id=operator.id)

            try:
                project = await self._get_project(project_id)
                template = await self._insert_template(
                    operator,
                    project,
                    name,
                    payload,
                    description=description,
                    locations=locations,
                    connects=connects,
                    biz_type_id=biz_type_id,
                    biz_form_url=biz_form_url,
                )
                await self.db.commit()

                logger.info("Process template created", template_id=template.id, name=name)
                return template

            except Exception as e:
                await self.db.rollback()
                logger.error("Process template creation failed", name=name, error=str(e))
                raise

    async def update_template(
        self,
        operator: Operator,
        template_id: int,
        name: str,
        payload: str,
        description: Optional[str] = None,
        locations: Optional[str] = None,
        connects: Optional[str] = None,
        biz_type_id: Optional[int] = None,
        biz_form_url: Optional[str] = None,
    ) -> ProcessTemplate:
        """Replace a template's definition in place and bump its version

        Raises:
            ValidationError: If the payload does not validate
            NotFoundError: If the template does not exist
            ConflictError: If the template is ONLINE, or the new name is used
                by another template in the project
        """
        with template_log_context("update", template_id=template_id):
            try:
                data = self.validate_payload(payload)

                template = await self.get_template(template_id)

                if template.release_state == ReleaseState.ONLINE.value:
                    raise ConflictError(
                        f"Process template {template.name} is online, edit is not allowed",
                        details={"template_id": template_id},
                        error_code=ErrorCode.TEMPLATE_ONLINE,
                    )

                if name != template.name:
                    if await self.store.select_by_name(template.project_id, name) is not None:
                        raise ConflictError(
                            f"Process template name {name} already exists",
                            details={"project_id": template.project_id, "name": name},
                            error_code=ErrorCode.RESOURCE_ALREADY_EXISTS,
                        )

                values = self._derived_fields(data)
                values.update(
                    name=name,
                    payload=payload,
                    description=description,
                    locations=locations,
                    connects=connects,
                    biz_type_id=biz_type_id,
                    biz_form_url=biz_form_url,
                    release_state=ReleaseState.OFFLINE.value,
                    flag=Flag.YES.value,
                    modify_by=operator.name or None,
                    version=template.version + 1,
                )
                template = await self.store.update(template, values)
                await self.db.commit()

                logger.info("Process template updated", name=name, version=template.version)
                return template

            except Exception as e:
                await self.db.rollback()
                logger.error("Process template update failed", error=str(e))
                raise

    async def copy_template(self, operator: Operator, template_id: int) -> ProcessTemplate:
        """Create a new template from an existing one as ``<name>_copy_<millis>``"""
        source = await self.get_template(template_id)
        name = f"{source.name}{self.settings.COPY_NAME_SUFFIX}{_now_millis()}"

        logger.info("Copying process template", source_template_id=template_id, name=name)

        return await self.create_template(
            operator,
            source.project_id,
            name,
            source.payload,
            description=source.description,
            locations=source.locations,
            connects=source.connects,
            biz_type_id=source.biz_type_id,
            biz_form_url=source.biz_form_url,
        )

    # ==================== Release / Delete ====================

    async def release_template(
        self,
        operator: Operator,
        template_id: int,
        release_state: Union[ReleaseState, str],
    ) -> ProcessTemplate:
        """Set a template ONLINE or OFFLINE

        Going ONLINE requires every referenced resource to still exist and be
        granted to the acting user.

        Raises:
            ValidationError: If the release state is unknown
            NotFoundError: If the template does not exist
            PermissionDeniedError: If a referenced resource is not accessible
        """
        try:
            state = ReleaseState(release_state)
        except ValueError:
            raise ValidationError(
                f"Invalid release state: {release_state}",
                details={"field": "release_state"},
                error_code=ErrorCode.VALIDATION_FIELD_INVALID,
            )

        with template_log_context("release", template_id=template_id, release_state=state.value):
            try:
                template = await self.get_template(template_id)

                if state == ReleaseState.ONLINE:
                    resource_ids = template_validator.parse_resource_ids(template.resource_ids)
                    if resource_ids:
                        await self.permission_checker.check_resources_accessible(resource_ids, operator.id)

                template = await self.store.update(template, {"release_state": state.value})
                await self.db.commit()

                logger.info("Process template released", user_id=operator.id)
                return template

            except Exception as e:
                await self.db.rollback()
                logger.error("Process template release failed", error=str(e))
                raise

    async def delete_template(self, operator: Operator, template_id: int) -> None:
        """Hard-delete a template; only its owner or an admin may do so

        Raises:
            NotFoundError: If the template does not exist
            PermissionDeniedError: If the operator is neither owner nor admin
        """
        with template_log_context("delete", template_id=template_id):
            try:
                template = await self.get_template(template_id)

                if operator.id != template.user_id and not operator.is_admin:
                    raise PermissionDeniedError(
                        "User has no operation permission on this template",
                        details={"template_id": template_id, "user_id": operator.id},
                    )

                await self.store.delete(template)
                await self.db.commit()

                logger.info("Process template deleted", user_id=operator.id)

            except Exception as e:
                await self.db.rollback()
                logger.error("Process template deletion failed", error=str(e))
                raise

    async def batch_delete_templates(self, operator: Operator, template_ids: Iterable[int]) -> BatchDeleteResult:
        """Delete several templates; a failure is recorded and the batch goes on"""
        result = BatchDeleteResult()

        for template_id in template_ids:
            try:
                await self.delete_template(operator, template_id)
            except AppException as e:
                logger.warning(
                    "Template skipped in batch delete",
                    template_id=template_id,
                    error_code=e.error_code.value,
                )
                result.failed_ids.append(template_id)
            else:
                result.deleted_ids.append(template_id)

        logger.info(
            "Batch delete finished",
            deleted=len(result.deleted_ids),
            failed=len(result.failed_ids),
        )
        return result

    # ==================== Export ====================

    async def export_templates(self, operator: Operator, template_ids: Iterable[int]) -> bytes:
        """Serialize templates into one export bundle (JSON array)

        Unknown ids are skipped. Environment-specific identifiers are replaced
        by portable names.
        """
        template_ids = list(template_ids)
        with template_log_context("export", user_id=operator.id):
            templates = await self.store.list_by_ids(template_ids)
            project_names: Dict[int, Optional[str]] = {}
            metas = []

            for template in templates:
                if template.project_id not in project_names:
                    project = await self.store.get_project(template.project_id)
                    project_names[template.project_id] = project.name if project else None

                metas.append(await self._export_meta(template, project_names[template.project_id]))

            skipped = sorted(set(template_ids) - {t.id for t in templates})
            if skipped:
                logger.warning("Templates not found for export", template_ids=skipped)

            logger.info("Process templates exported", count=len(metas))
            document = [meta.model_dump(by_alias=True) for meta in metas]
            return json.dumps(document, ensure_ascii=False).encode("utf-8")

    async def write_export(self, operator: Operator, template_ids: Iterable[int], stream: BinaryIO) -> bool:
        """Write an export bundle to a binary stream

        A write failure is logged and leaves the stream incomplete; it is not
        retried.

        Returns:
            bool: True if the whole bundle was written
        """
        data = await self.export_templates(operator, template_ids)
        try:
            stream.write(data)
            stream.flush()
        except OSError as e:
            error = ExportWriteError(details={"error": str(e)})
            logger.error(error.message, error_code=error.error_code.value, details=error.details)
            return False
        return True

    async def _export_meta(self, template: ProcessTemplate, project_name: Optional[str]) -> TemplateMeta:
        payload = await correct_payload_for_export(template.payload, self.resolver, self.registry)
        return TemplateMeta(
            project_name=project_name,
            process_template_name=template.name,
            process_template_json=payload,
            process_template_description=template.description,
            process_template_locations=template.locations,
            process_template_connects=template.connects,
            biz_type_id=template.biz_type_id,
            biz_form_url=template.biz_form_url,
        )

    # ==================== Import ====================

    async def import_bundle(self, operator: Operator, data: bytes, target_project_id: int) -> ImportResult:
        """Import every template of an export bundle into a project

        Each template is committed on its own. The first failing template
        aborts the rest of the bundle; templates imported before it stay, and
        the raised error lists them in ``details["imported_template_ids"]``.

        Raises:
            ValidationError: If the bundle is malformed or empty, or an entry
                misses a required field or does not validate
            NotFoundError: If the target project does not exist
            ConflictError: If no free name is found for an entry
        """
        with template_log_context("import", project_id=target_project_id):
            metas = self._parse_bundle(data)
            project = await self._get_project(target_project_id)
            result = ImportResult()

            for index, meta in enumerate(metas):
                try:
                    template = await self._import_one(operator, project, meta)
                    await self.db.commit()
                except AppException as e:
                    await self.db.rollback()
                    e.details.update(
                        imported_template_ids=list(result.template_ids),
                        failed_index=index,
                    )
                    logger.error(
                        "Bundle import aborted",
                        failed_index=index,
                        imported=len(result.template_ids),
                        error=e.message,
                    )
                    raise
                except Exception as e:
                    await self.db.rollback()
                    logger.error("Bundle import failed", failed_index=index, error=str(e))
                    raise

                result.template_ids.append(template.id)
                result.template_names.append(template.name)

            logger.info("Bundle imported", count=len(result.template_ids))
            return result

    def _parse_bundle(self, data: Union[bytes, str]) -> List[TemplateMeta]:
        try:
            document = json.loads(data)
        except (TypeError, ValueError) as e:
            raise ValidationError("Import file is not valid JSON", details={"error": str(e)})

        if not isinstance(document, list) or not all(isinstance(entry, dict) for entry in document):
            raise ValidationError("Import file must be a JSON array of template metadata")
        if not document:
            raise ValidationError("Import file contains no templates", error_code=ErrorCode.PROCESS_DATA_EMPTY)

        try:
            return [TemplateMeta.model_validate(entry) for entry in document]
        except PydanticValidationError as e:
            raise ValidationError(
                "Import file has malformed template metadata",
                details={"errors": e.errors(include_url=False, include_context=False, include_input=False)},
            )

    async def _import_one(self, operator: Operator, project: Project, meta: TemplateMeta) -> ProcessTemplate:
        for field in REQUIRED_IMPORT_FIELDS:
            if not getattr(meta, field):
                raise ValidationError(
                    f"Import entry is missing {TemplateMeta.model_fields[field].alias}",
                    details={"field": TemplateMeta.model_fields[field].alias},
                    error_code=ErrorCode.VALIDATION_FIELD_REQUIRED,
                )

        resolved_name = await self.resolve_import_name(project.id, meta.process_template_name)

        document, tasks = load_payload(meta.process_template_json)
        await correct_tasks_for_import(tasks, self.resolver, self.registry)
        remap = await self.materializer.materialize(tasks, project, operator)
        payload = rewrite_sub_process_ids(dump_payload(document, tasks), remap)

        name = f"{resolved_name}{self.settings.IMPORT_NAME_SUFFIX}{_now_millis()}"
        logger.info(
            "Importing process template",
            source_project=meta.project_name,
            source_name=meta.process_template_name,
            name=name,
            sub_processes_created=len(remap),
        )

        return await self._insert_template(
            operator,
            project,
            name,
            payload,
            description=meta.process_template_description,
            locations=meta.process_template_locations,
            connects=meta.process_template_connects,
            biz_type_id=meta.biz_type_id,
            biz_form_url=meta.biz_form_url,
        )

    async def resolve_import_name(self, project_id: int, name: str) -> str:
        """First of ``name``, ``name(1)``, ``name(2)``, ... not used in the project

        A candidate is used when a template has exactly that name, or when an
        earlier import stored it as ``<candidate>_import_<millis>``.

        Raises:
            ConflictError: If ``MAX_IMPORT_NAME_ATTEMPTS`` suffixes are all taken
        """
        if not await self._import_name_taken(project_id, name):
            return name

        for num in range(1, self.settings.MAX_IMPORT_NAME_ATTEMPTS + 1):
            candidate = f"{name}({num})"
            if not await self._import_name_taken(project_id, candidate):
                return candidate

        raise ConflictError(
            f"No free name found for process template {name}",
            details={
                "project_id": project_id,
                "name": name,
                "attempts": self.settings.MAX_IMPORT_NAME_ATTEMPTS,
            },
            error_code=ErrorCode.RESOURCE_ALREADY_EXISTS,
        )

    async def _import_name_taken(self, project_id: int, candidate: str) -> bool:
        if await self.store.select_by_name(project_id, candidate) is not None:
            return True
        return await self.store.exists_name_prefix(
            project_id, f"{candidate}{self.settings.IMPORT_NAME_SUFFIX}"
        )

    # ==================== Helpers ====================

    async def _get_project(self, project_id: int) -> Project:
        project = await self.store.get_project(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    def _derived_fields(self, data: TemplateData) -> Dict[str, Any]:
        global_params = template_validator.dedup_global_params(data.global_params)
        resource_ids = template_validator.collect_resource_ids(data.tasks)
        return {
            "global_params": template_validator.dump_global_params(global_params),
            "resource_ids": template_validator.format_resource_ids(resource_ids),
            "tenant_id": data.tenant_id,
        }

    async def _insert_template(
        self,
        operator: Operator,
        project: Project,
        name: str,
        payload: str,
        **fields: Any,
    ) -> ProcessTemplate:
        """Validate, check the name and insert; the caller owns the commit."""
        data = self.validate_payload(payload)

        if await self.store.select_by_name(project.id, name) is not None:
            raise ConflictError(
                f"Process template name {name} already exists",
                details={"project_id": project.id, "name": name},
                error_code=ErrorCode.RESOURCE_ALREADY_EXISTS,
            )

        template = ProcessTemplate(
            name=name,
            project_id=project.id,
            user_id=operator.id,
            modify_by=operator.name or None,
            release_state=ReleaseState.OFFLINE.value,
            flag=Flag.YES.value,
            version=1,
            payload=payload,
            **self._derived_fields(data),
            **fields,
        )
        return await self.store.insert(template)
