"""
Templates API

Process template endpoints, scoped to a project. The acting operator comes
from the gateway headers (see ``get_current_operator``).
"""

from typing import List

import structlog
from fastapi import APIRouter, Depends, Query, Request, Response, status

from flowtemplates.config import Settings
from flowtemplates.dependencies import get_app_settings, get_current_operator, get_template_service
from flowtemplates.exceptions import NotFoundError
from flowtemplates.models import ProcessTemplate
from flowtemplates.schemas.error import ErrorResponse, ValidationErrorResponse
from flowtemplates.schemas.operator import Operator
from flowtemplates.schemas.template import (
    BatchDeleteResponse,
    ImportResponse,
    TaskNodeListResponse,
    TemplateCreateResponse,
    TemplateIdsRequest,
    TemplateListResponse,
    TemplateReleaseRequest,
    TemplateResponse,
    TemplateWriteRequest,
)
from flowtemplates.services.template_service import TemplateService

router = APIRouter(
    prefix="/projects/{project_id}/templates",
    responses={
        400: {"model": ErrorResponse, "description": "Invalid payload or bundle"},
        403: {"model": ErrorResponse, "description": "Operation or resource not permitted"},
        404: {"model": ErrorResponse, "description": "Project or template not found"},
        409: {"model": ErrorResponse, "description": "Name taken or template online"},
        422: {"model": ValidationErrorResponse, "description": "Malformed request"},
    },
)
logger = structlog.get_logger()


async def _get_project_template(
    template_service: TemplateService,
    project_id: int,
    template_id: int,
) -> ProcessTemplate:
    """Template by id, treated as missing when it belongs to another project"""
    template = await template_service.get_template(template_id)
    if template.project_id != project_id:
        raise NotFoundError("ProcessTemplate", template_id)
    return template


@router.post(
    "",
    response_model=TemplateCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Template",
)
async def create_template(
    project_id: int,
    request: TemplateWriteRequest,
    template_service: TemplateService = Depends(get_template_service),
    operator: Operator = Depends(get_current_operator),
):
    """
    Create a new process template.

    The payload is validated (task list present, preTasks form a DAG, every
    node's params pass their type check) before anything is stored.
    """
    template = await template_service.create_template(
        operator,
        project_id,
        request.name,
        request.payload,
        description=request.description,
        locations=request.locations,
        connects=request.connects,
        biz_type_id=request.biz_type_id,
        biz_form_url=request.biz_form_url,
    )

    return TemplateCreateResponse(
        template_id=template.id,
        name=template.name,
        message="Template created successfully",
    )


@router.get("", response_model=TemplateListResponse, summary="List Templates")
async def list_templates(
    project_id: int,
    template_service: TemplateService = Depends(get_template_service),
):
    templates = await template_service.list_templates(project_id)
    return TemplateListResponse(
        templates=[TemplateResponse.model_validate(t) for t in templates],
        total=len(templates),
    )


@router.get("/verify-name", summary="Verify Template Name")
async def verify_template_name(
    project_id: int,
    name: str = Query(..., min_length=1),
    template_service: TemplateService = Depends(get_template_service),
):
    """Succeeds when ``name`` is free in the project, 409 otherwise."""
    await template_service.verify_template_name(project_id, name)
    return {"name": name, "message": "Template name is available"}


@router.get("/task-nodes", response_model=TaskNodeListResponse, summary="Get Task Nodes Of Templates")
async def get_task_nodes_by_ids(
    project_id: int,
    template_ids: List[int] = Query(...),
    template_service: TemplateService = Depends(get_template_service),
):
    task_nodes = await template_service.get_task_nodes_by_ids(template_ids)
    return TaskNodeListResponse(
        task_nodes={
            template_id: [node.model_dump(by_alias=True) for node in nodes]
            for template_id, nodes in task_nodes.items()
        }
    )


@router.post("/batch-delete", response_model=BatchDeleteResponse, summary="Batch Delete Templates")
async def batch_delete_templates(
    project_id: int,
    request: TemplateIdsRequest,
    template_service: TemplateService = Depends(get_template_service),
    operator: Operator = Depends(get_current_operator),
):
    """Delete several templates; failures are reported, not raised."""
    result = await template_service.batch_delete_templates(operator, request.template_ids)
    return BatchDeleteResponse(
        deleted_ids=result.deleted_ids,
        failed_ids=result.failed_ids,
        message=f"Deleted {len(result.deleted_ids)} templates, {len(result.failed_ids)} failed",
    )


@router.post("/export", summary="Export Templates")
async def export_templates(
    project_id: int,
    request: TemplateIdsRequest,
    template_service: TemplateService = Depends(get_template_service),
    operator: Operator = Depends(get_current_operator),
    settings: Settings = Depends(get_app_settings),
):
    """Download an export bundle (JSON array) of the requested templates."""
    data = await template_service.export_templates(operator, request.template_ids)
    return Response(
        content=data,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{settings.EXPORT_FILE_NAME}"'},
    )


@router.post(
    "/import",
    response_model=ImportResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Import Templates",
)
async def import_templates(
    project_id: int,
    request: Request,
    template_service: TemplateService = Depends(get_template_service),
    operator: Operator = Depends(get_current_operator),
):
    """
    Import an export bundle sent as the raw request body.

    Templates are imported in order and committed one by one; the first
    failure stops the import and the error lists the ids already imported.
    """
    data = await request.body()
    result = await template_service.import_bundle(operator, data, project_id)
    return ImportResponse(
        template_ids=result.template_ids,
        template_names=result.template_names,
        message=f"Imported {len(result.template_ids)} templates",
    )


@router.get("/{template_id}", response_model=TemplateResponse, summary="Get Template")
async def get_template(
    project_id: int,
    template_id: int,
    template_service: TemplateService = Depends(get_template_service),
):
    return await _get_project_template(template_service, project_id, template_id)


@router.get("/{template_id}/task-nodes", response_model=TaskNodeListResponse, summary="Get Task Nodes")
async def get_task_nodes(
    project_id: int,
    template_id: int,
    template_service: TemplateService = Depends(get_template_service),
):
    await _get_project_template(template_service, project_id, template_id)
    nodes = await template_service.get_task_nodes(template_id)
    return TaskNodeListResponse(task_nodes={template_id: [node.model_dump(by_alias=True) for node in nodes]})


@router.put("/{template_id}", response_model=TemplateResponse, summary="Update Template")
async def update_template(
    project_id: int,
    template_id: int,
    request: TemplateWriteRequest,
    template_service: TemplateService = Depends(get_template_service),
    operator: Operator = Depends(get_current_operator),
):
    """Replace a template's definition. ONLINE templates are rejected with 409."""
    await _get_project_template(template_service, project_id, template_id)
    return await template_service.update_template(
        operator,
        template_id,
        request.name,
        request.payload,
        description=request.description,
        locations=request.locations,
        connects=request.connects,
        biz_type_id=request.biz_type_id,
        biz_form_url=request.biz_form_url,
    )


@router.post(
    "/{template_id}/copy",
    response_model=TemplateCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Copy Template",
)
async def copy_template(
    project_id: int,
    template_id: int,
    template_service: TemplateService = Depends(get_template_service),
    operator: Operator = Depends(get_current_operator),
):
    await _get_project_template(template_service, project_id, template_id)
    template = await template_service.copy_template(operator, template_id)
    return TemplateCreateResponse(
        template_id=template.id,
        name=template.name,
        message="Template copied successfully",
    )


@router.post("/{template_id}/release", response_model=TemplateResponse, summary="Release Template")
async def release_template(
    project_id: int,
    template_id: int,
    request: TemplateReleaseRequest,
    template_service: TemplateService = Depends(get_template_service),
    operator: Operator = Depends(get_current_operator),
):
    """Set a template ONLINE or OFFLINE."""
    await _get_project_template(template_service, project_id, template_id)
    return await template_service.release_template(operator, template_id, request.release_state)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete Template")
async def delete_template(
    project_id: int,
    template_id: int,
    template_service: TemplateService = Depends(get_template_service),
    operator: Operator = Depends(get_current_operator),
):
    """Delete a template. Only its owner or an administrator may do so."""
    await _get_project_template(template_service, project_id, template_id)
    await template_service.delete_template(operator, template_id)
    logger.info("Template deleted via API", template_id=template_id, project_id=project_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
