"""Process template Pydantic schemas

Two families live here: the payload models the engine parses out of a
template's task-graph JSON (camelCase on the wire), and the request/response
models of the HTTP adapter.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ReleaseState(str, Enum):
    """Release state enum"""

    OFFLINE = "OFFLINE"
    ONLINE = "ONLINE"


class Flag(str, Enum):
    """Template validity flag"""

    YES = "YES"
    NO = "NO"


# ==================== Payload models ====================


class PayloadModel(BaseModel):
    """Base for models read from and written to template JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class Property(PayloadModel):
    """A user-defined global parameter"""

    prop: str
    value: Optional[str] = None
    direct: Optional[str] = None
    type: Optional[str] = None

    def dedup_key(self) -> tuple:
        """Identity used to collapse duplicate global params."""
        return (self.prop, self.value, self.direct, self.type)


class TaskNode(PayloadModel):
    """One vertex of a template's task graph.

    ``params`` stays raw (dict or JSON text); its shape depends on ``type`` and
    is interpreted by ``flowtemplates.workflows.parameters``.
    """

    name: str
    type: str = ""
    params: Any = None
    pre_tasks: List[str] = Field(default_factory=list)
    extras: Any = None

    @field_validator("pre_tasks", mode="before")
    @classmethod
    def parse_pre_tasks(cls, v: Any) -> Any:
        if v is None or v == "":
            return []
        if isinstance(v, str):
            return json.loads(v)
        return v


class TemplateData(PayloadModel):
    """Parsed template payload: {tasks, globalParams, tenantId}"""

    tasks: Optional[List[TaskNode]] = None
    global_params: List[Property] = Field(default_factory=list)
    tenant_id: int = -1
    timeout: int = 0

    @field_validator("global_params", mode="before")
    @classmethod
    def parse_global_params(cls, v: Any) -> Any:
        if v is None or v == "":
            return []
        if isinstance(v, str):
            return json.loads(v)
        return v


class TemplateMeta(PayloadModel):
    """One entry of an export bundle"""

    project_name: Optional[str] = None
    process_template_name: Optional[str] = None
    process_template_json: Optional[str] = None
    process_template_description: Optional[str] = None
    process_template_locations: Optional[str] = None
    process_template_connects: Optional[str] = None
    biz_type_id: Optional[int] = None
    biz_form_url: Optional[str] = None


# ==================== Operation results ====================


class ImportResult(BaseModel):
    """Outcome of importing an export bundle"""

    template_ids: List[int] = Field(default_factory=list)
    template_names: List[str] = Field(default_factory=list)


class BatchDeleteResult(BaseModel):
    """Outcome of a batch delete; failures do not stop the batch"""

    deleted_ids: List[int] = Field(default_factory=list)
    failed_ids: List[int] = Field(default_factory=list)


# ==================== API models ====================


class TemplateWriteRequest(BaseModel):
    """Template create/update request"""

    name: str = Field(..., min_length=1, max_length=255, description="Template name (unique within project)")
    payload: str = Field(..., min_length=1, description="Task graph JSON: {tasks, globalParams, tenantId}")
    description: Optional[str] = Field(None, description="Template description")
    locations: Optional[str] = Field(None, description="Node positions (opaque)")
    connects: Optional[str] = Field(None, description="Node connections (opaque)")
    biz_type_id: Optional[int] = Field(None, description="Business type id")
    biz_form_url: Optional[str] = Field(None, max_length=1024, description="Business form url")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "daily_orders",
                "payload": '{"tasks": [{"name": "extract", "type": "SHELL", '
                           '"params": {"rawScript": "echo hi"}, "preTasks": []}], '
                           '"globalParams": [], "tenantId": 1}',
                "description": "Nightly order extraction",
            }
        }
    )


class TemplateReleaseRequest(BaseModel):
    """Template release request"""

    release_state: ReleaseState = Field(..., description="Target release state")


class TemplateIdsRequest(BaseModel):
    """Request carrying a list of template ids"""

    template_ids: List[int] = Field(..., min_length=1, description="Template ids")


class TemplateResponse(BaseModel):
    """Template detail response"""

    id: int
    name: str
    project_id: int
    user_id: int
    release_state: ReleaseState
    flag: Flag
    version: int
    description: Optional[str] = None
    locations: Optional[str] = None
    connects: Optional[str] = None
    payload: str
    global_params: Optional[str] = None
    resource_ids: Optional[str] = None
    tenant_id: int
    biz_type_id: Optional[int] = None
    biz_form_url: Optional[str] = None
    modify_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TemplateListResponse(BaseModel):
    """All templates of a project"""

    templates: List[TemplateResponse]
    total: int


class TemplateCreateResponse(BaseModel):
    """Template creation response"""

    template_id: int
    name: str
    message: str


class TaskNodeListResponse(BaseModel):
    """Task nodes of one or more templates, keyed by template id"""

    task_nodes: Dict[int, List[Dict[str, Any]]]


class ImportResponse(BaseModel):
    """Bundle import response"""

    template_ids: List[int]
    template_names: List[str]
    message: str


class BatchDeleteResponse(BaseModel):
    """Batch delete response"""

    deleted_ids: List[int]
    failed_ids: List[int]
    message: str
