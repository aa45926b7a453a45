"""Acting-user schema"""

from pydantic import BaseModel, Field


class Operator(BaseModel):
    """The user on whose behalf a template operation runs.

    Identity is established upstream; the engine only needs the id for
    ownership, the name for audit columns and the admin bit for deletes.
    """

    id: int = Field(..., description="User id")
    name: str = Field(default="", description="User name, written to modify_by")
    is_admin: bool = Field(default=False, description="Administrators may delete any template")
