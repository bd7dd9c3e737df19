from pydantic import BaseModel, Field, field_validator
from typing import Any, List, Optional, Set
from datetime import datetime
from app.core.enums import CrudAction, ResourceScope, ResourceType, TopLevelAccess


class ResourcePermissionSet(BaseModel):
    """Actions granted on one resource, or on every resource of a type when resource_id is empty"""
    resource_type: ResourceScope
    resource_id: Optional[str] = None
    permissions: Set[CrudAction]


def _parse_resource_permissions(value: Any) -> Any:
    """Accepts the older {"forms:<id>": ["read", ...]} mapping as well as a list of sets"""
    if not isinstance(value, dict):
        return value
    parsed = []
    for key, permissions in value.items():
        resource_type, _, resource_id = str(key).partition(":")
        parsed.append({
            "resource_type": resource_type,
            "resource_id": resource_id if resource_id not in ("", "*") else None,
            "permissions": permissions,
        })
    return parsed


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    top_level_access: TopLevelAccess = TopLevelAccess.VIEWER
    resource_permissions: List[ResourcePermissionSet] = []

    @field_validator("resource_permissions", mode="before")
    @classmethod
    def parse_resource_permissions(cls, value):
        return _parse_resource_permissions(value)


class RoleUpdate(BaseModel):
    """resource_permissions, when given (even empty), replaces the whole permission set"""
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    top_level_access: Optional[TopLevelAccess] = None
    resource_permissions: Optional[List[ResourcePermissionSet]] = None

    @field_validator("resource_permissions", mode="before")
    @classmethod
    def parse_resource_permissions(cls, value):
        return _parse_resource_permissions(value)


class RoleResponse(BaseModel):
    id: str
    organization_id: str
    name: str
    description: Optional[str] = None
    top_level_access: TopLevelAccess = TopLevelAccess.VIEWER
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RolePermissionResponse(BaseModel):
    id: str
    role_id: str
    resource_type: ResourceType
    resource_id: Optional[str] = None
    permission_type: CrudAction
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RolePermissionGroup(BaseModel):
    resource_type: ResourceType
    resource_id: Optional[str] = None
    resource_name: str
    permissions: List[CrudAction]


class RoleWithPermissionsResponse(RoleResponse):
    creator_name: str = "Unknown"
    permissions: List[RolePermissionResponse] = []
    permission_groups: List[RolePermissionGroup] = []


class RoleAssignmentCreate(BaseModel):
    user_id: str
    project_id: Optional[str] = None  # also seed the role's top-level access in this project


class UserRoleAssignmentResponse(BaseModel):
    id: str
    user_id: str
    role_id: str
    assigned_by: Optional[str] = None
    assigned_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserRoleResponse(UserRoleAssignmentResponse):
    role: Optional[RoleResponse] = None
