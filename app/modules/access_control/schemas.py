from pydantic import BaseModel
from typing import Any, Dict, List, Optional
from app.core.enums import CrudAction, EntityType
from app.core.notifications import Notification
from app.modules.top_level_permissions.schemas import TopLevelFlags


class PermissionCheckResponse(BaseModel):
    allowed: bool
    notifications: List[Notification] = []


class ButtonState(BaseModel):
    disabled: bool
    tooltip: str = ""


class UserPermissionsResponse(BaseModel):
    view: bool
    create: bool
    edit: bool
    delete: bool
    disabled: bool


class VisibleResourcesRequest(BaseModel):
    entity_type: EntityType
    resources: List[Dict[str, Any]]


class VisibleResourcesResponse(BaseModel):
    entity_type: EntityType
    resources: List[Dict[str, Any]]


class AssetPermissionCheckResponse(BaseModel):
    asset_type: str
    asset_id: str
    permission: str
    allowed: bool


class AccessSummary(BaseModel):
    """Everything the UI needs to render permission-aware controls for one project"""
    project_id: str
    user_id: str
    is_org_admin: bool
    is_project_admin: bool
    project_role: Optional[str] = None
    roles: List[str] = []
    top_level: Dict[EntityType, TopLevelFlags] = {}
    actions: Dict[EntityType, Dict[CrudAction, bool]] = {}
