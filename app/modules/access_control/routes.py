from fastapi import APIRouter, Depends
from app.core.dependencies import get_access_control_service, get_current_user_id
from app.core.enums import AssetType, CrudAction, EntityType
from app.modules.access_control.schemas import (
    AccessSummary, AssetPermissionCheckResponse, ButtonState,
    PermissionCheckResponse, UserPermissionsResponse,
    VisibleResourcesRequest, VisibleResourcesResponse
)
from app.modules.access_control.service import AccessControlService
from typing import Dict, Optional

router = APIRouter(prefix="/projects/{project_id}/access", tags=["access-control"])


@router.get("", response_model=AccessSummary)
async def get_access_summary(
    project_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: AccessControlService = Depends(get_access_control_service)
):
    """Resolved access state of the current user in a project"""
    return service.get_access_summary(project_id, user_data["id"])


@router.get("/check", response_model=PermissionCheckResponse)
async def check_permission(
    project_id: str,
    entity_type: EntityType,
    action: CrudAction,
    resource_id: Optional[str] = None,
    alert: bool = False,
    user_data: Dict = Depends(get_current_user_id),
    service: AccessControlService = Depends(get_access_control_service)
):
    """Check a CRUD action; with alert=true a denial also returns an error notification"""
    if alert:
        allowed = service.check_permission_with_alert(project_id, user_data["id"], entity_type, action, resource_id)
    else:
        allowed = service.has_permission(project_id, user_data["id"], entity_type, action, resource_id)
    return PermissionCheckResponse(allowed=allowed, notifications=service.notifier.drain())


@router.post("/visible", response_model=VisibleResourcesResponse)
async def get_visible_resources(
    project_id: str,
    body: VisibleResourcesRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: AccessControlService = Depends(get_access_control_service)
):
    """Filter a resource list down to the items the user may read"""
    visible = service.get_visible_resources(project_id, user_data["id"], body.entity_type, body.resources)
    return VisibleResourcesResponse(entity_type=body.entity_type, resources=visible)


@router.get("/button-state", response_model=ButtonState)
async def get_button_state(
    project_id: str,
    entity_type: EntityType,
    action: CrudAction,
    resource_id: Optional[str] = None,
    user_data: Dict = Depends(get_current_user_id),
    service: AccessControlService = Depends(get_access_control_service)
):
    return service.get_button_state(project_id, user_data["id"], entity_type, action, resource_id)


@router.get("/assets/{asset_type}/{asset_id}", response_model=AssetPermissionCheckResponse)
async def check_asset_permission(
    project_id: str,
    asset_type: AssetType,
    asset_id: str,
    permission: str,
    user_data: Dict = Depends(get_current_user_id),
    service: AccessControlService = Depends(get_access_control_service)
):
    """Check one named permission on one asset"""
    allowed = service.check_asset_permission(project_id, user_data["id"], asset_type, asset_id, permission)
    return AssetPermissionCheckResponse(
        asset_type=asset_type.value,
        asset_id=asset_id,
        permission=permission,
        allowed=allowed
    )


@router.get("/{entity_type}/{resource_id}/permissions", response_model=UserPermissionsResponse)
async def get_user_permissions(
    project_id: str,
    entity_type: EntityType,
    resource_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: AccessControlService = Depends(get_access_control_service)
):
    return service.get_user_permissions(project_id, user_data["id"], entity_type, resource_id)
