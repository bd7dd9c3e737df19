from fastapi import APIRouter, Depends, HTTPException, status
from app.config.permissions_config import ENTITY_ASSET_TYPES
from app.core.dependencies import (
    get_access_cache, get_access_control_service, get_current_user_id, get_notifier
)
from app.core.enums import AssetType, CrudAction
from app.core.notifications import Notifier
from app.database.supabase_client import get_supabase
from app.modules.access_control.service import AccessControlService
from app.modules.resources.schemas import CreatorPermissionsResponse, ResourceDeleteResponse
from app.modules.resources.service import ResourceService
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/projects/{project_id}/resources", tags=["resources"])

ASSET_ENTITY_TYPES = {asset_type: entity_type for entity_type, asset_type in ENTITY_ASSET_TYPES.items()}


def get_resource_service(
    supabase: Client = Depends(get_supabase),
    notifier: Notifier = Depends(get_notifier),
    cache: Dict = Depends(get_access_cache)
) -> ResourceService:
    return ResourceService(supabase, notifier=notifier, cache=cache)


@router.delete("/{asset_type}/{asset_id}", response_model=ResourceDeleteResponse)
async def delete_resource(
    project_id: str,
    asset_type: AssetType,
    asset_id: str,
    user_data: Dict = Depends(get_current_user_id),
    access: AccessControlService = Depends(get_access_control_service),
    service: ResourceService = Depends(get_resource_service)
):
    """Delete a form, report or workflow together with every grant on it"""
    entity_type = ASSET_ENTITY_TYPES[asset_type]
    if not access.check_permission_with_alert(project_id, user_data["id"], entity_type, CrudAction.DELETE, asset_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"You do not have delete permission for {entity_type.value}"
        )
    result = service.delete_resource(project_id, asset_type, asset_id)
    result.notifications = service.notifier.drain()
    return result


@router.post("/{asset_type}/{asset_id}/creator-permissions", response_model=CreatorPermissionsResponse)
async def grant_creator_permissions(
    project_id: str,
    asset_type: AssetType,
    asset_id: str,
    user_data: Dict = Depends(get_current_user_id),
    access: AccessControlService = Depends(get_access_control_service),
    service: ResourceService = Depends(get_resource_service)
):
    """Give the current user the full permission set on an asset they just created"""
    entity_type = ASSET_ENTITY_TYPES[asset_type]
    if not access.has_permission(project_id, user_data["id"], entity_type, CrudAction.CREATE):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"You do not have create permission for {entity_type.value}"
        )
    return service.grant_creator_permissions(project_id, asset_type, asset_id, user_data["id"])
