from fastapi import APIRouter, Depends, HTTPException, status
from app.core.dependencies import (
    get_access_cache, get_current_user_id, get_notifier, require_project_admin
)
from app.core.enums import EntityType
from app.core.notifications import Notifier
from app.database.supabase_client import get_supabase
from app.modules.access_control.service import invalidate_access_snapshots
from app.modules.membership.service import MembershipService
from app.modules.top_level_permissions.schemas import (
    TopLevelPermissionBulkUpdate, TopLevelPermissionInitialize, TopLevelPermissionResponse
)
from app.modules.top_level_permissions.service import TopLevelPermissionService
from supabase import Client
from typing import Dict, List, Optional

router = APIRouter(prefix="/projects/{project_id}/top-level-permissions", tags=["top-level-permissions"])


def get_top_level_service(
    supabase: Client = Depends(get_supabase),
    notifier: Notifier = Depends(get_notifier)
) -> TopLevelPermissionService:
    return TopLevelPermissionService(supabase, notifier)


@router.get("/{user_id}", response_model=List[TopLevelPermissionResponse])
async def get_top_level_permissions(
    project_id: str,
    user_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: TopLevelPermissionService = Depends(get_top_level_service),
    supabase: Client = Depends(get_supabase)
):
    """A user may read their own rows; project admins may read anyone's"""
    if user_id != user_data["id"] and not MembershipService(supabase).is_project_admin(project_id, user_data["id"]):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You must be a project admin to view other users' permissions")
    return service.get_permissions(project_id, user_id)


@router.put("/{user_id}", response_model=List[TopLevelPermissionResponse])
async def update_top_level_permissions(
    project_id: str,
    user_id: str,
    body: TopLevelPermissionBulkUpdate,
    user_data: Dict = Depends(require_project_admin),
    service: TopLevelPermissionService = Depends(get_top_level_service),
    cache: Dict = Depends(get_access_cache)
):
    result = service.update_permissions(project_id, user_id, body.permissions, created_by=user_data["id"])
    invalidate_access_snapshots(cache, project_id, user_id)
    return result


@router.post("/{user_id}/initialize", response_model=List[TopLevelPermissionResponse])
async def initialize_top_level_permissions(
    project_id: str,
    user_id: str,
    body: TopLevelPermissionInitialize,
    user_data: Dict = Depends(require_project_admin),
    service: TopLevelPermissionService = Depends(get_top_level_service),
    cache: Dict = Depends(get_access_cache)
):
    """Create rows for entity types that have none; existing rows are kept"""
    result = service.initialize_defaults(project_id, user_id, created_by=user_data["id"], access=body.access)
    invalidate_access_snapshots(cache, project_id, user_id)
    return result


@router.delete("/{user_id}", response_model=List[TopLevelPermissionResponse])
async def delete_top_level_permissions(
    project_id: str,
    user_id: str,
    entity_type: Optional[EntityType] = None,
    user_data: Dict = Depends(require_project_admin),
    service: TopLevelPermissionService = Depends(get_top_level_service),
    cache: Dict = Depends(get_access_cache)
):
    """Drop the user's rows for one entity type, or all of them; returns what is left"""
    service.delete_permissions(project_id, user_id, entity_type)
    invalidate_access_snapshots(cache, project_id, user_id)
    return service.get_permissions(project_id, user_id)
