from fastapi import APIRouter, Depends
from app.core.dependencies import (
    get_access_cache, get_current_user_id, get_notifier, require_project_admin
)
from app.core.notifications import Notifier
from app.database.supabase_client import get_supabase
from app.modules.asset_access.schemas import (
    AccessGrant, AclEntityType, AssetAccessList, UserAccessLevel
)
from app.modules.asset_access.service import AssetAccessService
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/projects/{project_id}/{entity_type}/{asset_id}/access", tags=["asset-access"])


def get_asset_access_service(
    entity_type: AclEntityType,
    supabase: Client = Depends(get_supabase),
    notifier: Notifier = Depends(get_notifier),
    cache: Dict = Depends(get_access_cache)
) -> AssetAccessService:
    return AssetAccessService(supabase, entity_type.asset_type, notifier=notifier, cache=cache)


def _access_list(service: AssetAccessService, asset_id: str, entries) -> AssetAccessList:
    return AssetAccessList(
        asset_type=service.asset_type,
        asset_id=asset_id,
        entries=entries,
        notifications=service.notifier.drain(),
    )


@router.get("", response_model=AssetAccessList)
async def list_access(
    project_id: str,
    asset_id: str,
    user_data: Dict = Depends(require_project_admin),
    service: AssetAccessService = Depends(get_asset_access_service)
):
    """Users with access to the report or workflow, with their derived level"""
    return _access_list(service, asset_id, service.list_access(project_id, asset_id))


@router.get("/me", response_model=UserAccessLevel)
async def get_my_access(
    project_id: str,
    asset_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: AssetAccessService = Depends(get_asset_access_service)
):
    level = service.check_user_access(project_id, asset_id, user_data["id"])
    return UserAccessLevel(user_id=user_data["id"], access_level=level)


@router.put("", response_model=AssetAccessList)
async def grant_access(
    project_id: str,
    asset_id: str,
    body: AccessGrant,
    user_data: Dict = Depends(require_project_admin),
    service: AssetAccessService = Depends(get_asset_access_service)
):
    """Set a user's access level; any previous level is replaced"""
    entries = service.grant_access(project_id, asset_id, body.user_id, body.access_level, user_data["id"])
    return _access_list(service, asset_id, entries)


@router.delete("/{user_id}", response_model=AssetAccessList)
async def revoke_access(
    project_id: str,
    asset_id: str,
    user_id: str,
    user_data: Dict = Depends(require_project_admin),
    service: AssetAccessService = Depends(get_asset_access_service)
):
    entries = service.revoke_access(project_id, asset_id, user_id, user_data["id"])
    return _access_list(service, asset_id, entries)
