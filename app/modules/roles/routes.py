from fastapi import APIRouter, Depends, HTTPException, status
from app.core.dependencies import (
    get_access_cache, get_current_user_id, get_notifier, require_role_manager
)
from app.core.enums import OrgRole
from app.core.notifications import Notifier
from app.database.supabase_client import get_supabase
from app.modules.membership.service import MembershipService
from app.modules.roles.schemas import (
    RoleAssignmentCreate, RoleCreate, RoleUpdate, RoleWithPermissionsResponse,
    UserRoleAssignmentResponse, UserRoleResponse
)
from app.modules.roles.service import RoleService
from supabase import Client
from typing import Dict, List

router = APIRouter(prefix="/organizations/{organization_id}/roles", tags=["roles"])
users_router = APIRouter(prefix="/users", tags=["roles"])


def get_role_service(
    supabase: Client = Depends(get_supabase),
    notifier: Notifier = Depends(get_notifier),
    cache: Dict = Depends(get_access_cache)
) -> RoleService:
    return RoleService(supabase, notifier=notifier, cache=cache)


@router.get("", response_model=List[RoleWithPermissionsResponse])
async def list_roles(
    organization_id: str,
    user_data: Dict = Depends(require_role_manager),
    service: RoleService = Depends(get_role_service)
):
    """Roles of the organization with creator name and grouped permissions"""
    return service.fetch_roles(organization_id)


@router.post("", response_model=RoleWithPermissionsResponse, status_code=201)
async def create_role(
    organization_id: str,
    role_data: RoleCreate,
    user_data: Dict = Depends(require_role_manager),
    service: RoleService = Depends(get_role_service)
):
    return service.create_role(organization_id, role_data, user_data["id"])


@router.get("/{role_id}", response_model=RoleWithPermissionsResponse)
async def get_role(
    organization_id: str,
    role_id: str,
    user_data: Dict = Depends(require_role_manager),
    service: RoleService = Depends(get_role_service)
):
    return service.get_role_with_permissions(organization_id, role_id)


@router.put("/{role_id}", response_model=RoleWithPermissionsResponse)
async def update_role(
    organization_id: str,
    role_id: str,
    role_data: RoleUpdate,
    user_data: Dict = Depends(require_role_manager),
    service: RoleService = Depends(get_role_service)
):
    """Update role; resource_permissions, when present, replaces every existing grant"""
    return service.update_role(organization_id, role_id, role_data, user_data["id"])


@router.delete("/{role_id}", status_code=204)
async def delete_role(
    organization_id: str,
    role_id: str,
    user_data: Dict = Depends(require_role_manager),
    service: RoleService = Depends(get_role_service)
):
    service.delete_role(organization_id, role_id)
    return None


@router.post("/{role_id}/assignments", response_model=UserRoleAssignmentResponse, status_code=201)
async def assign_role(
    organization_id: str,
    role_id: str,
    body: RoleAssignmentCreate,
    user_data: Dict = Depends(require_role_manager),
    service: RoleService = Depends(get_role_service)
):
    return service.assign_role(organization_id, role_id, body.user_id, user_data["id"], project_id=body.project_id)


@router.delete("/{role_id}/assignments/{user_id}", status_code=204)
async def unassign_role(
    organization_id: str,
    role_id: str,
    user_id: str,
    user_data: Dict = Depends(require_role_manager),
    service: RoleService = Depends(get_role_service)
):
    service.unassign_role(organization_id, role_id, user_id, user_data["id"])
    return None


@users_router.get("/{user_id}/roles", response_model=List[UserRoleResponse])
async def list_user_roles(
    user_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: RoleService = Depends(get_role_service),
    supabase: Client = Depends(get_supabase)
):
    """Own roles, or any user's roles for an org admin of the same organization"""
    if user_id != user_data["id"]:
        membership = MembershipService(supabase)
        requester = membership.get_user_profile(user_data["id"])
        target = membership.get_user_profile(user_id)
        if not (
            requester and target
            and requester.role == OrgRole.ADMIN
            and requester.organization_id == target.organization_id
        ):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You cannot view this user's roles")
    return service.list_user_roles(user_id)
