from fastapi import APIRouter, Depends
from app.config.permissions_config import FORM_PERMISSION_CATALOG_VERSION, FORM_PERMISSION_TYPES
from app.core.dependencies import get_access_cache, get_notifier, require_project_admin
from app.core.notifications import Notifier
from app.database.supabase_client import get_supabase
from app.modules.form_access.schemas import (
    FormPermissionBulkUpdate, FormPermissionChange, FormPermissionMatrix, FormPermissionType
)
from app.modules.form_access.service import FormAccessService
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/projects/{project_id}/forms/{form_id}/permissions", tags=["form-access"])


def get_form_access_service(
    supabase: Client = Depends(get_supabase),
    notifier: Notifier = Depends(get_notifier),
    cache: Dict = Depends(get_access_cache)
) -> FormAccessService:
    return FormAccessService(supabase, notifier=notifier, cache=cache)


def _matrix(project_id: str, form_id: str, users, notifier: Notifier) -> FormPermissionMatrix:
    return FormPermissionMatrix(
        project_id=project_id,
        form_id=form_id,
        catalog_version=FORM_PERMISSION_CATALOG_VERSION,
        permission_types=[FormPermissionType(**p) for p in FORM_PERMISSION_TYPES],
        users=users,
        notifications=notifier.drain(),
    )


@router.get("", response_model=FormPermissionMatrix)
async def get_form_permissions(
    project_id: str,
    form_id: str,
    user_data: Dict = Depends(require_project_admin),
    service: FormAccessService = Depends(get_form_access_service)
):
    """Permission matrix for every user related to the project"""
    users = service.load_form_permissions(project_id, form_id)
    return _matrix(project_id, form_id, users, service.notifier)


@router.post("/grant", response_model=FormPermissionMatrix)
async def grant_form_permission(
    project_id: str,
    form_id: str,
    body: FormPermissionChange,
    user_data: Dict = Depends(require_project_admin),
    service: FormAccessService = Depends(get_form_access_service)
):
    users = service.grant_permission(project_id, form_id, body.user_id, body.permission_type, user_data["id"])
    return _matrix(project_id, form_id, users, service.notifier)


@router.post("/revoke", response_model=FormPermissionMatrix)
async def revoke_form_permission(
    project_id: str,
    form_id: str,
    body: FormPermissionChange,
    user_data: Dict = Depends(require_project_admin),
    service: FormAccessService = Depends(get_form_access_service)
):
    users = service.revoke_permission(project_id, form_id, body.user_id, body.permission_type, user_data["id"])
    return _matrix(project_id, form_id, users, service.notifier)


@router.post("/bulk", response_model=FormPermissionMatrix)
async def bulk_update_form_permissions(
    project_id: str,
    form_id: str,
    body: FormPermissionBulkUpdate,
    user_data: Dict = Depends(require_project_admin),
    service: FormAccessService = Depends(get_form_access_service)
):
    """Sequential writes; a failure part way leaves the earlier writes applied"""
    users = service.bulk_update_permissions(project_id, form_id, body.user_ids, body.permissions, user_data["id"])
    return _matrix(project_id, form_id, users, service.notifier)
