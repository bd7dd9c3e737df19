from supabase import Client
from app.config.permissions_config import ASSET_PERMISSION_TYPES, get_creator_permissions
from app.core.enums import AssetType
from app.modules.asset_permissions.schemas import AssetPermissionResponse
from app.modules.membership.service import MembershipService
from typing import Iterable, List, Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)

ASSET_PERMISSION_CONFLICT_KEYS = "project_id,user_id,asset_type,asset_id,permission_type"


class AssetPermissionService:
    """
    Existence-based grant rows keyed by (project, user, asset_type, asset_id, permission_type).

    Store errors propagate unchanged; callers decide how a failure is reported.
    Only an invalid permission type is turned into an HTTPException here.
    """

    def __init__(self, supabase: Client):
        self.supabase = supabase

    @staticmethod
    def validate_permission_type(asset_type: AssetType, permission_type: str) -> None:
        valid = ASSET_PERMISSION_TYPES[AssetType(asset_type)]
        if permission_type not in valid:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid permission type '{permission_type}' for {AssetType(asset_type).value}"
            )

    def list_for_asset(self, project_id: str, asset_type: AssetType, asset_id: str) -> List[AssetPermissionResponse]:
        result = self.supabase.table("asset_permissions")\
            .select("*")\
            .eq("project_id", project_id)\
            .eq("asset_type", AssetType(asset_type).value)\
            .eq("asset_id", asset_id)\
            .execute()
        return [AssetPermissionResponse(**row) for row in (result.data or [])]

    def grant(
        self,
        project_id: str,
        user_id: str,
        asset_type: AssetType,
        asset_id: str,
        permission_type: str,
        granted_by: Optional[str] = None
    ) -> None:
        """Insert-if-absent. Granting an existing permission is a no-op."""
        self.validate_permission_type(asset_type, permission_type)
        self.supabase.table("asset_permissions")\
            .upsert({
                "project_id": project_id,
                "user_id": user_id,
                "asset_type": AssetType(asset_type).value,
                "asset_id": asset_id,
                "permission_type": permission_type,
                "granted_by": granted_by,
            }, on_conflict=ASSET_PERMISSION_CONFLICT_KEYS, ignore_duplicates=True)\
            .execute()

    def revoke(
        self,
        project_id: str,
        user_id: str,
        asset_type: AssetType,
        asset_id: str,
        permission_type: str
    ) -> None:
        """Delete the row if present. Revoking an absent permission is a no-op."""
        self.validate_permission_type(asset_type, permission_type)
        self.supabase.table("asset_permissions")\
            .delete()\
            .eq("project_id", project_id)\
            .eq("user_id", user_id)\
            .eq("asset_type", AssetType(asset_type).value)\
            .eq("asset_id", asset_id)\
            .eq("permission_type", permission_type)\
            .execute()

    def revoke_all_for_user(self, project_id: str, user_id: str, asset_type: AssetType, asset_id: str) -> None:
        self.supabase.table("asset_permissions")\
            .delete()\
            .eq("project_id", project_id)\
            .eq("user_id", user_id)\
            .eq("asset_type", AssetType(asset_type).value)\
            .eq("asset_id", asset_id)\
            .execute()

    def insert_many(
        self,
        project_id: str,
        user_id: str,
        asset_type: AssetType,
        asset_id: str,
        permission_types: Iterable[str],
        granted_by: Optional[str] = None
    ) -> None:
        """Single batch insert of several permission types for one user and asset"""
        permission_types = list(dict.fromkeys(permission_types))
        for permission_type in permission_types:
            self.validate_permission_type(asset_type, permission_type)
        if not permission_types:
            return
        self.supabase.table("asset_permissions").insert([
            {
                "project_id": project_id,
                "user_id": user_id,
                "asset_type": AssetType(asset_type).value,
                "asset_id": asset_id,
                "permission_type": permission_type,
                "granted_by": granted_by,
            }
            for permission_type in permission_types
        ]).execute()

    def delete_for_asset(self, asset_type: AssetType, asset_id: str) -> int:
        """Remove every grant pointing at an asset; used before the asset itself is deleted"""
        result = self.supabase.table("asset_permissions")\
            .delete()\
            .eq("asset_type", AssetType(asset_type).value)\
            .eq("asset_id", asset_id)\
            .execute()
        return len(result.data or [])

    def grant_creator_permissions(self, project_id: str, asset_type: AssetType, asset_id: str, creator_id: str) -> bool:
        """
        Give the creator of a new asset its full permission set.
        Skipped for project admins and the project creator, who already bypass checks.
        """
        membership = MembershipService(self.supabase)
        if membership.is_project_admin(project_id, creator_id):
            return False
        for permission_type in get_creator_permissions(asset_type):
            self.grant(project_id, creator_id, asset_type, asset_id, permission_type, granted_by=creator_id)
        logger.info(f"Granted creator permissions on {AssetType(asset_type).value} {asset_id} to {creator_id}")
        return True
