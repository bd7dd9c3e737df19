from supabase import Client
from app.config.permissions_config import ACCESS_LEVEL_PERMISSIONS, ADMIN_MARKER_PERMISSIONS
from app.core.enums import AccessLevel, AssetType
from app.core.notifications import Notifier
from app.modules.access_control.service import invalidate_access_snapshots
from app.modules.asset_access.schemas import AssetAccessEntry
from app.modules.asset_permissions.service import AssetPermissionService
from app.modules.audit.service import PermissionAuditService
from app.modules.membership.service import MembershipService
from typing import Any, Dict, Iterable, List, Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


def derive_access_level(asset_type: AssetType, permission_types: Iterable[str]) -> Optional[AccessLevel]:
    """Highest level implied by the rows present"""
    present = set(permission_types)
    if present & ADMIN_MARKER_PERMISSIONS[AssetType(asset_type)]:
        return AccessLevel.ADMIN
    if "edit" in present:
        return AccessLevel.EDIT
    if "view" in present:
        return AccessLevel.VIEW
    return None


class AssetAccessService:
    """view/edit/admin access levels for reports and workflows, stored as asset_permissions rows"""

    def __init__(
        self,
        supabase: Client,
        asset_type: AssetType,
        notifier: Optional[Notifier] = None,
        cache: Optional[Dict[str, Any]] = None
    ):
        asset_type = AssetType(asset_type)
        if asset_type not in ACCESS_LEVEL_PERMISSIONS:
            raise ValueError(f"Access levels are not defined for {asset_type.value}")
        self.supabase = supabase
        self.asset_type = asset_type
        self.notifier = notifier or Notifier()
        self.cache = cache
        self.asset_permissions = AssetPermissionService(supabase)
        self.membership = MembershipService(supabase)
        self.audit = PermissionAuditService(supabase)

    @property
    def label(self) -> str:
        return self.asset_type.value

    def grant_access(
        self,
        project_id: str,
        asset_id: str,
        user_id: str,
        access_level: AccessLevel,
        granted_by: str
    ) -> List[AssetAccessEntry]:
        """Replaces the user's rows for this asset with the set the level maps to"""
        permission_types = ACCESS_LEVEL_PERMISSIONS[self.asset_type][AccessLevel(access_level)]
        try:
            self.asset_permissions.revoke_all_for_user(project_id, user_id, self.asset_type, asset_id)
            self.asset_permissions.insert_many(
                project_id, user_id, self.asset_type, asset_id, permission_types, granted_by
            )
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error granting {access_level} access on {self.label} {asset_id} to {user_id}: {e}")
            self.notifier.error("Failed to grant access")
            raise HTTPException(status_code=500, detail="Failed to grant access")

        self.audit.record(user_id, f"{self.label}_access", "access_change", granted_by, project_id, {
            "asset_type": self.label,
            "asset_id": asset_id,
            "access_level": AccessLevel(access_level).value,
        })
        invalidate_access_snapshots(self.cache, project_id, user_id)
        self.notifier.success("Access granted", f"{AccessLevel(access_level).value.capitalize()} access granted")
        return self.list_access(project_id, asset_id)

    def revoke_access(self, project_id: str, asset_id: str, user_id: str, revoked_by: str) -> List[AssetAccessEntry]:
        try:
            self.asset_permissions.revoke_all_for_user(project_id, user_id, self.asset_type, asset_id)
        except Exception as e:
            logger.error(f"Error revoking access on {self.label} {asset_id} from {user_id}: {e}")
            self.notifier.error("Failed to revoke access")
            raise HTTPException(status_code=500, detail="Failed to revoke access")

        self.audit.record(user_id, f"{self.label}_access", "revoke", revoked_by, project_id, {
            "asset_type": self.label,
            "asset_id": asset_id,
        })
        invalidate_access_snapshots(self.cache, project_id, user_id)
        self.notifier.success("Access revoked")
        return self.list_access(project_id, asset_id)

    def check_user_access(self, project_id: str, asset_id: str, user_id: str) -> Optional[AccessLevel]:
        """Read path: a store failure answers None rather than raising"""
        try:
            rows = self.asset_permissions.list_for_asset(project_id, self.asset_type, asset_id)
        except Exception as e:
            logger.error(f"Error checking access on {self.label} {asset_id} for {user_id}: {e}")
            return None
        return derive_access_level(self.asset_type, (r.permission_type for r in rows if r.user_id == user_id))

    def list_access(self, project_id: str, asset_id: str) -> List[AssetAccessEntry]:
        """All users with rows on the asset, grouped per user with their derived level"""
        try:
            rows = self.asset_permissions.list_for_asset(project_id, self.asset_type, asset_id)
        except Exception as e:
            logger.error(f"Error loading access for {self.label} {asset_id}: {e}")
            self.notifier.error("Failed to load access")
            raise HTTPException(status_code=500, detail="Failed to load access")

        grouped: Dict[str, List[str]] = {}
        for row in rows:
            grouped.setdefault(row.user_id, []).append(row.permission_type)

        try:
            profiles = self.membership.get_user_profiles(list(grouped))
        except Exception as e:
            logger.warning(f"Could not load user profiles for {self.label} {asset_id}: {e}")
            profiles = {}

        return [
            AssetAccessEntry(
                user_id=user_id,
                access_level=derive_access_level(self.asset_type, permission_types),
                permission_types=sorted(permission_types),
                user=profiles.get(user_id),
            )
            for user_id, permission_types in grouped.items()
        ]
