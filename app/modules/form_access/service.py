from supabase import Client
from app.config.permissions_config import FORM_PERMISSION_IDS, get_form_permission_defaults
from app.config.settings import settings
from app.core.enums import AssetType
from app.core.notifications import Notifier
from app.modules.access_control.service import invalidate_access_snapshots
from app.modules.asset_permissions.service import AssetPermissionService
from app.modules.audit.service import PermissionAuditService
from app.modules.form_access.schemas import FormPermissionState, FormPermissionUser
from app.modules.membership.service import MembershipService
from typing import Any, Dict, List, Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


class FormAccessService:
    """
    Per-form permission matrix: project-role defaults overlaid with explicit grants.

    Every write reloads the matrix from the store and returns it; nothing is
    patched optimistically.
    """

    def __init__(
        self,
        supabase: Client,
        notifier: Optional[Notifier] = None,
        cache: Optional[Dict[str, Any]] = None
    ):
        self.supabase = supabase
        self.notifier = notifier or Notifier()
        self.cache = cache
        self.membership = MembershipService(supabase)
        self.asset_permissions = AssetPermissionService(supabase)
        self.audit = PermissionAuditService(supabase)

    def load_form_permissions(self, project_id: str, form_id: str) -> List[FormPermissionUser]:
        """Every project member plus every user holding an explicit grant on the form"""
        try:
            members = self.membership.list_project_members(project_id)
            grants = self.asset_permissions.list_for_asset(project_id, AssetType.FORM, form_id)
        except Exception as e:
            logger.error(f"Error loading form permissions for form {form_id} in project {project_id}: {e}")
            self.notifier.error("Failed to load form permissions")
            raise HTTPException(status_code=500, detail="Failed to load form permissions")

        roles = {member.user_id: member.role for member in members}
        explicit: Dict[str, set] = {}
        for grant in grants:
            if grant.permission_type in FORM_PERMISSION_IDS:
                explicit.setdefault(grant.user_id, set()).add(grant.permission_type)

        user_ids = list(roles) + [user_id for user_id in explicit if user_id not in roles]
        try:
            profiles = self.membership.get_user_profiles(user_ids)
        except Exception as e:
            logger.warning(f"Could not load user profiles for form {form_id}: {e}")
            profiles = {}

        users = []
        for user_id in user_ids:
            project_role = roles.get(user_id)
            defaults = get_form_permission_defaults(project_role)
            user_explicit = explicit.get(user_id, set())
            permissions = {
                permission_id: FormPermissionState(granted=True, explicit=True)
                if permission_id in user_explicit
                else FormPermissionState(granted=defaults[permission_id], explicit=False)
                for permission_id in FORM_PERMISSION_IDS
            }
            profile = profiles.get(user_id)
            users.append(FormPermissionUser(
                user_id=user_id,
                email=profile.email if profile else None,
                display_name=profile.display_name if profile else None,
                project_role=project_role,
                permissions=permissions,
                has_explicit_permissions=bool(user_explicit),
            ))
        users.sort(key=lambda u: ((u.display_name or u.email or "").lower(), u.user_id))
        return users

    def grant_permission(
        self,
        project_id: str,
        form_id: str,
        user_id: str,
        permission_type: str,
        granted_by: str
    ) -> List[FormPermissionUser]:
        """Idempotent: granting an existing permission succeeds without creating a second row"""
        AssetPermissionService.validate_permission_type(AssetType.FORM, permission_type)
        try:
            self.asset_permissions.grant(project_id, user_id, AssetType.FORM, form_id, permission_type, granted_by)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error granting {permission_type} on form {form_id} to {user_id}: {e}")
            self.notifier.error("Failed to grant permission")
            raise HTTPException(status_code=500, detail="Failed to grant permission")

        self.audit.record(user_id, permission_type, "grant", granted_by, project_id,
                          {"asset_type": AssetType.FORM.value, "asset_id": form_id})
        invalidate_access_snapshots(self.cache, project_id, user_id)
        self.notifier.success("Permission granted", f"Granted {permission_type}")
        return self.load_form_permissions(project_id, form_id)

    def revoke_permission(
        self,
        project_id: str,
        form_id: str,
        user_id: str,
        permission_type: str,
        revoked_by: str
    ) -> List[FormPermissionUser]:
        """Idempotent: revoking an absent permission is a successful no-op"""
        AssetPermissionService.validate_permission_type(AssetType.FORM, permission_type)
        try:
            self.asset_permissions.revoke(project_id, user_id, AssetType.FORM, form_id, permission_type)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error revoking {permission_type} on form {form_id} from {user_id}: {e}")
            self.notifier.error("Failed to revoke permission")
            raise HTTPException(status_code=500, detail="Failed to revoke permission")

        self.audit.record(user_id, permission_type, "revoke", revoked_by, project_id,
                          {"asset_type": AssetType.FORM.value, "asset_id": form_id})
        invalidate_access_snapshots(self.cache, project_id, user_id)
        self.notifier.success("Permission revoked", f"Revoked {permission_type}")
        return self.load_form_permissions(project_id, form_id)

    def bulk_update_permissions(
        self,
        project_id: str,
        form_id: str,
        user_ids: List[str],
        permissions: Dict[str, bool],
        changed_by: str
    ) -> List[FormPermissionUser]:
        """
        Applies every (user, permission) change one write at a time.

        Not atomic: the first failed write stops the batch, the writes already
        made stay in place, and one aggregate error reports how far it got.
        """
        user_ids = list(dict.fromkeys(user_ids))
        if len(user_ids) > settings.bulk_update_max_users:
            raise HTTPException(
                status_code=400,
                detail=f"Bulk update is limited to {settings.bulk_update_max_users} users"
            )
        for permission_type in permissions:
            AssetPermissionService.validate_permission_type(AssetType.FORM, permission_type)

        planned = [
            (user_id, permission_type, grant)
            for user_id in user_ids
            for permission_type, grant in permissions.items()
        ]
        applied = 0
        for user_id, permission_type, grant in planned:
            try:
                if grant:
                    self.asset_permissions.grant(project_id, user_id, AssetType.FORM, form_id, permission_type, changed_by)
                else:
                    self.asset_permissions.revoke(project_id, user_id, AssetType.FORM, form_id, permission_type)
            except Exception as e:
                logger.error(
                    f"Bulk update on form {form_id} stopped at {permission_type} for {user_id} "
                    f"after {applied} of {len(planned)} changes: {e}"
                )
                invalidate_access_snapshots(self.cache, project_id)
                self.notifier.error(f"Failed to update permissions ({applied} of {len(planned)} changes applied)")
                raise HTTPException(
                    status_code=500,
                    detail=f"Failed to update permissions: {applied} of {len(planned)} changes applied"
                )
            applied += 1

        for user_id in user_ids:
            self.audit.record(user_id, "form_permissions", "bulk_update", changed_by, project_id, {
                "asset_type": AssetType.FORM.value,
                "asset_id": form_id,
                "permissions": permissions,
            })
        invalidate_access_snapshots(self.cache, project_id)
        self.notifier.success("Permissions updated", f"Updated permissions for {len(user_ids)} users")
        return self.load_form_permissions(project_id, form_id)
