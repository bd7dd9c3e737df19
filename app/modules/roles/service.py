from supabase import Client
from app.config.permissions_config import RESOURCE_SCOPE_TYPES
from app.core.enums import CrudAction, ResourceType, TopLevelAccess
from app.core.notifications import Notifier
from app.database.supabase_client import single_row
from app.modules.access_control.service import invalidate_access_snapshots
from app.modules.audit.service import PermissionAuditService
from app.modules.membership.service import MembershipService
from app.modules.resources.service import ResourceService, resource_display_name
from app.modules.roles.schemas import (
    ResourcePermissionSet, RoleCreate, RoleUpdate, RoleResponse,
    RolePermissionGroup, RolePermissionResponse, RoleWithPermissionsResponse,
    UserRoleAssignmentResponse, UserRoleResponse
)
from app.modules.top_level_permissions.service import TopLevelPermissionService
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


def flatten_resource_permissions(role_id: str, resource_permissions: List[ResourcePermissionSet]) -> List[dict]:
    """One role_permissions row per (resource, action), with plural scopes stored as singular types"""
    rows = []
    for permission_set in resource_permissions:
        resource_type = RESOURCE_SCOPE_TYPES[permission_set.resource_type]
        for action in sorted(permission_set.permissions):
            rows.append({
                "role_id": role_id,
                "resource_type": resource_type.value,
                "resource_id": permission_set.resource_id,
                "permission_type": CrudAction(action).value,
            })
    return rows


class RoleService:
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
        self.resources = ResourceService(supabase)
        self.audit = PermissionAuditService(supabase)

    def _insert_permissions(self, role_id: str, resource_permissions: List[ResourcePermissionSet]) -> int:
        rows = flatten_resource_permissions(role_id, resource_permissions)
        if rows:
            self.supabase.table("role_permissions").insert(rows).execute()
        return len(rows)

    def _ensure_unique_name(self, organization_id: str, name: str, role_id: Optional[str] = None) -> None:
        query = self.supabase.table("roles")\
            .select("id")\
            .eq("organization_id", organization_id)\
            .eq("name", name)
        if role_id:
            query = query.neq("id", role_id)
        if query.execute().data:
            raise HTTPException(status_code=400, detail=f"A role named '{name}' already exists")

    def create_role(self, organization_id: str, role_data: RoleCreate, created_by: str) -> RoleWithPermissionsResponse:
        """
        Insert the role, then its permissions in one batch.

        The two writes are not atomic. If the permission insert fails the role
        stays with no permissions and the error names it so the caller can
        retry through update_role.
        """
        try:
            self._ensure_unique_name(organization_id, role_data.name)
            result = self.supabase.table("roles").insert({
                "organization_id": organization_id,
                "name": role_data.name,
                "description": role_data.description,
                "top_level_access": role_data.top_level_access.value,
                "created_by": created_by,
            }).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create role")
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error creating role {role_data.name} in {organization_id}: {e}")
            self.notifier.error("Failed to create role")
            raise HTTPException(status_code=500, detail="Failed to create role")

        role = result.data[0]
        try:
            count = self._insert_permissions(role["id"], role_data.resource_permissions)
        except Exception as e:
            logger.error(f"Role {role['id']} created but its permissions could not be saved: {e}")
            self.notifier.error("Role created but its permissions could not be saved")
            raise HTTPException(
                status_code=500,
                detail=f"Role {role['id']} was created without permissions; update the role to retry"
            )

        logger.info(f"Created role {role['id']} with {count} permissions in {organization_id}")
        self.notifier.success("Role created", f"{role_data.name} created")
        return self.get_role_with_permissions(organization_id, role["id"])

    def get_role(self, organization_id: str, role_id: str) -> RoleResponse:
        try:
            result = self.supabase.table("roles")\
                .select("*")\
                .eq("id", role_id)\
                .eq("organization_id", organization_id)\
                .maybe_single()\
                .execute()
        except Exception as e:
            logger.error(f"Error loading role {role_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to load role")
        row = single_row(result)
        if not row:
            raise HTTPException(status_code=404, detail="Role not found")
        return RoleResponse(**row)

    def get_role_with_permissions(self, organization_id: str, role_id: str) -> RoleWithPermissionsResponse:
        role = self.get_role(organization_id, role_id)
        try:
            return self._enrich([role])[0]
        except Exception as e:
            logger.error(f"Error loading permissions for role {role_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to load role permissions")

    def update_role(
        self,
        organization_id: str,
        role_id: str,
        role_data: RoleUpdate,
        updated_by: str
    ) -> RoleWithPermissionsResponse:
        """
        Replace semantics: scalar fields are updated, then every existing permission
        row is deleted and the new set inserted. A reader may see the role with no
        permissions between the two writes.
        """
        self.get_role(organization_id, role_id)
        try:
            update_data = {}
            if role_data.name:
                self._ensure_unique_name(organization_id, role_data.name, role_id)
                update_data["name"] = role_data.name
            if role_data.description is not None:
                update_data["description"] = role_data.description
            if role_data.top_level_access is not None:
                update_data["top_level_access"] = role_data.top_level_access.value
            if update_data:
                update_data["updated_at"] = datetime.now(timezone.utc).isoformat()
                self.supabase.table("roles")\
                    .update(update_data)\
                    .eq("id", role_id)\
                    .execute()

            if role_data.resource_permissions is not None:
                self.supabase.table("role_permissions")\
                    .delete()\
                    .eq("role_id", role_id)\
                    .execute()
                self._insert_permissions(role_id, role_data.resource_permissions)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error updating role {role_id}: {e}")
            self.notifier.error("Failed to update role")
            raise HTTPException(status_code=500, detail="Failed to update role")

        logger.info(f"Role {role_id} updated by {updated_by}")
        invalidate_access_snapshots(self.cache)
        self.notifier.success("Role updated")
        return self.get_role_with_permissions(organization_id, role_id)

    def fetch_roles(self, organization_id: str) -> List[RoleWithPermissionsResponse]:
        """Roles with creator name and permissions grouped by resource name"""
        try:
            result = self.supabase.table("roles")\
                .select("*")\
                .eq("organization_id", organization_id)\
                .order("created_at", desc=True)\
                .execute()
            roles = [RoleResponse(**row) for row in (result.data or [])]
            return self._enrich(roles)
        except Exception as e:
            logger.error(f"Error fetching roles for {organization_id}: {e}")
            self.notifier.error("Failed to load roles")
            raise HTTPException(status_code=500, detail="Failed to load roles")

    def _enrich(self, roles: List[RoleResponse]) -> List[RoleWithPermissionsResponse]:
        if not roles:
            return []
        permissions_result = self.supabase.table("role_permissions")\
            .select("*")\
            .in_("role_id", [role.id for role in roles])\
            .execute()
        permissions_by_role: Dict[str, List[RolePermissionResponse]] = {}
        for row in permissions_result.data or []:
            try:
                permission = RolePermissionResponse(**row)
            except ValueError:
                logger.warning(f"Skipping malformed role permission {row.get('id')}")
                continue
            permissions_by_role.setdefault(permission.role_id, []).append(permission)

        creator_ids = [role.created_by for role in roles if role.created_by]
        try:
            creators = self.membership.get_user_profiles(creator_ids)
        except Exception as e:
            logger.warning(f"Could not load role creator profiles: {e}")
            creators = {}

        ids_by_type: Dict[ResourceType, set] = {}
        for permissions in permissions_by_role.values():
            for permission in permissions:
                if permission.resource_id:
                    ids_by_type.setdefault(permission.resource_type, set()).add(permission.resource_id)
        names = {
            resource_type: self.resources.get_resource_names(resource_type, ids)
            for resource_type, ids in ids_by_type.items()
        }

        enriched = []
        for role in roles:
            permissions = permissions_by_role.get(role.id, [])
            groups: Dict[tuple, RolePermissionGroup] = {}
            for permission in permissions:
                key = (permission.resource_type, permission.resource_id)
                if key not in groups:
                    groups[key] = RolePermissionGroup(
                        resource_type=permission.resource_type,
                        resource_id=permission.resource_id,
                        resource_name=resource_display_name(
                            permission.resource_type,
                            permission.resource_id,
                            names.get(permission.resource_type, {})
                        ),
                        permissions=[],
                    )
                if permission.permission_type not in groups[key].permissions:
                    groups[key].permissions.append(permission.permission_type)
            creator = creators.get(role.created_by) if role.created_by else None
            enriched.append(RoleWithPermissionsResponse(
                **role.model_dump(),
                creator_name=creator.display_name if creator else "Unknown",
                permissions=permissions,
                permission_groups=list(groups.values()),
            ))
        return enriched

    def delete_role(self, organization_id: str, role_id: str) -> bool:
        """Permissions go first, then the role; assignments stay and become inert"""
        self.get_role(organization_id, role_id)
        try:
            self.supabase.table("role_permissions")\
                .delete()\
                .eq("role_id", role_id)\
                .execute()
            result = self.supabase.table("roles")\
                .delete()\
                .eq("id", role_id)\
                .execute()
        except Exception as e:
            logger.error(f"Error deleting role {role_id}: {e}")
            self.notifier.error("Failed to delete role")
            raise HTTPException(status_code=500, detail="Failed to delete role")

        invalidate_access_snapshots(self.cache)
        self.notifier.success("Role deleted")
        return len(result.data or []) > 0

    def _check_assignment_project(self, organization_id: str, project_id: str, assigned_by: str) -> None:
        try:
            project_organization = self.membership.get_project_organization(project_id)
            is_admin = project_organization == organization_id and \
                self.membership.is_project_admin(project_id, assigned_by)
        except Exception as e:
            logger.error(f"Error checking project {project_id} for role assignment: {e}")
            self.notifier.error("Failed to assign role")
            raise HTTPException(status_code=500, detail="Failed to assign role")

        if project_organization != organization_id:
            logger.warning(f"Role assignment in {organization_id} refused for project {project_id} outside it")
            raise HTTPException(status_code=400, detail="Project does not belong to this organization")
        if not is_admin:
            raise HTTPException(
                status_code=403,
                detail="You must be a project admin to assign roles with project access"
            )

    def assign_role(
        self,
        organization_id: str,
        role_id: str,
        user_id: str,
        assigned_by: str,
        project_id: Optional[str] = None
    ) -> UserRoleAssignmentResponse:
        """
        Idempotent per (user, role). With a project_id the role's top-level access
        tier is also written for entity types the user has no row for yet.
        The project must belong to the role's organization and be administered
        by the assigner.
        """
        role = self.get_role(organization_id, role_id)
        if project_id:
            self._check_assignment_project(organization_id, project_id, assigned_by)
        try:
            result = self.supabase.table("user_role_assignments")\
                .upsert({
                    "user_id": user_id,
                    "role_id": role_id,
                    "assigned_by": assigned_by,
                    "assigned_at": datetime.now(timezone.utc).isoformat(),
                }, on_conflict="user_id,role_id")\
                .execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to assign role")
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error assigning role {role_id} to {user_id}: {e}")
            self.notifier.error("Failed to assign role")
            raise HTTPException(status_code=500, detail="Failed to assign role")

        if project_id:
            TopLevelPermissionService(self.supabase, self.notifier).initialize_defaults(
                project_id, user_id, assigned_by, access=TopLevelAccess(role.top_level_access)
            )

        self.audit.record(user_id, "organization_role_assignment", "assign", assigned_by, project_id, {
            "role_id": role_id,
            "role_name": role.name,
        })
        invalidate_access_snapshots(self.cache, user_id=user_id)
        self.notifier.success("Role assigned", f"{role.name} assigned")
        return UserRoleAssignmentResponse(**result.data[0])

    def unassign_role(self, organization_id: str, role_id: str, user_id: str, unassigned_by: str) -> bool:
        role = self.get_role(organization_id, role_id)
        try:
            result = self.supabase.table("user_role_assignments")\
                .delete()\
                .eq("user_id", user_id)\
                .eq("role_id", role_id)\
                .execute()
        except Exception as e:
            logger.error(f"Error removing role {role_id} from {user_id}: {e}")
            self.notifier.error("Failed to remove role")
            raise HTTPException(status_code=500, detail="Failed to remove role")

        self.audit.record(user_id, "organization_role_assignment", "unassign", unassigned_by, None, {
            "role_id": role_id,
            "role_name": role.name,
        })
        invalidate_access_snapshots(self.cache, user_id=user_id)
        self.notifier.success("Role removed", f"{role.name} removed")
        return len(result.data or []) > 0

    def list_user_roles(self, user_id: str) -> List[UserRoleResponse]:
        """Assignments for a user; an assignment to a deleted role comes back with role None"""
        try:
            assignments = self.supabase.table("user_role_assignments")\
                .select("*")\
                .eq("user_id", user_id)\
                .execute()
            rows = assignments.data or []
            roles = {}
            if rows:
                roles_result = self.supabase.table("roles")\
                    .select("*")\
                    .in_("id", list({row["role_id"] for row in rows}))\
                    .execute()
                roles = {role["id"]: RoleResponse(**role) for role in (roles_result.data or [])}
        except Exception as e:
            logger.error(f"Error loading roles for user {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to load user roles")
        return [UserRoleResponse(**row, role=roles.get(row["role_id"])) for row in rows]
