from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple
from supabase import Client

from app.core.enums import AssetType, CrudAction, EntityType, OrgRole, ProjectRole, ResourceType
from app.modules.membership.service import MembershipService
from app.modules.top_level_permissions.schemas import TopLevelFlags
from app.modules.top_level_permissions.service import TopLevelPermissionService
import logging

logger = logging.getLogger(__name__)


@dataclass
class AccessSnapshot:
    """Everything the resolver needs about one user in one project, loaded once."""

    project_id: str
    user_id: str
    org_role: Optional[str] = None
    project_role: Optional[str] = None
    is_project_creator: bool = False
    top_level: Dict[EntityType, TopLevelFlags] = field(default_factory=dict)
    role_names: List[str] = field(default_factory=list)
    role_grants: Set[Tuple[ResourceType, Optional[str], CrudAction]] = field(default_factory=set)
    asset_grants: Set[Tuple[AssetType, str, str]] = field(default_factory=set)
    load_errors: List[str] = field(default_factory=list)

    @property
    def is_org_admin(self) -> bool:
        return self.org_role == OrgRole.ADMIN

    @property
    def is_project_admin(self) -> bool:
        return self.is_org_admin or self.project_role == ProjectRole.ADMIN or self.is_project_creator

    @property
    def is_admin(self) -> bool:
        return self.is_org_admin or self.is_project_admin

    def top_level_allows(self, entity_type: EntityType, action: CrudAction) -> bool:
        flags = self.top_level.get(EntityType(entity_type))
        if flags is None:
            return False
        return flags.allows(action)

    def role_allows(self, resource_type: ResourceType, resource_id: Optional[str], action: CrudAction) -> bool:
        # A grant without resource_id covers every resource of that type
        if (resource_type, None, action) in self.role_grants:
            return True
        return resource_id is not None and (resource_type, resource_id, action) in self.role_grants

    def has_asset_grant(self, asset_type: AssetType, asset_id: str, permission_type: str) -> bool:
        return (AssetType(asset_type), asset_id, permission_type) in self.asset_grants


class AccessSnapshotLoader:
    """
    Builds an AccessSnapshot from the stores.

    Every lookup fails closed: a store error is logged and that part of the
    snapshot stays empty, which can only remove access.
    """

    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.membership = MembershipService(supabase)

    def load(self, project_id: str, user_id: str) -> AccessSnapshot:
        snapshot = AccessSnapshot(project_id=project_id, user_id=user_id)
        self._load_membership(snapshot)
        self._load_top_level(snapshot)
        self._load_role_grants(snapshot)
        self._load_asset_grants(snapshot)
        return snapshot

    def _fail(self, snapshot: AccessSnapshot, what: str, error: Exception) -> None:
        logger.error(f"Error loading {what} for user {snapshot.user_id} in project {snapshot.project_id}: {error}")
        snapshot.load_errors.append(what)

    def _load_membership(self, snapshot: AccessSnapshot) -> None:
        try:
            snapshot.org_role = self.membership.get_org_role(snapshot.user_id)
        except Exception as e:
            self._fail(snapshot, "organization role", e)
        try:
            snapshot.project_role = self.membership.get_project_role(snapshot.project_id, snapshot.user_id)
        except Exception as e:
            self._fail(snapshot, "project role", e)
        try:
            snapshot.is_project_creator = self.membership.is_project_creator(snapshot.project_id, snapshot.user_id)
        except Exception as e:
            self._fail(snapshot, "project creator", e)

    def _load_top_level(self, snapshot: AccessSnapshot) -> None:
        try:
            rows = TopLevelPermissionService(self.supabase).fetch_rows(snapshot.project_id, snapshot.user_id)
        except Exception as e:
            self._fail(snapshot, "top-level permissions", e)
            return
        for row in rows:
            try:
                entity_type = EntityType(row["entity_type"])
            except ValueError:
                continue
            snapshot.top_level[entity_type] = TopLevelFlags(
                can_create=bool(row.get("can_create")),
                can_read=bool(row.get("can_read")),
                can_update=bool(row.get("can_update")),
                can_delete=bool(row.get("can_delete")),
            )

    def _load_role_grants(self, snapshot: AccessSnapshot) -> None:
        try:
            assignments = self.supabase.table("user_role_assignments")\
                .select("role_id")\
                .eq("user_id", snapshot.user_id)\
                .execute()
            role_ids = list({a["role_id"] for a in (assignments.data or [])})
            if not role_ids:
                return
            # Assignments to deleted roles simply find no role and no permissions
            roles = self.supabase.table("roles")\
                .select("id, name")\
                .in_("id", role_ids)\
                .execute()
            live_role_ids = [r["id"] for r in (roles.data or [])]
            snapshot.role_names = sorted(r["name"] for r in (roles.data or []))
            if not live_role_ids:
                return
            permissions = self.supabase.table("role_permissions")\
                .select("role_id, resource_type, resource_id, permission_type")\
                .in_("role_id", live_role_ids)\
                .execute()
        except Exception as e:
            self._fail(snapshot, "role permissions", e)
            return
        for perm in permissions.data or []:
            try:
                resource_type = ResourceType(perm["resource_type"])
                action = CrudAction(perm["permission_type"])
            except ValueError:
                logger.debug(f"Skipping unknown role permission {perm}")
                continue
            snapshot.role_grants.add((resource_type, perm.get("resource_id"), action))

    def _load_asset_grants(self, snapshot: AccessSnapshot) -> None:
        try:
            result = self.supabase.table("asset_permissions")\
                .select("asset_type, asset_id, permission_type")\
                .eq("project_id", snapshot.project_id)\
                .eq("user_id", snapshot.user_id)\
                .execute()
        except Exception as e:
            self._fail(snapshot, "asset permissions", e)
            return
        for row in result.data or []:
            try:
                asset_type = AssetType(row["asset_type"])
            except ValueError:
                continue
            snapshot.asset_grants.add((asset_type, row["asset_id"], row["permission_type"]))
