from supabase import Client
from app.core.enums import AssetType, CrudAction, EntityType
from app.core.notifications import Notifier
from app.modules.access_control.resolver import crud_resolver, named_permission_resolver
from app.modules.access_control.schemas import AccessSummary, ButtonState, UserPermissionsResponse
from app.modules.access_control.snapshot import AccessSnapshot, AccessSnapshotLoader
from app.modules.access_control.sources import AccessRequest
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

SNAPSHOT_CACHE_KEY = "access_snapshots"


def invalidate_access_snapshots(
    cache: Optional[Dict[str, Any]],
    project_id: Optional[str] = None,
    user_id: Optional[str] = None
) -> None:
    """Drop cached snapshots matching project and/or user; with neither given, drop all"""
    if cache is None or SNAPSHOT_CACHE_KEY not in cache:
        return
    snapshots = cache[SNAPSHOT_CACHE_KEY]
    for key in list(snapshots):
        cached_project, cached_user = key
        if project_id is not None and cached_project != project_id:
            continue
        if user_id is not None and cached_user != user_id:
            continue
        del snapshots[key]


def _resource_id(resource: Any) -> Optional[str]:
    if isinstance(resource, dict):
        value = resource.get("id")
    else:
        value = getattr(resource, "id", None)
    return str(value) if value is not None else None


class AccessControlService:
    """
    Permission resolver facade.

    Every check takes project_id explicitly. Nothing here raises: a failure
    while loading or resolving is logged and answered with a deny.
    """

    def __init__(
        self,
        supabase: Client,
        notifier: Optional[Notifier] = None,
        cache: Optional[Dict[str, Any]] = None
    ):
        self.supabase = supabase
        self.notifier = notifier or Notifier()
        self.cache = cache if cache is not None else {}
        self.loader = AccessSnapshotLoader(supabase)
        self.crud = crud_resolver()
        self.named = named_permission_resolver()

    def get_snapshot(self, project_id: str, user_id: str) -> AccessSnapshot:
        snapshots = self.cache.setdefault(SNAPSHOT_CACHE_KEY, {})
        key = (project_id, user_id)
        if key not in snapshots:
            snapshots[key] = self.loader.load(project_id, user_id)
        return snapshots[key]

    def reload_access_control(self, project_id: str, user_id: str) -> AccessSnapshot:
        invalidate_access_snapshots(self.cache, project_id, user_id)
        return self.get_snapshot(project_id, user_id)

    def _allowed(self, resolver, project_id: str, user_id: str, request: AccessRequest) -> bool:
        try:
            snapshot = self.get_snapshot(project_id, user_id)
            return resolver.is_allowed(snapshot, request)
        except Exception as e:
            logger.error(f"Permission check failed for user {user_id} in project {project_id}: {e}")
            return False

    def has_permission(
        self,
        project_id: str,
        user_id: str,
        entity_type: EntityType,
        action: CrudAction,
        resource_id: Optional[str] = None
    ) -> bool:
        try:
            request = AccessRequest(
                entity_type=EntityType(entity_type),
                action=CrudAction(action),
                resource_id=resource_id,
            )
        except ValueError:
            logger.warning(f"Unknown permission check {entity_type}/{action} for user {user_id}")
            return False
        return self._allowed(self.crud, project_id, user_id, request)

    def check_permission_with_alert(
        self,
        project_id: str,
        user_id: str,
        entity_type: EntityType,
        action: CrudAction,
        resource_id: Optional[str] = None
    ) -> bool:
        """Same as has_permission, but a denial also records one user notification"""
        if self.has_permission(project_id, user_id, entity_type, action, resource_id):
            return True
        self.notifier.error(
            f"You do not have {action} permission for {entity_type}"
        )
        return False

    def get_button_state(
        self,
        project_id: str,
        user_id: str,
        entity_type: EntityType,
        action: CrudAction,
        resource_id: Optional[str] = None
    ) -> ButtonState:
        if self.has_permission(project_id, user_id, entity_type, action, resource_id):
            return ButtonState(disabled=False)
        return ButtonState(
            disabled=True,
            tooltip=f"No top-level {action} permission for {entity_type}"
        )

    def get_visible_resources(
        self,
        project_id: str,
        user_id: str,
        entity_type: EntityType,
        resources: List[Any]
    ) -> List[Any]:
        """Keeps the items the user may read; the snapshot is loaded once for the whole list"""
        try:
            entity_type = EntityType(entity_type)
        except ValueError:
            logger.warning(f"Unknown entity type {entity_type} in visibility check for user {user_id}")
            return []
        try:
            snapshot = self.get_snapshot(project_id, user_id)
        except Exception as e:
            logger.error(f"Failed to load access snapshot for user {user_id} in project {project_id}: {e}")
            return []
        if snapshot.is_admin:
            return list(resources)
        visible = []
        for resource in resources:
            request = AccessRequest(
                entity_type=entity_type,
                action=CrudAction.READ,
                resource_id=_resource_id(resource),
            )
            try:
                if self.crud.is_allowed(snapshot, request):
                    visible.append(resource)
            except Exception as e:
                logger.error(f"Visibility check failed for {entity_type.value} {request.resource_id}: {e}")
        return visible

    def get_user_permissions(
        self,
        project_id: str,
        user_id: str,
        entity_type: EntityType,
        resource_id: Optional[str] = None
    ) -> UserPermissionsResponse:
        view = self.has_permission(project_id, user_id, entity_type, CrudAction.READ, resource_id)
        create = self.has_permission(project_id, user_id, entity_type, CrudAction.CREATE, resource_id)
        edit = self.has_permission(project_id, user_id, entity_type, CrudAction.UPDATE, resource_id)
        delete = self.has_permission(project_id, user_id, entity_type, CrudAction.DELETE, resource_id)
        return UserPermissionsResponse(
            view=view,
            create=create,
            edit=edit,
            delete=delete,
            disabled=not (view or create or edit or delete),
        )

    def check_asset_permission(
        self,
        project_id: str,
        user_id: str,
        asset_type: AssetType,
        asset_id: str,
        permission: str
    ) -> bool:
        """Named permission on one asset, e.g. manage_access on a form or edit on a report"""
        try:
            request = AccessRequest(
                asset_type=AssetType(asset_type),
                resource_id=asset_id,
                permission=permission,
            )
        except ValueError:
            logger.warning(f"Unknown asset type {asset_type} in permission check for user {user_id}")
            return False
        return self._allowed(self.named, project_id, user_id, request)

    def get_access_summary(self, project_id: str, user_id: str) -> AccessSummary:
        snapshot = self.get_snapshot(project_id, user_id)
        actions = {
            entity_type: {
                action: self.crud.is_allowed(snapshot, AccessRequest(entity_type=entity_type, action=action))
                for action in CrudAction
            }
            for entity_type in EntityType
        }
        return AccessSummary(
            project_id=project_id,
            user_id=user_id,
            is_org_admin=snapshot.is_org_admin,
            is_project_admin=snapshot.is_project_admin,
            project_role=snapshot.project_role,
            roles=snapshot.role_names,
            top_level=snapshot.top_level,
            actions=actions,
        )
