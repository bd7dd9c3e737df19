"""
Permission sources for the resolver chain.

Each source looks at an AccessSnapshot and a request and answers allow, deny
or abstain. The resolver takes the first answer that is not abstain.
"""

from dataclasses import dataclass
from typing import Optional

from app.config.permissions_config import (
    ENTITY_ASSET_TYPES,
    FORM_PERMISSION_IDS,
    NAMED_PERMISSION_ACTIONS,
    get_form_permission_defaults,
)
from app.core.enums import AssetType, CrudAction, Decision, EntityType, ResourceType
from app.modules.access_control.snapshot import AccessSnapshot


@dataclass(frozen=True)
class AccessRequest:
    """
    Either a CRUD check on an entity type (entity_type + action, optional resource_id)
    or a named-permission check on one asset (asset_type + resource_id + permission).
    """

    entity_type: Optional[EntityType] = None
    action: Optional[CrudAction] = None
    asset_type: Optional[AssetType] = None
    resource_id: Optional[str] = None
    permission: Optional[str] = None

    @property
    def resource_type(self) -> Optional[ResourceType]:
        asset_type = self.asset_type
        if asset_type is None and self.entity_type is not None:
            asset_type = ENTITY_ASSET_TYPES[self.entity_type]
        return ResourceType(asset_type.value) if asset_type else None

    @property
    def effective_action(self) -> Optional[CrudAction]:
        if self.action is not None:
            return self.action
        return NAMED_PERMISSION_ACTIONS.get(self.permission)


class PermissionSource:
    name = "source"

    def resolve(self, snapshot: AccessSnapshot, request: AccessRequest) -> Decision:
        raise NotImplementedError


class AdminBypassSource(PermissionSource):
    """Org admins, project admins and the project creator are allowed everything in the project."""

    name = "admin_bypass"

    def resolve(self, snapshot, request):
        return Decision.ALLOW if snapshot.is_admin else Decision.ABSTAIN


class TopLevelPermissionSource(PermissionSource):
    """Coarse CRUD gate. No row for the entity type is a deny, never a fall-through."""

    name = "top_level"

    def resolve(self, snapshot, request):
        if request.entity_type is None or request.action is None:
            return Decision.ABSTAIN
        allowed = snapshot.top_level_allows(request.entity_type, request.action)
        return Decision.ALLOW if allowed else Decision.DENY


class AssetGrantSource(PermissionSource):
    name = "asset_grant"

    def resolve(self, snapshot, request):
        if request.asset_type is None or not request.resource_id or not request.permission:
            return Decision.ABSTAIN
        if snapshot.has_asset_grant(request.asset_type, request.resource_id, request.permission):
            return Decision.ALLOW
        return Decision.ABSTAIN


class RoleGrantSource(PermissionSource):
    """Additive: a matching role grant allows, anything else abstains."""

    name = "role_grant"

    def resolve(self, snapshot, request):
        action = request.effective_action
        resource_type = request.resource_type
        if action is None or resource_type is None:
            return Decision.ABSTAIN
        if snapshot.role_allows(resource_type, request.resource_id, action):
            return Decision.ALLOW
        return Decision.ABSTAIN


class ProjectRoleDefaultSource(PermissionSource):
    """Form catalog defaults derived from the project role."""

    name = "project_role_default"

    def resolve(self, snapshot, request):
        if request.asset_type != AssetType.FORM or request.permission not in FORM_PERMISSION_IDS:
            return Decision.ABSTAIN
        defaults = get_form_permission_defaults(snapshot.project_role)
        return Decision.ALLOW if defaults[request.permission] else Decision.DENY
