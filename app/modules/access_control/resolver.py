from typing import Iterable, List, Optional, Tuple
from app.core.enums import Decision
from app.modules.access_control.snapshot import AccessSnapshot
from app.modules.access_control.sources import (
    AccessRequest,
    AdminBypassSource,
    AssetGrantSource,
    PermissionSource,
    ProjectRoleDefaultSource,
    RoleGrantSource,
    TopLevelPermissionSource,
)
import logging

logger = logging.getLogger(__name__)


class PermissionResolver:
    """
    Walks an ordered list of sources and returns the first non-abstain decision.
    Admin bypass is always the first source; when every source abstains the answer is deny.
    """

    def __init__(self, sources: Iterable[PermissionSource]):
        self.sources: List[PermissionSource] = [AdminBypassSource()]
        self.sources.extend(s for s in sources if not isinstance(s, AdminBypassSource))

    def resolve(self, snapshot: AccessSnapshot, request: AccessRequest) -> Tuple[Decision, Optional[str]]:
        """Returns the decision and the name of the source that made it (None for the default deny)"""
        for source in self.sources:
            decision = source.resolve(snapshot, request)
            if decision != Decision.ABSTAIN:
                return decision, source.name
        return Decision.DENY, None

    def is_allowed(self, snapshot: AccessSnapshot, request: AccessRequest) -> bool:
        decision, source_name = self.resolve(snapshot, request)
        if decision != Decision.ALLOW:
            logger.debug(
                f"Denied {request} for user {snapshot.user_id} in project {snapshot.project_id} "
                f"by {source_name or 'default'}"
            )
        return decision == Decision.ALLOW


def crud_resolver() -> PermissionResolver:
    return PermissionResolver([TopLevelPermissionSource()])


def named_permission_resolver() -> PermissionResolver:
    return PermissionResolver([AssetGrantSource(), RoleGrantSource(), ProjectRoleDefaultSource()])
