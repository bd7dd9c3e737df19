from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime
from app.core.enums import CrudAction, EntityType, TopLevelAccess


class TopLevelFlags(BaseModel):
    can_create: bool = False
    can_read: bool = False
    can_update: bool = False
    can_delete: bool = False

    def allows(self, action: CrudAction) -> bool:
        return bool(getattr(self, f"can_{CrudAction(action).value}"))


class TopLevelPermissionResponse(TopLevelFlags):
    id: str
    project_id: str
    user_id: str
    entity_type: EntityType
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TopLevelPermissionUpdate(TopLevelFlags):
    entity_type: EntityType


class TopLevelPermissionBulkUpdate(BaseModel):
    permissions: List[TopLevelPermissionUpdate]


class TopLevelPermissionInitialize(BaseModel):
    access: TopLevelAccess = TopLevelAccess.VIEWER
