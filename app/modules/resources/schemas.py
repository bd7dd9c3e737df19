from pydantic import BaseModel
from typing import List
from app.core.enums import AssetType
from app.core.notifications import Notification


class ResourceDeleteResponse(BaseModel):
    asset_type: AssetType
    asset_id: str
    permissions_deleted: int
    notifications: List[Notification] = []


class CreatorPermissionsResponse(BaseModel):
    asset_type: AssetType
    asset_id: str
    granted: bool
    permission_types: List[str]
