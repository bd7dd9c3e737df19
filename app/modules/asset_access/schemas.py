from enum import StrEnum
from pydantic import BaseModel
from typing import List, Optional
from app.core.enums import AccessLevel, AssetType
from app.core.notifications import Notification
from app.modules.membership.schemas import UserProfile


class AclEntityType(StrEnum):
    """Entity types managed through coarse access levels"""
    REPORTS = "reports"
    WORKFLOWS = "workflows"

    @property
    def asset_type(self) -> AssetType:
        return AssetType.REPORT if self == AclEntityType.REPORTS else AssetType.WORKFLOW


class AccessGrant(BaseModel):
    user_id: str
    access_level: AccessLevel


class AssetAccessEntry(BaseModel):
    user_id: str
    access_level: Optional[AccessLevel] = None
    permission_types: List[str]
    user: Optional[UserProfile] = None


class AssetAccessList(BaseModel):
    asset_type: AssetType
    asset_id: str
    entries: List[AssetAccessEntry]
    notifications: List[Notification] = []


class UserAccessLevel(BaseModel):
    user_id: str
    access_level: Optional[AccessLevel] = None
