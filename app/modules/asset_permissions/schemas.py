from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from app.core.enums import AssetType


class AssetPermissionResponse(BaseModel):
    id: str
    project_id: str
    user_id: str
    asset_type: AssetType
    asset_id: str
    permission_type: str
    granted_by: Optional[str] = None
    granted_at: Optional[datetime] = None

    class Config:
        from_attributes = True
