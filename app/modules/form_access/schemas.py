from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from app.core.enums import PermissionCategory
from app.core.notifications import Notification


class FormPermissionType(BaseModel):
    id: str
    label: str
    description: str
    category: PermissionCategory


class FormPermissionState(BaseModel):
    granted: bool = False
    explicit: bool = False


class FormPermissionUser(BaseModel):
    """Derived per (form, user); never stored"""
    user_id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    project_role: Optional[str] = None
    permissions: Dict[str, FormPermissionState]
    has_explicit_permissions: bool = False


class FormPermissionMatrix(BaseModel):
    project_id: str
    form_id: str
    catalog_version: int
    permission_types: List[FormPermissionType]
    users: List[FormPermissionUser]
    notifications: List[Notification] = []


class FormPermissionChange(BaseModel):
    user_id: str
    permission_type: str


class FormPermissionBulkUpdate(BaseModel):
    user_ids: List[str] = Field(..., min_length=1)
    permissions: Dict[str, bool] = Field(..., min_length=1)
