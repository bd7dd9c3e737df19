from pydantic import BaseModel, EmailStr
from typing import Optional


class UserProfile(BaseModel):
    id: str
    email: Optional[EmailStr] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[str] = None
    organization_id: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        if self.email:
            return self.email
        return "Unknown"


class ProjectMember(BaseModel):
    user_id: str
    role: Optional[str] = None
