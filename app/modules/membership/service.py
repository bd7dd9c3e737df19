from supabase import Client
from app.core.enums import OrgRole, ProjectRole
from app.modules.membership.schemas import UserProfile, ProjectMember
from app.database.supabase_client import single_row
from typing import Dict, List, Optional


class MembershipService:
    """Read-only view over identity data owned by the auth/projects side of the platform."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        result = self.supabase.table("user_profiles")\
            .select("id, email, first_name, last_name, role, organization_id")\
            .eq("id", user_id)\
            .maybe_single()\
            .execute()
        row = single_row(result)
        return UserProfile(**row) if row else None

    def get_user_profiles(self, user_ids: List[str]) -> Dict[str, UserProfile]:
        if not user_ids:
            return {}
        result = self.supabase.table("user_profiles")\
            .select("id, email, first_name, last_name, role, organization_id")\
            .in_("id", list(set(user_ids)))\
            .execute()
        return {row["id"]: UserProfile(**row) for row in (result.data or [])}

    def get_org_role(self, user_id: str) -> Optional[str]:
        profile = self.get_user_profile(user_id)
        return profile.role if profile else None

    def get_project_role(self, project_id: str, user_id: str) -> Optional[str]:
        result = self.supabase.table("project_users")\
            .select("role")\
            .eq("project_id", project_id)\
            .eq("user_id", user_id)\
            .maybe_single()\
            .execute()
        row = single_row(result)
        return row.get("role") if row else None

    def is_project_creator(self, project_id: str, user_id: str) -> bool:
        result = self.supabase.table("projects")\
            .select("created_by")\
            .eq("id", project_id)\
            .maybe_single()\
            .execute()
        row = single_row(result)
        return bool(row) and row.get("created_by") == user_id

    def get_project_organization(self, project_id: str) -> Optional[str]:
        result = self.supabase.table("projects")\
            .select("organization_id")\
            .eq("id", project_id)\
            .maybe_single()\
            .execute()
        row = single_row(result)
        return row.get("organization_id") if row else None

    def list_project_members(self, project_id: str) -> List[ProjectMember]:
        result = self.supabase.table("project_users")\
            .select("user_id, role")\
            .eq("project_id", project_id)\
            .execute()
        return [ProjectMember(**row) for row in (result.data or [])]

    def is_project_admin(self, project_id: str, user_id: str) -> bool:
        """Org admin, project admin or project creator."""
        if self.get_org_role(user_id) == OrgRole.ADMIN:
            return True
        if self.get_project_role(project_id, user_id) == ProjectRole.ADMIN:
            return True
        return self.is_project_creator(project_id, user_id)

    def is_role_manager(self, organization_id: str, user_id: str) -> bool:
        """Org admin of the organization, or admin of any project inside it."""
        profile = self.get_user_profile(user_id)
        if profile and profile.role == OrgRole.ADMIN and profile.organization_id == organization_id:
            return True
        memberships = self.supabase.table("project_users")\
            .select("project_id")\
            .eq("user_id", user_id)\
            .eq("role", ProjectRole.ADMIN.value)\
            .execute()
        project_ids = [m["project_id"] for m in (memberships.data or [])]
        if not project_ids:
            return False
        projects = self.supabase.table("projects")\
            .select("id")\
            .in_("id", project_ids)\
            .eq("organization_id", organization_id)\
            .limit(1)\
            .execute()
        return bool(projects.data)
