"""
Core dependencies for route protection and permission checking
"""

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.core.notifications import Notifier
from app.database.supabase_client import get_supabase
from app.modules.access_control.service import AccessControlService
from app.modules.auth.service import AuthService
from app.modules.membership.service import MembershipService
from supabase import Client
from typing import Dict, Any
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()


def _get_request_cache(request: Request) -> Dict[str, Any]:
    """Return request-scoped cache for access data (access snapshots per project and user)."""
    if not hasattr(request.state, "access_cache"):
        request.state.access_cache = {}
    return request.state.access_cache


def get_access_cache(request: Request) -> Dict[str, Any]:
    """Dependency that returns the request-scoped access cache."""
    return _get_request_cache(request)


def get_notifier(request: Request) -> Notifier:
    """One notifier per request; routes return what it collected."""
    if not hasattr(request.state, "notifier"):
        request.state.notifier = Notifier()
    return request.state.notifier


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """Extract current user info from JWT token"""
    token = credentials.credentials
    user_data = auth_service.get_current_user(token)
    return user_data


def get_access_control_service(
    supabase: Client = Depends(get_supabase),
    notifier: Notifier = Depends(get_notifier),
    cache: Dict[str, Any] = Depends(get_access_cache)
) -> AccessControlService:
    return AccessControlService(supabase, notifier=notifier, cache=cache)


def require_project_admin(
    project_id: str,
    user_data: dict = Depends(get_current_user_id),
    supabase: Client = Depends(get_supabase)
) -> dict:
    """Org admin, project admin or project creator of the project in the path"""
    try:
        allowed = MembershipService(supabase).is_project_admin(project_id, user_data["id"])
    except Exception as e:
        logger.error(f"Error checking project admin for {user_data['id']} in {project_id}: {e}")
        allowed = False
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You must be a project admin to manage permissions"
        )
    return user_data


def require_role_manager(
    organization_id: str,
    user_data: dict = Depends(get_current_user_id),
    supabase: Client = Depends(get_supabase)
) -> dict:
    """Org admin of the organization or admin of any project inside it"""
    try:
        allowed = MembershipService(supabase).is_role_manager(organization_id, user_data["id"])
    except Exception as e:
        logger.error(f"Error checking role manager for {user_data['id']} in {organization_id}: {e}")
        allowed = False
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You must be an organization or project admin to manage roles"
        )
    return user_data
