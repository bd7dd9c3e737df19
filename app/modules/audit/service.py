from supabase import Client
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)


class PermissionAuditService:
    """Best-effort writer for permission_audit_log. A failed audit write never fails the caller."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def record(
        self,
        user_id: str,
        permission_type: str,
        action: str,
        changed_by: Optional[str],
        project_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        payload = dict(details or {})
        payload.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        try:
            self.supabase.table("permission_audit_log").insert({
                "project_id": project_id,
                "user_id": user_id,
                "permission_type": permission_type,
                "action": action,
                "permission_details": payload,
                "changed_by": changed_by,
            }).execute()
        except Exception as e:
            logger.warning(f"Failed to write permission audit entry for user {user_id}: {e}")
