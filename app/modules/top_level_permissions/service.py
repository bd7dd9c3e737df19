from supabase import Client
from app.config.permissions_config import TOP_LEVEL_ACCESS_FLAGS
from app.core.enums import EntityType, TopLevelAccess
from app.core.notifications import Notifier
from app.modules.top_level_permissions.schemas import (
    TopLevelPermissionResponse, TopLevelPermissionUpdate
)
from typing import List, Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)

TOP_LEVEL_CONFLICT_KEYS = "project_id,user_id,entity_type"


class TopLevelPermissionService:
    def __init__(self, supabase: Client, notifier: Optional[Notifier] = None):
        self.supabase = supabase
        self.notifier = notifier or Notifier()

    def fetch_rows(self, project_id: str, user_id: str) -> List[dict]:
        """Raw rows for (project, user); store errors propagate to the caller."""
        result = self.supabase.table("project_top_level_permissions")\
            .select("*")\
            .eq("project_id", project_id)\
            .eq("user_id", user_id)\
            .neq("entity_type", "projects")\
            .execute()
        return result.data or []

    def get_permissions(self, project_id: str, user_id: str) -> List[TopLevelPermissionResponse]:
        """Get top-level permissions for a user in a project"""
        try:
            rows = self.fetch_rows(project_id, user_id)
            return [TopLevelPermissionResponse(**row) for row in rows]
        except Exception as e:
            logger.error(f"Error loading top-level permissions for {user_id} in {project_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to load top-level permissions")

    def update_permissions(
        self,
        project_id: str,
        user_id: str,
        updates: List[TopLevelPermissionUpdate],
        created_by: str
    ) -> List[TopLevelPermissionResponse]:
        """Upsert one row per entity type, then reload"""
        try:
            if updates:
                upsert_data = [
                    {
                        "project_id": project_id,
                        "user_id": user_id,
                        "entity_type": update.entity_type.value,
                        "can_create": update.can_create,
                        "can_read": update.can_read,
                        "can_update": update.can_update,
                        "can_delete": update.can_delete,
                        "created_by": created_by,
                    }
                    for update in updates
                ]
                self.supabase.table("project_top_level_permissions")\
                    .upsert(upsert_data, on_conflict=TOP_LEVEL_CONFLICT_KEYS)\
                    .execute()
        except Exception as e:
            logger.error(f"Error updating top-level permissions for {user_id} in {project_id}: {e}")
            self.notifier.error("Failed to update permissions")
            raise HTTPException(status_code=500, detail="Failed to update permissions")

        self.notifier.success("Permissions updated", f"Top-level permissions saved for {len(updates)} entity types")
        return self.get_permissions(project_id, user_id)

    def initialize_defaults(
        self,
        project_id: str,
        user_id: str,
        created_by: str,
        access: TopLevelAccess = TopLevelAccess.VIEWER
    ) -> List[TopLevelPermissionResponse]:
        """Insert rows for every entity type that has none yet; existing rows are left untouched"""
        flags = TOP_LEVEL_ACCESS_FLAGS[TopLevelAccess(access)]
        rows = [
            {
                "project_id": project_id,
                "user_id": user_id,
                "entity_type": entity_type.value,
                "created_by": created_by,
                **flags,
            }
            for entity_type in EntityType
        ]
        try:
            self.supabase.table("project_top_level_permissions")\
                .upsert(rows, on_conflict=TOP_LEVEL_CONFLICT_KEYS, ignore_duplicates=True)\
                .execute()
        except Exception as e:
            logger.error(f"Error initializing default permissions for {user_id} in {project_id}: {e}")
            self.notifier.error("Failed to initialize permissions")
            raise HTTPException(status_code=500, detail="Failed to initialize permissions")

        return self.get_permissions(project_id, user_id)

    def delete_permissions(self, project_id: str, user_id: str, entity_type: Optional[EntityType] = None) -> int:
        try:
            query = self.supabase.table("project_top_level_permissions")\
                .delete()\
                .eq("project_id", project_id)\
                .eq("user_id", user_id)
            if entity_type is not None:
                query = query.eq("entity_type", EntityType(entity_type).value)
            result = query.execute()
            return len(result.data or [])
        except Exception as e:
            logger.error(f"Error deleting top-level permissions for {user_id} in {project_id}: {e}")
            self.notifier.error("Failed to delete permissions")
            raise HTTPException(status_code=500, detail="Failed to delete permissions")
