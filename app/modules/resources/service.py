from supabase import Client
from app.config.permissions_config import RESOURCE_TABLES, get_creator_permissions
from app.core.enums import AssetType, ResourceType
from app.core.notifications import Notifier
from app.modules.access_control.service import invalidate_access_snapshots
from app.modules.asset_permissions.service import AssetPermissionService
from app.database.supabase_client import single_row
from app.modules.resources.schemas import CreatorPermissionsResponse, ResourceDeleteResponse
from typing import Any, Dict, Iterable, Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


def resource_label(resource_type: ResourceType) -> str:
    return RESOURCE_TABLES[ResourceType(resource_type)]["label"]


def resource_display_name(resource_type: ResourceType, resource_id: Optional[str], names: Dict[str, str]) -> str:
    """Name of the resource, "All <Type>s" for a wildcard, "Unknown <Type>" when it no longer exists"""
    label = resource_label(resource_type)
    if resource_id is None:
        return f"All {label}s"
    return names.get(resource_id) or f"Unknown {label}"


class ResourceService:
    """Lookups and deletes on the forms, reports, workflows and projects tables"""

    def __init__(
        self,
        supabase: Client,
        notifier: Optional[Notifier] = None,
        cache: Optional[Dict[str, Any]] = None
    ):
        self.supabase = supabase
        self.notifier = notifier or Notifier()
        self.cache = cache
        self.asset_permissions = AssetPermissionService(supabase)

    def get_resource_names(self, resource_type: ResourceType, resource_ids: Iterable[str]) -> Dict[str, str]:
        """Display lookup; a failure returns no names so every id shows as Unknown"""
        resource_ids = [r for r in set(resource_ids) if r]
        if not resource_ids:
            return {}
        table = RESOURCE_TABLES[ResourceType(resource_type)]["table"]
        try:
            result = self.supabase.table(table)\
                .select("id, name")\
                .in_("id", resource_ids)\
                .execute()
        except Exception as e:
            logger.warning(f"Could not resolve {table} names: {e}")
            return {}
        return {row["id"]: row.get("name") for row in (result.data or [])}

    def _get_asset(self, project_id: str, asset_type: AssetType, asset_id: str) -> Optional[dict]:
        table = RESOURCE_TABLES[ResourceType(AssetType(asset_type).value)]["table"]
        result = self.supabase.table(table)\
            .select("id, name, project_id, created_by")\
            .eq("id", asset_id)\
            .eq("project_id", project_id)\
            .maybe_single()\
            .execute()
        return single_row(result)

    def delete_resource(self, project_id: str, asset_type: AssetType, asset_id: str) -> ResourceDeleteResponse:
        """Deletes the asset's grants first, then the asset row"""
        asset_type = AssetType(asset_type)
        resource_type = ResourceType(asset_type.value)
        label = resource_label(resource_type)
        table = RESOURCE_TABLES[resource_type]["table"]
        try:
            if not self._get_asset(project_id, asset_type, asset_id):
                raise HTTPException(status_code=404, detail=f"{label} not found")
            permissions_deleted = self.asset_permissions.delete_for_asset(asset_type, asset_id)
            self.supabase.table(table)\
                .delete()\
                .eq("id", asset_id)\
                .eq("project_id", project_id)\
                .execute()
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error deleting {asset_type.value} {asset_id} in project {project_id}: {e}")
            self.notifier.error(f"Failed to delete {label.lower()}")
            raise HTTPException(status_code=500, detail=f"Failed to delete {label.lower()}")

        logger.info(f"Deleted {asset_type.value} {asset_id} and {permissions_deleted} permission rows")
        invalidate_access_snapshots(self.cache, project_id)
        self.notifier.success(f"{label} deleted")
        return ResourceDeleteResponse(
            asset_type=asset_type,
            asset_id=asset_id,
            permissions_deleted=permissions_deleted,
        )

    def grant_creator_permissions(
        self,
        project_id: str,
        asset_type: AssetType,
        asset_id: str,
        creator_id: str
    ) -> CreatorPermissionsResponse:
        """Called once a new form, report or workflow exists; only its creator may claim the grants"""
        asset_type = AssetType(asset_type)
        label = resource_label(ResourceType(asset_type.value))
        try:
            asset = self._get_asset(project_id, asset_type, asset_id)
            if not asset:
                raise HTTPException(status_code=404, detail=f"{label} not found")
            if asset.get("created_by") != creator_id:
                raise HTTPException(
                    status_code=403,
                    detail=f"Only the creator of this {label.lower()} can claim creator permissions"
                )
            granted = self.asset_permissions.grant_creator_permissions(project_id, asset_type, asset_id, creator_id)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error granting creator permissions on {asset_type.value} {asset_id}: {e}")
            self.notifier.error("Failed to grant creator permissions")
            raise HTTPException(status_code=500, detail="Failed to grant creator permissions")

        invalidate_access_snapshots(self.cache, project_id, creator_id)
        return CreatorPermissionsResponse(
            asset_type=asset_type,
            asset_id=asset_id,
            granted=granted,
            permission_types=get_creator_permissions(asset_type) if granted else [],
        )
