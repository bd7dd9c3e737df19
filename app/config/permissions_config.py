"""
Permission catalogs
Static configuration for the form access matrix, project-role defaults,
asset access levels and the top-level access tiers applied to roles.
None of this lives in the database; it is versioned with the code.
"""

from app.core.enums import (
    AccessLevel,
    AssetType,
    CrudAction,
    EntityType,
    PermissionCategory,
    ProjectRole,
    ResourceScope,
    ResourceType,
    TopLevelAccess,
)

FORM_PERMISSION_CATALOG_VERSION = 1

# Form access matrix: the 12 named permissions shown per user
FORM_PERMISSION_TYPES = [
    {"id": "view_form", "label": "View Form", "description": "Can view form structure and fields", "category": PermissionCategory.ACCESS},
    {"id": "submit_form", "label": "Submit Form", "description": "Can submit form responses", "category": PermissionCategory.ACCESS},
    {"id": "create_form", "label": "Create Form", "description": "Can create new forms", "category": PermissionCategory.CONTENT},
    {"id": "edit_form", "label": "Edit Form", "description": "Can modify form structure and fields", "category": PermissionCategory.CONTENT},
    {"id": "delete_form", "label": "Delete Form", "description": "Can delete forms", "category": PermissionCategory.MANAGEMENT},
    {"id": "edit_rules", "label": "Edit Rules", "description": "Can configure form rules and logic", "category": PermissionCategory.CONTENT},
    {"id": "view_submissions", "label": "View Submissions", "description": "Can view form responses", "category": PermissionCategory.CONTENT},
    {"id": "create_records", "label": "Create Records", "description": "Can create new form records", "category": PermissionCategory.CONTENT},
    {"id": "export_data", "label": "Export Data", "description": "Can export form data", "category": PermissionCategory.MANAGEMENT},
    {"id": "manage_access", "label": "Manage Access", "description": "Can manage user access to form", "category": PermissionCategory.MANAGEMENT},
    {"id": "change_settings", "label": "Change Settings", "description": "Can modify form settings", "category": PermissionCategory.MANAGEMENT},
    {"id": "change_lifecycle", "label": "Change Lifecycle", "description": "Can change form status", "category": PermissionCategory.MANAGEMENT},
]

FORM_PERMISSION_IDS = [p["id"] for p in FORM_PERMISSION_TYPES]

# Categories each project role receives by default on every form
PROJECT_ROLE_FORM_CATEGORIES = {
    ProjectRole.ADMIN: {PermissionCategory.ACCESS, PermissionCategory.CONTENT, PermissionCategory.MANAGEMENT},
    ProjectRole.EDITOR: {PermissionCategory.ACCESS, PermissionCategory.CONTENT},
    ProjectRole.VIEWER: {PermissionCategory.ACCESS},
}

# Simplified ACL: coarse access level -> permission_type rows written
ACCESS_LEVEL_PERMISSIONS = {
    AssetType.REPORT: {
        AccessLevel.VIEW: ["view"],
        AccessLevel.EDIT: ["view", "edit"],
        AccessLevel.ADMIN: ["view", "edit", "delete", "share"],
    },
    AssetType.WORKFLOW: {
        AccessLevel.VIEW: ["view"],
        AccessLevel.EDIT: ["view", "edit"],
        AccessLevel.ADMIN: ["view", "edit", "delete", "share", "start_instances"],
    },
}

# Presence of any of these rows makes the derived access level "admin"
ADMIN_MARKER_PERMISSIONS = {
    AssetType.REPORT: {"delete", "share"},
    AssetType.WORKFLOW: {"delete", "share", "start_instances"},
}

# Valid permission_type values per asset type for asset_permissions writes
ASSET_PERMISSION_TYPES = {
    AssetType.FORM: set(FORM_PERMISSION_IDS),
    AssetType.REPORT: {"view", "edit", "delete", "share"},
    AssetType.WORKFLOW: {"view", "edit", "delete", "share", "start_instances"},
}

# Named permission -> CRUD action, used when role grants answer a named check
NAMED_PERMISSION_ACTIONS = {
    "view_form": CrudAction.READ,
    "view_submissions": CrudAction.READ,
    "create_form": CrudAction.CREATE,
    "create_records": CrudAction.CREATE,
    "edit_form": CrudAction.UPDATE,
    "edit_rules": CrudAction.UPDATE,
    "change_settings": CrudAction.UPDATE,
    "delete_form": CrudAction.DELETE,
    "view": CrudAction.READ,
    "edit": CrudAction.UPDATE,
    "delete": CrudAction.DELETE,
}

# Top-level access tiers -> CRUD flags
TOP_LEVEL_ACCESS_FLAGS = {
    TopLevelAccess.CREATOR: {"can_create": True, "can_read": True, "can_update": True, "can_delete": True},
    TopLevelAccess.EDITOR: {"can_create": False, "can_read": True, "can_update": True, "can_delete": False},
    TopLevelAccess.VIEWER: {"can_create": False, "can_read": True, "can_update": False, "can_delete": False},
    TopLevelAccess.NO_ACCESS: {"can_create": False, "can_read": False, "can_update": False, "can_delete": False},
}

PROJECT_ROLE_TOP_LEVEL_ACCESS = {
    ProjectRole.ADMIN: TopLevelAccess.CREATOR,
    ProjectRole.EDITOR: TopLevelAccess.EDITOR,
    ProjectRole.VIEWER: TopLevelAccess.VIEWER,
}

# External plural vocabulary -> stored singular taxonomy
RESOURCE_SCOPE_TYPES = {
    ResourceScope.PROJECTS: ResourceType.PROJECT,
    ResourceScope.FORMS: ResourceType.FORM,
    ResourceScope.WORKFLOWS: ResourceType.WORKFLOW,
    ResourceScope.REPORTS: ResourceType.REPORT,
}

ENTITY_ASSET_TYPES = {
    EntityType.FORMS: AssetType.FORM,
    EntityType.WORKFLOWS: AssetType.WORKFLOW,
    EntityType.REPORTS: AssetType.REPORT,
}

# Tables holding the named resources, and the label used for missing ones
RESOURCE_TABLES = {
    ResourceType.PROJECT: {"table": "projects", "label": "Project"},
    ResourceType.FORM: {"table": "forms", "label": "Form"},
    ResourceType.WORKFLOW: {"table": "workflows", "label": "Workflow"},
    ResourceType.REPORT: {"table": "reports", "label": "Report"},
}


def get_form_permission_defaults(project_role):
    """
    Returns the role-derived default for every catalog entry.
    Format: {"view_form": True, "submit_form": True, "delete_form": False, ...}
    An unknown or missing role gets everything False.
    """
    try:
        role = ProjectRole(project_role) if project_role else None
    except ValueError:
        role = None
    categories = PROJECT_ROLE_FORM_CATEGORIES.get(role, set())
    return {
        permission["id"]: permission["category"] in categories
        for permission in FORM_PERMISSION_TYPES
    }


def get_creator_permissions(asset_type):
    """Full permission set granted to the creator of a new asset."""
    if asset_type == AssetType.FORM:
        return list(FORM_PERMISSION_IDS)
    return list(ACCESS_LEVEL_PERMISSIONS[AssetType(asset_type)][AccessLevel.ADMIN])
