from enum import StrEnum


class EntityType(StrEnum):
    """Plural entity vocabulary used by top-level permissions and the UI."""

    FORMS = "forms"
    WORKFLOWS = "workflows"
    REPORTS = "reports"


class ResourceScope(StrEnum):
    """Plural vocabulary accepted when building role permissions."""

    PROJECTS = "projects"
    FORMS = "forms"
    WORKFLOWS = "workflows"
    REPORTS = "reports"


class ResourceType(StrEnum):
    """Singular taxonomy stored in role_permissions."""

    PROJECT = "project"
    FORM = "form"
    WORKFLOW = "workflow"
    REPORT = "report"


class AssetType(StrEnum):
    FORM = "form"
    WORKFLOW = "workflow"
    REPORT = "report"


class CrudAction(StrEnum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class OrgRole(StrEnum):
    ADMIN = "admin"
    MEMBER = "member"


class ProjectRole(StrEnum):
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


class TopLevelAccess(StrEnum):
    CREATOR = "creator"
    EDITOR = "editor"
    VIEWER = "viewer"
    NO_ACCESS = "no_access"


class AccessLevel(StrEnum):
    VIEW = "view"
    EDIT = "edit"
    ADMIN = "admin"


class PermissionCategory(StrEnum):
    ACCESS = "access"
    CONTENT = "content"
    MANAGEMENT = "management"


class Decision(StrEnum):
    ALLOW = "allow"
    DENY = "deny"
    ABSTAIN = "abstain"
