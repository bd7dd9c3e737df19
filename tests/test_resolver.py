import pytest

from app.core.enums import AssetType, CrudAction, Decision, EntityType, ResourceType
from app.core.notifications import Notifier
from app.modules.access_control.resolver import PermissionResolver, crud_resolver
from app.modules.access_control.service import AccessControlService
from app.modules.access_control.snapshot import AccessSnapshot
from app.modules.access_control.sources import (
    AccessRequest, AdminBypassSource, PermissionSource, TopLevelPermissionSource
)
from tests.conftest import FORM_ID, PROJECT_ID, REPORT_ID


def make_service(db, notifier=None):
    return AccessControlService(db, notifier=notifier or Notifier(), cache={})


class AlwaysDeny(PermissionSource):
    name = "always_deny"

    def resolve(self, snapshot, request):
        return Decision.DENY


class Abstain(PermissionSource):
    name = "abstain"

    def resolve(self, snapshot, request):
        return Decision.ABSTAIN


def test_admin_bypass_is_pinned_first():
    resolver = PermissionResolver([AlwaysDeny(), AdminBypassSource()])
    assert isinstance(resolver.sources[0], AdminBypassSource)
    assert len(resolver.sources) == 2

    snapshot = AccessSnapshot(project_id=PROJECT_ID, user_id="x", org_role="admin")
    request = AccessRequest(entity_type=EntityType.FORMS, action=CrudAction.DELETE)
    assert resolver.resolve(snapshot, request) == (Decision.ALLOW, "admin_bypass")


def test_all_sources_abstaining_means_deny():
    resolver = PermissionResolver([Abstain()])
    snapshot = AccessSnapshot(project_id=PROJECT_ID, user_id="x")
    assert resolver.resolve(snapshot, AccessRequest()) == (Decision.DENY, None)


def test_top_level_source_denies_without_row():
    snapshot = AccessSnapshot(project_id=PROJECT_ID, user_id="x", project_role="editor")
    request = AccessRequest(entity_type=EntityType.REPORTS, action=CrudAction.READ)
    assert TopLevelPermissionSource().resolve(snapshot, request) == Decision.DENY


def test_role_grants_do_not_substitute_for_top_level_rows():
    snapshot = AccessSnapshot(project_id=PROJECT_ID, user_id="x")
    snapshot.role_grants.add((ResourceType.REPORT, None, CrudAction.READ))
    request = AccessRequest(entity_type=EntityType.REPORTS, action=CrudAction.READ, resource_id=REPORT_ID)
    assert crud_resolver().is_allowed(snapshot, request) is False


@pytest.mark.parametrize("user_id", ["org_admin", "carol", "owner"])
def test_admins_and_project_creator_bypass_everything(acme, user_id):
    service = make_service(acme)
    for entity_type in EntityType:
        for action in CrudAction:
            assert service.has_permission(PROJECT_ID, user_id, entity_type, action) is True


@pytest.mark.parametrize("user_id", ["dave", "bob"])
def test_default_deny_without_top_level_row(acme, user_id):
    service = make_service(acme)
    for action in CrudAction:
        assert service.has_permission(PROJECT_ID, user_id, EntityType.FORMS, action) is False


def test_top_level_flags_drive_crud_checks(acme):
    service = make_service(acme)
    assert service.has_permission(PROJECT_ID, "alice", EntityType.FORMS, CrudAction.READ) is True
    assert service.has_permission(PROJECT_ID, "alice", EntityType.FORMS, CrudAction.CREATE) is True
    assert service.has_permission(PROJECT_ID, "alice", EntityType.FORMS, CrudAction.UPDATE) is True
    assert service.has_permission(PROJECT_ID, "alice", EntityType.FORMS, CrudAction.DELETE) is False
    assert service.has_permission(PROJECT_ID, "alice", EntityType.WORKFLOWS, CrudAction.READ) is False


def test_ignores_projects_entity_rows(acme):
    acme.seed("project_top_level_permissions", {
        "project_id": PROJECT_ID, "user_id": "dave", "entity_type": "projects",
        "can_create": True, "can_read": True, "can_update": True, "can_delete": True,
    })
    service = make_service(acme)
    assert service.get_snapshot(PROJECT_ID, "dave").top_level == {}


def test_store_failure_fails_closed(acme):
    acme.fail_on("project_top_level_permissions", "select")
    service = make_service(acme)
    assert service.has_permission(PROJECT_ID, "alice", EntityType.FORMS, CrudAction.READ) is False
    assert "top-level permissions" in service.get_snapshot(PROJECT_ID, "alice").load_errors


def test_profile_failure_removes_org_admin_bypass(acme):
    acme.fail_on("user_profiles", "select")
    service = make_service(acme)
    assert service.has_permission(PROJECT_ID, "org_admin", EntityType.FORMS, CrudAction.READ) is False


def test_unexpected_error_is_answered_with_deny(acme, monkeypatch):
    service = make_service(acme)

    def boom(*args, **kwargs):
        raise RuntimeError("unexpected")

    monkeypatch.setattr(service.loader, "load", boom)
    assert service.has_permission(PROJECT_ID, "alice", EntityType.FORMS, CrudAction.READ) is False
    assert service.get_visible_resources(PROJECT_ID, "alice", EntityType.FORMS, [{"id": FORM_ID}]) == []


def test_check_permission_with_alert_records_one_notification(acme):
    notifier = Notifier()
    service = make_service(acme, notifier)

    assert service.check_permission_with_alert(PROJECT_ID, "alice", EntityType.FORMS, CrudAction.READ) is True
    assert notifier.notifications == []

    assert service.check_permission_with_alert(PROJECT_ID, "alice", EntityType.FORMS, CrudAction.DELETE) is False
    assert len(notifier.notifications) == 1
    assert notifier.notifications[0].variant == "destructive"
    assert notifier.notifications[0].description == "You do not have delete permission for forms"


def test_button_state(acme):
    service = make_service(acme)
    denied = service.get_button_state(PROJECT_ID, "alice", EntityType.FORMS, CrudAction.DELETE)
    assert denied.disabled is True
    assert denied.tooltip == "No top-level delete permission for forms"

    allowed = service.get_button_state(PROJECT_ID, "carol", EntityType.FORMS, CrudAction.DELETE)
    assert allowed.disabled is False
    assert allowed.tooltip == ""


def test_visible_resources_match_has_permission(acme):
    service = make_service(acme)
    reports = [{"id": f"r{i}", "name": f"Report {i}"} for i in range(5)]

    for user_id in ["bob", "alice", "dave", "carol"]:
        visible = service.get_visible_resources(PROJECT_ID, user_id, EntityType.REPORTS, reports)
        expected = [
            r for r in reports
            if service.has_permission(PROJECT_ID, user_id, EntityType.REPORTS, CrudAction.READ, r["id"])
        ]
        assert visible == expected

    assert len(service.get_visible_resources(PROJECT_ID, "bob", EntityType.REPORTS, reports)) == 5
    assert service.get_visible_resources(PROJECT_ID, "alice", EntityType.REPORTS, reports) == []


def test_visible_resources_accepts_objects(acme):
    class Report:
        def __init__(self, id):
            self.id = id

    service = make_service(acme)
    items = [Report("a"), Report("b")]
    assert service.get_visible_resources(PROJECT_ID, "bob", EntityType.REPORTS, items) == items


def test_snapshot_is_loaded_once_per_request(acme):
    service = make_service(acme)
    reports = [{"id": f"r{i}"} for i in range(50)]
    service.get_visible_resources(PROJECT_ID, "bob", EntityType.REPORTS, reports)
    service.has_permission(PROJECT_ID, "bob", EntityType.REPORTS, CrudAction.UPDATE)
    assert acme.calls_for("project_top_level_permissions") == ["select"]


def test_reload_access_control_picks_up_changes(acme):
    service = make_service(acme)
    assert service.has_permission(PROJECT_ID, "dave", EntityType.WORKFLOWS, CrudAction.READ) is False

    acme.seed("project_top_level_permissions", {
        "project_id": PROJECT_ID, "user_id": "dave", "entity_type": "workflows",
        "can_create": False, "can_read": True, "can_update": False, "can_delete": False,
    })
    assert service.has_permission(PROJECT_ID, "dave", EntityType.WORKFLOWS, CrudAction.READ) is False
    service.reload_access_control(PROJECT_ID, "dave")
    assert service.has_permission(PROJECT_ID, "dave", EntityType.WORKFLOWS, CrudAction.READ) is True


def test_user_permissions_summary(acme):
    service = make_service(acme)
    alice = service.get_user_permissions(PROJECT_ID, "alice", EntityType.FORMS, FORM_ID)
    assert alice.model_dump() == {"view": True, "create": True, "edit": True, "delete": False, "disabled": False}

    dave = service.get_user_permissions(PROJECT_ID, "dave", EntityType.FORMS, FORM_ID)
    assert dave.model_dump() == {"view": False, "create": False, "edit": False, "delete": False, "disabled": True}


def test_named_permissions_use_project_role_defaults(acme):
    service = make_service(acme)
    assert service.check_asset_permission(PROJECT_ID, "alice", AssetType.FORM, FORM_ID, "edit_form") is True
    assert service.check_asset_permission(PROJECT_ID, "alice", AssetType.FORM, FORM_ID, "delete_form") is False
    assert service.check_asset_permission(PROJECT_ID, "bob", AssetType.FORM, FORM_ID, "submit_form") is True
    assert service.check_asset_permission(PROJECT_ID, "bob", AssetType.FORM, FORM_ID, "manage_access") is False
    assert service.check_asset_permission(PROJECT_ID, "dave", AssetType.FORM, FORM_ID, "view_form") is False


def test_explicit_asset_grant_allows_named_permission(acme):
    acme.seed("asset_permissions", {
        "project_id": PROJECT_ID, "user_id": "bob", "asset_type": "form",
        "asset_id": FORM_ID, "permission_type": "manage_access",
    })
    service = make_service(acme)
    assert service.check_asset_permission(PROJECT_ID, "bob", AssetType.FORM, FORM_ID, "manage_access") is True
    assert service.check_asset_permission(PROJECT_ID, "bob", AssetType.FORM, "other", "manage_access") is False


def test_role_grants_widen_named_permissions(acme):
    acme.seed("roles", {"id": "analyst", "organization_id": "acme", "name": "Analyst"})
    acme.seed(
        "role_permissions",
        {"role_id": "analyst", "resource_type": "report", "resource_id": REPORT_ID, "permission_type": "update"},
        {"role_id": "analyst", "resource_type": "workflow", "resource_id": None, "permission_type": "read"},
    )
    acme.seed("user_role_assignments", {"user_id": "bob", "role_id": "analyst"})
    service = make_service(acme)

    assert service.check_asset_permission(PROJECT_ID, "bob", AssetType.REPORT, REPORT_ID, "edit") is True
    assert service.check_asset_permission(PROJECT_ID, "bob", AssetType.REPORT, "r2", "edit") is False
    assert service.check_asset_permission(PROJECT_ID, "bob", AssetType.WORKFLOW, "any", "view") is True
    assert service.get_snapshot(PROJECT_ID, "bob").role_names == ["Analyst"]


def test_assignment_to_deleted_role_grants_nothing(acme):
    acme.seed("user_role_assignments", {"user_id": "bob", "role_id": "gone"})
    acme.seed("role_permissions", {"role_id": "gone", "resource_type": "report", "resource_id": None, "permission_type": "update"})
    service = make_service(acme)
    assert service.check_asset_permission(PROJECT_ID, "bob", AssetType.REPORT, REPORT_ID, "edit") is False


def test_access_summary(acme):
    service = make_service(acme)
    summary = service.get_access_summary(PROJECT_ID, "alice")
    assert summary.is_project_admin is False
    assert summary.project_role == "editor"
    assert summary.actions[EntityType.FORMS][CrudAction.UPDATE] is True
    assert summary.actions[EntityType.REPORTS][CrudAction.READ] is False


def test_unknown_vocabulary_fails_closed(acme):
    notifier = Notifier()
    service = make_service(acme, notifier)

    assert service.has_permission(PROJECT_ID, "carol", "dashboards", "read") is False
    assert service.has_permission(PROJECT_ID, "carol", EntityType.FORMS, "approve") is False
    assert service.get_visible_resources(PROJECT_ID, "carol", "dashboards", [{"id": FORM_ID}]) == []
    assert service.check_asset_permission(PROJECT_ID, "carol", "dashboard", FORM_ID, "view") is False

    assert service.check_permission_with_alert(PROJECT_ID, "alice", EntityType.FORMS, "approve") is False
    assert notifier.notifications[-1].description == "You do not have approve permission for forms"
    state = service.get_button_state(PROJECT_ID, "alice", "dashboards", CrudAction.READ)
    assert state.tooltip == "No top-level read permission for dashboards"
