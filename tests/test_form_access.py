import pytest
from fastapi import HTTPException

from app.config.permissions_config import FORM_PERMISSION_IDS
from app.config.settings import settings
from app.core.enums import AssetType, CrudAction, EntityType
from app.core.notifications import Notifier
from app.modules.access_control.service import AccessControlService
from app.modules.form_access.service import FormAccessService
from tests.conftest import FORM_ID, PROJECT_ID


def by_user(users):
    return {u.user_id: u for u in users}


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def service(acme, notifier):
    return FormAccessService(acme, notifier=notifier, cache={})


def test_matrix_defaults_follow_project_role(service):
    users = by_user(service.load_form_permissions(PROJECT_ID, FORM_ID))

    assert set(users) == {"owner", "carol", "alice", "bob"}
    assert all(users["carol"].permissions[p].granted for p in FORM_PERMISSION_IDS)

    alice = users["alice"].permissions
    assert alice["edit_form"].granted is True and alice["edit_form"].explicit is False
    assert alice["view_submissions"].granted is True
    assert alice["delete_form"].granted is False
    assert alice["manage_access"].granted is False

    bob = users["bob"].permissions
    assert bob["view_form"].granted is True
    assert bob["submit_form"].granted is True
    assert bob["edit_form"].granted is False
    assert users["bob"].has_explicit_permissions is False


def test_matrix_includes_users_with_only_explicit_grants(acme, service):
    acme.seed("asset_permissions", {
        "project_id": PROJECT_ID, "user_id": "dave", "asset_type": "form",
        "asset_id": FORM_ID, "permission_type": "view_form",
    })
    dave = by_user(service.load_form_permissions(PROJECT_ID, FORM_ID))["dave"]
    assert dave.project_role is None
    assert dave.permissions["view_form"].granted is True
    assert dave.permissions["view_form"].explicit is True
    assert dave.permissions["submit_form"].granted is False
    assert dave.display_name == "Dave Outsider"


def test_matrix_ignores_grants_on_other_forms_and_unknown_types(acme, service):
    acme.seed(
        "asset_permissions",
        {"project_id": PROJECT_ID, "user_id": "bob", "asset_type": "form", "asset_id": "f2", "permission_type": "edit_form"},
        {"project_id": PROJECT_ID, "user_id": "bob", "asset_type": "form", "asset_id": FORM_ID, "permission_type": "legacy_flag"},
    )
    bob = by_user(service.load_form_permissions(PROJECT_ID, FORM_ID))["bob"]
    assert bob.permissions["edit_form"].granted is False
    assert "legacy_flag" not in bob.permissions
    assert bob.has_explicit_permissions is False


def test_explicit_grant_overrides_role_default(service):
    users = by_user(service.grant_permission(PROJECT_ID, FORM_ID, "bob", "manage_access", granted_by="carol"))
    state = users["bob"].permissions["manage_access"]
    assert state.granted is True
    assert state.explicit is True
    assert users["bob"].has_explicit_permissions is True


def test_grant_is_idempotent(acme, service):
    first = service.grant_permission(PROJECT_ID, FORM_ID, "bob", "export_data", granted_by="carol")
    second = service.grant_permission(PROJECT_ID, FORM_ID, "bob", "export_data", granted_by="carol")
    assert first == second
    assert len(acme.rows("asset_permissions", user_id="bob", permission_type="export_data")) == 1


def test_revoke_of_absent_permission_is_a_no_op(acme, service, notifier):
    before = service.load_form_permissions(PROJECT_ID, FORM_ID)
    after = service.revoke_permission(PROJECT_ID, FORM_ID, "bob", "delete_form", revoked_by="carol")
    assert before == after
    assert acme.rows("asset_permissions") == []
    assert notifier.notifications[-1].variant == "default"


def test_revoke_removes_explicit_grant(acme, service):
    service.grant_permission(PROJECT_ID, FORM_ID, "bob", "edit_form", granted_by="carol")
    users = by_user(service.revoke_permission(PROJECT_ID, FORM_ID, "bob", "edit_form", revoked_by="carol"))
    assert users["bob"].permissions["edit_form"].granted is False
    assert acme.rows("asset_permissions", user_id="bob") == []


def test_invalid_permission_type_is_rejected(acme, service):
    with pytest.raises(HTTPException) as exc:
        service.grant_permission(PROJECT_ID, FORM_ID, "bob", "fly_to_moon", granted_by="carol")
    assert exc.value.status_code == 400
    assert acme.rows("asset_permissions") == []


def test_grant_failure_notifies_and_raises(acme, service, notifier):
    acme.fail_on("asset_permissions", "upsert")
    with pytest.raises(HTTPException) as exc:
        service.grant_permission(PROJECT_ID, FORM_ID, "bob", "edit_form", granted_by="carol")
    assert exc.value.status_code == 500
    assert exc.value.detail == "Failed to grant permission"
    assert [n.variant for n in notifier.notifications] == ["destructive"]


def test_grant_writes_audit_entry(acme, service):
    service.grant_permission(PROJECT_ID, FORM_ID, "bob", "edit_form", granted_by="carol")
    entries = acme.rows("permission_audit_log", user_id="bob")
    assert len(entries) == 1
    assert entries[0]["action"] == "grant"
    assert entries[0]["changed_by"] == "carol"
    assert entries[0]["permission_details"]["asset_id"] == FORM_ID


def test_audit_failure_does_not_fail_grant(acme, service):
    acme.fail_on("permission_audit_log")
    users = by_user(service.grant_permission(PROJECT_ID, FORM_ID, "bob", "edit_form", granted_by="carol"))
    assert users["bob"].permissions["edit_form"].granted is True


def test_bulk_update_applies_every_change(acme, service, notifier):
    acme.seed("asset_permissions", {
        "project_id": PROJECT_ID, "user_id": "alice", "asset_type": "form",
        "asset_id": FORM_ID, "permission_type": "manage_access",
    })
    users = by_user(service.bulk_update_permissions(
        PROJECT_ID, FORM_ID, ["alice", "bob"], {"export_data": True, "manage_access": False}, changed_by="carol"
    ))
    for user_id in ("alice", "bob"):
        assert users[user_id].permissions["export_data"].explicit is True
        assert users[user_id].permissions["manage_access"].granted is False
    assert notifier.notifications[-1].title == "Permissions updated"


def test_bulk_update_is_sequential_and_stops_at_first_failure(acme, service, notifier):
    acme.fail_on("asset_permissions", "upsert", after=1)
    with pytest.raises(HTTPException) as exc:
        service.bulk_update_permissions(
            PROJECT_ID, FORM_ID, ["alice", "bob"], {"export_data": True, "view_form": False}, changed_by="carol"
        )
    assert exc.value.status_code == 500
    assert exc.value.detail == "Failed to update permissions: 2 of 4 changes applied"
    assert notifier.notifications[-1].variant == "destructive"

    acme.clear_failures()
    users = by_user(service.load_form_permissions(PROJECT_ID, FORM_ID))
    assert users["alice"].permissions["export_data"].explicit is True
    assert users["bob"].permissions["export_data"].granted is False


def test_bulk_update_rejects_too_many_users(service, monkeypatch):
    monkeypatch.setattr(settings, "bulk_update_max_users", 1)
    with pytest.raises(HTTPException) as exc:
        service.bulk_update_permissions(PROJECT_ID, FORM_ID, ["alice", "bob"], {"view_form": True}, changed_by="carol")
    assert exc.value.status_code == 400


def test_writes_invalidate_cached_snapshot(acme):
    cache = {}
    access = AccessControlService(acme, cache=cache)
    assert access.check_asset_permission(PROJECT_ID, "bob", AssetType.FORM, FORM_ID, "manage_access") is False

    FormAccessService(acme, cache=cache).grant_permission(PROJECT_ID, FORM_ID, "bob", "manage_access", granted_by="carol")
    assert access.check_asset_permission(PROJECT_ID, "bob", AssetType.FORM, FORM_ID, "manage_access") is True


def test_end_to_end_alice_scenario(acme, service):
    access = AccessControlService(acme, cache={})
    assert access.has_permission(PROJECT_ID, "alice", EntityType.FORMS, CrudAction.READ) is True
    assert access.has_permission(PROJECT_ID, "alice", EntityType.FORMS, CrudAction.DELETE) is False

    alice = by_user(service.load_form_permissions(PROJECT_ID, FORM_ID))["alice"].permissions
    assert (alice["edit_form"].granted, alice["edit_form"].explicit) == (True, False)
    assert alice["delete_form"].granted is False

    alice = by_user(service.grant_permission(PROJECT_ID, FORM_ID, "alice", "delete_form", granted_by="carol"))["alice"].permissions
    assert (alice["delete_form"].granted, alice["delete_form"].explicit) == (True, True)

    row = acme.rows("project_top_level_permissions", user_id="alice", entity_type="forms")[0]
    assert row["can_delete"] is False
    access.reload_access_control(PROJECT_ID, "alice")
    assert access.has_permission(PROJECT_ID, "alice", EntityType.FORMS, CrudAction.DELETE) is False
    assert access.check_asset_permission(PROJECT_ID, "alice", AssetType.FORM, FORM_ID, "delete_form") is True
