"""
Shared fixtures.

FakeSupabase is an in-memory stand-in for the supabase-py client covering the
PostgREST builder calls the services make. Failures can be injected per table
and operation to exercise the fail-closed and partial-failure paths.
"""

import copy
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from app.core.dependencies import get_current_user_id
from app.database.supabase_client import get_supabase
from app.main import app


class FakeAPIError(Exception):
    pass


class FakeResponse:
    def __init__(self, data):
        self.data = data


UNIQUE_KEYS = {
    "asset_permissions": ("project_id", "user_id", "asset_type", "asset_id", "permission_type"),
    "project_top_level_permissions": ("project_id", "user_id", "entity_type"),
    "user_role_assignments": ("user_id", "role_id"),
}


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.operation = None
        self.columns = "*"
        self.payload = None
        self.filters = []
        self.on_conflict = None
        self.ignore_duplicates = False
        self._order = None
        self._limit = None
        self._offset = 0
        self._single = False
        self._maybe_single = False

    # operations
    def select(self, columns: str = "*", count=None):
        self.operation = "select"
        self.columns = columns
        return self

    def insert(self, payload):
        self.operation = "insert"
        self.payload = payload
        return self

    def upsert(self, payload, on_conflict: str = "", ignore_duplicates: bool = False):
        self.operation = "upsert"
        self.payload = payload
        self.on_conflict = on_conflict
        self.ignore_duplicates = ignore_duplicates
        return self

    def update(self, payload):
        self.operation = "update"
        self.payload = payload
        return self

    def delete(self):
        self.operation = "delete"
        return self

    # filters and modifiers
    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc: bool = False):
        self._order = (column, desc)
        return self

    def limit(self, count: int):
        self._limit = count
        return self

    def offset(self, count: int):
        self._offset = count
        return self

    def single(self):
        self._single = True
        return self

    def maybe_single(self):
        self._maybe_single = True
        return self

    def _matches(self, row) -> bool:
        return all(f(row) for f in self.filters)

    def _project(self, row) -> dict:
        columns = [c.strip() for c in self.columns.split(",")]
        if "*" in columns:
            return copy.deepcopy(row)
        return {c: copy.deepcopy(row.get(c)) for c in columns}

    def execute(self):
        self.db.record_call(self.table_name, self.operation)
        rows = self.db.tables.setdefault(self.table_name, [])
        handler = getattr(self, f"_execute_{self.operation}")
        return handler(rows)

    def _execute_select(self, rows):
        matched = [row for row in rows if self._matches(row)]
        if self._order:
            column, desc = self._order
            matched.sort(key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=desc)
        matched = matched[self._offset:]
        if self._limit is not None:
            matched = matched[:self._limit]
        data = [self._project(row) for row in matched]
        if self._single or self._maybe_single:
            if len(data) > 1:
                raise FakeAPIError("multiple rows returned for single()")
            if not data:
                if self._single:
                    raise FakeAPIError("no rows returned for single()")
                return None
            return FakeResponse(data[0])
        return FakeResponse(data)

    def _payload_rows(self) -> List[dict]:
        payload = self.payload if isinstance(self.payload, list) else [self.payload]
        return [copy.deepcopy(dict(row)) for row in payload]

    def _violates_unique(self, rows, new_row) -> bool:
        keys = UNIQUE_KEYS.get(self.table_name)
        if not keys:
            return False
        return any(all(row.get(k) == new_row.get(k) for k in keys) for row in rows)

    def _execute_insert(self, rows):
        inserted = []
        for new_row in self._payload_rows():
            if self._violates_unique(rows + inserted, new_row):
                raise FakeAPIError(f"duplicate key value violates unique constraint on {self.table_name}")
            inserted.append(self.db.with_defaults(self.table_name, new_row))
        rows.extend(inserted)
        return FakeResponse(copy.deepcopy(inserted))

    def _execute_upsert(self, rows):
        keys = [k.strip() for k in (self.on_conflict or "id").split(",") if k.strip()]
        written = []
        for new_row in self._payload_rows():
            existing = next(
                (row for row in rows if all(row.get(k) == new_row.get(k) for k in keys)),
                None
            )
            if existing is not None:
                if self.ignore_duplicates:
                    continue
                existing.update(new_row)
                written.append(copy.deepcopy(existing))
            else:
                row = self.db.with_defaults(self.table_name, new_row)
                rows.append(row)
                written.append(copy.deepcopy(row))
        return FakeResponse(written)

    def _execute_update(self, rows):
        updated = []
        for row in rows:
            if self._matches(row):
                row.update(copy.deepcopy(self.payload))
                updated.append(copy.deepcopy(row))
        return FakeResponse(updated)

    def _execute_delete(self, rows):
        removed = [row for row in rows if self._matches(row)]
        self.db.tables[self.table_name] = [row for row in rows if not self._matches(row)]
        return FakeResponse(copy.deepcopy(removed))


class FakeSupabase:
    def __init__(self):
        self.tables: Dict[str, List[dict]] = {}
        self.calls: List[tuple] = []
        self._failures: Dict[tuple, Dict[str, Any]] = {}

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def seed(self, table: str, *rows: dict) -> List[dict]:
        created = [self.with_defaults(table, dict(row)) for row in rows]
        self.tables.setdefault(table, []).extend(created)
        return created

    def rows(self, table: str, **filters) -> List[dict]:
        return [
            row for row in self.tables.get(table, [])
            if all(row.get(k) == v for k, v in filters.items())
        ]

    def fail_on(self, table: str, operation: str = "*", after: int = 0) -> None:
        """Let `after` matching calls succeed, then raise on every following one"""
        self._failures[(table, operation)] = {"after": after, "seen": 0}

    def clear_failures(self) -> None:
        self._failures.clear()

    def record_call(self, table: str, operation: str) -> None:
        self.calls.append((table, operation))
        for key in ((table, operation), (table, "*")):
            failure = self._failures.get(key)
            if failure is None:
                continue
            failure["seen"] += 1
            if failure["seen"] > failure["after"]:
                raise FakeAPIError(f"injected failure on {table}.{operation}")

    def calls_for(self, table: str) -> List[str]:
        return [operation for name, operation in self.calls if name == table]

    @staticmethod
    def with_defaults(table: str, row: dict) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", now)
        if table == "asset_permissions":
            row.setdefault("granted_at", now)
        if table == "user_role_assignments":
            row.setdefault("assigned_at", now)
        return row


ORG_ID = "acme"
PROJECT_ID = "p1"
FORM_ID = "f1"
REPORT_ID = "r1"
WORKFLOW_ID = "w1"


@pytest.fixture
def db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def acme(db: FakeSupabase) -> FakeSupabase:
    """
    Organization acme with project p1 created by owner.
    org_admin is an organization admin; carol is project admin; alice is an
    editor with forms top-level rows; bob is a viewer; dave has no membership.
    """
    db.seed(
        "user_profiles",
        {"id": "owner", "email": "owner@acme.com", "first_name": "Olive", "last_name": "Owner", "role": "member", "organization_id": ORG_ID},
        {"id": "org_admin", "email": "admin@acme.com", "first_name": "Ada", "last_name": "Admin", "role": "admin", "organization_id": ORG_ID},
        {"id": "carol", "email": "carol@acme.com", "first_name": "Carol", "last_name": "Lead", "role": "member", "organization_id": ORG_ID},
        {"id": "alice", "email": "alice@acme.com", "first_name": "Alice", "last_name": "Editor", "role": "member", "organization_id": ORG_ID},
        {"id": "bob", "email": "bob@acme.com", "first_name": None, "last_name": None, "role": "member", "organization_id": ORG_ID},
        {"id": "dave", "email": "dave@acme.com", "first_name": "Dave", "last_name": "Outsider", "role": "member", "organization_id": ORG_ID},
    )
    db.seed("projects", {"id": PROJECT_ID, "name": "P1", "organization_id": ORG_ID, "created_by": "owner"})
    db.seed(
        "project_users",
        {"project_id": PROJECT_ID, "user_id": "owner", "role": "viewer"},
        {"project_id": PROJECT_ID, "user_id": "carol", "role": "admin"},
        {"project_id": PROJECT_ID, "user_id": "alice", "role": "editor"},
        {"project_id": PROJECT_ID, "user_id": "bob", "role": "viewer"},
    )
    db.seed(
        "project_top_level_permissions",
        {"project_id": PROJECT_ID, "user_id": "alice", "entity_type": "forms",
         "can_create": True, "can_read": True, "can_update": True, "can_delete": False, "created_by": "carol"},
        {"project_id": PROJECT_ID, "user_id": "bob", "entity_type": "reports",
         "can_create": False, "can_read": True, "can_update": False, "can_delete": False, "created_by": "carol"},
    )
    db.seed("forms", {"id": FORM_ID, "name": "Intake Form", "project_id": PROJECT_ID})
    db.seed("reports", {"id": REPORT_ID, "name": "Monthly Report", "project_id": PROJECT_ID})
    db.seed("workflows", {"id": WORKFLOW_ID, "name": "Approval Flow", "project_id": PROJECT_ID})
    return db


class CurrentUser:
    def __init__(self):
        self.id: Optional[str] = None

    def as_user(self, user_id: str) -> None:
        self.id = user_id


@pytest.fixture
def current_user() -> CurrentUser:
    return CurrentUser()


@pytest.fixture
def client(acme: FakeSupabase, current_user: CurrentUser):
    app.dependency_overrides[get_supabase] = lambda: acme
    app.dependency_overrides[get_current_user_id] = lambda: {"id": current_user.id, "email": f"{current_user.id}@acme.com"}
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
