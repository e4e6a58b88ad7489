from __future__ import annotations

import copy
import sys
from pathlib import Path
from typing import Any, Callable

import pytest

# Ensure `backend/` is on sys.path so `import proposal_tracker.*` works in tests.
BACKEND_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_DIR))

from proposal_tracker.auth.cognito import VerifiedUser  # noqa: E402
from proposal_tracker.db.dynamodb.errors import DdbConflict  # noqa: E402
from proposal_tracker.db.dynamodb.table import Page  # noqa: E402
from proposal_tracker.errors import AuthenticationError  # noqa: E402
from proposal_tracker.store import Store  # noqa: E402

_SORT_KEYS = {None: "sk", "GSI1": "gsi1sk", "GSI2": "gsi2sk"}


def _matches(cond: Any, item: dict[str, Any]) -> bool:
    """Evaluate a boto3 Key/Attr condition against a plain dict."""
    if cond is None:
        return True
    expr = cond.get_expression()
    op = expr["operator"]
    values = expr["values"]
    if op == "AND":
        return all(_matches(v, item) for v in values)
    if op == "OR":
        return any(_matches(v, item) for v in values)
    if op == "=":
        return item.get(values[0].name) == values[1]
    if op == "begins_with":
        return str(item.get(values[0].name) or "").startswith(values[1])
    raise NotImplementedError(op)


class FakeTable:
    """In-memory stand-in for DynamoTable (same keyword API)."""

    table_name = "fake"

    def __init__(self):
        self.items: dict[tuple[str, str], dict[str, Any]] = {}

    def _check(self, existing, condition_expression, names, values) -> None:
        if not condition_expression:
            return
        names = names or {}
        values = values or {}
        for clause in condition_expression.split(" AND "):
            clause = clause.strip()
            if clause.startswith("attribute_not_exists("):
                ok = existing is None
            elif clause.startswith("attribute_exists("):
                ok = existing is not None
            elif " = " in clause:
                lhs, rhs = [s.strip() for s in clause.split(" = ", 1)]
                ok = existing is not None and existing.get(names.get(lhs, lhs)) == values.get(rhs)
            else:
                raise NotImplementedError(clause)
            if not ok:
                raise DdbConflict(message="Conditional check failed", operation="ConditionCheck", table_name=self.table_name)

    def get_item(self, *, key):
        item = self.items.get((key["pk"], key["sk"]))
        return copy.deepcopy(item) if item else None

    def put_item(self, *, item, condition_expression=None, expression_attribute_names=None, expression_attribute_values=None):
        k = (item["pk"], item["sk"])
        self._check(self.items.get(k), condition_expression, expression_attribute_names, expression_attribute_values)
        self.items[k] = copy.deepcopy(item)
        return {}

    def delete_item(self, *, key, condition_expression=None, expression_attribute_names=None, expression_attribute_values=None):
        k = (key["pk"], key["sk"])
        self._check(self.items.get(k), condition_expression, expression_attribute_names, expression_attribute_values)
        self.items.pop(k, None)
        return {}

    def query_page(
        self,
        *,
        key_condition_expression,
        index_name=None,
        limit=50,
        scan_index_forward=False,
        filter_expression=None,
        next_token=None,
    ) -> Page:
        sort_key = _SORT_KEYS[index_name]
        rows = [it for it in self.items.values() if sort_key in it and _matches(key_condition_expression, it)]
        rows.sort(key=lambda it: str(it.get(sort_key) or ""), reverse=not scan_index_forward)

        # Like DynamoDB: limit counts evaluated items, the filter runs afterwards.
        start = int(next_token or 0)
        window = rows[start : start + int(limit)]
        end = start + len(window)
        token = str(end) if end < len(rows) else None
        return Page(
            items=[copy.deepcopy(it) for it in window if _matches(filter_expression, it)],
            next_token=token,
        )

    def query_all(self, *, key_condition_expression, index_name=None, scan_index_forward=False, filter_expression=None, page_size=200):
        token = None
        while True:
            page = self.query_page(
                key_condition_expression=key_condition_expression,
                index_name=index_name,
                limit=page_size,
                scan_index_forward=scan_index_forward,
                filter_expression=filter_expression,
                next_token=token,
            )
            yield from page.items
            token = page.next_token
            if not token:
                return

    def entities(self, entity_type: str) -> list[dict[str, Any]]:
        return [it for it in self.items.values() if it.get("entityType") == entity_type]


class FakeBlobStore:
    def __init__(self, fail_when: Callable[[str], bool] | None = None):
        self.blobs: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_when = fail_when

    def put(self, *, key, body, content_type):
        if self.fail_when and self.fail_when(key):
            raise RuntimeError(f"upload failed for {key}")
        self.blobs[key] = body
        return f"https://blobs.test/{key}"

    def presigned_url(self, *, key):
        return f"https://blobs.test/{key}?signed=1"

    def delete(self, *, key):
        self.deleted.append(key)
        self.blobs.pop(key, None)


USERS = {
    "u-bdm": ("Bea BDM", "bdm"),
    "u-bdm2": ("Ben BDM", "bdm"),
    "u-est": ("Eve Estimator", "estimator"),
    "u-coo": ("Cody COO", "coo"),
    "u-dir": ("Dana Director", "director"),
}


@pytest.fixture
def table() -> FakeTable:
    return FakeTable()


@pytest.fixture
def blobs() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def store(table, blobs) -> Store:
    s = Store.from_table(table, blobs=blobs)
    for uid, (name, role) in USERS.items():
        s.users.upsert(uid=uid, name=name, role=role, email=f"{uid}@example.com")
    return s


def fake_verify(token: str) -> VerifiedUser:
    if not token.startswith("token-"):
        raise AuthenticationError("Invalid or expired token")
    uid = token[len("token-") :]
    claims: dict[str, Any] = {"sub": uid}
    if uid.startswith("claims-"):
        # "claims-<role>" users have no users record, only token claims.
        claims.update({"custom:role": uid[len("claims-") :], "name": "Claims User"})
    return VerifiedUser(sub=uid, username=uid, email=f"{uid}@example.com", claims=claims)


@pytest.fixture
def client(store, monkeypatch):
    from fastapi.testclient import TestClient

    from proposal_tracker.main import create_app
    from proposal_tracker.middleware import auth as auth_middleware
    from proposal_tracker.store import get_store

    monkeypatch.setattr(auth_middleware, "verify_bearer_token", fake_verify)
    app = create_app()
    app.dependency_overrides[get_store] = lambda: store
    return TestClient(app)


def auth(uid: str) -> dict[str, str]:
    return {"Authorization": f"Bearer token-{uid}"}


PROPOSAL_BODY = {
    "projectName": "X",
    "clientCompany": "Y",
    "projectType": "Commercial",
    "scopeOfWork": "Z",
}


def create_proposal(client, uid: str = "u-bdm", **overrides) -> dict[str, Any]:
    r = client.post("/api/proposals", json={**PROPOSAL_BODY, **overrides}, headers=auth(uid))
    assert r.status_code == 201, r.text
    return r.json()["data"]


def act(client, uid: str, proposal_id: str, action: str, data: dict[str, Any] | None = None):
    return client.put(
        f"/api/proposals?id={proposal_id}",
        json={"action": action, "data": data or {}},
        headers=auth(uid),
    )


def advance_to_approved(client, proposal_id: str) -> dict[str, Any]:
    for uid, action, data in (
        ("u-est", "add_estimation", {"totalHours": 10}),
        ("u-coo", "set_pricing", {"quoteValue": 1000}),
        ("u-dir", "director_approve", {}),
    ):
        r = act(client, uid, proposal_id, action, data)
        assert r.status_code == 200, r.text
    return r.json()["data"]
