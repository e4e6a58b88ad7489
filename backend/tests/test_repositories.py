from __future__ import annotations

from dataclasses import replace

import pytest

from proposal_tracker.errors import ConcurrentModificationError
from proposal_tracker.modules.identity.roles import Role
from proposal_tracker.modules.workflow import engine
from proposal_tracker.modules.workflow.models import Action, Actor, NotificationSpec, ProposalStatus

BDM = Actor(uid="u-bdm", name="Bea BDM", role=Role.BDM)
EST = Actor(uid="u-est", name="Eve Estimator", role=Role.ESTIMATOR)


def _proposal(pid: str, *, actor: Actor = BDM, created_at: str = "2025-01-01T00:00:00Z"):
    return engine.create_proposal(
        proposal_id=pid,
        actor=actor,
        data={"projectName": pid, "clientCompany": "C", "projectType": "T", "scopeOfWork": "S"},
        now=created_at,
    ).proposal


def test_proposal_round_trips_without_internal_keys(store, table):
    store.proposals.create(_proposal("p1"))

    raw = table.items[("PROPOSAL#p1", "PROFILE")]
    assert raw["gsi1pk"] == "TYPE#PROPOSAL"
    assert raw["gsi2pk"] == "OWNER#u-bdm"
    assert raw["currentStage"] == "estimation"

    loaded = store.proposals.get_proposal("p1")
    assert loaded == _proposal("p1")
    assert "pk" not in store.proposals.get("p1")


def test_create_never_overwrites(store):
    from proposal_tracker.db.dynamodb.errors import DdbConflict

    store.proposals.create(_proposal("p1"))
    with pytest.raises(DdbConflict):
        store.proposals.create(_proposal("p1"))


def test_save_bumps_version_and_rejects_stale_writes(store):
    store.proposals.create(_proposal("p1"))
    current = store.proposals.get_proposal("p1")
    assert current.version == 1

    result = engine.apply_action(current, Action.ADD_ESTIMATION, EST, {"totalHours": 3}, now="2025-01-02T00:00:00Z")
    saved = store.proposals.save(result.proposal, expected_version=current.version)
    assert saved.version == 2
    assert store.proposals.get_proposal("p1").status is ProposalStatus.PENDING_PRICING

    # A second writer that read version 1 loses.
    with pytest.raises(ConcurrentModificationError) as exc:
        store.proposals.save(replace(current, priority="High"), expected_version=1)
    assert exc.value.status_code == 409
    assert store.proposals.get_proposal("p1").priority == "Medium"


def test_delete_requires_current_version(store):
    store.proposals.create(_proposal("p1"))
    with pytest.raises(ConcurrentModificationError):
        store.proposals.delete("p1", expected_version=7)
    store.proposals.delete("p1", expected_version=1)
    assert store.proposals.get_proposal("p1") is None


def test_list_is_newest_first_and_owner_scoped(store):
    other = Actor(uid="u-bdm2", name="Ben", role=Role.BDM)
    store.proposals.create(_proposal("old", created_at="2025-01-01T00:00:00Z"))
    store.proposals.create(_proposal("new", created_at="2025-01-03T00:00:00Z"))
    store.proposals.create(_proposal("theirs", actor=other, created_at="2025-01-02T00:00:00Z"))

    everything, _ = store.proposals.list_proposals()
    assert [p.id for p in everything] == ["new", "theirs", "old"]

    mine, _ = store.proposals.list_proposals(owner_uid="u-bdm")
    assert [p.id for p in mine] == ["new", "old"]


def test_list_pages_with_next_token(store):
    for i in range(3):
        store.proposals.create(_proposal(f"p{i}", created_at=f"2025-01-0{i + 1}T00:00:00Z"))

    first, token = store.proposals.list_proposals(limit=2)
    assert [p.id for p in first] == ["p2", "p1"]
    assert token

    second, token = store.proposals.list_proposals(limit=2, next_token=token)
    assert [p.id for p in second] == ["p0"]
    assert token is None


def test_notifications_are_addressed_and_marked_read(store):
    store.notifications.create(
        NotificationSpec(type="proposal_approved", message="m1", proposal_id="p1", recipient_role=Role.BDM, recipient_uid="u-bdm")
    )
    coo_note = store.notifications.create(
        NotificationSpec(type="proposal_approved", message="m2", proposal_id="p1", recipient_role=Role.COO)
    )

    assert [n["message"] for n in store.notifications.list_for_recipient(uid="u-bdm")] == ["m1"]
    assert store.notifications.list_for_recipient(uid="u-bdm2") == []
    assert [n["message"] for n in store.notifications.list_for_recipient(role=Role.COO)] == ["m2"]

    updated = store.notifications.mark_read(coo_note["id"])
    assert updated["isRead"] is True
    assert updated["readAt"]
    assert store.notifications.list_for_recipient(role=Role.COO) == []
    assert len(store.notifications.list_for_recipient(role=Role.COO, include_read=True)) == 1
    assert store.notifications.mark_read("missing") is None


def test_unread_notifications_found_behind_read_ones(store):
    # Older unread item sits behind a run of newer read ones.
    first = store.notifications.create(
        NotificationSpec(type="t", message="old-unread", proposal_id="p", recipient_role=Role.COO),
        now="2025-01-01T00:00:00Z",
    )
    for i in range(5):
        n = store.notifications.create(
            NotificationSpec(type="t", message=f"read-{i}", proposal_id="p", recipient_role=Role.COO),
            now=f"2025-01-0{i + 2}T00:00:00Z",
        )
        store.notifications.mark_read(n["id"])

    unread = store.notifications.list_for_recipient(role=Role.COO, limit=2)
    assert [n["id"] for n in unread] == [first["id"]]


def test_activities_filter_by_actor_type_and_proposal(store):
    p = _proposal("p1")
    create = engine.create_proposal(
        proposal_id="p1", actor=BDM, data={"projectName": "p1", "clientCompany": "C", "projectType": "T", "scopeOfWork": "S"}, now="2025-01-01T00:00:00Z"
    )
    store.activities.create(create.activity)
    est = engine.apply_action(p, Action.ADD_ESTIMATION, EST, {"totalHours": 1}, now="2025-01-02T00:00:00Z")
    store.activities.create(est.activity)

    everything, _ = store.activities.list_activities()
    assert [a["type"] for a in everything] == ["proposal_add_estimation", "proposal_created"]

    mine, _ = store.activities.list_activities(performed_by_uid="u-bdm")
    assert [a["type"] for a in mine] == ["proposal_created"]

    by_type, _ = store.activities.list_activities(activity_type="proposal_add_estimation", proposal_id="p1")
    assert len(by_type) == 1 and by_type[0]["performedByUid"] == "u-est"


def test_users_upsert_normalizes_role(store):
    u = store.users.upsert(uid="u-new", name="  ", role="Business Development Manager", email="n@example.com")
    assert u["role"] == "bdm"
    assert u["name"] == "n@example.com"


def test_filtered_list_reads_past_non_matching_items(store):
    for i in range(4):
        store.proposals.create(_proposal(f"p{i}", created_at=f"2025-01-0{i + 1}T00:00:00Z"))
    oldest = store.proposals.get_proposal("p0")
    est = engine.apply_action(oldest, Action.ADD_ESTIMATION, EST, {"totalHours": 1}, now="2025-01-05T00:00:00Z")
    store.proposals.save(est.proposal, expected_version=oldest.version)

    found, token = store.proposals.list_proposals(status=ProposalStatus.PENDING_PRICING, limit=2)
    assert [p.id for p in found] == ["p0"]
    assert token is None

    pending, token = store.proposals.list_proposals(status=ProposalStatus.PENDING_ESTIMATION, limit=2)
    assert [p.id for p in pending] == ["p3", "p2"]
    rest, token = store.proposals.list_proposals(status=ProposalStatus.PENDING_ESTIMATION, limit=2, next_token=token)
    assert [p.id for p in rest] == ["p1"]


def test_filtered_activity_list_reads_past_non_matching_items(store):
    p = _proposal("p1")
    est = engine.apply_action(p, Action.ADD_ESTIMATION, EST, {"totalHours": 1}, now="2025-01-01T00:00:00Z")
    store.activities.create(est.activity)
    for i in range(3):
        store.activities.create(replace(est.activity, type="note", timestamp=f"2025-01-0{i + 2}T00:00:00Z"))

    found, token = store.activities.list_activities(activity_type="proposal_add_estimation", limit=1)
    assert [a["type"] for a in found] == ["proposal_add_estimation"]
    assert token is None


def test_mark_all_read_clears_large_inbox(store):
    for i in range(105):
        store.notifications.create(
            NotificationSpec(type="t", message=f"m{i}", proposal_id="p", recipient_role=Role.COO)
        )
    store.notifications.create(
        NotificationSpec(type="t", message="est", proposal_id="p", recipient_role=Role.ESTIMATOR)
    )

    assert store.notifications.mark_all_read(role=Role.COO) == 105
    assert store.notifications.list_for_recipient(role=Role.COO) == []
    assert len(store.notifications.list_for_recipient(role=Role.ESTIMATOR)) == 1


def test_timestamps_always_carry_microseconds(monkeypatch):
    from datetime import datetime, timezone

    from proposal_tracker.repositories import base_repository

    class _Frozen(datetime):
        @classmethod
        def now(cls, tz=None):
            return datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    monkeypatch.setattr(base_repository, "datetime", _Frozen)
    stamp = base_repository.now_iso()
    assert stamp == "2025-01-01T12:00:00.000000Z"
    # Same width as a stamp with a fraction, so string order is time order.
    assert stamp < "2025-01-01T12:00:00.500000Z"
