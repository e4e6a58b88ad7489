from __future__ import annotations

import pytest

from proposal_tracker.errors import AuthorizationError, ConflictError, ValidationError
from proposal_tracker.modules.identity.roles import Role
from proposal_tracker.modules.workflow import engine
from proposal_tracker.modules.workflow.models import Action, Actor, ProposalStatus

NOW = "2025-01-01T00:00:00Z"
LATER = "2025-01-02T00:00:00Z"

BDM = Actor(uid="u-bdm", name="Bea BDM", role=Role.BDM)
OTHER_BDM = Actor(uid="u-bdm2", name="Ben BDM", role=Role.BDM)
EST = Actor(uid="u-est", name="Eve Estimator", role=Role.ESTIMATOR)
COO = Actor(uid="u-coo", name="Cody COO", role=Role.COO)
DIRECTOR = Actor(uid="u-dir", name="Dana Director", role=Role.DIRECTOR)

BASE = {
    "projectName": "X",
    "clientCompany": "Y",
    "projectType": "Commercial",
    "scopeOfWork": "Z",
}


def _new():
    return engine.create_proposal(proposal_id="p1", actor=BDM, data=BASE, now=NOW).proposal


def _advance(p, *steps):
    for action, actor, data in steps:
        p = engine.apply_action(p, action, actor, data, now=LATER).proposal
    return p


def _awaiting_approval():
    return _advance(
        _new(),
        (Action.ADD_ESTIMATION, EST, {"totalHours": 10}),
        (Action.SET_PRICING, COO, {"quoteValue": 1000}),
    )


def test_create_sets_initial_state_and_one_changelog_entry():
    result = engine.create_proposal(proposal_id="p1", actor=BDM, data=BASE, now=NOW)
    p = result.proposal

    assert p.status is ProposalStatus.PENDING_ESTIMATION
    assert p.current_stage == "estimation"
    assert p.priority == "Medium"
    assert p.created_by_uid == "u-bdm"
    assert len(p.change_log) == 1
    assert p.change_log[0].action == "created"
    assert result.activity.type == "proposal_created"
    assert result.notifications == ()


def test_create_requires_bdm_and_all_required_fields():
    with pytest.raises(AuthorizationError):
        engine.create_proposal(proposal_id="p1", actor=EST, data=BASE, now=NOW)

    with pytest.raises(ValidationError) as exc:
        engine.create_proposal(proposal_id="p1", actor=BDM, data={"projectName": "X"}, now=NOW)
    assert exc.value.details["missing"] == ["clientCompany", "projectType", "scopeOfWork"]


def test_add_estimation_moves_to_pricing():
    p = _advance(_new(), (Action.ADD_ESTIMATION, EST, {"totalHours": "12.5", "notes": "ok"}))

    assert p.status is ProposalStatus.PENDING_PRICING
    assert p.estimation.total_hours == 12.5
    assert p.estimation.estimated_by == "u-est"
    assert len(p.change_log) == 2


def test_wrong_role_is_forbidden_before_status_is_checked():
    p = _new()
    # COO may never add an estimation; status is irrelevant.
    with pytest.raises(AuthorizationError):
        engine.apply_action(p, Action.ADD_ESTIMATION, COO, {"totalHours": 1}, now=LATER)


def test_wrong_status_is_conflict_and_leaves_record_untouched():
    p = _new()
    before = p.to_dict()

    with pytest.raises(ConflictError) as exc:
        engine.apply_action(p, Action.SET_PRICING, COO, {"quoteValue": 1}, now=LATER)

    assert exc.value.status_code == 400
    assert exc.value.details["status"] == "pending_estimation"
    assert p.to_dict() == before


def test_set_pricing_derives_quote_value_from_hours_and_rate():
    p = _advance(
        _new(),
        (Action.ADD_ESTIMATION, EST, {"totalHours": 10}),
        (Action.SET_PRICING, COO, {"hourlyRate": 100, "materialsCost": 250.5}),
    )
    assert p.status is ProposalStatus.PENDING_DIRECTOR_APPROVAL
    assert p.pricing.quote_value == 1250.5
    assert p.pricing.currency == "USD"


def test_set_pricing_without_quote_or_rate_is_rejected():
    p = _advance(_new(), (Action.ADD_ESTIMATION, EST, {"totalHours": 10}))
    with pytest.raises(ValidationError):
        engine.apply_action(p, Action.SET_PRICING, COO, {}, now=LATER)


def test_negative_hours_are_rejected():
    with pytest.raises(ValidationError):
        engine.apply_action(_new(), Action.ADD_ESTIMATION, EST, {"totalHours": -1}, now=LATER)


def test_director_approve_notifies_creator_estimator_and_coo():
    result = engine.apply_action(_awaiting_approval(), Action.DIRECTOR_APPROVE, DIRECTOR, {}, now=LATER)

    assert result.proposal.status is ProposalStatus.APPROVED
    assert result.proposal.director_approval.approved is True
    recipients = {(n.recipient_role, n.recipient_uid) for n in result.notifications}
    assert recipients == {(Role.BDM, "u-bdm"), (Role.ESTIMATOR, None), (Role.COO, None)}
    assert all(n.type == "proposal_approved" for n in result.notifications)


def test_director_reject_defaults_to_estimator_revision():
    result = engine.apply_action(
        _awaiting_approval(),
        Action.DIRECTOR_REJECT,
        DIRECTOR,
        {"rejectionReason": "too expensive"},
        now=LATER,
    )
    p = result.proposal

    assert p.status is ProposalStatus.REVISION_REQUIRED
    assert p.director_approval.approved is False
    assert p.director_approval.requires_revision_by is Role.ESTIMATOR
    assert [(n.type, n.recipient_role) for n in result.notifications] == [("revision_required", Role.ESTIMATOR)]
    assert "too expensive" in result.notifications[0].message


def test_director_reject_uses_configured_default_owner():
    defaults = engine.WorkflowDefaults(revision_owner=Role.COO)
    result = engine.apply_action(_awaiting_approval(), Action.DIRECTOR_REJECT, DIRECTOR, {}, now=LATER, defaults=defaults)
    assert result.proposal.director_approval.requires_revision_by is Role.COO


def test_director_reject_rejects_director_as_revision_owner():
    with pytest.raises(ValidationError):
        engine.apply_action(
            _awaiting_approval(),
            Action.DIRECTOR_REJECT,
            DIRECTOR,
            {"requiresRevisionBy": "director"},
            now=LATER,
        )


def test_final_rejection_is_terminal_and_notifies_creator():
    result = engine.apply_action(
        _awaiting_approval(),
        Action.DIRECTOR_REJECT,
        DIRECTOR,
        {"final": True, "rejectionReason": "no fit"},
        now=LATER,
    )
    assert result.proposal.status is ProposalStatus.REJECTED
    assert [(n.type, n.recipient_uid) for n in result.notifications] == [("proposal_rejected", "u-bdm")]

    with pytest.raises(ConflictError):
        engine.apply_action(result.proposal, Action.SUBMIT_TO_CLIENT, BDM, {}, now=LATER)


def test_resubmit_is_limited_to_designated_role_and_records_revision():
    rejected = _advance(
        _awaiting_approval(),
        (Action.DIRECTOR_REJECT, DIRECTOR, {"requiresRevisionBy": "coo", "rejectionReason": "margin"}),
    )

    with pytest.raises(AuthorizationError):
        engine.apply_action(rejected, Action.RESUBMIT_AFTER_REVISION, EST, {"totalHours": 5}, now=LATER)

    result = engine.apply_action(rejected, Action.RESUBMIT_AFTER_REVISION, COO, {"quoteValue": 900}, now=LATER)
    p = result.proposal

    assert p.status is ProposalStatus.PENDING_DIRECTOR_APPROVAL
    assert p.pricing.quote_value == 900
    assert len(p.revision_history) == 1
    entry = p.revision_history[0]
    assert entry.requested_by_role is Role.COO
    assert entry.reason == "margin"
    assert entry.resolved_by == "u-coo"
    assert [(n.type, n.recipient_role) for n in result.notifications] == [("revision_resubmitted", Role.DIRECTOR)]


def test_bdm_revision_edits_fields():
    rejected = _advance(
        _awaiting_approval(),
        (Action.DIRECTOR_REJECT, DIRECTOR, {"requiresRevisionBy": "bdm"}),
    )
    with pytest.raises(AuthorizationError):
        engine.apply_action(rejected, Action.RESUBMIT_AFTER_REVISION, OTHER_BDM, {}, now=LATER)

    p = engine.apply_action(
        rejected, Action.RESUBMIT_AFTER_REVISION, BDM, {"scopeOfWork": "Smaller scope"}, now=LATER
    ).proposal
    assert p.scope_of_work == "Smaller scope"


def test_edit_proposal_is_creator_only_and_before_estimation():
    p = _new()
    with pytest.raises(AuthorizationError):
        engine.apply_action(p, Action.EDIT_PROPOSAL, OTHER_BDM, {"projectName": "Q"}, now=LATER)

    edited = engine.apply_action(p, Action.EDIT_PROPOSAL, BDM, {"projectName": "Q", "country": ""}, now=LATER).proposal
    assert edited.project_name == "Q"
    assert edited.country is None
    assert edited.status is ProposalStatus.PENDING_ESTIMATION

    with pytest.raises(ValidationError):
        engine.apply_action(p, Action.EDIT_PROPOSAL, BDM, {"projectName": "  "}, now=LATER)

    advanced = _advance(p, (Action.ADD_ESTIMATION, EST, {"totalHours": 1}))
    with pytest.raises(ConflictError):
        engine.apply_action(advanced, Action.EDIT_PROPOSAL, BDM, {"projectName": "Q"}, now=LATER)


def test_job_outcomes_notify_coo_and_director():
    submitted = _advance(
        _awaiting_approval(),
        (Action.DIRECTOR_APPROVE, DIRECTOR, {}),
        (Action.SUBMIT_TO_CLIENT, BDM, {}),
    )
    assert submitted.status is ProposalStatus.SUBMITTED_TO_CLIENT

    won = engine.apply_action(submitted, Action.MARK_JOB_WON, BDM, {"contractValue": 5000}, now=LATER)
    assert won.proposal.status is ProposalStatus.WON
    assert won.proposal.job_outcome.contract_value == 5000
    assert {n.recipient_role for n in won.notifications} == {Role.COO, Role.DIRECTOR}

    with pytest.raises(ValidationError):
        engine.apply_action(submitted, Action.MARK_JOB_LOST, BDM, {}, now=LATER)

    lost = engine.apply_action(submitted, Action.MARK_JOB_LOST, BDM, {"reason": "price"}, now=LATER)
    assert lost.proposal.status is ProposalStatus.LOST
    assert lost.proposal.job_outcome.reason == "price"
    assert all(n.type == "job_lost" for n in lost.notifications)


def test_every_accepted_transition_appends_exactly_one_entry():
    p = _new()
    steps = [
        (Action.ADD_ESTIMATION, EST, {"totalHours": 10}),
        (Action.SET_PRICING, COO, {"quoteValue": 1000}),
        (Action.DIRECTOR_APPROVE, DIRECTOR, {}),
        (Action.SUBMIT_TO_CLIENT, BDM, {}),
        (Action.MARK_JOB_WON, BDM, {}),
    ]
    for action, actor, data in steps:
        before = len(p.change_log)
        result = engine.apply_action(p, action, actor, data, now=LATER)
        assert len(result.proposal.change_log) == before + 1
        assert result.proposal.change_log[:before] == p.change_log
        assert result.change_entry.action == action.value
        assert result.activity.type == f"proposal_{action.value}"
        p = result.proposal


def test_delete_rules():
    p = _new()
    assert engine.authorize_delete(p, BDM, now=LATER).type == "proposal_deleted"

    with pytest.raises(AuthorizationError):
        engine.authorize_delete(p, OTHER_BDM, now=LATER)
    with pytest.raises(AuthorizationError):
        engine.authorize_delete(p, EST, now=LATER)

    advanced = _advance(p, (Action.ADD_ESTIMATION, EST, {"totalHours": 1}))
    with pytest.raises(ConflictError):
        engine.authorize_delete(advanced, BDM, now=LATER)
    # Directors bypass the status restriction.
    engine.authorize_delete(advanced, DIRECTOR, now=LATER)


@pytest.mark.parametrize("raw", ["", "nope", "create", "delete", None])
def test_invalid_update_actions(raw):
    with pytest.raises(ValidationError) as exc:
        engine.parse_update_action(raw)
    assert "add_estimation" in exc.value.details["allowed"]


def test_actor_without_role_is_forbidden():
    with pytest.raises(AuthorizationError):
        engine.actor_from_claims("u1", "Someone", None)
    assert engine.actor_from_claims("u1", "", "Director").role is Role.DIRECTOR
