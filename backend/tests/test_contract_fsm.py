# backend/tests/test_contract_fsm.py
from __future__ import annotations

import pytest

from hunt_engine.domain.contract_fsm import ContractStatus, TransitionGuards, is_editable, transition
from hunt_engine.domain.errors import StateError, ValidationError

READY = TransitionGuards(
    template_exists=True,
    hunt_linked=True,
    booking_complete=True,
    has_plan_selection=True,
    signature_sent=True,
    client_signature=True,
    admin_signature=True,
)


def test_happy_path_through_signature():
    st = ContractStatus.DRAFT
    for event in ("open_for_client", "client_submit", "approve", "send_for_signature", "client_signed", "admin_signed"):
        st = transition(st, event, READY)
    assert st is ContractStatus.FULLY_EXECUTED


def test_booking_completed_skips_client_completion():
    assert transition("draft", "booking_completed", READY) is ContractStatus.PENDING_ADMIN_REVIEW


def test_reject_returns_to_client():
    assert transition("pending_admin_review", "reject") is ContractStatus.PENDING_CLIENT_COMPLETION


def test_open_requires_template_then_hunt():
    with pytest.raises(ValidationError) as ei:
        transition("draft", "open_for_client", TransitionGuards(hunt_linked=True))
    assert ei.value.code == "TemplateRequired"

    with pytest.raises(ValidationError) as ei:
        transition("draft", "open_for_client", TransitionGuards(template_exists=True))
    assert ei.value.code == "HuntNotLinked"


def test_booking_completed_requires_complete_booking():
    with pytest.raises(ValidationError) as ei:
        transition("draft", "booking_completed", TransitionGuards(hunt_linked=True))
    assert ei.value.code == "BookingIncomplete"


def test_client_submit_requires_selection():
    with pytest.raises(ValidationError) as ei:
        transition("pending_client_completion", "client_submit", TransitionGuards())
    assert ei.value.code == "MissingSelection"


def test_signature_events_require_reported_signatures():
    with pytest.raises(StateError) as ei:
        transition("client_signed", "admin_signed", TransitionGuards(client_signature=True))
    assert ei.value.code == "AdminNotSigned"


def test_illegal_transition_lists_legal_events():
    with pytest.raises(StateError) as ei:
        transition("draft", "approve", READY)
    assert ei.value.code == "IllegalTransition"
    assert ei.value.details["legal_events"] == ["open_for_client", "booking_completed", "cancel"]


@pytest.mark.parametrize("status", [s.value for s in ContractStatus])
def test_cancel_is_legal_from_every_state(status):
    assert transition(status, "cancel") is ContractStatus.CANCELLED


def test_editable_until_approved():
    assert is_editable("pending_admin_review")
    assert not is_editable("ready_for_signature")
    assert not is_editable("cancelled")


def test_unknown_status_is_a_state_error():
    with pytest.raises(StateError):
        transition("archived", "cancel")
