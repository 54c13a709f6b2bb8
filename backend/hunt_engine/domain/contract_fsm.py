# backend/hunt_engine/domain/contract_fsm.py
"""
Hunt contract state machine.

Every legal (state, event) pair and every guard lives here; services call
`transition()` and never compare status strings themselves.

    draft ──open_for_client──▶ pending_client_completion ──client_submit──▶ pending_admin_review
      │                                   ▲                                      │
      └──────────booking_completed────────┼──────────────────────────────────────┤
                                          └────────────reject────────────────────┤
                                                                              approve
                                                                                 ▼
    fully_executed ◀──admin_signed── client_signed ◀──client_signed── sent_to_signature_service
                                                                                 ▲
                                                         ready_for_signature ──send_for_signature

    cancel: any state -> cancelled (no-op when already cancelled)
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import StateError, ValidationError


class ContractStatus(str, Enum):
    DRAFT = "draft"
    PENDING_CLIENT_COMPLETION = "pending_client_completion"
    PENDING_ADMIN_REVIEW = "pending_admin_review"
    READY_FOR_SIGNATURE = "ready_for_signature"
    SENT_TO_SIGNATURE_SERVICE = "sent_to_signature_service"
    CLIENT_SIGNED = "client_signed"
    FULLY_EXECUTED = "fully_executed"
    CANCELLED = "cancelled"


class ContractEvent(str, Enum):
    OPEN_FOR_CLIENT = "open_for_client"
    BOOKING_COMPLETED = "booking_completed"
    CLIENT_SUBMIT = "client_submit"
    APPROVE = "approve"
    REJECT = "reject"
    SEND_FOR_SIGNATURE = "send_for_signature"
    CLIENT_SIGNED = "client_signed"
    ADMIN_SIGNED = "admin_signed"
    CANCEL = "cancel"


S = ContractStatus
E = ContractEvent

TRANSITIONS: dict[tuple[ContractStatus, ContractEvent], ContractStatus] = {
    (S.DRAFT, E.OPEN_FOR_CLIENT): S.PENDING_CLIENT_COMPLETION,
    (S.DRAFT, E.BOOKING_COMPLETED): S.PENDING_ADMIN_REVIEW,
    (S.PENDING_CLIENT_COMPLETION, E.CLIENT_SUBMIT): S.PENDING_ADMIN_REVIEW,
    (S.PENDING_ADMIN_REVIEW, E.APPROVE): S.READY_FOR_SIGNATURE,
    (S.PENDING_ADMIN_REVIEW, E.REJECT): S.PENDING_CLIENT_COMPLETION,
    (S.READY_FOR_SIGNATURE, E.SEND_FOR_SIGNATURE): S.SENT_TO_SIGNATURE_SERVICE,
    (S.SENT_TO_SIGNATURE_SERVICE, E.CLIENT_SIGNED): S.CLIENT_SIGNED,
    (S.CLIENT_SIGNED, E.ADMIN_SIGNED): S.FULLY_EXECUTED,
}

# The client may still change plan/dates until an admin approves.
EDITABLE_STATES = frozenset({S.DRAFT, S.PENDING_CLIENT_COMPLETION, S.PENDING_ADMIN_REVIEW})

AWAITING_SIGNATURE_STATES = frozenset({S.SENT_TO_SIGNATURE_SERVICE, S.CLIENT_SIGNED})


@dataclass(frozen=True)
class TransitionGuards:
    """Facts about the contract that guarded transitions depend on."""

    template_exists: bool = False
    hunt_linked: bool = False
    booking_complete: bool = False
    has_plan_selection: bool = False
    signature_sent: bool = False
    client_signature: bool = False
    admin_signature: bool = False


def parse_status(v: object) -> ContractStatus:
    try:
        return ContractStatus(str(getattr(v, "value", v)))
    except ValueError:
        raise StateError(f"unknown contract status '{v}'", code="UnknownStatus")


def legal_events(state: ContractStatus) -> list[ContractEvent]:
    out = [ev for (st, ev) in TRANSITIONS if st is state]
    out.append(E.CANCEL)
    return out


def _guard_failed(msg: str, code: str) -> ValidationError:
    return ValidationError(msg, code=code)


def _check_guards(state: ContractStatus, event: ContractEvent, g: TransitionGuards) -> None:
    if event is E.OPEN_FOR_CLIENT:
        if not g.template_exists:
            raise _guard_failed("an active hunt contract template is required before opening for the client", "TemplateRequired")
        if not g.hunt_linked:
            raise _guard_failed("the contract must be linked to a hunt before opening for the client", "HuntNotLinked")

    elif event is E.BOOKING_COMPLETED:
        if not g.hunt_linked:
            raise _guard_failed("the contract must be linked to a hunt", "HuntNotLinked")
        if not g.booking_complete:
            raise _guard_failed("the hunt needs a selected plan and valid dates", "BookingIncomplete")

    elif event is E.CLIENT_SUBMIT:
        if not g.has_plan_selection:
            raise _guard_failed("a guide-fee plan must be selected before submitting", "MissingSelection")

    elif event is E.SEND_FOR_SIGNATURE:
        if not g.signature_sent:
            raise StateError("the signature service has not accepted this contract", code="SignatureNotSent")

    elif event is E.CLIENT_SIGNED:
        if not g.client_signature:
            raise StateError("no client signature reported by the signature service", code="ClientNotSigned")

    elif event is E.ADMIN_SIGNED:
        if not g.admin_signature:
            raise StateError("no outfitter signature reported by the signature service", code="AdminNotSigned")


def transition(
    state: object,
    event: object,
    guards: Optional[TransitionGuards] = None,
) -> ContractStatus:
    """(current state, event) -> new state, or raise StateError / ValidationError."""
    st = parse_status(state)
    try:
        ev = ContractEvent(str(getattr(event, "value", event)))
    except ValueError:
        raise StateError(f"unknown contract event '{event}'", code="UnknownEvent")

    if ev is E.CANCEL:
        return S.CANCELLED

    nxt = TRANSITIONS.get((st, ev))
    if nxt is None:
        legal = [x.value for x in legal_events(st)]
        raise StateError(
            f"cannot {ev.value} a contract in status '{st.value}'; legal actions: {', '.join(legal)}",
            code="IllegalTransition",
            details={"status": st.value, "event": ev.value, "legal_events": legal},
        )

    _check_guards(st, ev, guards or TransitionGuards())
    return nxt


def is_editable(state: object) -> bool:
    return parse_status(state) in EDITABLE_STATES
