# backend/hunt_engine/domain/audit.py
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..models import AuditEvent, HuntContract, PaymentItem


def _dumps(v: Optional[dict[str, Any]]) -> Optional[str]:
    if v is None:
        return None
    return json.dumps(v, sort_keys=True, default=str)


def audit_write(
    db: Session,
    *,
    outfitter_id: int,
    actor_user_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: Any,
    before: Optional[dict[str, Any]] = None,
    after: Optional[dict[str, Any]] = None,
) -> AuditEvent:
    """
    Adds an audit row to the current transaction. Never commits: the row
    lands in the same commit as the change it describes, or not at all.
    """
    row = AuditEvent(
        outfitter_id=int(outfitter_id),
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        before_json=_dumps(before),
        after_json=_dumps(after),
        created_at=datetime.utcnow(),
    )
    db.add(row)
    return row


def contract_snapshot(c: HuntContract) -> dict[str, Any]:
    return {
        "id": c.id,
        "hunt_id": c.hunt_id,
        "status": c.status,
        "client_email": c.client_email,
        "signature_tracking_ref": c.signature_tracking_ref,
    }


def payment_snapshot(p: PaymentItem) -> dict[str, Any]:
    return {
        "id": p.id,
        "item_type": p.item_type,
        "status": p.status,
        "subtotal_cents": p.subtotal_cents,
        "platform_fee_cents": p.platform_fee_cents,
        "total_cents": p.total_cents,
        "amount_paid_cents": p.amount_paid_cents,
        "due_date": p.due_date,
    }
