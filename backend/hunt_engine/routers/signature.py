# backend/hunt_engine/routers/signature.py
from __future__ import annotations

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from ..clients.signature_service import SignatureStatus
from ..config import settings
from ..db import get_db
from ..schemas import SignatureWebhookIn, SignatureWebhookOut
from ..services.contract_lifecycle import apply_signature_status, find_by_tracking_ref

log = logging.getLogger(__name__)

router = APIRouter(prefix="/signature", tags=["signature"])


@router.post("/webhook", response_model=SignatureWebhookOut)
def signature_webhook(
    payload: SignatureWebhookIn,
    db: Session = Depends(get_db),
    x_signature_secret: Optional[str] = Header(default=None, alias="X-Signature-Secret"),
):
    if not hmac.compare_digest(str(x_signature_secret or ""), settings.signature_webhook_secret):
        raise HTTPException(status_code=401, detail="Invalid webhook secret")

    c = find_by_tracking_ref(db, payload.tracking_ref)
    if c is None:
        # unknown envelopes are acknowledged so the provider stops redelivering
        log.warning("signature_webhook_unknown_ref", extra={"tracking_ref": payload.tracking_ref})
        return {"ok": False}

    apply_signature_status(
        db,
        c,
        SignatureStatus(client_signed=payload.client_signed, admin_signed=payload.admin_signed),
    )
    return {"ok": True, "contract_id": c.id, "status": c.status}
