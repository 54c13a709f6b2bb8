# backend/hunt_engine/workers/signature_tasks.py
from __future__ import annotations

import logging
import random

from sqlalchemy import select

from ..clients.signature_service import HttpSignatureService, SignatureService
from ..db import SessionLocal
from ..domain.errors import CollaboratorError
from ..models import HuntContract
from ..services.contract_lifecycle import apply_signature_status, contracts_awaiting_signature
from .celery_app import celery_app

log = logging.getLogger(__name__)

RETRY_BASE_SECONDS = 5
RETRY_MAX_SECONDS = 120


def _backoff_seconds(retries: int) -> int:
    """Exponential backoff with +/- 20% jitter; retries is 0 for the first retry."""
    delay = min(RETRY_MAX_SECONDS, RETRY_BASE_SECONDS * (2 ** max(0, int(retries))))
    jitter = int(delay * 0.2)
    if jitter > 0:
        delay = max(1, delay + random.randint(-jitter, jitter))
    return delay


def sync_once(db, signer: SignatureService, *, limit: int = 200) -> dict:
    """
    Polls the signature service for every contract awaiting signatures and
    applies what it reports. A failing envelope is skipped and picked up
    again on the next sweep.
    """
    checked = advanced = failed = 0
    for c in contracts_awaiting_signature(db, limit=limit):
        checked += 1
        before = c.status
        try:
            status = signer.get_status(str(c.signature_tracking_ref))
        except CollaboratorError as e:
            failed += 1
            log.warning(
                "signature_poll_failed",
                extra={"contract_id": c.id, "outfitter_id": c.outfitter_id, "error": e.code},
            )
            continue
        apply_signature_status(db, c, status)
        if c.status != before:
            advanced += 1
    return {"checked": checked, "advanced": advanced, "failed": failed}


@celery_app.task(name="hunt_engine.workers.signature_tasks.sync_pending_signatures")
def sync_pending_signatures() -> dict:
    db = SessionLocal()
    try:
        res = sync_once(db, HttpSignatureService())
        log.info("signature_sweep_done", extra=res)
        return {"ok": True, **res}
    finally:
        db.close()


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=RETRY_BASE_SECONDS,
    name="hunt_engine.workers.signature_tasks.sync_contract_signature",
)
def sync_contract_signature(self, contract_id: int) -> dict:
    """Checks one contract right away, e.g. after the provider's redirect back."""
    db = SessionLocal()
    try:
        c = db.scalar(select(HuntContract).where(HuntContract.id == int(contract_id)))
        if c is None or not c.signature_tracking_ref:
            return {"ok": False, "reason": "contract_not_awaiting_signature"}

        try:
            status = HttpSignatureService().get_status(c.signature_tracking_ref)
        except CollaboratorError as e:
            if not e.retryable:
                return {"ok": False, "reason": e.code, "error": e.message}
            retries = int(getattr(self.request, "retries", 0) or 0)
            raise self.retry(exc=e, countdown=_backoff_seconds(retries))

        apply_signature_status(db, c, status)
        return {"ok": True, "contract_id": c.id, "status": c.status}
    finally:
        db.close()
