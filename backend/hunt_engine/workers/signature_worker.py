# backend/hunt_engine/workers/signature_worker.py
from __future__ import annotations

from ..clients.signature_service import HttpSignatureService
from ..db import SessionLocal
from .signature_tasks import sync_once


def main(limit: int = 200) -> None:
    """
    Manual sweep (CLI):
    - useful in dev without celery beat running
    - same code path as the periodic task
    """
    db = SessionLocal()
    try:
        res = sync_once(db, HttpSignatureService(), limit=limit)
        print(f"[signature_worker] checked={res['checked']} advanced={res['advanced']} failed={res['failed']}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
