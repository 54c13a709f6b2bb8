# backend/hunt_engine/services/contract_locks.py
from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..domain.errors import AuthorizationError
from ..models import HuntContract


def lock_contract(db: Session, *, contract_id: int) -> HuntContract:
    """
    Claims a contract for the rest of the current transaction.

    Every write to a contract's billing arrangement (bill creation, refresh,
    payment plan, payment, cancellation) calls this inside its unit_of_work
    before re-reading what it depends on. The claim is an UPDATE of the
    contract row: Postgres holds the row lock and SQLite the database write
    lock until commit/rollback, so a second writer waits here and then sees
    the first one's rows.

    Returns the contract reloaded from the database.
    """
    res = db.execute(
        update(HuntContract)
        .where(HuntContract.id == int(contract_id))
        .values(lock_version=HuntContract.lock_version + 1)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        raise AuthorizationError("contract")

    return db.scalar(
        select(HuntContract)
        .where(HuntContract.id == int(contract_id))
        .execution_options(populate_existing=True)
    )
