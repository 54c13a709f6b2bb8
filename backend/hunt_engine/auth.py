# backend/hunt_engine/auth.py
from __future__ import annotations

import base64
import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .models import AppUser, Outfitter, OutfitterMembership


@dataclass(frozen=True)
class Principal:
    outfitter_id: int
    outfitter_slug: str
    user_id: int
    email: str
    role: str  # client | guide | admin | owner

    @property
    def is_staff(self) -> bool:
        return ROLE_ORDER.get(self.role, 0) >= ROLE_ORDER["admin"]


ROLE_ORDER = {"client": 1, "guide": 2, "admin": 3, "owner": 4}


def _require_role(principal: Principal, min_role: str) -> None:
    if ROLE_ORDER.get(principal.role, 0) < ROLE_ORDER.get(min_role, 999):
        raise HTTPException(status_code=403, detail=f"Requires role >= {min_role}")


# -------------------------
# JWT helpers
# -------------------------
def _b64(x: bytes) -> str:
    return base64.urlsafe_b64encode(x).decode().rstrip("=")


def _ub64(s: str) -> bytes:
    return base64.urlsafe_b64decode((s + "=" * (-len(s) % 4)).encode())


def jwt_sign(payload: dict[str, Any]) -> str:
    # HS256 only; tokens are minted by the platform's login service
    header_b = _b64(json.dumps({"alg": "HS256", "typ": "JWT"}, separators=(",", ":")).encode())
    payload_b = _b64(json.dumps(payload, separators=(",", ":")).encode())
    msg = f"{header_b}.{payload_b}".encode()
    sig = hmac.new(settings.jwt_secret.encode(), msg, hashlib.sha256).digest()
    return f"{header_b}.{payload_b}.{_b64(sig)}"


def jwt_verify(token: str) -> dict[str, Any]:
    try:
        header_b, payload_b, sig_b = token.split(".", 2)
        msg = f"{header_b}.{payload_b}".encode()
        expected = hmac.new(settings.jwt_secret.encode(), msg, hashlib.sha256).digest()
        if not hmac.compare_digest(_ub64(sig_b), expected):
            raise HTTPException(status_code=401, detail="Invalid token signature")

        payload = json.loads(_ub64(payload_b).decode())
        exp = payload.get("exp")
        if exp is not None and int(exp) < int(datetime.utcnow().timestamp()):
            raise HTTPException(status_code=401, detail="Token expired")
        return dict(payload)
    except HTTPException:
        raise
    except (ValueError, TypeError, json.JSONDecodeError):
        raise HTTPException(status_code=401, detail="Invalid token")


# -------------------------
# Outfitter + membership helpers
# -------------------------
def _resolve_outfitter(db: Session, slug: str) -> Outfitter:
    row = db.scalar(select(Outfitter).where(Outfitter.slug == slug))
    if row:
        return row
    raise HTTPException(status_code=401, detail="Unknown outfitter")


def _get_membership(db: Session, outfitter_id: int, user_id: int) -> OutfitterMembership | None:
    return db.scalar(
        select(OutfitterMembership).where(
            OutfitterMembership.outfitter_id == outfitter_id,
            OutfitterMembership.user_id == user_id,
        )
    )


def _principal(outfitter: Outfitter, user: AppUser, mem: OutfitterMembership) -> Principal:
    return Principal(
        outfitter_id=int(outfitter.id),
        outfitter_slug=str(outfitter.slug),
        user_id=int(user.id),
        email=str(user.email).strip().lower(),
        role=str(mem.role),
    )


def _dev_principal(db: Session, *, slug: str, email: str, role_hint: str) -> Principal:
    outfitter = db.scalar(select(Outfitter).where(Outfitter.slug == slug))
    if outfitter is None and settings.dev_auto_provision:
        outfitter = Outfitter(slug=slug, name=slug, created_at=datetime.utcnow())
        db.add(outfitter)
        db.commit()

    user = db.scalar(select(AppUser).where(AppUser.email == email))
    if user is None and settings.dev_auto_provision:
        user = AppUser(email=email, display_name=email.split("@")[0], created_at=datetime.utcnow())
        db.add(user)
        db.commit()

    if outfitter is None or user is None:
        raise HTTPException(status_code=401, detail="Dev auth could not provision user/outfitter")

    mem = _get_membership(db, int(outfitter.id), int(user.id))
    if mem is None and settings.dev_auto_provision:
        mem = OutfitterMembership(
            outfitter_id=int(outfitter.id),
            user_id=int(user.id),
            role=role_hint if role_hint in ROLE_ORDER else "client",
            created_at=datetime.utcnow(),
        )
        db.add(mem)
        db.commit()
    if mem is None:
        raise HTTPException(status_code=403, detail="Not a member of this outfitter")

    return _principal(outfitter, user, mem)


# -------------------------
# get_principal
# -------------------------
def get_principal(
    request: Request,
    db: Session = Depends(get_db),
    x_outfitter_slug: Optional[str] = Header(default=None, alias="X-Outfitter-Slug"),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> Principal:
    """
    Auth modes supported (in priority order):
      1) JWT cookie (HttpOnly) OR Authorization: Bearer <token>
      2) dev header spoofing (ONLY if settings.auth_mode == "dev")
    """
    slug = str(x_outfitter_slug or "").strip()
    if not slug:
        raise HTTPException(status_code=401, detail="Missing X-Outfitter-Slug (active outfitter context).")

    token = request.cookies.get(settings.jwt_cookie_name) if settings.jwt_cookie_name else None
    if not token and authorization and str(authorization).lower().startswith("bearer "):
        token = str(authorization).split(" ", 1)[1].strip()

    if token:
        claims = jwt_verify(token)
        sub = str(claims.get("sub") or "")
        if not sub.isdigit():
            raise HTTPException(status_code=401, detail="Token missing sub")

        user = db.scalar(select(AppUser).where(AppUser.id == int(sub)))
        if user is None:
            raise HTTPException(status_code=401, detail="Unknown user")

        outfitter = _resolve_outfitter(db, slug)
        mem = _get_membership(db, int(outfitter.id), int(user.id))
        if mem is None:
            raise HTTPException(status_code=403, detail="Not a member of this outfitter")
        return _principal(outfitter, user, mem)

    if settings.auth_mode == "dev":
        email = (request.headers.get(settings.dev_header_user_email) or "").strip().lower()
        role_hint = (request.headers.get(settings.dev_header_user_role) or "client").strip().lower()
        if not email:
            raise HTTPException(status_code=401, detail="Missing X-User-Email for dev auth")
        return _dev_principal(db, slug=slug, email=email, role_hint=role_hint)

    raise HTTPException(status_code=401, detail="Not authenticated")


def require_admin(p: Principal = Depends(get_principal)) -> Principal:
    _require_role(p, "admin")
    return p
