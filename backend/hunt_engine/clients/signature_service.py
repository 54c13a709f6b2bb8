# backend/hunt_engine/clients/signature_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from ..config import settings
from ..domain.errors import CollaboratorError

log = logging.getLogger(__name__)

COLLABORATOR = "signature_service"


@dataclass(frozen=True)
class SignatureEnvelope:
    tracking_ref: str


@dataclass(frozen=True)
class SignatureStatus:
    client_signed: bool
    admin_signed: bool


class SignatureService(Protocol):
    def send(self, contract_id: int) -> SignatureEnvelope: ...

    def get_status(self, tracking_ref: str) -> SignatureStatus: ...


class HttpSignatureService:
    """
    Thin httpx client for the e-signature provider.

    Transport failures and 5xx answers are retryable; 4xx answers are not
    (the provider rejected the request itself).
    """

    def __init__(self, base_url: str | None = None, api_key: str | None = None, timeout: float | None = None) -> None:
        self.base = (base_url or settings.signature_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.signature_api_key
        self.timeout = float(timeout or settings.signature_timeout_seconds)

    def _headers(self) -> dict[str, str]:
        return {"X-Api-Key": self.api_key} if self.api_key else {}

    def _request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        url = f"{self.base}{path}"
        try:
            with httpx.Client(timeout=self.timeout) as client:
                r = client.request(method, url, json=payload, headers=self._headers())
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPStatusError as e:
            code = e.response.status_code
            log.warning("signature_service_http_error", extra={"status_code": code})
            raise CollaboratorError(
                f"signature service answered {code}",
                collaborator=COLLABORATOR,
                retryable=code >= 500,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            log.warning("signature_service_unreachable", extra={"error": type(e).__name__})
            raise CollaboratorError(
                f"signature service unavailable: {type(e).__name__}",
                collaborator=COLLABORATOR,
                retryable=True,
            ) from e

        if not isinstance(data, dict):
            raise CollaboratorError("signature service returned a non-object body", collaborator=COLLABORATOR)
        return data

    def send(self, contract_id: int) -> SignatureEnvelope:
        data = self._request("POST", "/envelopes", {"contract_id": int(contract_id)})
        ref = data.get("tracking_ref") or data.get("trackingRef")
        if not ref:
            raise CollaboratorError("signature service did not return a tracking ref", collaborator=COLLABORATOR)
        return SignatureEnvelope(tracking_ref=str(ref))

    def get_status(self, tracking_ref: str) -> SignatureStatus:
        data = self._request("GET", f"/envelopes/{tracking_ref}")
        return SignatureStatus(
            client_signed=bool(data.get("client_signed", data.get("clientSigned", False))),
            admin_signed=bool(data.get("admin_signed", data.get("adminSigned", False))),
        )


def get_signature_service() -> SignatureService:
    return HttpSignatureService()
