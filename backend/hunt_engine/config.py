from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    database_url: str = "sqlite:///./hunt_engine.db"
    engine_version: str = "2026-10-01.v1"
    request_id_header: str = "X-Request-ID"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- Billing ----
    platform_fee_percent: float = 5.0
    platform_fee_floor_cents: int = 50
    installments_min: int = 2
    installments_max: int = 12

    # ---- Auth / tenancy ----
    auth_mode: str = "dev"  # dev|jwt
    dev_auto_provision: bool = True

    dev_header_outfitter_slug: str = "X-Outfitter-Slug"
    dev_header_user_email: str = "X-User-Email"
    dev_header_user_role: str = "X-User-Role"

    # ---- JWT cookie ----
    jwt_secret: str = "dev-change-me"
    jwt_cookie_name: str = "hunt_engine_jwt"

    # ---- Signature service ----
    signature_base_url: str = "http://localhost:8090/v1"
    signature_api_key: str | None = None
    signature_timeout_seconds: float = 20.0
    signature_webhook_secret: str = "dev-webhook-secret"

    # ---- Celery ----
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"
    signature_poll_seconds: int = 300

    def model_post_init(self, __context) -> None:
        env = (self.app_env or "local").strip().lower()
        if env not in ("prod", "production"):
            return

        if (self.auth_mode or "").strip().lower() == "dev":
            raise ValueError("SECURITY: auth_mode=dev is not allowed in prod")

        origins = self.cors_allow_origins
        if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
            raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")

        if self.signature_webhook_secret == "dev-webhook-secret":
            raise ValueError("SECURITY: signature_webhook_secret must be set in prod")


settings = Settings()
