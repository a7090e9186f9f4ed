from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # Client
    api_origin: str = "http://localhost:3000"
    subscriptions_api_base: str = "/api/subscriptions"
    tenants_api_base: str = "/api/tenants"
    session_cookie_name: str = "edpsych_session"
    session_token: str = ""
    request_timeout: float | None = None  # None = wait until the server answers

    # Sandbox server
    host: str = "0.0.0.0"
    port: int = 8095
    log_level: str = "info"
    sandbox_session_token: str = ""  # empty = any non-empty session cookie is accepted

    # Sandbox billing
    checkout_base_url: str = "https://billing.sandbox.edpsychconnect.local/checkout"
    billing_portal_url: str = "https://billing.sandbox.edpsychconnect.local/portal"
    invoice_base_url: str = "https://billing.sandbox.edpsychconnect.local/invoices"
    reactivation_window_days: int = 30

    # Sandbox invitations
    invitation_expiry_hours: int = 168

    # CORS
    cors_origins: List[str] = ["http://localhost:3000"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
