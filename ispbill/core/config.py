# ispbill/core/config.py
"""
Application settings.
Values come from environment variables or the .env file at the project root.
Payment gateway credentials are never hard-coded: every key below defaults
to an empty string and the adapters refuse to authenticate without them.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_env: str = "development"
    log_level: str = "INFO"
    # Public base URL, used for customer redirect links after checkout
    app_url: str = "http://localhost:8000"
    # If unset, db/engine.py falls back to SQLite in data/db/
    database_url: str | None = None

    # --- Payment gateways ---
    payment_gateway_default: str = "midtrans"
    gateway_timeout_seconds: float = 15.0

    midtrans_server_key: str = ""
    midtrans_client_key: str = ""
    midtrans_is_production: bool = False

    xendit_secret_key: str = ""
    xendit_webhook_token: str = ""

    tripay_api_key: str = ""
    tripay_private_key: str = ""
    tripay_merchant_code: str = ""
    tripay_is_production: bool = False
    tripay_method: str = "BRIVA"

    # --- Billing ---
    billing_cycle_days: int = 30
    billing_grace_period_days: int = 3
    billing_invoice_time: str = "00:00"
    billing_isolation_time: str = "01:00"

    @property
    def midtrans_snap_url(self) -> str:
        if self.midtrans_is_production:
            return "https://app.midtrans.com/snap/v1"
        return "https://app.sandbox.midtrans.com/snap/v1"

    @property
    def midtrans_api_url(self) -> str:
        if self.midtrans_is_production:
            return "https://api.midtrans.com"
        return "https://api.sandbox.midtrans.com"

    @property
    def tripay_base_url(self) -> str:
        if self.tripay_is_production:
            return "https://tripay.co.id/api"
        return "https://tripay.co.id/api-sandbox"


@lru_cache
def get_settings() -> Settings:
    return Settings()
