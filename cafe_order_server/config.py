"""Runtime configuration loaded from environment variables."""

import os
from typing import Optional

from pydantic import BaseModel, Field

from .errors import ConfigurationError

TRUE_VALUES = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Server settings."""

    supabase_url: str = Field(description="Project URL of the hosted database")
    supabase_key: str = Field(description="API key sent as apikey and bearer token")
    request_timeout: float = Field(default=10.0, gt=0, description="Timeout for store calls, seconds")
    poll_interval: float = Field(default=10.0, gt=0, description="Order tracking poll interval, seconds")
    enforce_required_options: bool = Field(
        default=False, description="Reject cart items whose required option groups have no selection"
    )
    default_payment_method: str = Field(default="credit_card")
    session_file: Optional[str] = Field(default=None, description="Guest profile file (default: ~/.cafe_order_session.json)")

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from the environment.

        Raises:
            ConfigurationError: If SUPABASE_URL or SUPABASE_ANON_KEY is not set
        """
        url = os.environ.get("SUPABASE_URL")
        key = os.environ.get("SUPABASE_ANON_KEY")
        if not url or not key:
            raise ConfigurationError("SUPABASE_URL and SUPABASE_ANON_KEY must be set")

        values = {"supabase_url": url, "supabase_key": key}
        if os.environ.get("CAFE_REQUEST_TIMEOUT"):
            values["request_timeout"] = os.environ["CAFE_REQUEST_TIMEOUT"]
        if os.environ.get("CAFE_POLL_INTERVAL"):
            values["poll_interval"] = os.environ["CAFE_POLL_INTERVAL"]
        if os.environ.get("CAFE_ENFORCE_REQUIRED_OPTIONS"):
            values["enforce_required_options"] = (
                os.environ["CAFE_ENFORCE_REQUIRED_OPTIONS"].strip().lower() in TRUE_VALUES
            )
        if os.environ.get("CAFE_DEFAULT_PAYMENT_METHOD"):
            values["default_payment_method"] = os.environ["CAFE_DEFAULT_PAYMENT_METHOD"]
        if os.environ.get("CAFE_SESSION_FILE"):
            values["session_file"] = os.environ["CAFE_SESSION_FILE"]

        try:
            return cls(**values)
        except ValueError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
