"""
Default configuration for the route workflow, plus environment settings.
One place so API, use cases and stores do not duplicate values.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from transport_backend.domain.constraints import AssignmentPolicy, SafetyScorePolicy

# .env at the repository root, if present
_env_path = Path(__file__).resolve().parents[2] / ".env"
if _env_path.exists():
    load_dotenv(_env_path)

DEFAULT_ASSIGNMENT_POLICY = AssignmentPolicy()
DEFAULT_SAFETY_SCORE_POLICY = SafetyScorePolicy()

# WhatsApp templates (pre-approved on the provider side)
TEMPLATE_DRIVER_ASSIGNED = "driver_assigned"  # {{1}} driver name, {{2}} route id
TEMPLATE_ROUTE_COMPLETED = "route_completed"  # {{1}} route id, {{2}} earnings, {{3}} completion time

DEFAULT_CURRENCY = "NGN"

CORS_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:3000",
]

# Polling interval for stores without push subscriptions (seconds)
DEFAULT_SUBSCRIBE_POLL_SECONDS = 2.0


def _float_env(key: str, default: float) -> float:
    val = os.environ.get(key)
    if val is None or val == "":
        return default
    try:
        return max(0.1, float(val))
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    store_backend: str = "memory"  # "memory" | "supabase"
    supabase_url: str = ""
    supabase_service_key: str = ""
    whatsapp_access_token: str = ""
    whatsapp_phone_number_id: str = ""
    whatsapp_api_version: str = "v18.0"
    whatsapp_api_url: str = "https://graph.facebook.com"
    subscribe_poll_seconds: float = DEFAULT_SUBSCRIBE_POLL_SECONDS
    log_level: str = "INFO"

    @property
    def whatsapp_enabled(self) -> bool:
        return bool(self.whatsapp_access_token and self.whatsapp_phone_number_id)


def load_settings() -> Settings:
    return Settings(
        store_backend=os.environ.get("TRANSPORT_STORE_BACKEND", "memory").strip().lower(),
        supabase_url=os.environ.get("SUPABASE_URL", ""),
        supabase_service_key=os.environ.get("SUPABASE_SERVICE_KEY", ""),
        whatsapp_access_token=os.environ.get("WHATSAPP_ACCESS_TOKEN", ""),
        whatsapp_phone_number_id=os.environ.get("WHATSAPP_PHONE_NUMBER_ID", ""),
        whatsapp_api_version=os.environ.get("WHATSAPP_API_VERSION", "v18.0"),
        subscribe_poll_seconds=_float_env("SUBSCRIBE_POLL_SECONDS", DEFAULT_SUBSCRIBE_POLL_SECONDS),
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    """Call once at the entry point."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
