"""
Builds the collaborators the use cases are injected with, from Settings.
"""

import logging

from transport_backend.application.config import Settings
from transport_backend.infrastructure.memory_store import InMemoryResourceStore
from transport_backend.infrastructure.store import ResourceStore
from transport_backend.infrastructure.supabase_store import SupabaseResourceStore
from transport_backend.infrastructure.whatsapp import CloudApiWhatsApp, NullWhatsApp, WhatsAppSender

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> ResourceStore:
    if settings.store_backend == "supabase":
        if not (settings.supabase_url and settings.supabase_service_key):
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY are required for the supabase store")
        logger.info("Using Supabase store at %s", settings.supabase_url)
        return SupabaseResourceStore.from_credentials(
            settings.supabase_url,
            settings.supabase_service_key,
            poll_seconds=settings.subscribe_poll_seconds,
        )
    if settings.store_backend != "memory":
        raise ValueError(f"Unknown store backend {settings.store_backend!r} (expected 'memory' or 'supabase')")
    logger.info("Using in-memory store; data is lost on restart")
    return InMemoryResourceStore()


def build_whatsapp(settings: Settings) -> WhatsAppSender:
    if not settings.whatsapp_enabled:
        logger.info("WhatsApp not configured; template messages are skipped")
        return NullWhatsApp()
    return CloudApiWhatsApp(
        access_token=settings.whatsapp_access_token,
        phone_number_id=settings.whatsapp_phone_number_id,
        api_version=settings.whatsapp_api_version,
        api_url=settings.whatsapp_api_url,
    )
