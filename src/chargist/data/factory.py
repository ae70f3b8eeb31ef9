"""Select the charger store implementation from settings."""

from __future__ import annotations

import logging

from ..config import settings
from .memory_store import InMemoryChargerStore
from .store import ChargerStore

logger = logging.getLogger(__name__)


def create_store(backend: str | None = None) -> ChargerStore:
    backend = backend or settings.store_backend
    if backend == "supabase":
        # imported lazily so the memory backend runs without Supabase credentials
        from .supabase_store import SupabaseChargerStore

        logger.info("Using Supabase charger store")
        return SupabaseChargerStore()
    if backend == "memory":
        logger.info("Using in-memory charger store")
        return InMemoryChargerStore()
    raise ValueError(f"Unknown store backend '{backend}'")
