"""
Ecological Profile Persistence

PersistenceService interface plus PostgreSQL and in-memory stores.
"""

import logging

from ecoprofile import config

from .memory import InMemoryPersistence
from .postgres import PostgresPersistence
from .service import PersistenceService

logger = logging.getLogger(__name__)


def build_persistence() -> PersistenceService:
    """PostgreSQL when DATABASE_URL is set, otherwise a process-local store."""
    if config.DATABASE_URL:
        return PostgresPersistence(config.DATABASE_URL)
    logger.warning("DATABASE_URL not set; using in-memory persistence (dev mode)")
    return InMemoryPersistence()


__all__ = [
    "PersistenceService",
    "PostgresPersistence",
    "InMemoryPersistence",
    "build_persistence",
]
