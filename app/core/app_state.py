from __future__ import annotations

import logging
from typing import Optional

from app.adapters.base import ClientFactory, load_client_factory
from app.config import Settings, get_settings
from app.core.notifications import NotificationHub
from app.core.pipeline import IngestionPipeline
from app.core.registry import SessionRegistry
from app.db import DatabaseManager, db_manager
from app.services.media_store import MediaStore
from app.services.session_supervisor import SessionSupervisor

logger = logging.getLogger(__name__)


class AppState:
    """Process-wide wiring of the ingestion components."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        database: Optional[DatabaseManager] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.database = database or db_manager
        if client_factory is None and self.settings.whatsapp_client_factory:
            client_factory = load_client_factory(self.settings.whatsapp_client_factory)

        self.hub = NotificationHub(queue_size=self.settings.notification_queue_size)
        self.registry = SessionRegistry()
        self.media_store = MediaStore(self.settings.media_dir)
        self.pipeline = IngestionPipeline(
            self.database.db_session,
            self.media_store,
            self.hub,
            individual_suffix=self.settings.whatsapp_individual_suffix,
            group_suffix=self.settings.whatsapp_group_suffix,
        )
        self.supervisor = SessionSupervisor(
            self.pipeline,
            self.hub,
            self.database.db_session,
            client_factory=client_factory,
            registry=self.registry,
            startup_timeout=self.settings.session_startup_timeout_seconds,
            session_name_prefix=self.settings.session_name_prefix,
            individual_suffix=self.settings.whatsapp_individual_suffix,
        )
