from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from secalert.lib.alerts import (
    AlertEngine,
    AlertLifecycleManager,
    AlertStore,
    EventBus,
    InMemoryAlertStore,
)
from secalert.lib.config import AppConfig, StorageConfig
from secalert.lib.data.db import initialize_database
from secalert.lib.logging_utils import setup_debug_logging
from secalert.lib.notifications.service import build_dispatcher
from secalert.lib.persistence import SqlAlertStore

logger = logging.getLogger("secalert.setup")


def build_store(storage: StorageConfig) -> AlertStore:
    if storage.backend == "sqlite" and storage.database is not None:
        engine = initialize_database(storage.database)
        logger.info("Using SQLite alert store at %s", Path(storage.database.path) / storage.database.name)
        return SqlAlertStore(engine)
    return InMemoryAlertStore()


def build_alert_engine(config: AppConfig, *, store: Optional[AlertStore] = None) -> AlertEngine:
    settings = config.secalert
    bus = EventBus()
    lifecycle = AlertLifecycleManager(store or build_store(settings.storage), bus=bus)
    dispatcher = build_dispatcher(settings.notifications)
    return AlertEngine(settings.rules, dispatcher, lifecycle, bus=bus)


def initialize_environment(
    config_data: Dict[str, Any],
    *,
    base_dir: Path,
) -> Tuple[AppConfig, AlertEngine]:
    """Parse configuration, set up logging and construct the alert engine."""
    app_config = AppConfig.from_dict(config_data, base_dir=base_dir)
    log_settings = app_config.secalert.logging
    setup_debug_logging(base_dir, level=log_settings.level, log_dir=log_settings.directory)
    engine = build_alert_engine(app_config)
    return app_config, engine
