"""Process startup: logging, store, schema and the first admin account."""

from timing_remote.auth.bootstrap import ensure_bootstrap_admin
from timing_remote.config import Settings, get_settings
from timing_remote.core.logging import get_logger, setup_logging
from timing_remote.db import MigrationRunner, open_store
from timing_remote.db.store import SQLStore

logger = get_logger(__name__)


def initialize(settings: Settings | None = None, configure_logging: bool = True) -> SQLStore:
    """Open the configured store with its schema current and an admin present.

    The store is closed again if any later step fails.
    """
    settings = settings or get_settings()
    if configure_logging:
        setup_logging(settings.log_level, settings.log_json, settings.log_file)

    store = open_store(settings)
    try:
        store.ping()
        version = MigrationRunner(store).ensure_schema()
        ensure_bootstrap_admin(store, settings)
    except Exception:
        store.close()
        raise
    logger.info(
        "Store ready",
        data={"backend": store.backend, "schema_version": version, "environment": settings.environment},
    )
    return store
