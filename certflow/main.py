# certflow/main.py
"""
Service entry point.

    python -m certflow.main
"""
import logging
import sys

import uvicorn

from certflow.api import create_app
from certflow.application.registry import build_registry
from certflow.config import ConfigError, Settings
from certflow.infra.eventlog import EventStore
from certflow.logging_config import configure_logging

logger = logging.getLogger(__name__)


def build_app(settings: Settings):
    event_store = EventStore(settings.event_store_url)
    event_store.open()
    registry = build_registry(settings, sinks=[event_store])
    logger.info(registry.describe())
    return create_app(settings, registry, event_store)


def main() -> int:
    configure_logging()
    try:
        settings = Settings.from_env()
    except ConfigError as e:
        logger.error(f"failed to load configuration: {e}")
        return 1

    configure_logging(settings.log_level, settings.log_json)
    app = build_app(settings)
    logger.info(f"server starting: port={settings.port}")
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_config=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
