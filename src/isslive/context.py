"""Process-wide collaborators, built once at startup and passed explicitly."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from isslive.catalog import Catalog, load_catalog
from isslive.config import Settings
from isslive.db import Database
from isslive.feed.base import Feed
from isslive.ingest import IngestAdapter
from isslive.query import QueryService
from isslive.store import RetentionStore

logger = structlog.get_logger()


@dataclass
class AppContext:
    settings: Settings
    database: Database
    store: RetentionStore
    catalog: Catalog
    query: QueryService
    ingest: IngestAdapter
    feed: Feed | None = None

    def start_ingest(self) -> None:
        if self.feed is None:
            logger.info("No feed configured, ingest disabled")
            return
        try:
            self.ingest.start(self.feed)
        except Exception:
            logger.exception("Feed subscription failed")

    def close(self) -> None:
        self.ingest.stop()
        disconnect = getattr(self.feed, "disconnect", None)
        if callable(disconnect):
            disconnect()
        self.database.dispose()


def build_context(settings: Settings, feed: Feed | None = None) -> AppContext:
    database = Database(settings.database_url, busy_timeout=settings.sqlite_busy_timeout_seconds)
    store = RetentionStore(database, retention_cap=settings.retention_cap)
    catalog = load_catalog(settings.catalog_path, encoding=settings.catalog_encoding)
    return AppContext(
        settings=settings,
        database=database,
        store=store,
        catalog=catalog,
        query=QueryService(store),
        ingest=IngestAdapter(store, catalog),
        feed=feed,
    )


def build_lightstreamer_feed(settings: Settings) -> Feed:
    from isslive.feed.lightstreamer import LightstreamerFeed

    return LightstreamerFeed(settings.feed_server_url, settings.feed_adapter_set)
