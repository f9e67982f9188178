"""Feed ingestion - one sample row per telemetry update."""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog

from isslive.catalog import DEFAULT_ITEMS, Catalog
from isslive.feed.base import Feed, FeedDeliveryError, FeedSubscription, FeedUpdate
from isslive.store import InsertResult, RetentionStore, StorageUnavailable

logger = structlog.get_logger()

VALUE_FIELD = "Value"
SUBSCRIBED_FIELDS = [VALUE_FIELD]


def now_ms() -> int:
    return int(time.time() * 1000)


class IngestAdapter:
    """Writes feed updates to the store, stamped with their receipt time.

    The feed's own TimeStamp and Status fields are not subscribed.
    """

    def __init__(
        self,
        store: RetentionStore,
        catalog: Catalog,
        *,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.clock = clock
        self.subscription: FeedSubscription | None = None
        self.stats = {"received": 0, "inserted": 0, "duplicates": 0, "skipped": 0, "errors": 0}

    @property
    def items(self) -> list[str]:
        return list(self.catalog.items) or list(DEFAULT_ITEMS)

    def handle_update(self, update: FeedUpdate) -> InsertResult | None:
        """Store one update. Bad updates and storage errors are logged, not raised."""
        self.stats["received"] += 1
        timestamp = self.clock()

        try:
            key, value = _parse_update(update)
        except FeedDeliveryError as e:
            logger.warning("Skipping malformed update", item=update.item_name, error=str(e))
            self.stats["skipped"] += 1
            return None

        logger.debug("Received update", key=key, value=value)

        try:
            result = self.store.insert(key, value, timestamp, self.catalog.descriptor_for(key))
        except ValueError as e:
            logger.warning("Rejected sample", key=key, timestamp=timestamp, error=str(e))
            self.stats["skipped"] += 1
            return None
        except StorageUnavailable as e:
            logger.error("Error storing data", key=key, error=str(e))
            self.stats["errors"] += 1
            return None

        if result.inserted:
            self.stats["inserted"] += 1
        else:
            self.stats["duplicates"] += 1
        return result

    def start(self, feed: Feed) -> FeedSubscription:
        if self.subscription is not None:
            logger.warning("Ingest already subscribed")
            return self.subscription

        items = self.items
        logger.info("Subscribing to telemetry items", items=len(items), catalog=self.catalog.source)
        self.subscription = feed.subscribe(items, SUBSCRIBED_FIELDS, self.handle_update)
        return self.subscription

    def stop(self) -> None:
        if self.subscription is None:
            return
        self.subscription.unsubscribe()
        self.subscription = None
        logger.info("Ingest stopped", **self.stats)


def _parse_update(update: FeedUpdate) -> tuple[str, str | None]:
    if not update.item_name:
        raise FeedDeliveryError("Update has no item name")
    if VALUE_FIELD not in update.fields:
        raise FeedDeliveryError(f"Update has no {VALUE_FIELD} field")
    return update.item_name, update.fields[VALUE_FIELD]
