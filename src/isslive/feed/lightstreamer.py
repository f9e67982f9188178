"""Lightstreamer binding for the ISS Live telemetry feed."""

from __future__ import annotations

from collections.abc import Sequence

import structlog
from lightstreamer.client import ClientListener, LightstreamerClient, Subscription, SubscriptionListener

from isslive.feed.base import FeedDeliveryError, FeedUpdate, UpdateHandler

logger = structlog.get_logger()

DEFAULT_SERVER_URL = "https://push.lightstreamer.com"
DEFAULT_ADAPTER_SET = "ISSLIVE"


class _ConnectionListener(ClientListener):
    def onStatusChange(self, status):
        logger.info("Lightstreamer connection status", status=status)

    def onServerError(self, errorCode, errorMessage):
        logger.error("Lightstreamer server error", code=errorCode, error=errorMessage)


class _UpdateListener(SubscriptionListener):
    """Translates vendor updates and hands them to the handler, one at a time."""

    def __init__(self, handler: UpdateHandler, fields: Sequence[str], item_count: int) -> None:
        self.handler = handler
        self.fields = list(fields)
        self.item_count = item_count

    def onSubscription(self):
        logger.info("Subscribed to items", items=self.item_count)

    def onUnsubscription(self):
        logger.info("Unsubscribed from items")

    def onSubscriptionError(self, code, message):
        logger.error("Subscription error", code=code, error=message)

    def onItemUpdate(self, update):
        try:
            self.handler(to_feed_update(update, self.fields))
        except FeedDeliveryError as e:
            logger.warning("Skipping malformed update", error=str(e))
        except Exception:
            logger.exception("Update handler failed")


def to_feed_update(update, fields: Sequence[str]) -> FeedUpdate:
    """Copy the subscribed fields out of a Lightstreamer ItemUpdate."""
    try:
        item_name = update.getItemName()
        values = {name: update.getValue(name) for name in fields}
    except Exception as e:
        raise FeedDeliveryError(f"Unreadable update: {e}") from e
    if not item_name:
        raise FeedDeliveryError("Update has no item name")
    return FeedUpdate(item_name=item_name, fields=values)


class LightstreamerSubscription:
    def __init__(self, client: LightstreamerClient, subscription: Subscription) -> None:
        self._client = client
        self._subscription = subscription

    def unsubscribe(self) -> None:
        self._client.unsubscribe(self._subscription)


class LightstreamerFeed:
    """Feed backed by a single LightstreamerClient.

    The client runs its own threads; updates reach the handler serially.
    """

    def __init__(
        self,
        server_url: str = DEFAULT_SERVER_URL,
        adapter_set: str = DEFAULT_ADAPTER_SET,
        *,
        mode: str = "MERGE",
    ) -> None:
        self.server_url = server_url
        self.adapter_set = adapter_set
        self.mode = mode
        self._client = LightstreamerClient(server_url, adapter_set)
        self._client.addListener(_ConnectionListener())
        self._connected = False

    def connect(self) -> None:
        if self._connected:
            return
        logger.info("Connecting to Lightstreamer", server=self.server_url, adapter_set=self.adapter_set)
        self._client.connect()
        self._connected = True

    def subscribe(self, items: Sequence[str], fields: Sequence[str], handler: UpdateHandler) -> LightstreamerSubscription:
        self.connect()
        subscription = Subscription(self.mode, list(items), list(fields))
        subscription.addListener(_UpdateListener(handler, fields, len(items)))
        self._client.subscribe(subscription)
        return LightstreamerSubscription(self._client, subscription)

    def disconnect(self) -> None:
        if not self._connected:
            return
        self._client.disconnect()
        self._connected = False
        logger.info("Disconnected from Lightstreamer")
