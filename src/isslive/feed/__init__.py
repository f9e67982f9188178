"""Push feed interfaces. The Lightstreamer binding lives in ``isslive.feed.lightstreamer``."""

from isslive.feed.base import Feed, FeedDeliveryError, FeedSubscription, FeedUpdate, UpdateHandler

__all__ = ["Feed", "FeedDeliveryError", "FeedSubscription", "FeedUpdate", "UpdateHandler"]
