"""Push feed contract for the ingest adapter."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol


class FeedDeliveryError(ValueError):
    """Raised for a single update that cannot be turned into a sample."""


@dataclass(frozen=True)
class FeedUpdate:
    item_name: str
    fields: Mapping[str, str | None] = field(default_factory=dict)


UpdateHandler = Callable[[FeedUpdate], object]


class FeedSubscription(Protocol):
    def unsubscribe(self) -> None: ...


class Feed(Protocol):
    def subscribe(
        self,
        items: Sequence[str],
        fields: Sequence[str],
        handler: UpdateHandler,
    ) -> FeedSubscription: ...
