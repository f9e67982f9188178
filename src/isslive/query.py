"""Read-only query facade over the retention store."""

from __future__ import annotations

from isslive.schemas import KeyOut, KeySeriesOut, LatestOut, SampleValueOut
from isslive.store import KeyInfo, KeySeries, LatestSample, RetentionStore


def _series_out(series: KeySeries) -> KeySeriesOut:
    return KeySeriesOut(
        key=series.key,
        **series.descriptor.as_dict(),
        values=[SampleValueOut(value=v.value, timestamp=v.timestamp, id=v.id) for v in series.values],
    )


def _latest_out(sample: LatestSample) -> LatestOut:
    return LatestOut(value=sample.value, timestamp=sample.timestamp, **sample.descriptor.as_dict())


def _key_out(info: KeyInfo) -> KeyOut:
    return KeyOut(key=info.key, **info.descriptor.as_dict())


class QueryService:
    """Each method is a single store read shaped for the HTTP API."""

    def __init__(self, store: RetentionStore) -> None:
        self.store = store

    def data(self) -> list[KeySeriesOut]:
        return [_series_out(series) for series in self.store.get_all()]

    def data_for_key(self, key: str) -> KeySeriesOut:
        """Raises KeyNotFound when the key has no samples."""
        return _series_out(self.store.get_by_key(key))

    def latest(self) -> dict[str, LatestOut]:
        return {key: _latest_out(sample) for key, sample in self.store.get_latest().items()}

    def keys(self) -> list[KeyOut]:
        return [_key_out(info) for info in self.store.list_keys()]
