"""ISS Live telemetry history: feed ingestion, bounded retention and a query API."""

__version__ = "0.1.0"
