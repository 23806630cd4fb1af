"""Self-hosted feed aggregator: ingestion engine and item query API."""

__version__ = "0.1.0"
