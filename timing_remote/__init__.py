"""Reader keys, read ingestion and notification storage for race-timing remotes."""

__version__ = "0.2.0"
