"""Change-history tracking: events, SQLite storage, publishing, consuming, config and caching."""

__version__ = "0.1.0"