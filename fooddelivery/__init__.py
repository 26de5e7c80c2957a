"""Food delivery backend: accounts, catalog and ordering over a REST API."""

__version__ = "1.0.0"
