"""Bidirectional record synchronization between a CRM object store and a local database."""

__version__ = "0.1.0"
