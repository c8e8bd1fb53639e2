"""Sortie results storage."""

from sortie.storage.sqlite_store import ResultsStore, StoreError

__all__ = ["ResultsStore", "StoreError"]
