"""Lookups for the per-app services created by ``create_app``."""

from __future__ import annotations

from flask import current_app

from .datastore import DataStore
from .errors import StoreError


def get_datastore() -> DataStore:
    datastore = current_app.config.get("DATASTORE")
    if datastore is None:
        raise StoreError("Record store is not loaded; state was never recovered for this app", status_code=503)
    return datastore
