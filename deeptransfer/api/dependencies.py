from __future__ import annotations

from fastapi import Request

from deeptransfer.core.catalog.models import Catalog
from deeptransfer.core.settings import TransferSettings
from deeptransfer.core.store.base import RecordStore


def get_settings(request: Request) -> TransferSettings:
    return request.app.state.settings


def get_catalog(request: Request) -> Catalog:
    return request.app.state.catalog


def get_store(request: Request) -> RecordStore:
    return request.app.state.store
