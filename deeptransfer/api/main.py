from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from deeptransfer.api.endpoints import health
from deeptransfer.api.endpoints import metrics as metrics_ep
from deeptransfer.api.endpoints.migration import router as migration_router
from deeptransfer.api.errors import transfer_error_handler
from deeptransfer.api.middleware.error_shaping import SafeErrorMiddleware
from deeptransfer.api.middleware.request_context import (
    RequestContextMiddleware,
    SecurityHeadersMiddleware,
)
from deeptransfer.core.catalog.loader import load_catalog
from deeptransfer.core.catalog.models import Catalog
from deeptransfer.core.settings import TransferSettings
from deeptransfer.core.store.base import RecordStore
from deeptransfer.core.store.memory import InMemoryRecordStore
from deeptransfer.core.transfer.errors import TransferError

log = logging.getLogger("transfer.app")


def create_app(
    settings: Optional[TransferSettings] = None,
    *,
    catalog: Optional[Catalog] = None,
    store: Optional[RecordStore] = None,
) -> FastAPI:
    settings = settings or TransferSettings.from_env()
    catalog = catalog if catalog is not None else load_catalog(settings.catalog_file)
    store = store if store is not None else InMemoryRecordStore(catalog)

    app = FastAPI(
        title="Deep Transfer API",
        version="0.1.0",
    )
    app.state.settings = settings
    app.state.catalog = catalog
    app.state.store = store

    # ------------------------------------------------------------
    # Middleware stack (ORDER MATTERS)
    # Note: Starlette reverses add_middleware order: the LAST call = OUTERMOST wrapper.
    # Desired runtime order (outermost → innermost):
    #   SafeErrorMiddleware → CORSMiddleware → SecurityHeaders → RequestContext → handler
    # ------------------------------------------------------------
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, enabled=settings.security_headers_enabled)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Imported-Count", "X-Request-Id"],
    )
    app.add_middleware(SafeErrorMiddleware)

    # Handled inside the stack so rejected transfers pass back through RequestContext.
    app.add_exception_handler(TransferError, transfer_error_handler)

    app.include_router(migration_router, prefix="/api/v1")
    app.include_router(health.router)
    app.include_router(metrics_ep.router)

    log.info("Deep transfer app ready: env=%s entities=%d", settings.env, len(catalog))
    return app


app = create_app()
