from __future__ import annotations

import logging
from typing import Dict, Optional

from fastapi import Request
from starlette.responses import JSONResponse

from deeptransfer.core.observability.metrics import record_failure
from deeptransfer.core.transfer.errors import ImportFailure, PersistFailure, TransferError

log = logging.getLogger("transfer.errors")

IMPORTED_COUNT_HEADER = "X-Imported-Count"

_STATUS_BY_KIND: Dict[str, int] = {
    PersistFailure.kind: 409,
}


def http_status_for(exc: TransferError) -> int:
    return _STATUS_BY_KIND.get(exc.kind, 400)


def request_id_of(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None) or request.headers.get("x-request-id")


def transfer_error_response(exc: TransferError, request_id: Optional[str] = None) -> JSONResponse:
    detail = exc.to_dict()
    payload = {"detail": detail}
    if request_id:
        payload["request_id"] = request_id

    headers = {}
    if request_id:
        headers["X-Request-Id"] = request_id
    if isinstance(exc, ImportFailure):
        headers[IMPORTED_COUNT_HEADER] = str(exc.imported)
    return JSONResponse(status_code=http_status_for(exc), content=payload, headers=headers)


async def transfer_error_handler(request: Request, exc: TransferError) -> JSONResponse:
    """
    Shapes transfer errors into {"detail": {"kind", "message", ...}} with a 4xx status.
    Runs inside the middleware stack, so rejected transfers still get request
    metrics, the request log line and the X-Request-Id header.
    """
    rid = request_id_of(request)
    # Import failures are counted by the pipeline itself.
    if not isinstance(exc, ImportFailure):
        record_failure(exc.kind)
    log.info("Transfer rejected: kind=%s rid=%s path=%s msg=%s", exc.kind, rid, request.url.path, exc.message)
    return transfer_error_response(exc, rid)
