from __future__ import annotations

import logging
import traceback
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from deeptransfer.api.errors import request_id_of

log = logging.getLogger("transfer.errors")


class SafeErrorMiddleware(BaseHTTPMiddleware):
    """
    - Last line of defence for unhandled errors (transfer errors have their own handler)
    - Never return stack traces to clients
    - Preserve request_id if present
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            rid = request_id_of(request)
            log.error(
                "Unhandled error: %s rid=%s path=%s\n%s",
                str(e),
                rid,
                request.url.path,
                traceback.format_exc(),
            )
            payload = {"detail": "Internal Server Error"}
            if rid:
                payload["request_id"] = rid
            return JSONResponse(status_code=500, content=payload)
