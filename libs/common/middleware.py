"""Request tracing middleware for the token service.

Every request gets an ``X-Request-ID`` (propagated from the caller when
present) that is stamped on all log records emitted while it is handled.
One completion line per request records status, duration and, once the
bearer token has been verified, the acting user.
"""
import time
from typing import Callable, Optional

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from libs.common.config import Settings
from libs.common.logging import (
    clear_request_context,
    configure_logging,
    get_logger,
    set_request_context,
)

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Liveness probes and processor callbacks are logged elsewhere or not at all
QUIET_PATHS = frozenset({"/health", "/payments/webhook"})


def _acting_user(request: Request) -> Optional[str]:
    user = getattr(request.state, "user", None)
    return getattr(user, "user_id", None)


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        request_id = set_request_context(
            request_id=request.headers.get(REQUEST_ID_HEADER),
            path=path,
            method=request.method,
        )
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Unhandled error after %.1fms",
                (time.perf_counter() - started) * 1000,
                extra={"extra_fields": {"user_id": _acting_user(request)}},
            )
            raise
        else:
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            if path not in QUIET_PATHS or response.status_code >= 400:
                level = "warning" if response.status_code >= 400 else "info"
                getattr(logger, level)(
                    "%s %s -> %d",
                    request.method,
                    path,
                    response.status_code,
                    extra={
                        "extra_fields": {
                            "status_code": response.status_code,
                            "duration_ms": elapsed_ms,
                            "user_id": _acting_user(request),
                        }
                    },
                )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_request_context()


def add_observability_middleware(
    app: FastAPI, settings: Optional[Settings] = None
) -> None:
    """Configure logging and install request tracing on ``app``."""
    configure_logging(settings)
    app.add_middleware(RequestContextMiddleware)
