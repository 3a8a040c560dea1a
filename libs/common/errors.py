"""Domain error taxonomy and the FastAPI handlers that render it.

Every error carries a stable ``code`` and an HTTP status. Handlers render
``{"detail": <message>, "code": <CODE>}`` so clients never see internal
stack detail.
"""

from typing import Any, Optional

from fastapi import FastAPI, Request
from starlette.responses import JSONResponse


class TokenServiceError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.details:
            body.update(self.details)
        return body


class Unauthenticated(TokenServiceError):
    status_code = 401
    code = "UNAUTHENTICATED"
    default_message = "Authentication required"


class InvalidPackage(TokenServiceError):
    status_code = 400
    code = "INVALID_PACKAGE"
    default_message = "Invalid package ID."


class InsufficientBalance(TokenServiceError):
    status_code = 400
    code = "INSUFFICIENT_BALANCE"
    default_message = "Insufficient tokens."

    def __init__(self, *, balance: int, required: int):
        super().__init__(
            f"Not enough tokens. You need {required} but have {balance}.",
            balance=balance,
            required=required,
        )
        self.balance = balance
        self.required = required


class NotFound(TokenServiceError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not found"


class InvalidRequest(TokenServiceError):
    status_code = 400
    code = "INVALID_REQUEST"
    default_message = "Invalid request."


class PaymentDeclined(TokenServiceError):
    status_code = 400
    code = "PAYMENT_DECLINED"
    default_message = "Your card was declined."


class ProcessorRateLimited(TokenServiceError):
    status_code = 429
    code = "RATE_LIMITED"
    default_message = "Too many requests made to the payment processor too quickly."


class UpstreamUnavailable(TokenServiceError):
    status_code = 500
    code = "UPSTREAM_UNAVAILABLE"
    default_message = "An upstream service is unavailable. Please try again."


class ConfigurationError(TokenServiceError):
    status_code = 500
    code = "CONFIGURATION_ERROR"
    default_message = "The service is not configured correctly."


async def token_service_error_handler(
    request: Request, exc: TokenServiceError
) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code, content=exc.to_dict(), headers=headers
    )


def register_error_handlers(app: FastAPI) -> None:
    """Attach the domain error handler to an app."""
    app.add_exception_handler(TokenServiceError, token_service_error_handler)
