"""Domain errors and their HTTP rendering."""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(StorefrontError):
    """Request is well-formed but cannot be fulfilled (stock, zone coverage, coupons)."""


class NotFoundError(StorefrontError):
    """A referenced product, variant, zone, order or config record does not exist."""


class PaymentGatewayError(StorefrontError):
    """The payment provider rejected or failed a call; message is the provider's."""

    def __init__(self, message: str, *, operation: str | None = None):
        self.operation = operation
        super().__init__(message)


class InvalidSignatureError(StorefrontError):
    """Webhook body does not match the x-paystack-signature header."""

    def __init__(self, message: str = "Invalid signature"):
        super().__init__(message)


class AuthorizationError(StorefrontError):
    """Caller is authenticated but may not access the resource."""

    def __init__(self, message: str = "Not authorized to access this resource"):
        super().__init__(message)


ERROR_STATUS_CODES: dict[type, int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    PaymentGatewayError: status.HTTP_400_BAD_REQUEST,
    InvalidSignatureError: status.HTTP_400_BAD_REQUEST,
    AuthorizationError: status.HTTP_403_FORBIDDEN,
}


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    logger.info(
        "request_rejected",
        error_type=type(exc).__name__,
        error_message=exc.message,
        status_code=status_code,
    )
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "message": exc.message,
            "error_type": type(exc).__name__,
        },
    )


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"{location}: {message}"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "message": message,
            "error_type": "ValidationError",
        },
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        error_type=type(exc).__name__,
        error_message=str(exc),
        exc_info=exc,
    )
    message = "Internal server error"
    if settings.ENVIRONMENT == "development":
        message = str(exc) or message
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": message},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StorefrontError, storefront_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)
