"""
Global exception handlers.

Every error leaves the API as `{"error": str, "details": str | None}`.
"""
import logging

import stripe
from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from fieldjobs.core.errors import AppError

logger = logging.getLogger(__name__)


def error_body(error: str, details=None) -> dict:
    return {"error": error, "details": details}


def attach_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.details))

    @app.exception_handler(HTTPException)
    async def _http_error(request: Request, exc: HTTPException):
        detail = exc.detail
        if isinstance(detail, dict):
            content = error_body(detail.get("error", "Request failed"), detail.get("details"))
        else:
            content = error_body(str(detail))
        return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        fields = ", ".join(
            ".".join(str(part) for part in err.get("loc", ()) if part != "body")
            for err in exc.errors()
        )
        return JSONResponse(
            status_code=400,
            content=error_body("Missing or invalid fields", fields or None),
        )

    @app.exception_handler(stripe.StripeError)
    async def _stripe_error(request: Request, exc: stripe.StripeError):
        logger.error(f"Stripe error on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content=error_body("Payment provider error", getattr(exc, "user_message", None) or str(exc)),
        )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.exception("Unhandled: %s", exc)
        return JSONResponse(status_code=500, content=error_body("Internal server error", str(exc)))
