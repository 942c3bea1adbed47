import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.domain.exceptions import TurfBookingError


logger = logging.getLogger(__name__)


def _error_body(detail: str, code: str, category: str) -> dict:
    return {"detail": detail, "code": code, "category": category}


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(TurfBookingError)
    async def handle_domain_error(request: Request, exc: TurfBookingError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "Request failed. path=%s code=%s detail=%s",
                request.url.path,
                exc.code,
                exc.message,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.message, exc.code, exc.category),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error. path=%s", request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body("Internal server error", "INTERNAL_ERROR", "retry"),
        )
