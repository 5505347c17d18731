"""
Render typed reservation outcomes as JSON error responses.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from busreserve.core.exceptions import BookingError
from busreserve.core.logging import get_logger

logger = get_logger(__name__)


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("booking_request_failed", error=exc.code, detail=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


EXCEPTION_HANDLERS = {
    BookingError: booking_error_handler,
}


def register_exception_handlers(app: FastAPI) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
