import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..errors import (
    BrowserError,
    CapacityExceeded,
    ChatRequestError,
    InvalidCredential,
    MissingCredential,
    RateLimited,
    StorageUnavailable,
    TabNotFound,
)

logger = logging.getLogger(__name__)

STATUS_CODES = {
    CapacityExceeded: 409,
    TabNotFound: 404,
    MissingCredential: 401,
    InvalidCredential: 401,
    RateLimited: 429,
    ChatRequestError: 502,
    StorageUnavailable: 503,
}


def status_for(exc: BrowserError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 400


async def browser_error_handler(request: Request, exc: BrowserError) -> JSONResponse:
    code = status_for(exc)
    logger.info("%s %s -> %s: %s", request.method, request.url.path, code, exc)
    headers = {}
    if isinstance(exc, RateLimited) and exc.retry_after:
        headers["Retry-After"] = str(int(exc.retry_after) + 1)
    return JSONResponse({"detail": str(exc), "error": type(exc).__name__}, status_code=code, headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BrowserError, browser_error_handler)
