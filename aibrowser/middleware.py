import logging
import os

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

LOG_FILE = os.getenv("LOG_FILE", "logs/aibrowser.log")
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("aibrowser")


def setup_file_logging(path: str = LOG_FILE, level: int = logging.INFO) -> None:
    """Send the browser's logs to ``path``; repeated calls keep one handler."""
    if any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        return
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    logger.setLevel(level)
    handler = logging.FileHandler(path)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)


class ExceptionLoggingMiddleware(BaseHTTPMiddleware):
    """Log API requests that escape every error handler, then re-raise."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            tab_id = request.path_params.get("tab_id")
            logger.exception("Browser API %s %s failed (tab=%s)", request.method, request.url.path, tab_id)
            raise
