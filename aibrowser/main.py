"""Entry point: ``python -m aibrowser.main`` serves the browser API."""

import logging
import socket
import sys
from typing import Optional

from uvicorn import run

from . import app, settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

MAX_PORT_ATTEMPTS = 50


def port_available(host: str, port: int) -> bool:
    """Return True if the browser API could listen on ``host:port``."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError as exc:
            logger.debug("API port %s:%s unavailable: %s", host, port, exc)
            return False
        return True


def find_port(host: str, start_port: int, attempts: int = MAX_PORT_ATTEMPTS) -> Optional[int]:
    """First bindable port in ``start_port .. start_port + attempts``, or None."""
    for port in range(start_port, start_port + attempts + 1):
        if port_available(host, port):
            if port != start_port:
                logger.warning("API port %s in use, falling back to %s", start_port, port)
            return port
    return None


def serve() -> None:
    port = find_port(settings.host, settings.port)
    if port is None:
        logger.error("No free API port in %s-%s on %s", settings.port,
                     settings.port + MAX_PORT_ATTEMPTS, settings.host)
        sys.exit(1)
    logger.info("%s %s listening on http://%s:%s", settings.app_name, settings.version, settings.host, port)
    run(app, host=settings.host, port=port)


if __name__ == "__main__":
    serve()
