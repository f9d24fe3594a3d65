"""CLI entrypoint for running the FastAPI app with uvicorn."""

from __future__ import annotations

import logging
import socket

import uvicorn

from .config import get_settings

logger = logging.getLogger(__name__)


def _port_is_free(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def find_available_port(host: str, start_port: int, attempts: int) -> int:
    """Return the first bindable port in ``[start_port, start_port + attempts)``."""
    for port in range(start_port, min(start_port + attempts, 65536)):
        if _port_is_free(host, port):
            return port
        logger.warning("Port %d is in use, trying %d", port, port + 1)
    raise RuntimeError(
        f"No free port between {start_port} and {start_port + attempts - 1}"
    )


def main() -> None:
    """Run the ASGI server."""

    logging.basicConfig(level=logging.INFO)
    settings = get_settings()
    port = find_available_port(settings.host, settings.port, settings.port_retry_limit)
    logger.info("Server running at http://localhost:%d", port)

    uvicorn.run(
        "tts_relay.app:create_app",
        factory=True,
        host=settings.host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":  # pragma: no cover - manual invocation
    main()
