"""Application factory for the FastAPI service."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from .config import get_settings
from .errors import RelayError
from .routers.convert import router as convert_router
from .services.job_pipeline import JobPipeline
from .services.progress import ProgressTracker
from .services.providers import ProviderClients
from .services.rate_scheduler import RateScheduler, RetryPolicy

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "static"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _configure_logging() -> None:
    """Configure logging based on LOG_LEVEL environment variable."""
    # Load .env file first to ensure LOG_FILE is available
    load_dotenv()

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    log_file = os.getenv("LOG_FILE")
    handlers: list[logging.Handler] = []
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        force=True,  # Override any existing configuration
    )

    logging.getLogger("tts_relay").setLevel(log_level)

    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(log_level)
    logging.getLogger("uvicorn.error").setLevel(log_level)

    # Provider SDK chatter only at DEBUG
    for noisy in ("httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(
            log_level if log_level <= logging.DEBUG else logging.WARNING
        )


def _error_response(exc: RelayError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def create_app(provider_clients: Optional[ProviderClients] = None) -> FastAPI:
    # Configure logging first thing
    _configure_logging()

    settings = get_settings()
    tracker = ProgressTracker()
    clients = provider_clients or ProviderClients(settings)

    def _make_scheduler(
        name: str, listener: Optional[Callable[[int], None]] = None
    ) -> RateScheduler:
        return RateScheduler(
            max_concurrent=settings.rate_limit_capacity,
            refill_interval=settings.rate_limit_refill_seconds,
            retry_policy=RetryPolicy(
                max_attempts=settings.rate_limit_max_attempts,
                delay=settings.rate_limit_retry_delay_seconds,
            ),
            on_queue_change=listener,
            name=name,
        )

    speech_scheduler = _make_scheduler("speech", listener=tracker.set_queued)
    summary_scheduler = _make_scheduler("summary")

    pipeline = JobPipeline(
        settings,
        tracker,
        clients,
        speech_scheduler=speech_scheduler,
        summary_scheduler=summary_scheduler,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await speech_scheduler.start()
        await summary_scheduler.start()
        logger.info(
            "Rate limit: %d request(s), +1 every %.0fs",
            settings.rate_limit_capacity,
            settings.rate_limit_refill_seconds,
        )
        if settings.resolve_api_key() is None:
            logger.warning(
                "OPENAI_API_KEY is not set; requests must supply apiKey in the body"
            )
        try:
            yield
        finally:
            await speech_scheduler.stop()
            await summary_scheduler.stop()
            await clients.aclose()

    app = FastAPI(
        title="TTS Relay",
        version="0.1.0",
        description="Chunked, rate-limited text-to-speech relay.",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.progress_tracker = tracker
    app.state.provider_clients = clients
    app.state.speech_scheduler = speech_scheduler
    app.state.summary_scheduler = summary_scheduler
    app.state.job_pipeline = pipeline

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Job-Id", "X-Segment-Count"],
    )

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": "Invalid request body",
                "type": "InvalidRequest",
                "code": status.HTTP_422_UNPROCESSABLE_ENTITY,
                "details": jsonable_errors(exc),
            },
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "type": "InternalError",
                "code": status.HTTP_500_INTERNAL_SERVER_ERROR,
            },
        )

    app.include_router(convert_router)

    @app.get("/", include_in_schema=False)
    async def index() -> FileResponse:
        return FileResponse(STATIC_DIR / "index.html", media_type="text/html")

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, object]:
        return {
            "status": "ok",
            "speech_queue": speech_scheduler.queued,
            "speech_available": speech_scheduler.available,
        }

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, object]]:
    """Reduce pydantic error entries to JSON-safe fields."""
    return [
        {
            "loc": [str(part) for part in error.get("loc", ())],
            "msg": str(error.get("msg", "")),
            "type": str(error.get("type", "")),
        }
        for error in exc.errors()
    ]


__all__ = ["create_app"]
