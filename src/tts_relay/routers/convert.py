"""API routes for text-to-speech conversion and job progress."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response

from ..config import Settings, get_settings
from ..errors import JobNotFoundError
from ..schemas.convert import ConvertRequest, JobStatus, RelayConfig
from ..services.job_pipeline import JobPipeline
from ..services.progress import ProgressTracker

logger = logging.getLogger(__name__)
router = APIRouter(tags=["convert"])

AUDIO_MEDIA_TYPE = "audio/mpeg"


def get_job_pipeline(request: Request) -> JobPipeline:
    pipeline = getattr(request.app.state, "job_pipeline", None)
    if pipeline is None:  # pragma: no cover - defensive
        raise RuntimeError("Job pipeline is not configured")
    return pipeline


def get_progress_tracker(request: Request) -> ProgressTracker:
    tracker = getattr(request.app.state, "progress_tracker", None)
    if tracker is None:  # pragma: no cover - defensive
        raise RuntimeError("Progress tracker is not configured")
    return tracker


@router.post(
    "/convert",
    response_class=Response,
    responses={200: {"content": {AUDIO_MEDIA_TYPE: {}}}},
)
@router.post("/text-to-speech", response_class=Response, include_in_schema=False)
@router.post("/api/tts", response_class=Response, include_in_schema=False)
async def convert(
    payload: ConvertRequest,
    pipeline: JobPipeline = Depends(get_job_pipeline),
) -> Response:
    """Convert text (optionally summarized) into a single MP3 payload."""
    logger.info(
        "Conversion request: %d chars, summary=%s, key_in_body=%s",
        len(payload.text or ""),
        payload.use_summary,
        bool(payload.api_key),
    )
    result = await pipeline.run(
        payload.text,
        use_summary=payload.use_summary,
        api_key=payload.api_key,
    )
    return Response(
        content=result.audio,
        media_type=AUDIO_MEDIA_TYPE,
        headers={
            "X-Job-Id": result.job_id,
            "X-Segment-Count": str(result.segment_count),
        },
    )


@router.get("/status", response_model=JobStatus)
async def read_status(
    job_id: Optional[str] = Query(default=None),
    tracker: ProgressTracker = Depends(get_progress_tracker),
) -> JobStatus:
    snapshot = tracker.snapshot(job_id)
    if snapshot is None:
        raise JobNotFoundError(
            f"Job {job_id} is no longer tracked",
            details={"job_id": job_id},
        )
    return JobStatus(**snapshot)


@router.get("/config", response_model=RelayConfig)
async def read_config(settings: Settings = Depends(get_settings)) -> RelayConfig:
    return RelayConfig(
        max_summary_input_chars=settings.max_summary_input_chars,
        max_summary_output_tokens=settings.max_summary_output_tokens,
        max_segment_chars=settings.max_segment_chars,
        summary_model=settings.summary_model,
        tts_model=settings.tts_model,
        tts_voice=settings.tts_voice,
        rate_limit_capacity=settings.rate_limit_capacity,
        rate_limit_refill_seconds=settings.rate_limit_refill_seconds,
        summary_input_cost_per_million=settings.summary_input_cost_per_million,
        summary_output_cost_per_million=settings.summary_output_cost_per_million,
        server_credential=settings.resolve_api_key() is not None,
    )


__all__ = ["router", "get_job_pipeline", "get_progress_tracker"]
