"""Request and response schemas for the conversion API."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ConvertRequest(BaseModel):
    """Body of ``POST /convert``."""

    model_config = ConfigDict(populate_by_name=True)

    text: Optional[str] = Field(default="", description="Text to convert to speech")
    use_summary: bool = Field(
        default=False,
        alias="useSummary",
        description="Summarize the text before synthesis",
    )
    api_key: Optional[str] = Field(
        default=None,
        alias="apiKey",
        description="Provider API key, when not configured on the server",
    )


class JobStatus(BaseModel):
    """Snapshot of the tracked conversion job."""

    job_id: str
    phase: str
    total_segments: int
    processed_segments: int
    queued_segments: int
    summary_progress: Optional[int] = None
    audio_bytes: Optional[int] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    started_at: str
    updated_at: str


class RelayConfig(BaseModel):
    """Effective limits exposed to the client page."""

    max_summary_input_chars: int
    max_summary_output_tokens: int
    max_segment_chars: int
    summary_model: str
    tts_model: str
    tts_voice: str
    rate_limit_capacity: int
    rate_limit_refill_seconds: float
    summary_input_cost_per_million: float
    summary_output_cost_per_million: float
    server_credential: bool = Field(
        description="Whether an API key is configured on the server",
    )


__all__ = ["ConvertRequest", "JobStatus", "RelayConfig"]
