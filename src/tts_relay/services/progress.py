"""In-memory progress tracking for the conversion job in flight."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


class JobPhase(str, Enum):
    IDLE = "idle"
    SUMMARIZING = "summarizing"
    SEGMENTING = "segmenting"
    DISPATCHING = "dispatching"
    ASSEMBLING = "assembling"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobPhase.COMPLETE, JobPhase.ERROR)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Job:
    """Mutable status record for one text-to-audio conversion."""

    job_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    phase: JobPhase = JobPhase.IDLE
    total_segments: int = 0
    processed_segments: int = 0
    queued_segments: int = 0
    summary_progress: Optional[int] = None
    audio_bytes: Optional[int] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    started_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def _touch(self) -> None:
        self.updated_at = _now()

    def set_phase(self, phase: JobPhase) -> None:
        if self.phase.is_terminal:
            logger.debug(
                "Ignoring phase %s for finished job %s", phase.value, self.job_id
            )
            return
        logger.info("Job %s: %s -> %s", self.job_id, self.phase.value, phase.value)
        self.phase = phase
        self._touch()

    def set_total(self, total: int) -> None:
        self.total_segments = total
        self.processed_segments = 0
        self._touch()

    def mark_processed(self) -> None:
        self.processed_segments += 1
        self._touch()

    def set_queued(self, queued: int) -> None:
        self.queued_segments = max(0, queued)
        self._touch()

    def set_summary_progress(self, percent: int) -> None:
        self.summary_progress = max(0, min(100, int(percent)))
        self._touch()

    def complete(self, audio_bytes: int) -> None:
        self.audio_bytes = audio_bytes
        self.queued_segments = 0
        self.set_phase(JobPhase.COMPLETE)

    def fail(self, error_type: str, message: str) -> None:
        self.error_type = error_type
        self.error_message = message
        self.set_phase(JobPhase.ERROR)

    def snapshot(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "phase": self.phase.value,
            "total_segments": self.total_segments,
            "processed_segments": self.processed_segments,
            "queued_segments": self.queued_segments,
            "summary_progress": self.summary_progress,
            "audio_bytes": self.audio_bytes,
            "error_type": self.error_type,
            "error_message": self.error_message,
            "started_at": self.started_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class ProgressTracker:
    """Holds the single job whose progress clients poll.

    Starting a job replaces the previous record. Reads are advisory and take
    no lock; overlapping requests overwrite each other's status.
    """

    def __init__(self) -> None:
        self._current = Job()

    @property
    def current(self) -> Job:
        return self._current

    def start_job(self) -> Job:
        previous = self._current
        if not previous.phase.is_terminal and previous.phase is not JobPhase.IDLE:
            logger.warning(
                "Replacing status of unfinished job %s (%s)",
                previous.job_id,
                previous.phase.value,
            )
        self._current = Job()
        return self._current

    def set_queued(self, queued: int) -> None:
        """Scheduler listener: record the waiting-call count on the current job."""
        self._current.set_queued(queued)

    def snapshot(self, job_id: Optional[str] = None) -> Optional[dict[str, Any]]:
        job = self._current
        if job_id is not None and job_id != job.job_id:
            return None
        return job.snapshot()


__all__ = ["Job", "JobPhase", "ProgressTracker"]
