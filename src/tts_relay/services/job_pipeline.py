"""
End-to-end text-to-audio job orchestration.

Pipeline:
  1. Normalize text (line breaks to spaces, trim); reject empty input
  2. Optionally summarize (input truncated to the configured maximum)
  3. Segment at sentence/word boundaries within the per-call limit
  4. Synthesize every segment concurrently, each call gated by RateScheduler
  5. Concatenate audio in segment-index order

Any failure aborts the whole job; partial audio is never returned. The job's
status record is updated at every step so clients can poll progress.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional, TypeVar

from ..config import Settings
from ..errors import (
    EmptyInputError,
    MissingCredentialError,
    ProviderAuthError,
    ProviderError,
    ProviderQuotaError,
    RelayError,
    SchedulerStopped,
    SegmentFailedError,
    SummaryFailedError,
)
from .progress import Job, JobPhase, ProgressTracker
from .rate_scheduler import RateScheduler
from .summary_client import SummaryConstraints
from .text_segmenter import Segment, normalize_text, segment_text

if TYPE_CHECKING:
    from .providers import ProviderClients

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class JobResult:
    job_id: str
    audio: bytes
    segment_count: int


class JobPipeline:
    """Run one conversion request from raw text to a single audio payload."""

    def __init__(
        self,
        settings: Settings,
        tracker: ProgressTracker,
        clients: "ProviderClients",
        speech_scheduler: RateScheduler,
        summary_scheduler: Optional[RateScheduler] = None,
    ) -> None:
        self._settings = settings
        self._tracker = tracker
        self._clients = clients
        self._speech_scheduler = speech_scheduler
        self._summary_scheduler = summary_scheduler

    async def run(
        self,
        text: Optional[str],
        use_summary: bool = False,
        api_key: Optional[str] = None,
    ) -> JobResult:
        """Convert ``text`` to audio, replacing the tracked job's status."""
        job = self._tracker.start_job()
        try:
            return await self._run(job, text, use_summary, api_key)
        except RelayError as exc:
            logger.warning("Job %s failed (%s): %s", job.job_id, exc.error_type, exc)
            job.fail(exc.error_type, exc.message)
            raise
        except asyncio.CancelledError:
            job.fail("Cancelled", "Request was cancelled")
            raise
        except Exception as exc:
            logger.exception("Job %s failed unexpectedly", job.job_id)
            job.fail("InternalError", str(exc))
            raise

    async def _run(
        self,
        job: Job,
        text: Optional[str],
        use_summary: bool,
        api_key: Optional[str],
    ) -> JobResult:
        working = normalize_text(text)
        if not working:
            raise EmptyInputError()

        key = self._settings.resolve_api_key(api_key)
        if key is None:
            raise MissingCredentialError()

        if use_summary:
            job.set_phase(JobPhase.SUMMARIZING)
            job.set_summary_progress(0)
            working = await self._summarize(job, working, key)

        job.set_phase(JobPhase.SEGMENTING)
        segments = segment_text(working, self._settings.max_segment_chars)
        job.set_total(len(segments))
        logger.info(
            "Job %s: %d chars split into %d segment(s)",
            job.job_id,
            len(working),
            len(segments),
        )

        job.set_phase(JobPhase.DISPATCHING)
        parts = await self._synthesize_all(job, segments, key)

        job.set_phase(JobPhase.ASSEMBLING)
        audio = b"".join(parts)
        job.complete(len(audio))
        logger.info("Job %s complete: %d bytes of audio", job.job_id, len(audio))
        return JobResult(job_id=job.job_id, audio=audio, segment_count=len(segments))

    async def _summarize(self, job: Job, text: str, api_key: str) -> str:
        limit = self._settings.max_summary_input_chars
        if len(text) > limit:
            logger.warning(
                "Job %s: truncating summary input from %d to %d chars",
                job.job_id,
                len(text),
                limit,
            )
            text = text[:limit]

        client = self._clients.summary(api_key)
        constraints = SummaryConstraints(
            max_output_tokens=self._settings.max_summary_output_tokens
        )

        try:
            summary = await self._gate(
                self._summary_scheduler,
                lambda: client.summarize(
                    text, constraints, on_progress=job.set_summary_progress
                ),
                label="summary",
            )
        except (ProviderAuthError, ProviderQuotaError):
            raise
        except ProviderError as exc:
            raise SummaryFailedError(
                f"Summarization failed: {exc.message}",
                details={"cause_type": exc.error_type},
            ) from exc

        summary = normalize_text(summary)
        if not summary:
            raise SummaryFailedError("Summarization returned no text")
        return summary

    async def _synthesize_all(
        self, job: Job, segments: List[Segment], api_key: str
    ) -> List[bytes]:
        total = len(segments)
        results: List[Optional[bytes]] = [None] * total
        client = self._clients.speech(api_key)

        async def convert(segment: Segment) -> None:
            label = f"segment {segment.index + 1}/{total}"
            try:
                audio = await self._gate(
                    self._speech_scheduler,
                    lambda: client.synthesize(segment.content),
                    label=label,
                )
            except (ProviderAuthError, ProviderQuotaError) as exc:
                exc.details.setdefault("segment_index", segment.index)
                exc.details.setdefault("total_segments", total)
                raise
            except SchedulerStopped:
                raise
            except Exception as exc:
                raise SegmentFailedError(segment.index, total, exc) from exc

            if job.phase.is_terminal:
                # A sibling segment already failed the job
                logger.debug("Job %s: discarding late %s", job.job_id, label)
                return
            results[segment.index] = audio
            job.mark_processed()
            logger.info(
                "Job %s: %s done (%d/%d processed)",
                job.job_id,
                label,
                job.processed_segments,
                total,
            )

        await asyncio.gather(*(convert(segment) for segment in segments))
        return [audio for audio in results if audio is not None]

    @staticmethod
    async def _gate(
        scheduler: Optional[RateScheduler],
        task: Callable[[], Awaitable[T]],
        *,
        label: str,
    ) -> T:
        if scheduler is None:
            return await task()
        return await scheduler.schedule(task, label=label)


__all__ = ["JobPipeline", "JobResult"]
