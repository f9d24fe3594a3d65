"""OpenAI speech synthesis adapter."""

from __future__ import annotations

import logging

import httpx
import openai

from ..errors import InternalTransportError
from .openai_errors import translate_openai_error

logger = logging.getLogger(__name__)

# Bytes per read from the streaming audio response
STREAM_CHUNK_BYTES = 16 * 1024


class SpeechClient:
    """Convert one text segment into encoded audio bytes."""

    def __init__(
        self,
        client: openai.AsyncOpenAI,
        *,
        model: str = "tts-1",
        voice: str = "alloy",
        response_format: str = "mp3",
    ) -> None:
        self._client = client
        self.model = model
        self.voice = voice
        self.response_format = response_format

    async def synthesize(self, text: str) -> bytes:
        """
        Synthesize ``text`` and return the complete audio payload.

        Raises:
            RateLimitedError: Provider rejected the call with a rate limit
            ProviderAuthError: Credential rejected
            ProviderQuotaError: Account has no remaining quota
            InternalTransportError: Network failure or empty audio
            ProviderError: Any other provider-side failure
        """
        logger.debug(
            "Synthesizing %d chars (model=%s, voice=%s)", len(text), self.model, self.voice
        )
        audio = bytearray()
        try:
            async with self._client.audio.speech.with_streaming_response.create(
                model=self.model,
                voice=self.voice,
                input=text,
                response_format=self.response_format,
            ) as response:
                async for chunk in response.iter_bytes(STREAM_CHUNK_BYTES):
                    audio.extend(chunk)
        except openai.OpenAIError as exc:
            raise translate_openai_error(exc) from exc
        except httpx.HTTPError as exc:
            raise InternalTransportError(
                f"Speech stream interrupted: {exc}"
            ) from exc

        if not audio:
            raise InternalTransportError("Speech provider returned no audio")

        logger.debug("Synthesized %d bytes for %d chars", len(audio), len(text))
        return bytes(audio)


__all__ = ["STREAM_CHUNK_BYTES", "SpeechClient"]
