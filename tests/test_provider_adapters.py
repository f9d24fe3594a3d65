"""Tests for the OpenAI speech/summary adapters and error translation."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from tts_relay.errors import (
    InternalTransportError,
    ProviderAuthError,
    ProviderError,
    ProviderQuotaError,
    RateLimitedError,
)
from tts_relay.services.openai_errors import translate_openai_error
from tts_relay.services.speech_client import SpeechClient
from tts_relay.services.summary_client import SummaryClient, SummaryConstraints

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/audio/speech")


def _status_error(cls, status_code: int, body: dict | None = None):
    response = httpx.Response(status_code, request=_REQUEST)
    return cls("provider said no", response=response, body=body)


# ------------------------------------------------------------------
# Error translation
# ------------------------------------------------------------------


def test_rate_limit_maps_to_rate_limited() -> None:
    error = translate_openai_error(
        _status_error(openai.RateLimitError, 429, {"code": "rate_limit_exceeded"})
    )

    assert isinstance(error, RateLimitedError)
    assert error.status_code == 429
    assert error.provider_code == 429


def test_insufficient_quota_maps_to_quota_error() -> None:
    error = translate_openai_error(
        _status_error(openai.RateLimitError, 429, {"code": "insufficient_quota"})
    )

    assert isinstance(error, ProviderQuotaError)
    assert error.to_payload()["type"] == "ProviderQuotaError"
    assert error.status_code == 402


def test_authentication_maps_to_auth_error() -> None:
    error = translate_openai_error(_status_error(openai.AuthenticationError, 401))

    assert isinstance(error, ProviderAuthError)
    assert error.status_code == 401


def test_connection_error_maps_to_transport_error() -> None:
    error = translate_openai_error(openai.APIConnectionError(request=_REQUEST))

    assert isinstance(error, InternalTransportError)
    assert error.status_code == 502


def test_other_status_keeps_upstream_code() -> None:
    error = translate_openai_error(_status_error(openai.NotFoundError, 404))

    assert type(error) is ProviderError
    assert error.status_code == 404
    assert error.to_payload() == {
        "error": "provider said no",
        "type": "ProviderError",
        "code": 404,
    }


# ------------------------------------------------------------------
# Speech client
# ------------------------------------------------------------------


def _speech_openai_client(chunks: list[bytes] | None = None, error: Exception | None = None):
    response = MagicMock()

    async def iter_bytes(chunk_size=None):
        for chunk in chunks or []:
            yield chunk

    response.iter_bytes = iter_bytes
    stream_ctx = MagicMock()
    stream_ctx.__aenter__ = AsyncMock(return_value=response)
    stream_ctx.__aexit__ = AsyncMock(return_value=False)

    client = MagicMock()
    create = client.audio.speech.with_streaming_response.create
    if error is not None:
        create.side_effect = error
    else:
        create.return_value = stream_ctx
    return client


@pytest.mark.asyncio
async def test_synthesize_joins_streamed_chunks() -> None:
    client = _speech_openai_client([b"ID3", b"\x00\x01", b"\x02"])
    speech = SpeechClient(client, model="tts-1", voice="alloy")

    audio = await speech.synthesize("Hello world.")

    assert audio == b"ID3\x00\x01\x02"
    client.audio.speech.with_streaming_response.create.assert_called_once_with(
        model="tts-1",
        voice="alloy",
        input="Hello world.",
        response_format="mp3",
    )


@pytest.mark.asyncio
async def test_synthesize_translates_rate_limit() -> None:
    client = _speech_openai_client(error=_status_error(openai.RateLimitError, 429))
    speech = SpeechClient(client)

    with pytest.raises(RateLimitedError):
        await speech.synthesize("Hello")


@pytest.mark.asyncio
async def test_synthesize_rejects_empty_audio() -> None:
    speech = SpeechClient(_speech_openai_client([]))

    with pytest.raises(InternalTransportError):
        await speech.synthesize("Hello")


# ------------------------------------------------------------------
# Summary client
# ------------------------------------------------------------------


def _chunk(content: str | None):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


def _summary_openai_client(pieces: list[str | None]):
    async def stream():
        yield SimpleNamespace(choices=[])
        for piece in pieces:
            yield _chunk(piece)

    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=stream())
    return client


@pytest.mark.asyncio
async def test_summarize_streams_and_reports_progress() -> None:
    client = _summary_openai_client(["The ", None, "gist", "."])
    summary = SummaryClient(client, model="gpt-4o-mini")
    progress: list[int] = []

    result = await summary.summarize(
        "Long text", SummaryConstraints(max_output_tokens=4), on_progress=progress.append
    )

    assert result == "The gist."
    assert progress == [25, 50, 75, 100]
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["max_tokens"] == 4
    assert kwargs["stream"] is True
    assert kwargs["messages"][1] == {"role": "user", "content": "Long text"}


@pytest.mark.asyncio
async def test_summarize_progress_stays_below_100_until_done() -> None:
    client = _summary_openai_client(["a"] * 10)
    progress: list[int] = []

    await SummaryClient(client, model="m").summarize(
        "text", SummaryConstraints(max_output_tokens=5), on_progress=progress.append
    )

    assert max(progress[:-1]) == 99
    assert progress[-1] == 100


@pytest.mark.asyncio
async def test_summarize_translates_auth_error() -> None:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        side_effect=_status_error(openai.AuthenticationError, 401)
    )

    with pytest.raises(ProviderAuthError):
        await SummaryClient(client, model="m").summarize(
            "text", SummaryConstraints(max_output_tokens=10)
        )
