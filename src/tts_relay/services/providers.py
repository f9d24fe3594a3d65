"""Pooled OpenAI clients and the adapters built on top of them."""

from __future__ import annotations

import logging

import httpx
import openai

from ..config import Settings
from .speech_client import SpeechClient
from .summary_client import SummaryClient

logger = logging.getLogger(__name__)


class ProviderClients:
    """Build speech and summary adapters for a given credential.

    Every ``openai.AsyncOpenAI`` shares a single ``httpx.AsyncClient`` so
    connections are pooled across requests. SDK-level retries are disabled;
    ``RateScheduler`` owns the retry policy.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._http_client: httpx.AsyncClient | None = None
        self._client_pool: dict[str, openai.AsyncOpenAI] = {}

    @property
    def _base_url(self) -> str:
        return str(self._settings.openai_base_url).rstrip("/")

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            timeout = httpx.Timeout(self._settings.request_timeout, connect=10.0)
            limits = httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
            )
            self._http_client = httpx.AsyncClient(timeout=timeout, limits=limits)
            logger.info("Created shared httpx.AsyncClient for provider calls")
        return self._http_client

    def _build_client(self, api_key: str) -> openai.AsyncOpenAI:
        return openai.AsyncOpenAI(
            api_key=api_key,
            base_url=self._base_url,
            max_retries=0,
            http_client=self._get_http_client(),
        )

    def openai_client(self, api_key: str) -> openai.AsyncOpenAI:
        """Return a client for ``api_key``.

        Only the server's configured key is pooled. Keys supplied in request
        bodies get a throwaway client on the shared transport and are not
        retained.
        """
        if api_key != self._settings.resolve_api_key():
            return self._build_client(api_key)

        client = self._client_pool.get(api_key)
        if client is None:
            client = self._build_client(api_key)
            self._client_pool[api_key] = client
        return client

    def speech(self, api_key: str) -> SpeechClient:
        return SpeechClient(
            self.openai_client(api_key),
            model=self._settings.tts_model,
            voice=self._settings.tts_voice,
            response_format=self._settings.tts_response_format,
        )

    def summary(self, api_key: str) -> SummaryClient:
        return SummaryClient(
            self.openai_client(api_key),
            model=self._settings.summary_model,
        )

    async def aclose(self) -> None:
        """Close the shared HTTP client. Call on app shutdown."""
        self._client_pool.clear()
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
            logger.info("Closed provider HTTP client")


__all__ = ["ProviderClients"]
