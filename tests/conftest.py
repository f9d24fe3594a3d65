import pathlib
import sys

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from tts_relay.config import get_settings  # noqa: E402


class FakeSpeechClient:
    """Speech adapter stand-in: audio is the UTF-8 encoded input text."""

    def __init__(self, behaviour=None) -> None:
        self.calls: list[str] = []
        self._behaviour = behaviour

    async def synthesize(self, text: str) -> bytes:
        self.calls.append(text)
        if self._behaviour is not None:
            return await self._behaviour(text, len(self.calls))
        return text.encode("utf-8")


class FakeSummaryClient:
    def __init__(self, summary: str = "A short summary.", error: Exception | None = None) -> None:
        self.summary = summary
        self.error = error
        self.calls: list[tuple[str, object]] = []

    async def summarize(self, text, constraints, on_progress=None) -> str:
        self.calls.append((text, constraints))
        if self.error is not None:
            raise self.error
        if on_progress is not None:
            on_progress(50)
            on_progress(100)
        return self.summary


class FakeProviderClients:
    """Mimics ``ProviderClients`` while recording which keys were used."""

    def __init__(self, speech=None, summary=None) -> None:
        self.speech_client = speech or FakeSpeechClient()
        self.summary_client = summary or FakeSummaryClient()
        self.speech_keys: list[str] = []
        self.summary_keys: list[str] = []
        self.closed = False

    def speech(self, api_key: str) -> FakeSpeechClient:
        self.speech_keys.append(api_key)
        return self.speech_client

    def summary(self, api_key: str) -> FakeSummaryClient:
        self.summary_keys.append(api_key)
        return self.summary_client

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_clients() -> FakeProviderClients:
    return FakeProviderClients()


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
