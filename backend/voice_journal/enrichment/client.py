"""HTTP client for the transcription and summarization service."""

from __future__ import annotations

import logging
import os
from typing import Any

import requests

from voice_journal.core.config import Settings
from voice_journal.core.errors import (
    EmptyEnrichmentResponse,
    EnrichmentAPIError,
    EnrichmentNetworkError,
    EnrichmentNotConfigured,
    EnrichmentQuotaExceeded,
    InvalidAPIKey,
)
from voice_journal.security.keychain import API_KEY_ACCOUNT, get_secret

logger = logging.getLogger(__name__)

PLACEHOLDER_API_KEY = "YOUR_OPENAI_API_KEY_HERE"

SUMMARY_PROMPT = (
    "Please provide a concise summary of the following voice journal entry. "
    "Focus on the main topics, key insights, and important details. "
    "Keep it brief but comprehensive:\n\n{transcript}"
)

_AUDIO_CONTENT_TYPES = {
    ".m4a": "audio/m4a",
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".flac": "audio/flac",
    ".ogg": "audio/ogg",
}


def resolve_api_key(settings: Settings) -> str | None:
    """Pick the API key from settings, the environment, then the OS keychain."""
    candidates = [settings.openai_api_key, os.environ.get("OPENAI_API_KEY")]
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()
    if settings.use_keychain:
        return get_secret(API_KEY_ACCOUNT)
    return None


class EnrichmentClient:
    """Talks to an OpenAI-compatible API: Whisper transcription and chat summaries."""

    def __init__(
        self,
        settings: Settings,
        api_key: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.settings = settings
        self.base_url = settings.openai_base_url.rstrip("/")
        self.timeout = settings.request_timeout
        self._api_key = api_key if api_key is not None else resolve_api_key(settings)
        self._session = session or requests.Session()

    def is_configured(self) -> bool:
        key = self._api_key
        return bool(key) and key != PLACEHOLDER_API_KEY

    def set_api_key(self, api_key: str | None) -> None:
        self._api_key = api_key

    def transcribe(self, audio_bytes: bytes, filename: str) -> str:
        self._require_key()
        data: dict[str, str] = {
            "model": self.settings.transcription_model,
            "response_format": "json",
        }
        if self.settings.transcription_language:
            data["language"] = self.settings.transcription_language
        extension = os.path.splitext(filename)[1].lower()
        files = {"file": (filename, audio_bytes, _AUDIO_CONTENT_TYPES.get(extension, "application/octet-stream"))}
        payload = self._post("/audio/transcriptions", data=data, files=files)
        text = payload.get("text")
        if text is None:
            raise EmptyEnrichmentResponse()
        return str(text).strip()

    def summarize(self, text: str) -> str:
        self._require_key()
        body = {
            "model": self.settings.summary_model,
            "messages": [{"role": "user", "content": SUMMARY_PROMPT.format(transcript=text)}],
            "max_tokens": self.settings.summary_max_tokens,
            "temperature": self.settings.summary_temperature,
        }
        return self._first_choice(self._post("/chat/completions", json=body))

    def validate_api_key(self) -> bool:
        """Send a tiny chat request; raises ``InvalidAPIKey`` when it is rejected."""
        self._require_key()
        body = {
            "model": self.settings.summary_model,
            "messages": [{"role": "user", "content": "Hello"}],
            "max_tokens": 5,
            "temperature": 0.1,
        }
        try:
            self._post("/chat/completions", json=body)
        except EnrichmentAPIError as exc:
            raise InvalidAPIKey() from exc
        return True

    # Internal helpers -------------------------------------------------

    def _require_key(self) -> None:
        if not self.is_configured():
            raise EnrichmentNotConfigured()

    def _post(self, path: str, **kwargs: Any) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            resp = self._session.post(url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("Request to %s failed: %s", url, exc)
            raise EnrichmentNetworkError() from exc
        if resp.status_code == 401:
            raise InvalidAPIKey()
        if resp.status_code == 429:
            raise EnrichmentQuotaExceeded(_error_message(resp) or None)
        if resp.status_code != 200:
            detail = _error_message(resp) or f"HTTP {resp.status_code}"
            raise EnrichmentAPIError(f"OpenAI API error: {detail}", status=resp.status_code)
        try:
            return resp.json()
        except ValueError as exc:
            raise EnrichmentAPIError("OpenAI API returned invalid JSON") from exc

    @staticmethod
    def _first_choice(payload: dict[str, Any]) -> str:
        choices = payload.get("choices") or []
        if not choices:
            raise EmptyEnrichmentResponse()
        content = choices[0].get("message", {}).get("content") or ""
        return content.strip()


def _error_message(resp: requests.Response) -> str | None:
    try:
        payload = resp.json()
    except ValueError:
        return None
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return None


__all__ = ["EnrichmentClient", "resolve_api_key", "PLACEHOLDER_API_KEY", "SUMMARY_PROMPT"]
