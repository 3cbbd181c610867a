"""Thin REST client for the Gemini file API and generateContent endpoint.

Only the pieces the question extraction pipeline needs are implemented: the
two-phase resumable upload, remote file state polling, and a single-turn
generateContent call with a file reference part.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

import httpx
from pydantic import BaseModel

from app.core.settings import settings

logger = logging.getLogger(__name__)

FILE_STATE_PROCESSING = "PROCESSING"
FILE_STATE_FAILED = "FAILED"


class GeminiError(Exception):
    """Base class for Gemini client failures."""


class GeminiConfigurationError(GeminiError):
    """The client cannot be used at all (e.g. no API key)."""


class GeminiTransportError(GeminiError):
    """A request to the Gemini API failed or returned an unusable response."""


class UsageMetadata(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class GenerateContentResult(BaseModel):
    text: str | None = None
    usage: UsageMetadata = UsageMetadata()


class GeminiClient:
    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        poll_interval: float | None = None,
        poll_timeout: float | None = None,
        http_client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        if not self.api_key:
            raise GeminiConfigurationError(
                "Gemini API key not configured. Set QUESTION_BANK_GEMINI_API_KEY."
            )
        self.base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self.poll_interval = (
            poll_interval
            if poll_interval is not None
            else settings.gemini_file_poll_interval_seconds
        )
        self.poll_timeout = (
            poll_timeout
            if poll_timeout is not None
            else settings.gemini_file_poll_timeout_seconds
        )
        self._sleep = sleep
        self._clock = clock
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(
            timeout=timeout if timeout is not None else settings.gemini_timeout_seconds
        )

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> GeminiClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise GeminiTransportError(f"{method} {url} failed: {e}") from e

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise GeminiTransportError("Gemini returned a non-JSON response") from e
        if not isinstance(data, dict):
            raise GeminiTransportError("Gemini returned an unexpected JSON payload")
        return data

    def upload_file(
        self,
        content: bytes,
        display_name: str,
        *,
        mime_type: str = "application/pdf",
        on_processing: Callable[[], None] | None = None,
    ) -> str:
        """Upload bytes through a resumable session and wait until the file is usable.

        Returns the remote file URI. `on_processing` fires once if the remote side
        reports the file as still PROCESSING after the upload.
        """
        start = self._request(
            "POST",
            f"{self.base_url}/upload/v1beta/files",
            params={"key": self.api_key},
            headers={
                "X-Goog-Upload-Protocol": "resumable",
                "X-Goog-Upload-Command": "start",
                "X-Goog-Upload-Header-Content-Length": str(len(content)),
                "X-Goog-Upload-Header-Content-Type": mime_type,
                "Content-Type": "application/json",
            },
            json={"file": {"display_name": display_name}},
        )
        if not start.is_success:
            raise GeminiTransportError(
                f"Failed to get upload URL: {start.status_code} {start.reason_phrase}"
            )

        upload_url = start.headers.get("X-Goog-Upload-URL")
        if not upload_url:
            raise GeminiTransportError("No upload URL returned")

        uploaded = self._request(
            "POST",
            upload_url,
            headers={
                "X-Goog-Upload-Offset": "0",
                "X-Goog-Upload-Command": "upload, finalize",
            },
            content=content,
        )
        if not uploaded.is_success:
            raise GeminiTransportError(
                f"File upload failed: {uploaded.status_code} {uploaded.reason_phrase}"
            )

        file_info = self._json(uploaded).get("file") or {}
        file_name = file_info.get("name")
        file_uri = file_info.get("uri")
        if not file_name or not file_uri:
            raise GeminiTransportError("Upload response is missing file name/uri")

        state = file_info.get("state")
        if state == FILE_STATE_PROCESSING:
            if on_processing is not None:
                on_processing()
            self._wait_until_processed(file_name)
        elif state == FILE_STATE_FAILED:
            raise GeminiTransportError("File processing failed")

        logger.debug("Uploaded %s as %s", display_name, file_uri)
        return file_uri

    def _wait_until_processed(self, file_name: str) -> None:
        deadline = self._clock() + self.poll_timeout
        state = FILE_STATE_PROCESSING
        while state == FILE_STATE_PROCESSING:
            if self._clock() >= deadline:
                raise GeminiTransportError(
                    f"File {file_name} still processing after {self.poll_timeout:.0f}s"
                )
            self._sleep(self.poll_interval)

            response = self._request(
                "GET",
                f"{self.base_url}/v1beta/{file_name}",
                params={"key": self.api_key},
            )
            if not response.is_success:
                raise GeminiTransportError(
                    f"File state check failed: {response.status_code} {response.reason_phrase}"
                )
            state = self._json(response).get("state")
            if state == FILE_STATE_FAILED:
                raise GeminiTransportError("File processing failed")

    def generate_content(
        self,
        *,
        model: str,
        file_uri: str,
        prompt: str,
        mime_type: str = "application/pdf",
        temperature: float = 0.1,
        max_output_tokens: int | None = None,
    ) -> GenerateContentResult:
        body = {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"file_data": {"mime_type": mime_type, "file_uri": file_uri}},
                        {"text": prompt},
                    ],
                }
            ],
            "generationConfig": {
                "responseMimeType": "application/json",
                "temperature": temperature,
                "maxOutputTokens": max_output_tokens
                or settings.gemini_max_output_tokens,
            },
        }
        response = self._request(
            "POST",
            f"{self.base_url}/v1beta/models/{model}:generateContent",
            params={"key": self.api_key},
            json=body,
        )
        if not response.is_success:
            raise GeminiTransportError(
                f"Gemini API error: {response.status_code} {response.reason_phrase}"
            )

        data = self._json(response)
        usage = data.get("usageMetadata") or {}
        return GenerateContentResult(
            text=_first_candidate_text(data),
            usage=UsageMetadata(
                prompt_tokens=int(usage.get("promptTokenCount") or 0),
                completion_tokens=int(usage.get("candidatesTokenCount") or 0),
                total_tokens=int(usage.get("totalTokenCount") or 0),
            ),
        )


def _first_candidate_text(data: dict[str, Any]) -> str | None:
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) else None
