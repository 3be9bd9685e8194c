"""HTTP client for the Gemini generateContent endpoint.

Uses httpx with configurable timeouts. Exactly one request is sent per
call; re-attempts are left to the user.
"""

import logging
from typing import Any

import httpx

from config import settings

logger = logging.getLogger(__name__)


class ExtractionConfigError(Exception):
    """The extraction service credential is not configured."""


class ExtractionServiceError(Exception):
    """The extraction service could not be reached or returned an error."""


class GeminiClient:
    """HTTP client for schema-constrained generation."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        thinking_budget: int | None = None,
        timeout: int | None = None,
        connect_timeout: int | None = None,
    ):
        self._api_key = api_key if api_key is not None else settings.API_KEY
        self._model = model or settings.GEMINI_MODEL
        self._base_url = (base_url or settings.GEMINI_BASE_URL).rstrip("/")
        self._thinking_budget = thinking_budget if thinking_budget is not None else settings.GEMINI_THINKING_BUDGET

        read_timeout = timeout if timeout is not None else settings.GEMINI_TIMEOUT_SECONDS
        conn_timeout = connect_timeout if connect_timeout is not None else settings.GEMINI_CONNECT_TIMEOUT

        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=httpx.Timeout(
                connect=float(conn_timeout),
                read=float(read_timeout),
                write=60.0,
                pool=30.0,
            ),
        )

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    @property
    def model(self) -> str:
        return self._model

    def close(self):
        self._client.close()

    def ensure_configured(self) -> None:
        if not self._api_key:
            raise ExtractionConfigError("API Key is missing in environment variables.")

    def generate(self, parts: list[dict[str, Any]], response_schema: dict[str, Any]) -> str:
        """Send one generateContent request and return the response text.

        Raises ExtractionConfigError before any request when no credential is set,
        and ExtractionServiceError on transport failures, non-200 responses and
        empty responses.
        """
        self.ensure_configured()

        payload = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": response_schema,
                "thinkingConfig": {"thinkingBudget": self._thinking_budget},
            },
        }

        try:
            resp = self._client.post(
                f"/models/{self._model}:generateContent",
                json=payload,
                headers={"x-goog-api-key": self._api_key},
            )
        except httpx.TimeoutException as e:
            logger.error("Extraction service timed out: %s", e)
            raise ExtractionServiceError(f"Extraction service timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.error("Extraction service connection failed: %s", e)
            raise ExtractionServiceError(f"Cannot reach extraction service: {e}") from e

        if resp.status_code != 200:
            detail = _error_detail(resp)
            logger.error("Extraction service error %d: %s", resp.status_code, detail)
            raise ExtractionServiceError(detail)

        text = response_text(resp.json())
        if not text:
            raise ExtractionServiceError("No response generated.")
        return text

    def health(self) -> dict:
        """Look up the configured model. Returns a status dict, never raises."""
        if not self._api_key:
            return {"status": "unconfigured", "model": self._model}
        try:
            resp = self._client.get(
                f"/models/{self._model}",
                headers={"x-goog-api-key": self._api_key},
                timeout=10.0,
            )
        except httpx.HTTPError as e:
            logger.warning("Extraction service health check failed: %s", e)
            return {"status": "unreachable", "model": self._model, "error": str(e)}

        if resp.status_code != 200:
            return {"status": "error", "model": self._model, "error": _error_detail(resp)}
        return {"status": "ok", "model": self._model}


def response_text(data: dict) -> str:
    """Concatenate the text parts of the first candidate, skipping thoughts."""
    candidates = data.get("candidates") or []
    if not candidates:
        return ""

    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(
        part.get("text", "")
        for part in parts
        if not part.get("thought")
    )


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"

    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return f"HTTP {resp.status_code}"
