"""Async client for LanguageTool-compatible grammar endpoints."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, Protocol, Sequence

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

LOGGER = logging.getLogger(__name__)

RequestFormat = Literal["json", "form"]
_RETRYABLE_STATUS = frozenset({408, 429, 500, 502, 503, 504})


class GrammarServiceError(RuntimeError):
    """Raised when the grammar service answers with an unusable response."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    @property
    def retryable(self) -> bool:
        return self.status_code in _RETRYABLE_STATUS


class GrammarChecker(Protocol):
    """Anything that can turn text into raw LanguageTool-style matches."""

    async def check(self, text: str, *, language: str | None = None) -> Sequence[Mapping[str, Any]]:
        ...


@dataclass(slots=True)
class GrammarClientSettings:
    """Subset of settings required to talk to the grammar service."""

    endpoint: str = "https://api.languagetool.org/v2/check"
    language: str = "en-US"
    request_format: RequestFormat = "form"
    request_timeout: float | None = 30.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    level: str | None = None
    disabled_rules: tuple[str, ...] = ()
    username: str | None = None
    api_key: str | None = None
    default_headers: Mapping[str, str] = field(default_factory=dict)
    debug_logging: bool = False


class GrammarClient:
    """POSTs text to the grammar endpoint and returns its ``matches`` list."""

    def __init__(
        self,
        settings: GrammarClientSettings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or GrammarClientSettings()
        self._owns_client = client is None
        self._client = client or self._build_client(self._settings)

    @property
    def settings(self) -> GrammarClientSettings:
        return self._settings

    async def check(self, text: str, *, language: str | None = None) -> List[Dict[str, Any]]:
        """Return the raw matches reported for ``text``."""

        payload = self._build_payload(text, language or self._settings.language)
        LOGGER.debug(
            "Submitting %d char(s) to %s (%s)",
            len(text),
            self._settings.endpoint,
            self._settings.request_format,
        )
        response: httpx.Response | None = None
        async for attempt in self._retrying():
            with attempt:
                response = await self._post(payload)
                self._raise_for_status(response)
        assert response is not None
        return self._parse_matches(response)

    async def aclose(self) -> None:
        """Close the underlying HTTP client when this instance created it."""

        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> GrammarClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _build_client(self, settings: GrammarClientSettings) -> httpx.AsyncClient:
        headers = {"Accept": "application/json"}
        headers.update(settings.default_headers)
        return httpx.AsyncClient(timeout=settings.request_timeout, headers=headers)

    def _build_payload(self, text: str, language: str) -> Dict[str, Any]:
        if self._settings.request_format == "json":
            return {"text": text, "language": language}
        form: Dict[str, Any] = {"text": text, "language": language, "enabledOnly": "false"}
        if self._settings.level:
            form["level"] = self._settings.level
        if self._settings.disabled_rules:
            form["disabledRules"] = ",".join(self._settings.disabled_rules)
        if self._settings.username and self._settings.api_key:
            form["username"] = self._settings.username
            form["apiKey"] = self._settings.api_key
        return form

    async def _post(self, payload: Mapping[str, Any]) -> httpx.Response:
        if self._settings.debug_logging:
            LOGGER.debug("Grammar payload:\n%s", json.dumps(payload, ensure_ascii=False, indent=2))
        if self._settings.request_format == "json":
            return await self._client.post(self._settings.endpoint, json=dict(payload))
        return await self._client.post(self._settings.endpoint, data=dict(payload))

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception(_is_retryable),
        )

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        raise GrammarServiceError(
            f"Grammar service returned HTTP {response.status_code}",
            status_code=response.status_code,
            body=response.text[:500],
        )

    @staticmethod
    def _parse_matches(response: httpx.Response) -> List[Dict[str, Any]]:
        try:
            data = response.json()
        except ValueError as exc:
            raise GrammarServiceError(
                "Grammar service returned a non-JSON body",
                status_code=response.status_code,
                body=response.text[:500],
            ) from exc
        matches = data.get("matches") if isinstance(data, Mapping) else None
        if not isinstance(matches, list):
            LOGGER.warning("Unexpected grammar response shape; treating as no matches")
            return []
        return [match for match in matches if isinstance(match, Mapping)]


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, GrammarServiceError):
        return exc.retryable
    return isinstance(exc, (httpx.TimeoutException, httpx.TransportError))


__all__ = [
    "GrammarChecker",
    "GrammarClient",
    "GrammarClientSettings",
    "GrammarServiceError",
    "RequestFormat",
]
