from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import requests

from .config import ApiConfig, AppConfig
from .errors import ClientError, ConfigError, HttpError, ParseError, ResponseValidationError, TransportError
from .llm_client import LLMClient
from .models import TranslationRequest
from .prompt_builder import build_localization_messages
from .reply_parser import parse_item_reply

LOGGER = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 30.0
BODY_EXCERPT_LIMIT = 500


def build_payload(batch: Sequence[TranslationRequest]) -> Dict[str, Any]:
    return {"batch": [request.to_payload() for request in batch]}


def backoff_delay(attempt: int, base_delay_ms: int) -> float:
    """Seconds to wait after the zero-based ``attempt`` failed."""

    return min(base_delay_ms / 1000.0 * (2 ** attempt), MAX_BACKOFF_SECONDS)


def authorization_header(api_key: str, scheme: str) -> str:
    scheme = (scheme or "").strip()
    if not scheme or api_key.startswith(f"{scheme} "):
        return api_key
    return f"{scheme} {api_key}"


class TranslationClient(ABC):
    """Sends one batch per call and retries failed calls with backoff."""

    def __init__(self, max_retries: int = 2, retry_base_delay_ms: int = 1000) -> None:
        self._max_retries = max_retries
        self._retry_base_delay_ms = retry_base_delay_ms
        self.calls = 0

    def translate_batch(self, batch: Sequence[TranslationRequest]) -> Any:
        """Return the parsed response for ``batch``; raise the last error when all attempts fail."""

        total_attempts = self._max_retries + 1
        for attempt in range(total_attempts):
            self.calls += 1
            try:
                return self._send(batch)
            except ClientError as exc:
                if attempt == total_attempts - 1:
                    raise
                wait_time = backoff_delay(attempt, self._retry_base_delay_ms)
                LOGGER.warning(
                    "Translation request failed on attempt %s/%s (%s); retrying in %.1f seconds",
                    attempt + 1,
                    total_attempts,
                    exc,
                    wait_time,
                )
                time.sleep(wait_time)

        raise RuntimeError("Translation request failed without capturing an exception")

    @abstractmethod
    def _send(self, batch: Sequence[TranslationRequest]) -> Any:
        ...

    def close(self) -> None:
        pass


class HttpTranslationClient(TranslationClient):
    """POSTs ``{"batch": [...]}`` to the configured endpoint."""

    def __init__(
        self,
        conf: ApiConfig,
        endpoint: str,
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__(conf.max_retries, conf.retry_base_delay_ms)
        self._endpoint = endpoint
        self._timeout = conf.timeout_ms / 1000.0
        self._session = session or requests.Session()
        self._headers = {"Content-Type": "application/json"}
        api_key = conf.resolve_api_key()
        if api_key:
            self._headers["Authorization"] = authorization_header(api_key, conf.auth_scheme)

    def _send(self, batch: Sequence[TranslationRequest]) -> Any:
        try:
            response = self._session.post(
                self._endpoint,
                json=build_payload(batch),
                headers=self._headers,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"API request failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise HttpError(response.status_code, response.text[:BODY_EXCERPT_LIMIT])

        try:
            return response.json()
        except ValueError as exc:
            raise ParseError("API returned a non-JSON response") from exc

    def close(self) -> None:
        self._session.close()


class DryRunClient(TranslationClient):
    """Fabricates deterministic translations without touching the network."""

    def __init__(self) -> None:
        super().__init__(max_retries=0)

    def _send(self, batch: Sequence[TranslationRequest]) -> Dict[str, Any]:
        return {
            "data": [
                {
                    "label": request.label,
                    "localization": {
                        code: f"[SIM:{code}] {request.source_text}" for code in request.languages
                    },
                }
                for request in batch
            ]
        }


class LLMTranslationClient(TranslationClient):
    """Translates each request through chat models and assembles a batch response."""

    def __init__(
        self,
        conf: ApiConfig,
        llm: LLMClient,
        product_context: Optional[str] = None,
    ) -> None:
        super().__init__(conf.max_retries, conf.retry_base_delay_ms)
        self._llm = llm
        self._product_context = product_context

    def _send(self, batch: Sequence[TranslationRequest]) -> Dict[str, Any]:
        items: List[Dict[str, Any]] = []
        for request in batch:
            messages = build_localization_messages(request, self._product_context)
            try:
                reply = self._llm.generate(messages)
            except RuntimeError as exc:
                raise TransportError(str(exc)) from exc
            try:
                items.append(parse_item_reply(reply, request))
            except ResponseValidationError as exc:
                raise ParseError(f"Unusable reply for label '{request.label}': {exc}") from exc
        return {"data": items}


def build_client(config: AppConfig) -> TranslationClient:
    """Create the client for the configured backend; raises ConfigError when unusable."""

    if config.dry_run:
        return DryRunClient()

    if config.api.backend == "llm":
        if config.llm is None:
            raise ConfigError("api.backend 'llm' requires an 'llm' section")
        try:
            llm = LLMClient(config.llm)
        except RuntimeError as exc:
            raise ConfigError(str(exc)) from exc
        return LLMTranslationClient(config.api, llm, config.llm.product_context)

    endpoint = config.api.resolve_endpoint()
    if not endpoint:
        raise ConfigError("Translation endpoint is not configured (api.endpoint)")
    return HttpTranslationClient(config.api, endpoint)
