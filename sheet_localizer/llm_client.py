from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from openai import APIError
from openai import OpenAI

from .config import LLMConfig, LLMProviderConfig
from .errors import MalformedResponse
from .reply_parser import extract_json


LOGGER = logging.getLogger(__name__)

_RETRY_INVALID_JSON_MESSAGE = (
    "The previous reply was not valid JSON. Reply strictly with valid JSON matching the schema."
)
_RETRY_TRUNCATED_MESSAGE = (
    "The previous reply was truncated. Keep the structure and return complete, valid JSON."
)


def _append_system_hints(messages: List[Dict[str, str]], hints: List[str]) -> List[Dict[str, str]]:
    """Return a fresh copy of messages extended with additional system hints."""

    updated = [msg.copy() for msg in messages]
    for hint in hints:
        updated.append({"role": "system", "content": hint})
    return updated


@dataclass
class _ProviderClient:
    priority: int
    config: LLMProviderConfig
    client: OpenAI
    model_name: str
    display_name: str


class LLMClient:
    """Wrapper around the OpenAI client with JSON enforcement and provider fallbacks."""

    def __init__(self, conf: LLMConfig) -> None:
        self._conf = conf
        self._providers: List[_ProviderClient] = []

        for priority, provider_conf in conf.provider_sequence:
            provider = self._build_provider(priority, provider_conf)
            if provider is not None:
                self._providers.append(provider)

        if not self._providers:
            msg = (
                "No valid LLM providers configured. Ensure that API keys and model identifiers "
                "are provided in the configuration or environment."
            )
            raise RuntimeError(msg)

    def generate(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        """Call the chat completion endpoint and return parsed JSON content."""

        last_error_messages: List[Tuple[str, str]] = []

        for provider in self._providers:
            try:
                return self._generate_with_provider(provider, messages)
            except RuntimeError as exc:
                LOGGER.warning(
                    "LLM provider '%s' failed after %s attempts: %s",
                    provider.display_name,
                    self._conf.max_retries,
                    exc,
                )
                last_error_messages.append((provider.display_name, str(exc)))

        errors_joined = ", ".join(
            f"{name}: {message}" for name, message in last_error_messages
        ) or "no providers produced a usable response"
        raise RuntimeError(f"All LLM providers failed: {errors_joined}")

    def _build_provider(
        self,
        priority: int,
        provider_conf: LLMProviderConfig,
    ) -> _ProviderClient | None:
        display_name = provider_conf.name or f"provider-{priority}"

        api_key = provider_conf.api_key
        if not api_key and provider_conf.api_key_env:
            api_key = os.environ.get(provider_conf.api_key_env)
        if not api_key:
            LOGGER.warning(
                "Skipping LLM provider '%s': API key is not configured",
                display_name,
            )
            return None

        model_name = provider_conf.model
        if not model_name and provider_conf.model_env:
            model_name = os.environ.get(provider_conf.model_env)
        if not model_name:
            LOGGER.warning(
                "Skipping LLM provider '%s': model identifier is not configured",
                display_name,
            )
            return None

        base_url = provider_conf.base_url
        if not base_url and provider_conf.base_url_env:
            base_url = os.environ.get(provider_conf.base_url_env)

        return _ProviderClient(
            priority=priority,
            config=provider_conf,
            client=OpenAI(api_key=api_key, base_url=base_url),
            model_name=model_name,
            display_name=display_name,
        )

    def _generate_with_provider(
        self,
        provider: _ProviderClient,
        messages: List[Dict[str, str]],
    ) -> Dict[str, Any]:
        max_attempts = self._conf.max_retries
        current_messages = [msg.copy() for msg in messages]
        last_content: str | None = None

        for attempt in range(1, max_attempts + 1):
            try:
                response = provider.client.chat.completions.create(
                    model=provider.model_name,
                    messages=current_messages,
                    temperature=provider.config.temperature,
                    max_tokens=provider.config.max_output_tokens,
                    response_format={"type": "json_object"},
                    timeout=provider.config.request_timeout,
                )
            except APIError as exc:
                raise RuntimeError(f"LLM request failed: {exc}") from exc

            if not response.choices:
                raise RuntimeError("LLM response does not contain choices")

            choice = response.choices[0]
            content = (choice.message.content or "").strip()
            last_content = content
            finish_reason = getattr(choice, "finish_reason", None)

            if finish_reason == "length" and attempt < max_attempts:
                LOGGER.warning(
                    "LLM response truncated (finish_reason=length); retrying (%s/%s)",
                    attempt,
                    max_attempts,
                )
                current_messages = _append_system_hints(messages, [_RETRY_TRUNCATED_MESSAGE])
                continue
            if finish_reason and finish_reason not in ("stop", "length"):
                raise RuntimeError(
                    f"LLM response ended prematurely (finish_reason={finish_reason}): {content}"
                )

            try:
                return extract_json(content)
            except MalformedResponse as exc:
                if attempt < max_attempts:
                    LOGGER.warning(
                        "Failed to parse LLM JSON response on attempt %s/%s: %s",
                        attempt,
                        max_attempts,
                        exc,
                    )
                    current_messages = _append_system_hints(messages, [_RETRY_INVALID_JSON_MESSAGE])
                    continue
                raise RuntimeError(f"Failed to parse LLM JSON response: {content}") from exc

        raise RuntimeError(
            f"Failed to produce valid JSON after {max_attempts} attempts: {last_content or ''}"
        )
