"""Client for an OpenAI-compatible chat completion endpoint."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from meshcore_gateway.core.models import Completion

from .config import AiGateConfig

logger = logging.getLogger(__name__)


class AiGateError(Exception):
    """The completion request failed; the message is human-readable."""


def _error_message(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, dict):
        return error.get("message")
    if isinstance(error, str):
        return error
    return None


def _first_choice_text(data: Any) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return content.strip() if isinstance(content, str) else ""


class AiGateClient:
    def __init__(self, config: AiGateConfig, session: aiohttp.ClientSession | None = None) -> None:
        self.config = config
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout)
            )
            self._owns_session = True
        return self._session

    async def complete(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
        temperature: float | None = None,
        endpoint: str | None = None,
        api_key: str | None = None,
    ) -> Completion:
        endpoint = endpoint or self.config.endpoint
        model = model or self.config.model
        api_key = api_key or self.config.api_key
        system_prompt = system_prompt if system_prompt is not None else self.config.system_prompt
        temperature = temperature if temperature is not None else self.config.temperature
        max_tokens = max_tokens if max_tokens is not None else self.config.max_tokens

        if not endpoint:
            raise AiGateError("Missing endpoint")
        if not model:
            raise AiGateError("Missing model")
        if not prompt:
            raise AiGateError("Missing user prompt")

        messages = [{"role": "user", "content": prompt}]
        if system_prompt:
            messages.insert(0, {"role": "system", "content": system_prompt})
        payload: dict[str, Any] = {"model": model, "messages": messages}
        if temperature is not None:
            payload["temperature"] = temperature
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens

        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        logger.debug("AI gate request model=%s prompt_chars=%d", model, len(prompt))
        try:
            async with self._get_session().post(endpoint, json=payload, headers=headers) as response:
                try:
                    data = await response.json(content_type=None)
                except ValueError:
                    data = None
                if response.status >= 400:
                    raise AiGateError(_error_message(data) or response.reason or "Request failed")
        except aiohttp.ClientError as exc:
            raise AiGateError(f"AI gate request failed: {exc}") from exc
        except asyncio.TimeoutError as exc:
            raise AiGateError("AI gate request timed out") from exc

        return Completion(text=_first_choice_text(data), raw=data)

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
