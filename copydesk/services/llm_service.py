"""
LLM Service - OpenAI API wrapper for reply generation

Provides:
- generate(): system prompt + recent turns + new message -> reply text
- Deterministic fallback when no API key is configured
- Retries for transient errors, a hard timeout per call
- JSON completions for structured analysis (voice learning, preflight)
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import List, Dict, Any, Optional, Sequence

from openai import AsyncOpenAI, APIError, RateLimitError, APIConnectionError

from copydesk.config import settings
from copydesk.services.chat_log import HistoryTurn

logger = logging.getLogger(__name__)

EMPTY_REPLY = "No response yet. Try again in a moment."


class GenerationError(Exception):
    """The model call failed or timed out."""


@dataclass
class LLMResponse:
    """Response from LLM completion"""
    content: str
    model: str
    tokens_prompt: int
    tokens_completion: int
    tokens_total: int
    finish_reason: str


def fallback_reply(message: str) -> str:
    return f"Noted. {message}"


class LLMService:
    """
    OpenAI LLM Service.

    The client is built on first use. Two concurrent first uses may each
    build one; the later assignment wins and the other is dropped.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.openai_api_key
        self.default_model = model or settings.default_model
        self.default_temperature = settings.temperature
        self.default_max_tokens = settings.max_tokens
        self.timeout_seconds = timeout_seconds or settings.llm_timeout_seconds
        self._client: Optional[AsyncOpenAI] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self) -> Optional[AsyncOpenAI]:
        if not self.is_configured:
            return None
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    @staticmethod
    def build_messages(
        system_prompt: str,
        history: Sequence[HistoryTurn],
        message: str
    ) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend(turn.as_message() for turn in history)
        messages.append({"role": "user", "content": message})
        return messages

    async def generate(
        self,
        system_prompt: str,
        history: Sequence[HistoryTurn],
        message: str,
    ) -> str:
        """
        Generate a reply.

        Without a configured key this returns the deterministic fallback
        echo. Raises GenerationError on API failure or timeout.
        """
        if not self.is_configured:
            return fallback_reply(message)

        response = await self.complete(self.build_messages(system_prompt, history, message))
        text = (response.content or "").strip()
        return text or EMPTY_REPLY

    async def complete(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Generate a chat completion, bounded by the service timeout.

        Returns:
            LLMResponse with content and token usage
        """
        if not self.is_configured:
            raise GenerationError("OPENAI_API_KEY is not configured")
        try:
            return await asyncio.wait_for(
                self._complete_with_retries(messages, model, temperature, max_tokens, **kwargs),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"OpenAI call timed out after {self.timeout_seconds}s")
            raise GenerationError("Model call timed out") from e
        except APIError as e:
            raise GenerationError(str(e)) from e

    async def _complete_with_retries(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str],
        temperature: Optional[float],
        max_tokens: Optional[int],
        **kwargs
    ) -> LLMResponse:
        model = model or self.default_model
        temperature = temperature if temperature is not None else self.default_temperature
        max_tokens = max_tokens or self.default_max_tokens

        # Retry logic for transient errors
        max_retries = 3
        retry_delay = 1.0

        for attempt in range(max_retries):
            try:
                response = await self.client.chat.completions.create(
                    model=model,
                    messages=messages,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    **kwargs
                )

                choice = response.choices[0]
                usage = response.usage

                return LLMResponse(
                    content=choice.message.content or "",
                    model=response.model,
                    tokens_prompt=usage.prompt_tokens if usage else 0,
                    tokens_completion=usage.completion_tokens if usage else 0,
                    tokens_total=usage.total_tokens if usage else 0,
                    finish_reason=choice.finish_reason or ""
                )

            except (RateLimitError, APIConnectionError) as e:
                if attempt < max_retries - 1:
                    wait_time = retry_delay * (2 ** attempt)
                    logger.warning(f"Transient OpenAI error, retrying in {wait_time}s: {e}")
                    await asyncio.sleep(wait_time)
                else:
                    raise

            except APIError as e:
                logger.error(f"OpenAI API error: {e}")
                raise

    async def complete_json(
        self,
        messages: List[Dict[str, str]],
        **kwargs
    ) -> Dict[str, Any]:
        """
        Completion with JSON response format, parsed.

        Raises GenerationError when the reply is not a JSON object.
        """
        response = await self.complete(
            messages=messages,
            response_format={"type": "json_object"},
            **kwargs
        )
        try:
            data = json.loads(response.content or "{}")
        except json.JSONDecodeError as e:
            raise GenerationError(f"Model returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise GenerationError("Model returned a non-object JSON value")
        return data


# Singleton instance
_llm_service: Optional[LLMService] = None


def get_llm_service() -> LLMService:
    """Get the LLM service singleton."""
    global _llm_service
    if _llm_service is None:
        _llm_service = LLMService()
    return _llm_service
