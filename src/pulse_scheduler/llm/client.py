# src/pulse_scheduler/llm/client.py

from __future__ import annotations

import logging
import time
from typing import Any

import httpx
import openai
from openai import OpenAI

from ..config import Settings
from ..core.ports import ChatMessage

logger = logging.getLogger(__name__)

_BAD_MODEL_COOLDOWN_S = 3600.0


class LLMNotConfiguredError(RuntimeError):
    """Raised when no API key / base URL / model list is available."""


def _is_auth_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return True
    return exc.__class__.__name__ in {"UnauthorizedError"}


def _is_rate_limit_error(exc: Exception) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    return exc.__class__.__name__ in {"TooManyRequestsError"}


def _is_connection_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.APIConnectionError, httpx.TimeoutException)):
        return True
    return exc.__class__.__name__ in {"Timeout", "ConnectTimeout", "ReadTimeout", "WriteTimeout"}


def _is_not_found_error(exc: Exception) -> bool:
    # OpenAI-compatible endpoints use NotFoundError for unknown models
    return isinstance(exc, openai.NotFoundError)


def friendly_llm_error_message(err: Exception) -> str:
    msg = str(err).strip() or "LLM error."
    if isinstance(err, LLMNotConfiguredError):
        if "model list" in msg:
            return "LLM is not configured (no models). Set PULSE_LLM_MODELS in .env."
        if "base URL" in msg:
            return "LLM is not configured (missing base URL). Set PULSE_LLM_BASE_URL in .env."
        return "LLM is not configured (missing API key). Set PULSE_LLM_API_KEY in .env."
    return msg


def _message_text(response: Any) -> str:
    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, TypeError):
        return ""
    return content or ""


class OpenAICompatLLMClient:
    """
    Chat completion client for any OpenAI-compatible endpoint (Gemini, OpenRouter, OpenAI).

    Behavior:
    - Tries models in the configured order.
    - 404 (model not available) -> model is skipped for an hour, try next.
    - Rate limit / network issues / empty output -> try next.
    - Auth issues -> fail fast (no retries across models).
    - SDK retries are disabled so fallback across models stays quick.
    """

    def __init__(self, settings: Settings) -> None:
        api_key = (settings.llm_api_key or "").strip()
        base_url = (settings.llm_base_url or "").strip()

        if not api_key:
            raise LLMNotConfiguredError("LLM API key is not set. Set PULSE_LLM_API_KEY in your .env.")
        if not base_url:
            raise LLMNotConfiguredError("LLM base URL is not set. Set PULSE_LLM_BASE_URL in your .env.")

        self._models = [m.strip() for m in settings.llm_models if m and m.strip()]
        if not self._models:
            raise LLMNotConfiguredError("LLM model list is empty. Set PULSE_LLM_MODELS in your .env.")

        self._bad_models: dict[str, float] = {}  # model -> retry_at (monotonic)
        self._client = OpenAI(
            base_url=base_url,
            api_key=api_key,
            timeout=httpx.Timeout(
                connect=settings.llm_connect_timeout_seconds,
                read=settings.llm_read_timeout_seconds,
                write=10.0,
                pool=settings.llm_connect_timeout_seconds,
            ),
            max_retries=0,
        )

    @property
    def models(self) -> list[str]:
        return list(self._models)

    def complete(
            self,
            messages: list[ChatMessage],
            system_prompt: str,
            *,
            json_mode: bool = False,
    ) -> str:
        last_error: Exception | None = None
        now = time.monotonic()

        for model in self._models:
            retry_at = self._bad_models.get(model)
            if retry_at is not None and retry_at > now:
                continue

            logger.info("LLM: trying model=%s json_mode=%s", model, json_mode)
            t0 = time.monotonic()

            kwargs: dict[str, Any] = {}
            if json_mode:
                kwargs["response_format"] = {"type": "json_object"}

            try:
                response = self._client.chat.completions.create(
                    model=model,
                    messages=[{"role": "system", "content": system_prompt}, *messages],
                    **kwargs,
                )
            except Exception as e:
                last_error = e

                if _is_auth_error(e):
                    raise RuntimeError(
                        "LLM authentication failed. Check your API key (PULSE_LLM_API_KEY)."
                    ) from e

                if _is_not_found_error(e):
                    self._bad_models[model] = time.monotonic() + _BAD_MODEL_COOLDOWN_S
                    logger.info("LLM: model not available (404): %s", model)
                    continue

                if _is_rate_limit_error(e):
                    logger.info("LLM: rate-limited on model=%s, trying next", model)
                    continue

                if _is_connection_error(e):
                    logger.info("LLM: network/timeout error on model=%s, trying next", model)
                    continue

                logger.info("LLM: error on model=%s (%s), trying next", model, e.__class__.__name__)
                continue

            text = _message_text(response)
            if text.strip():
                logger.debug("LLM: completed with model=%s (%.2fs)", model, time.monotonic() - t0)
                return text

            last_error = RuntimeError(f"Model returned no content: {model}")

        if last_error is not None:
            if _is_rate_limit_error(last_error):
                raise RuntimeError("LLM is rate-limited. Try again later.") from last_error
            if _is_connection_error(last_error):
                raise RuntimeError("LLM network/timeout error. Try again later or change models.") from last_error
            raise RuntimeError("All LLM models failed.") from last_error

        raise RuntimeError("All LLM models failed.")
