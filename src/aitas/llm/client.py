# src/aitas/llm/client.py

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from ..config import Settings
from ..core.ports import Reasoner
from .offline import OfflineReasoner

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_SECONDS = 2.0


class ReasoningError(RuntimeError):
    """Every configured backend failed (timeout, HTTP error, empty answer...)."""


def _is_auth_error(exc: BaseException) -> bool:
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return True
    return exc.__class__.__name__ in {"UnauthorizedError"}


def _is_rate_limit_error(exc: BaseException) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    return exc.__class__.__name__ in {"TooManyRequestsError"}


def _is_connection_error(exc: BaseException) -> bool:
    if isinstance(exc, (asyncio.TimeoutError, openai.APIConnectionError, httpx.TimeoutException)):
        return True
    return exc.__class__.__name__ in {"ConnectTimeout", "ReadTimeout", "WriteTimeout"}


def _is_not_found_error(exc: BaseException) -> bool:
    return isinstance(exc, openai.NotFoundError)


def _describe(exc: BaseException) -> str:
    if _is_auth_error(exc):
        return "auth"
    if _is_rate_limit_error(exc):
        return "rate-limited"
    if _is_not_found_error(exc):
        return "model not found (404)"
    if _is_connection_error(exc):
        return "network/timeout"
    return exc.__class__.__name__


def friendly_llm_error_message(err: Exception) -> str:
    msg = str(err).strip() or "LLM error."
    if "Gemini API key is not set" in msg:
        return "Cloud AI is not configured (missing API key). Set AITAS_GEMINI_API_KEY in .env."
    if "No reasoning backend" in msg:
        return "No AI backend is configured. Set AITAS_AI_MODE and backend settings in .env."
    if isinstance(err, ReasoningError):
        return "AI is unavailable right now. Enrichment will use safe defaults."
    return msg


class OpenAICompatibleProvider:
    """
    One chat-completions backend (Ollama's /v1 endpoint, Gemini's OpenAI endpoint, ...).

    IMPORTANT:
    - Automatic retries are disabled so the chain can fall through quickly.
    - The per-call timeout is enforced twice: by httpx and by asyncio.wait_for.
    """

    def __init__(self, *, name: str, base_url: str, api_key: str, model: str) -> None:
        if not base_url.strip():
            raise RuntimeError(f"{name}: base URL is not set")
        if not model.strip():
            raise RuntimeError(f"{name}: model is not set")
        self.name = name
        self.model = model
        self._client = AsyncOpenAI(base_url=base_url, api_key=api_key, max_retries=0)

    async def complete(self, system_prompt: str, prompt: str, timeout: float) -> str:
        timeout_obj = httpx.Timeout(
            connect=min(CONNECT_TIMEOUT_SECONDS, timeout),
            read=timeout,
            write=timeout,
            pool=timeout,
        )
        resp = await asyncio.wait_for(
            self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt},
                ],
                stream=False,
                timeout=timeout_obj,
            ),
            timeout=timeout,
        )
        try:
            content = resp.choices[0].message.content
        except (AttributeError, IndexError):
            content = None
        if not content or not content.strip():
            raise ReasoningError(f"{self.name}: model returned no content")
        return content

    async def aclose(self) -> None:
        await self._client.close()


class ReasoningChain:
    """
    Ordered list of providers with a uniform success/failure contract.

    Behavior:
    - Providers are tried in order.
    - Every provider except the last gets min(timeout, probe_timeout): a short
      opportunistic attempt ("try local first").
    - The last provider gets the full caller timeout.
    - Any failure moves on to the next provider; if all fail, ReasoningError.
    """

    def __init__(self, providers: Sequence[Any], *, probe_timeout: float = 3.0) -> None:
        if not providers:
            raise RuntimeError("No reasoning backend configured.")
        self.providers = list(providers)
        self.probe_timeout = float(probe_timeout)

    @property
    def names(self) -> list[str]:
        return [str(getattr(p, "name", p.__class__.__name__)) for p in self.providers]

    async def complete(self, system_prompt: str, prompt: str, timeout: float) -> str:
        last_error: BaseException | None = None

        for i, provider in enumerate(self.providers):
            name = getattr(provider, "name", provider.__class__.__name__)
            is_last = i == len(self.providers) - 1
            budget = float(timeout) if is_last else min(float(timeout), self.probe_timeout)

            logger.debug("LLM: trying provider=%s timeout=%.1fs", name, budget)
            t0 = time.monotonic()
            try:
                text = await provider.complete(system_prompt, prompt, budget)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = e
                logger.info(
                    "LLM: provider=%s failed (%s) after %.2fs%s",
                    name,
                    _describe(e),
                    time.monotonic() - t0,
                    "" if is_last else ", trying next",
                )
                continue

            logger.debug("LLM: provider=%s answered in %.2fs", name, time.monotonic() - t0)
            return text

        raise ReasoningError("All reasoning backends failed.") from last_error

    async def aclose(self) -> None:
        for p in self.providers:
            close = getattr(p, "aclose", None)
            if close is None:
                continue
            try:
                await close()
            except Exception:
                logger.debug("Provider close failed.", exc_info=True)


def _ollama_provider(settings: Settings) -> OpenAICompatibleProvider:
    # Ollama ignores the key but the SDK requires one.
    return OpenAICompatibleProvider(
        name="ollama",
        base_url=settings.ollama_base_url,
        api_key="ollama",
        model=settings.ollama_model,
    )


def _gemini_provider(settings: Settings) -> OpenAICompatibleProvider:
    api_key = settings.gemini_api_key
    if not api_key or not str(api_key).strip():
        raise RuntimeError("Gemini API key is not set. Set AITAS_GEMINI_API_KEY in your .env.")
    return OpenAICompatibleProvider(
        name="gemini",
        base_url=settings.gemini_base_url,
        api_key=str(api_key),
        model=settings.gemini_model,
    )


_FACTORIES = {
    "local": (_ollama_provider,),
    "cloud": (_gemini_provider,),
    "hybrid": (_ollama_provider, _gemini_provider),
}


def build_reasoner(settings: Settings) -> Reasoner:
    """
    Build the provider chain for settings.ai_mode.

    Backends that are not configured are skipped. With nothing usable we fall
    back to the offline reasoner so the pipeline still completes.
    """
    providers: list[OpenAICompatibleProvider] = []
    for factory in _FACTORIES.get(settings.ai_mode, _FACTORIES["hybrid"]):
        try:
            providers.append(factory(settings))
        except RuntimeError as e:
            logger.warning("Skipping reasoning backend: %s", friendly_llm_error_message(e))

    if not providers:
        logger.warning(
            "%s Using the offline reasoner.",
            friendly_llm_error_message(RuntimeError("No reasoning backend configured.")),
        )
        return OfflineReasoner()

    chain = ReasoningChain(providers, probe_timeout=settings.llm_probe_timeout_seconds)
    logger.info("Reasoning chain mode=%s providers=%s", settings.ai_mode, chain.names)
    return chain
