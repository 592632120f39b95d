"""Bounded-concurrency, retrying image-generation client."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict

from ..config import parse_route
from ..prompts import RENDER_PRIMER, build_render_prompt
from .cancellation import CancelToken
from .limiter import ConcurrencyLimiter
from .providers.base import GenerationTransport
from .providers.proxy_provider import ProxyTransport
from .retry import RetryController
from .types import GenerationRequest, ProviderError, RetryPolicy
from .validator import extract_image_data_uri

logger = logging.getLogger(__name__)


class ImageGenerationClient:
    """Submits generation requests through limiter -> retries -> transport.

    One client (and its limiter) is meant to be shared by every caller in the
    process so the concurrency cap holds globally.
    """

    def __init__(
        self,
        transport: GenerationTransport,
        policy: RetryPolicy | None = None,
        limiter: ConcurrencyLimiter | None = None,
        primer: str | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.transport = transport
        self.policy = policy or RetryPolicy()
        self.limiter = limiter or ConcurrencyLimiter()
        self.primer = primer
        self._retry = RetryController(self.policy, sleep=sleep)

    async def __aenter__(self) -> "ImageGenerationClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def generate(
        self, request: GenerationRequest, cancel: CancelToken | None = None
    ) -> str | None:
        """Returns a PNG data URI, or ``None`` if ``cancel`` fired.

        Raises the last RetryableError once attempts are exhausted, or a
        TerminalError as soon as the provider's answer is rejected.
        """
        token = cancel or CancelToken()
        if self.primer:
            request = replace(request, prompt=build_render_prompt(request.prompt, self.primer))
        return await self.limiter.run(self._generate, request, token)

    async def _generate(self, request: GenerationRequest, cancel: CancelToken) -> str | None:
        start = time.perf_counter()

        async def attempt() -> str:
            response = await self.transport.send(request, cancel, self.policy.timeout)
            return extract_image_data_uri(response)

        try:
            result = await self._retry.run(attempt, cancel)
        except ProviderError as exc:
            logger.error("Generation failed for model %s: %s", request.model, exc)
            raise

        latency_ms = int((time.perf_counter() - start) * 1000)
        if result is None:
            logger.info("Generation for model %s cancelled after %dms", request.model, latency_ms)
        else:
            logger.info("Generated image with model %s in %dms", request.model, latency_ms)
        return result


def retry_policy_from_settings(config: Dict[str, Any]) -> RetryPolicy:
    retry_cfg = config.get("retry", {})
    return RetryPolicy(
        max_retries=int(retry_cfg.get("max_retries", 5)),
        base_delay=float(retry_cfg.get("base_delay_seconds", 1.233)),
        rate_limit_penalty=float(retry_cfg.get("rate_limit_penalty_seconds", 10.0)),
        timeout=float(retry_cfg.get("timeout_seconds", 123.333)),
    )


def build_client(config: Dict[str, Any], transport: GenerationTransport | None = None) -> ImageGenerationClient:
    proxy_cfg = config.get("proxy", {})
    gen_cfg = config.get("generation", {})
    if transport is None:
        transport = ProxyTransport(
            base_url=str(proxy_cfg.get("base_url", "http://localhost:8080")),
            path=str(proxy_cfg.get("path", "/api/proxy")),
            image_models=gen_cfg.get("image_models", []),
            quota_messages=config.get("quota_messages", {}),
        )
    return ImageGenerationClient(
        transport,
        policy=retry_policy_from_settings(config),
        limiter=ConcurrencyLimiter(int(config.get("limits", {}).get("max_concurrency", 2))),
        primer=RENDER_PRIMER if gen_cfg.get("primer_enabled", True) else None,
    )


def build_request(
    config: Dict[str, Any],
    prompt: str,
    input_image: str | None = None,
    route: str | None = None,
) -> GenerationRequest:
    provider, model = parse_route(route or config.get("generation", {}).get("route", "gemini"), config)
    return GenerationRequest(model=model, prompt=prompt, input_image=input_image, provider=provider)
