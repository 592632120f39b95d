"""Bounded-concurrency, retrying client for the GenBooth image proxy."""

from genbooth.llm.cancellation import CancelToken
from genbooth.llm.client import ImageGenerationClient, build_client, build_request
from genbooth.llm.limiter import ConcurrencyLimiter
from genbooth.llm.types import GenerationRequest, ProviderError, RetryPolicy

__all__ = [
    "CancelToken",
    "ConcurrencyLimiter",
    "GenerationRequest",
    "ImageGenerationClient",
    "ProviderError",
    "RetryPolicy",
    "build_client",
    "build_request",
]
