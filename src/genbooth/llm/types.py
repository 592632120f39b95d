"""Shared generation data structures and error taxonomy."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class GenerationRequest:
    model: str
    prompt: str
    input_image: str | None = None
    provider: str = "gemini"


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget, backoff and per-attempt timeout (all in seconds)."""

    max_retries: int = 5
    base_delay: float = 1.233
    rate_limit_penalty: float = 10.0
    timeout: float = 123.333

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.rate_limit_penalty < 0:
            raise ValueError("rate_limit_penalty must be >= 0")
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")

    def backoff(self, attempt_index: int, rate_limited: bool = False) -> float:
        delay = self.base_delay * (2**attempt_index)
        if rate_limited:
            delay += self.rate_limit_penalty
        return delay


class ProviderError(RuntimeError):
    """Generation failed to produce an image."""


class RetryableError(ProviderError):
    """Transport-level failure worth another attempt."""


class TransportError(RetryableError):
    """Network failure or unreadable proxy response."""


class HTTPStatusFailure(RetryableError):
    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class GenerationTimeoutError(RetryableError):
    """A single attempt exceeded its wall-clock deadline."""


class RateLimitedError(HTTPStatusFailure):
    """Provider signalled overload; retried with an extra penalty."""


class TerminalError(ProviderError):
    """Failure that a retry would deterministically reproduce."""


class ContentError(TerminalError):
    """Provider answered, but not with a usable image."""


class MalformedResponseError(ContentError):
    pass


class PromptBlockedError(ContentError):
    def __init__(self, block_reason: str) -> None:
        super().__init__(f"Request blocked by API. Reason: {block_reason}")
        self.block_reason = block_reason


class NoCandidatesError(ContentError):
    pass


class EmptyContentError(ContentError):
    pass


class SafetyBlockedError(ContentError):
    def __init__(self, message: str, finish_reason: str) -> None:
        super().__init__(message)
        self.finish_reason = finish_reason


class TextOnlyResponseError(ContentError):
    def __init__(self, text: str) -> None:
        super().__init__(f'Model returned a text response instead of an image: "{text}"')
        self.text = text


class NoInlineDataError(ContentError):
    pass
