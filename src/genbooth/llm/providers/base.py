"""Generation transport interface."""

from __future__ import annotations

from typing import Any, Dict, Protocol

from ..cancellation import CancelToken
from ..types import GenerationRequest


class GenerationTransport(Protocol):
    name: str

    async def send(
        self, request: GenerationRequest, cancel: CancelToken, timeout: float
    ) -> Dict[str, Any]:
        ...

    async def aclose(self) -> None:
        ...
