"""Generation transport over the application's HTTP proxy endpoint."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Dict, Iterable, Mapping

import httpx

from ...utils import parse_data_uri
from ..cancellation import CancelToken
from ..types import (
    GenerationRequest,
    GenerationTimeoutError,
    HTTPStatusFailure,
    RateLimitedError,
    TransportError,
)

logger = logging.getLogger(__name__)

HARM_CATEGORIES = (
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
    "HARM_CATEGORY_HARASSMENT",
)
SAFETY_SETTINGS = [{"category": category, "threshold": "BLOCK_NONE"} for category in HARM_CATEGORIES]

RATE_LIMIT_CODES = ("RATE_LIMIT", "RESOURCE_EXHAUSTED")
DEFAULT_QUOTA_MESSAGE = "The selected provider is currently rate limited."


class ProxyTransport:
    name = "proxy"

    def __init__(
        self,
        base_url: str,
        path: str = "/api/proxy",
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
        image_models: Iterable[str] = (),
        quota_messages: Mapping[str, str] | None = None,
    ) -> None:
        self._url = base_url.rstrip("/") + "/" + path.lstrip("/")
        self._token = token or os.getenv("GENBOOTH_PROXY_TOKEN") or os.getenv("PROXY_API_TOKEN")
        self._client = client or httpx.AsyncClient(timeout=None)
        self._owns_client = client is None
        self.image_models = frozenset(image_models)
        self.quota_messages = dict(quota_messages or {})

    @property
    def url(self) -> str:
        return self._url

    def build_payload(self, request: GenerationRequest) -> Dict[str, Any]:
        parts: list[Dict[str, Any]] = []
        if request.input_image:
            mime_type, data = parse_data_uri(request.input_image)
            parts.append({"inlineData": {"data": data, "mimeType": mime_type}})
        parts.append({"text": request.prompt})

        config: Dict[str, Any] = {}
        if request.model in self.image_models:
            config["responseModalities"] = ["IMAGE", "TEXT"]

        return {
            "model": request.model,
            "config": config,
            "contents": {"parts": parts},
            "safetySettings": SAFETY_SETTINGS,
        }

    async def send(
        self, request: GenerationRequest, cancel: CancelToken, timeout: float
    ) -> Dict[str, Any]:
        """Issues exactly one POST; cancellation wins over the timeout."""
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        try:
            res = await cancel.guard(
                self._client.post(self._url, json=self.build_payload(request), headers=headers),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            raise GenerationTimeoutError(f"Request timed out after {timeout:g}s") from exc
        except httpx.HTTPError as exc:
            raise TransportError(str(exc) or type(exc).__name__) from exc

        data = _json_or_none(res)
        if not res.is_success:
            raise self._status_error(res.status_code, data, request.provider)
        if data is None:
            raise TransportError(f"Proxy returned a non-JSON response (status {res.status_code})")
        return data

    def _status_error(
        self, status_code: int, data: Any, provider: str
    ) -> HTTPStatusFailure:
        body = data if isinstance(data, dict) else {}
        message = body.get("error")
        if isinstance(message, dict):
            message = message.get("message")

        if status_code == 429 or body.get("code") in RATE_LIMIT_CODES:
            quota = message or self.quota_messages.get(provider) or DEFAULT_QUOTA_MESSAGE
            logger.warning("Proxy reported rate limiting for provider %s", provider)
            return RateLimitedError(quota, status_code)
        return HTTPStatusFailure(message or f"HTTP error! status: {status_code}", status_code)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _json_or_none(res: httpx.Response) -> Any:
    try:
        return res.json()
    except ValueError:
        return None
