"""Interprets provider-shaped JSON and extracts the generated image."""

from __future__ import annotations

from typing import Any, Dict, List

from ..utils import to_data_uri
from .types import (
    EmptyContentError,
    MalformedResponseError,
    NoCandidatesError,
    NoInlineDataError,
    PromptBlockedError,
    SafetyBlockedError,
    TextOnlyResponseError,
)

POLICY_FINISH_REASONS = ("SAFETY", "RECITATION")


def extract_image_data_uri(response: Any) -> str:
    """Returns the first inline image as a PNG data URI.

    Check order matters: candidates, then content, then the finish reason,
    then inline data, falling back to the model's text explanation before the
    generic missing-data error.
    """
    if not isinstance(response, dict):
        raise MalformedResponseError(f"Unexpected response type: {type(response).__name__}")

    candidates = response.get("candidates") or []
    if not isinstance(candidates, list):
        raise MalformedResponseError("Response candidates is not a list.")
    if not candidates:
        feedback = response.get("promptFeedback") or {}
        if not isinstance(feedback, dict):
            raise MalformedResponseError("Response promptFeedback is not an object.")
        block_reason = feedback.get("blockReason")
        if block_reason:
            raise PromptBlockedError(block_reason)
        raise NoCandidatesError("API returned no candidates.")

    candidate = candidates[0]
    if not isinstance(candidate, dict):
        raise MalformedResponseError("Candidate is not an object.")

    finish_reason = candidate.get("finishReason")
    content = candidate.get("content")
    if not content:
        if finish_reason:
            raise SafetyBlockedError(f"Image generation failed. Reason: {finish_reason}", finish_reason)
        raise EmptyContentError("API returned a candidate with no content.")
    if not isinstance(content, dict):
        raise MalformedResponseError("Candidate content is not an object.")

    if finish_reason in POLICY_FINISH_REASONS:
        raise SafetyBlockedError(
            f"Image generation failed due to safety policy: {finish_reason}", finish_reason
        )

    parts = _parts(content)
    inline_part = next((p for p in parts if p.get("inlineData")), None)
    if inline_part is None:
        text_part = next((p for p in parts if p.get("text")), None)
        if text_part is not None:
            raise TextOnlyResponseError(text_part["text"])
        raise NoInlineDataError("No inline data found in response")

    inline_data = inline_part["inlineData"]
    if not isinstance(inline_data, dict):
        raise MalformedResponseError("Part inlineData is not an object.")
    data = inline_data.get("data")
    if data is not None and not isinstance(data, str):
        raise MalformedResponseError("Inline data payload is not a base64 string.")
    if not data:
        raise NoInlineDataError("No inline data found in response")
    return to_data_uri(data)


def _parts(content: Dict[str, Any]) -> List[Dict[str, Any]]:
    parts = content.get("parts")
    if not isinstance(parts, list):
        return []
    return [part for part in parts if isinstance(part, dict)]
