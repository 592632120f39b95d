"""Utility helpers."""

from __future__ import annotations

import base64
import mimetypes
import re
from pathlib import Path
from typing import Tuple

DEFAULT_INPUT_MIME = "image/jpeg"
OUTPUT_MIME = "image/png"

_DATA_URI_RE = re.compile(r"^data:([^;,]+);base64,(.+)$", re.DOTALL)


def parse_data_uri(value: str, default_mime: str = DEFAULT_INPUT_MIME) -> Tuple[str, str]:
    """Splits a ``data:<mime>;base64,<payload>`` string into (mime, payload).

    Raw base64 without a prefix is returned as-is with ``default_mime``.
    """
    match = _DATA_URI_RE.match(value.strip())
    if match:
        return match.group(1), match.group(2)
    if value.startswith("data:") and "," in value:
        return default_mime, value.split(",", 1)[1]
    return default_mime, value.strip()


def to_data_uri(payload: str, mime_type: str = OUTPUT_MIME) -> str:
    return f"data:{mime_type};base64,{payload}"


def read_image_as_data_uri(path: str | Path) -> str:
    image_path = Path(path)
    mime_type = mimetypes.guess_type(image_path.name)[0] or DEFAULT_INPUT_MIME
    payload = base64.b64encode(image_path.read_bytes()).decode("ascii")
    return to_data_uri(payload, mime_type)


def write_data_uri(data_uri: str, path: str | Path) -> Path:
    _, payload = parse_data_uri(data_uri, default_mime=OUTPUT_MIME)
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(base64.b64decode(payload))
    return out_path
