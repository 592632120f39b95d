"""Configuration loading and defaults."""

from __future__ import annotations

import os
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict

import yaml

DEFAULT_SETTINGS: Dict[str, Any] = {
    "proxy": {
        "base_url": "http://localhost:8080",
        "path": "/api/proxy",
    },
    "generation": {
        "route": "gemini:gemini-2.5-flash-image-preview",
        "primer_enabled": True,
        "image_models": [
            "gemini-2.5-flash-image-preview",
        ],
    },
    "providers": {
        "gemini": {"default_model": "gemini-2.5-flash-image-preview"},
        "openai": {"default_model": "gpt-image-1"},
        "drawthings": {"default_model": None},
    },
    "limits": {
        "max_concurrency": 2,
    },
    "retry": {
        "max_retries": 5,
        "base_delay_seconds": 1.233,
        "rate_limit_penalty_seconds": 10.0,
        "timeout_seconds": 123.333,
    },
    "quota_messages": {
        "gemini": "Gemini image generation has reached its quota. Please try again soon or switch providers.",
        "openai": "OpenAI image generation is currently rate limited. Try again later or choose a different provider.",
        "drawthings": "The DrawThings endpoint is busy. Give it a moment and retry or try another provider.",
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(settings_path: str = "config/settings.yaml") -> Dict[str, Any]:
    """Loads settings.yaml, merges it onto defaults, then applies env overrides."""
    merged = deepcopy(DEFAULT_SETTINGS)
    config_path = Path(settings_path)
    if config_path.exists():
        with config_path.open("r", encoding="utf-8") as f:
            user_cfg = yaml.safe_load(f) or {}
        merged = _deep_merge(merged, user_cfg)

    proxy_url = os.getenv("GENBOOTH_PROXY_URL")
    if proxy_url:
        merged["proxy"]["base_url"] = proxy_url
    return merged


def parse_route(route: str, config: Dict[str, Any] | None = None) -> tuple[str, str]:
    """Parses 'provider:model' route strings.

    A bare provider name resolves to that provider's default model.
    """
    if ":" not in route:
        provider = route.strip()
        model = default_model(provider, config)
        if not model:
            raise ValueError(f"Invalid route format: {route}")
        return provider, model
    provider, model = route.split(":", 1)
    return provider.strip(), model.strip()


def default_model(provider: str, config: Dict[str, Any] | None = None) -> str | None:
    providers = (config or DEFAULT_SETTINGS).get("providers", {})
    return (providers.get(provider) or {}).get("default_model")
