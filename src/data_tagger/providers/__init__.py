"""
Providers Module

HTTP adapters for the supported LLM backends.

Usage:
    from data_tagger.providers import get_registry, classify

    provider = get_registry().create("google", {"api_key": key, "model": "gemini-2.5-flash"})
    text = provider.classify(prompt)

    # Or one-shot
    text = classify("openai", key, "gpt-4o-mini", prompt)
"""

from .base import (
    ClassificationProvider,
    ProviderRegistry,
    classify,
    extract_error_message,
    get_registry,
    post_json,
)
from .llm import GoogleProvider, OpenAIProvider, OpenRouterProvider

__all__ = [
    "ClassificationProvider",
    "ProviderRegistry",
    "get_registry",
    "classify",
    "extract_error_message",
    "post_json",
    "GoogleProvider",
    "OpenAIProvider",
    "OpenRouterProvider",
]
