"""
Provider protocol and registry.

A provider turns one prompt into one completion string with exactly one
HTTP call. Providers never retry and never log the API key; pacing and
retry policy belong to the classification engine.
"""

import logging
from typing import Any, Dict, Optional, Protocol, runtime_checkable

import requests

from ..errors import ConfigurationError, ProviderError

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10.0


@runtime_checkable
class ClassificationProvider(Protocol):
    """
    Protocol for text-completion backends.

    Implementations are configured with key and model at construction time,
    so the engine only ever calls classify(prompt).

    Example implementation:
        class EchoProvider:
            name = "echo"

            def classify(self, prompt: str) -> str:
                return "None"
    """

    name: str

    def classify(self, prompt: str) -> str:
        """Send the prompt and return the raw completion text."""
        ...


# -----------------------------------------------------------------------------
# HTTP helpers
# -----------------------------------------------------------------------------

def extract_error_message(response: requests.Response) -> str:
    """
    Pull a human-readable message out of an error response.

    Understands the {"error": {"message": ...}} envelope used by all three
    supported backends, and falls back to the raw body or the status code.
    """
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if payload.get("message"):
            return str(payload["message"])

    body = (response.text or "").strip()
    if body:
        return body[:200]
    return f"API error: {response.status_code}"


def post_json(
    session: requests.Session,
    provider: str,
    url: str,
    *,
    headers: Dict[str, str],
    payload: Dict[str, Any],
    timeout: float,
) -> Dict[str, Any]:
    """
    POST a JSON payload and return the decoded JSON body.

    Raises:
        ProviderError: For non-2xx statuses (with the provider's message),
            transport failures, timeouts, and undecodable bodies
    """
    try:
        response = session.post(
            url,
            headers=headers,
            json=payload,
            timeout=(CONNECT_TIMEOUT, timeout),
        )
    except requests.Timeout as e:
        raise ProviderError(provider, None, f"Request timed out after {timeout:g}s") from e
    except requests.RequestException as e:
        raise ProviderError(provider, None, f"Request failed: {e}") from e

    if not response.ok:
        raise ProviderError(provider, response.status_code, extract_error_message(response))

    try:
        data = response.json()
    except ValueError as e:
        raise ProviderError(
            provider, response.status_code, "Malformed response: body is not valid JSON"
        ) from e

    if not isinstance(data, dict):
        raise ProviderError(
            provider, response.status_code, "Malformed response: expected a JSON object"
        )
    return data


# -----------------------------------------------------------------------------
# Registry
# -----------------------------------------------------------------------------

class ProviderRegistry:
    """
    Registry for looking up provider classes by id.

    Providers are selected once, when a job is configured; the engine then
    holds the instance and never compares provider ids again.

    Example:
        registry = ProviderRegistry()
        registry.register("google", GoogleProvider)

        provider = registry.create("google", {"api_key": "...", "model": "gemini-2.5-flash"})
    """

    def __init__(self):
        self._providers: dict[str, type] = {}
        self._lazy_loaded = False

    def _ensure_providers_loaded(self) -> None:
        if self._lazy_loaded:
            return
        self._lazy_loaded = True
        # Importing the module registers the built-in backends
        from . import llm  # noqa: F401

    def register(self, name: str, provider_class: type) -> None:
        """Register a provider class under an id."""
        self._providers[name] = provider_class

    def available(self) -> list[str]:
        """Ids of all registered providers."""
        self._ensure_providers_loaded()
        return list(self._providers)

    def create(self, name: str, params: Optional[dict] = None) -> ClassificationProvider:
        """
        Instantiate a provider.

        Raises:
            ConfigurationError: Unknown provider id, or the provider rejected
                its parameters (e.g. empty key or model)
        """
        self._ensure_providers_loaded()
        key = (name or "").strip().lower()
        if key not in self._providers:
            available = ", ".join(self._providers) or "none"
            raise ConfigurationError(
                f"Unknown provider: '{name}'. Available providers: {available}"
            )
        return self._providers[key](**(params or {}))


_registry = ProviderRegistry()


def get_registry() -> ProviderRegistry:
    """Get the global provider registry."""
    return _registry


def classify(provider_id: str, api_key: str, model: str, prompt: str, **params: Any) -> str:
    """
    One-shot classification call.

    Builds the provider for provider_id and issues exactly one request.

    Args:
        provider_id: "google", "openai" or "openrouter"
        api_key: Provider API key
        model: Model identifier
        prompt: Rendered prompt
        **params: Extra provider options (temperature, max_output_tokens, timeout, ...)

    Returns:
        Completion text as returned by the provider

    Raises:
        ConfigurationError: Unknown provider, or missing key/model
        ProviderError: The call failed
    """
    provider = get_registry().create(provider_id, {"api_key": api_key, "model": model, **params})
    return provider.classify(prompt)
