"""
Classification providers for hosted LLM APIs.

Three backends, one contract: classify(prompt) -> completion text.
    - google: Gemini generateContent (x-goog-api-key header)
    - openai: Chat Completions (Bearer token)
    - openrouter: OpenAI-compatible Chat Completions with attribution headers
"""

import logging
from typing import Any, Dict, Optional

import requests

from ..errors import ConfigurationError
from .base import get_registry, post_json

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0


class _HTTPProvider:
    """Shared construction for the HTTP backends."""

    name = "http"

    def __init__(
        self,
        api_key: str,
        model: str,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        if not api_key or not str(api_key).strip():
            raise ConfigurationError(f"{self.name} provider requires an API key")
        if not model or not str(model).strip():
            raise ConfigurationError(f"{self.name} provider requires a model identifier")

        self._api_key = str(api_key).strip()
        self.model = str(model).strip()
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout
        self._session = session or requests.Session()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model!r})"

    def _post(self, url: str, headers: Dict[str, str], payload: Dict[str, Any]) -> Dict[str, Any]:
        logger.debug("POST %s (provider=%s, model=%s)", url, self.name, self.model)
        return post_json(
            self._session,
            self.name,
            url,
            headers={"Content-Type": "application/json", **headers},
            payload=payload,
            timeout=self.timeout,
        )


# -----------------------------------------------------------------------------
# Google Gemini
# -----------------------------------------------------------------------------

class GoogleProvider(_HTTPProvider):
    """
    Classification provider using Google's Gemini API (AI Studio keys).

    Default model in the CLI is gemini-2.5-flash; gemini-2.5-pro is slower
    but more accurate for large tag sets.
    """

    name = "google"
    BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

    def classify(self, prompt: str) -> str:
        """Generate a completion with Gemini generateContent."""
        payload: Dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}

        generation_config: Dict[str, Any] = {}
        if self.temperature is not None:
            generation_config["temperature"] = self.temperature
        if self.max_output_tokens is not None:
            generation_config["maxOutputTokens"] = self.max_output_tokens
        if generation_config:
            payload["generationConfig"] = generation_config

        data = self._post(
            f"{self.BASE_URL}/{self.model}:generateContent",
            {"x-goog-api-key": self._api_key},
            payload,
        )

        candidates = data.get("candidates") or []
        if not candidates:
            # Blocked prompts come back with promptFeedback and no candidates
            logger.debug("Gemini returned no candidates: %s", data.get("promptFeedback"))
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(
            part.get("text", "") for part in parts
            if isinstance(part, dict) and not part.get("thought")
        )


# -----------------------------------------------------------------------------
# OpenAI
# -----------------------------------------------------------------------------

class OpenAIProvider(_HTTPProvider):
    """
    Classification provider using OpenAI's Chat Completions API.

    GPT-5 and o-series reasoning models take max_completion_tokens instead
    of max_tokens.
    """

    name = "openai"
    URL = "https://api.openai.com/v1/chat/completions"

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    def _payload(self, prompt: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
        }
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.max_output_tokens is not None:
            token_field = (
                "max_completion_tokens"
                if self.model.startswith(("gpt-5", "o1", "o3", "o4"))
                else "max_tokens"
            )
            payload[token_field] = self.max_output_tokens
        return payload

    def classify(self, prompt: str) -> str:
        """Generate a completion with Chat Completions."""
        data = self._post(self.URL, self._headers(), self._payload(prompt))
        choices = data.get("choices") or []
        if not choices:
            return ""
        message = choices[0].get("message") or {}
        return message.get("content") or ""


# -----------------------------------------------------------------------------
# OpenRouter
# -----------------------------------------------------------------------------

class OpenRouterProvider(OpenAIProvider):
    """
    Classification provider using OpenRouter's OpenAI-compatible API.

    Model ids are namespaced (e.g. "google/gemini-2.5-flash").
    """

    name = "openrouter"
    URL = "https://openrouter.ai/api/v1/chat/completions"

    def __init__(
        self,
        api_key: str,
        model: str,
        referer: Optional[str] = None,
        app_title: str = "Data Tagger",
        **kwargs: Any,
    ):
        super().__init__(api_key, model, **kwargs)
        self.referer = referer
        self.app_title = app_title

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        if self.referer:
            headers["HTTP-Referer"] = self.referer
        if self.app_title:
            headers["X-Title"] = self.app_title
        return headers

    def _payload(self, prompt: str) -> Dict[str, Any]:
        payload = super()._payload(prompt)
        # OpenRouter normalizes on max_tokens for every upstream model
        if "max_completion_tokens" in payload:
            payload["max_tokens"] = payload.pop("max_completion_tokens")
        return payload


# Register providers
_registry = get_registry()
_registry.register("google", GoogleProvider)
_registry.register("openai", OpenAIProvider)
_registry.register("openrouter", OpenRouterProvider)
