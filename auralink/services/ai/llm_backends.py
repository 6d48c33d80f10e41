"""
LLM Backend Abstraction Layer
==============================
The external reasoning call behind plant advisories.

:class:`GeminiBackend` posts to Google's ``generateContent`` REST endpoint
with ``requests`` and asks for a JSON reply. :func:`create_backend` builds it
from configuration, or returns ``None`` so the caller falls back to its
rule-based advice.

::

    backend = create_backend("gemini", api_key="...", timeout=30)
    if backend is not None:
        reply = backend.generate("", "Return JSON only.", json_mode=True)
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import requests

logger = logging.getLogger(__name__)

GEMINI_API_ROOT = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.0-flash"


@dataclass
class LLMResponse:
    """What a backend hands back: reply text plus call metadata."""

    text: str
    model: str
    usage: dict[str, int] = field(default_factory=dict)
    latency_ms: float = 0.0
    raw: Any = None


class LLMBackend(ABC):
    """
    One reasoning provider. The advisory generator only needs
    :meth:`generate`; the test suite swaps in its own subclass.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider tag reported by ``/api/health``."""

    @property
    @abstractmethod
    def is_available(self) -> bool: ...

    @abstractmethod
    def initialize(self) -> bool:
        """Validate credentials and prepare the client; ``True`` when ready."""

    @abstractmethod
    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int = 512,
        temperature: float = 0.5,
        json_mode: bool = False,
    ) -> LLMResponse:
        """
        Run one completion.

        Raises on transport or HTTP failure; the advisory generator turns
        that into a fallback advisory.
        """

    def _timed(self, fn, *args, **kwargs):
        t0 = time.perf_counter()
        result = fn(*args, **kwargs)
        return result, (time.perf_counter() - t0) * 1000


class GeminiBackend(LLMBackend):
    """
    Backend for Google's Gemini ``generateContent`` endpoint.

    Uses a plain ``requests.Session``; no SDK needed.

    Parameters
    ----------
    api_key:
        Gemini API key, sent as the ``key`` query parameter.
    model:
        Model identifier (default ``gemini-2.0-flash``).
    base_url:
        Override for the API root (proxies, tests).
    timeout:
        Request timeout in seconds.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str | None = None,
        timeout: int = 30,
        session: requests.Session | None = None,
    ):
        self._api_key = api_key
        self._model = model
        self._base_url = (base_url or GEMINI_API_ROOT).rstrip("/")
        self._timeout = timeout
        self._session = session
        self._ready = False

    @property
    def name(self) -> str:
        return "gemini"

    @property
    def is_available(self) -> bool:
        return self._ready

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}/models/{self._model}:generateContent"

    def initialize(self) -> bool:
        if not self._api_key:
            logger.warning("Gemini backend: no API key provided")
            return False
        if self._session is None:
            self._session = requests.Session()
        self._ready = True
        logger.info("Gemini backend initialised (model=%s)", self._model)
        return True

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int = 512,
        temperature: float = 0.5,
        json_mode: bool = False,
    ) -> LLMResponse:
        if not self.is_available:
            raise RuntimeError("Gemini backend not initialised")

        generation_config: dict[str, Any] = {
            "temperature": temperature,
            "maxOutputTokens": max_tokens,
        }
        if json_mode:
            generation_config["responseMimeType"] = "application/json"

        body: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
            "generationConfig": generation_config,
        }
        if system_prompt:
            body["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        response, latency = self._timed(
            self._session.post,
            self.endpoint,
            params={"key": self._api_key},
            json=body,
            timeout=self._timeout,
        )
        response.raise_for_status()
        data = response.json()

        text = ""
        candidates = data.get("candidates") or []
        if candidates:
            parts = (candidates[0].get("content") or {}).get("parts") or []
            if parts:
                text = parts[0].get("text") or ""

        meta = data.get("usageMetadata") or {}
        usage = {}
        if meta:
            usage = {
                "prompt_tokens": meta.get("promptTokenCount", 0),
                "completion_tokens": meta.get("candidatesTokenCount", 0),
                "total_tokens": meta.get("totalTokenCount", 0),
            }

        return LLMResponse(
            text=text,
            model=data.get("modelVersion") or self._model,
            usage=usage,
            latency_ms=latency,
            raw=data,
        )


def create_backend(
    provider: str,
    *,
    api_key: str = "",
    model: str = "",
    base_url: str | None = None,
    timeout: int = 30,
) -> LLMBackend | None:
    """
    Build and initialise the backend named by ``provider``.

    Returns ``None`` when the provider is ``"none"``, unknown, or fails to
    initialise; advisories then come from the rule-based fallback.
    """
    provider = (provider or "").strip().lower()

    if provider in ("none", ""):
        logger.info("LLM provider set to 'none'; advisories will use the fallback")
        return None

    if provider != "gemini":
        logger.error("Unknown LLM provider '%s'", provider)
        return None

    backend = GeminiBackend(
        api_key=api_key,
        model=model or DEFAULT_MODEL,
        base_url=base_url,
        timeout=timeout,
    )
    if backend.initialize():
        return backend

    logger.warning("LLM backend '%s' failed to initialise; advisories will use the fallback", provider)
    return None
