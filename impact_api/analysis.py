"""Gemini text generation for the impact narrative."""
from __future__ import annotations
import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from .config import Settings, mask_key
from .errors import ProviderError

logger = logging.getLogger(__name__)


class AnalysisProvider(Protocol):
    async def generate_narrative(self, prompt: str) -> str: ...


def extract_text(payload: Dict[str, Any]) -> str:
    """Concatenate the text parts of the first candidate; raise on any other shape."""
    try:
        parts = payload["candidates"][0]["content"]["parts"]
        text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
    except (KeyError, IndexError, TypeError, AttributeError):
        reason = payload.get("promptFeedback") if isinstance(payload, dict) else None
        raise ProviderError(f"Gemini response has no candidate text (feedback={reason}).")
    if not text.strip():
        raise ProviderError("Gemini returned an empty narrative.")
    return text


class GeminiAnalysisProvider:
    def __init__(self, api_key: str, model: str, api_base: str, timeout_s: float = 30.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        if not api_key:
            raise ProviderError("Gemini API key not configured.")
        self._api_key = api_key
        self._model = model
        self._url = f"{api_base.rstrip('/')}/models/{model}:generateContent"
        self._timeout = timeout_s
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings,
                      transport: Optional[httpx.AsyncBaseTransport] = None) -> Optional["GeminiAnalysisProvider"]:
        """None when GEMINI_API_KEY is unset; callers then use the templated narrative."""
        if not settings.analysis_configured:
            logger.warning("[analysis.config] Gemini API key not configured, narrative will use template")
            return None
        return cls(settings.gemini_api_key, settings.gemini_model, settings.gemini_api_base,
                   timeout_s=settings.analysis_timeout_s, transport=transport)

    async def generate_narrative(self, prompt: str) -> str:
        body = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        logger.info("[analysis.request] POST %s model=%s key=%s prompt_chars=%d",
                    self._url, self._model, mask_key(self._api_key), len(prompt))
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                r = await client.post(self._url, json=body, headers={"x-goog-api-key": self._api_key})
                r.raise_for_status()
                payload = r.json()
        except httpx.HTTPStatusError as e:
            preview = e.response.text[:300] if e.response.text else ""
            raise ProviderError(f"Gemini returned HTTP {e.response.status_code}: {preview!r}") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Gemini unreachable: {e}") from e
        except ValueError as je:
            raise ProviderError(f"Gemini returned non-JSON: {je}") from je

        text = extract_text(payload)
        logger.info("[analysis.done] model=%s chars=%d", self._model, len(text))
        return text
