"""
Provider-agnostic LLM client for ReddiSearch.

Supports Gemini and Ollama over plain HTTP, plus Anthropic and OpenAI through
their SDKs, behind a shared text-generation interface.

Failures (missing key, transport error, HTTP error status, malformed body)
are logged and reported as None; callers decide how to degrade.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from .config import LLMConfig
from .llm_utils import strip_code_fences

logger = logging.getLogger("reddisearch.common.llm_client")

HTTP_PROVIDERS = ("gemini", "ollama")
SDK_PROVIDERS = ("anthropic", "openai")


class LLMClient:
    """Unified text generation client across LLM providers."""

    def __init__(
        self,
        provider: str = "gemini",
        model: str = "",
        gemini_api_key: Optional[str] = None,
        gemini_endpoint: str = "https://generativelanguage.googleapis.com/v1beta",
        ollama_endpoint: str = "http://localhost:11434",
        anthropic_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.provider = (provider or "gemini").lower()
        self.model = model
        self.timeout = timeout
        self._gemini_api_key = gemini_api_key
        self._gemini_endpoint = gemini_endpoint.rstrip("/")
        self._ollama_endpoint = ollama_endpoint.rstrip("/")
        self._http: Optional[httpx.Client] = None
        self._client = None

        if self.provider == "auto":
            raise ValueError(
                '"auto" provider must be resolved to a concrete provider '
                "before creating LLMClient."
            )

        if self.provider == "gemini":
            if not gemini_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            self._http = http_client or httpx.Client(timeout=timeout)
            return

        if self.provider == "ollama":
            # Local service, no key required
            self._http = http_client or httpx.Client(timeout=timeout)
            return

        if self.provider == "anthropic":
            if not anthropic_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import anthropic

                self._client = anthropic.Anthropic(api_key=anthropic_api_key)
            except ImportError:
                logger.warning("anthropic package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Anthropic client: %s", e)
            return

        if self.provider == "openai":
            if not openai_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                from openai import OpenAI

                self._client = OpenAI(api_key=openai_api_key)
            except ImportError:
                logger.warning("openai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize OpenAI client: %s", e)
            return

        logger.warning("Unsupported LLM provider: %s", self.provider)

    @classmethod
    def from_config(cls, config: LLMConfig, http_client: Optional[httpx.Client] = None) -> "LLMClient":
        return cls(
            provider=config.provider,
            model=config.model,
            gemini_api_key=config.gemini_api_key or None,
            gemini_endpoint=config.gemini_endpoint,
            ollama_endpoint=config.ollama_endpoint,
            anthropic_api_key=config.anthropic_api_key or None,
            openai_api_key=config.openai_api_key or None,
            timeout=config.timeout,
            http_client=http_client,
        )

    @property
    def is_available(self) -> bool:
        return self._http is not None or self._client is not None

    def close(self) -> None:
        if self._http is not None:
            self._http.close()

    def generate(
        self,
        prompt: str,
        *,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> Optional[str]:
        """
        Generate text for a prompt.

        Returns:
            Generated text, or None when the provider is unavailable or the
            call failed for any reason.
        """
        if not self.is_available:
            logger.info("LLM client unavailable (%s), skipping generation", self.provider)
            return None

        try:
            if self.provider == "gemini":
                text = self._generate_gemini(prompt, temperature, max_tokens)
            elif self.provider == "ollama":
                text = self._generate_ollama(prompt, temperature, max_tokens)
            elif self.provider == "anthropic":
                text = self._generate_anthropic(prompt, temperature, max_tokens)
            else:
                text = self._generate_openai(prompt, temperature, max_tokens)
        except httpx.HTTPStatusError as e:
            logger.warning(
                "%s returned HTTP %s: %s",
                self.provider, e.response.status_code, e.response.text[:200],
            )
            return None
        except httpx.TransportError as e:
            logger.warning("%s unreachable: %s", self.provider, e)
            return None
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning("Malformed %s response: %s", self.provider, e)
            return None
        except Exception as e:
            logger.warning("Error calling %s: %s", self.provider, e)
            return None

        if text is None:
            return None
        return strip_code_fences(text).strip()

    def _post_json(self, url: str, payload: dict, params: Optional[dict] = None) -> Any:
        response = self._http.post(url, json=payload, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def _generate_gemini(self, prompt: str, temperature: float, max_tokens: int) -> Optional[str]:
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
            },
        }
        body = self._post_json(
            f"{self._gemini_endpoint}/models/{self.model}:generateContent",
            payload,
            params={"key": self._gemini_api_key},
        )

        candidates = body.get("candidates") or []
        if not candidates:
            logger.warning("Gemini response has no candidates")
            return None
        parts = (candidates[0].get("content") or {}).get("parts") or []
        if not parts:
            logger.warning("Gemini candidate has no parts")
            return None
        return parts[0].get("text")

    def _generate_ollama(self, prompt: str, temperature: float, max_tokens: int) -> Optional[str]:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "temperature": temperature,
            "num_predict": max_tokens,
            "stream": False,
        }
        body = self._post_json(f"{self._ollama_endpoint}/api/generate", payload)
        return body.get("response")

    def _generate_anthropic(self, prompt: str, temperature: float, max_tokens: int) -> Optional[str]:
        response = self._client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
            timeout=self.timeout,
        )
        return response.content[0].text

    def _generate_openai(self, prompt: str, temperature: float, max_tokens: int) -> Optional[str]:
        response = self._client.chat.completions.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
            timeout=self.timeout,
        )
        return response.choices[0].message.content
