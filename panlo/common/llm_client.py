"""
Provider-agnostic completion client for Panlo.

Single-turn chat completion over OpenAI, Anthropic and Google Gemini behind
one generate() call.
"""

from __future__ import annotations

import hashlib
import logging
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .config import LLMConfig

logger = logging.getLogger("panlo.common.llm_client")

SUPPORTED_PROVIDERS = ("openai", "anthropic", "google")


class LLMClient:
    """Unified text generation client across LLM providers."""

    def __init__(
        self,
        provider: str = "openai",
        model: str = "",
        openai_api_key: Optional[str] = None,
        anthropic_api_key: Optional[str] = None,
        google_api_key: Optional[str] = None,
    ) -> None:
        self.provider = (provider or "openai").lower()
        self.model = model
        self._client = None
        self._google_models: dict = {}

        if self.provider not in SUPPORTED_PROVIDERS:
            logger.warning("Unsupported LLM provider: %s", self.provider)
            return

        api_key = {
            "openai": openai_api_key,
            "anthropic": anthropic_api_key,
            "google": google_api_key,
        }[self.provider]
        if not api_key:
            logger.info("%s API key not provided, LLM client unavailable", self.provider)
            return

        try:
            self._client = getattr(self, f"_connect_{self.provider}")(api_key)
        except ImportError:
            logger.warning("%s SDK package not installed", self.provider)
        except Exception as e:
            logger.warning("Failed to initialize %s client: %s", self.provider, e)

    @classmethod
    def from_config(cls, llm_config: "LLMConfig") -> "LLMClient":
        """Build a client for the configured provider and its model"""
        provider = (llm_config.provider or "openai").lower()
        model = {
            "openai": llm_config.openai_model,
            "anthropic": llm_config.anthropic_model,
            "google": llm_config.google_model,
        }.get(provider, "")
        return cls(
            provider=provider,
            model=model,
            openai_api_key=llm_config.openai_api_key or None,
            anthropic_api_key=llm_config.anthropic_api_key or None,
            google_api_key=llm_config.google_api_key or None,
        )

    @staticmethod
    def _connect_openai(api_key: str):
        from openai import OpenAI

        return OpenAI(api_key=api_key)

    @staticmethod
    def _connect_anthropic(api_key: str):
        import anthropic

        return anthropic.Anthropic(api_key=api_key)

    @staticmethod
    def _connect_google(api_key: str):
        import google.generativeai as genai

        genai.configure(api_key=api_key)
        return genai  # the module; models are cached per system prompt

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 1024,
        temperature: Optional[float] = None,
        timeout: float = 60.0,
    ) -> str:
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        if self.provider == "openai":
            messages = []
            if system:
                messages.append({"role": "system", "content": system})
            messages.append({"role": "user", "content": prompt})
            kwargs = {}
            if temperature is not None:
                kwargs["temperature"] = temperature
            response = self._client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=messages,
                timeout=timeout,
                **kwargs,
            )
            return (response.choices[0].message.content or "").strip()

        if self.provider == "anthropic":
            kwargs = {}
            if system:
                kwargs["system"] = system
            if temperature is not None:
                kwargs["temperature"] = temperature
            response = self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": prompt}],
                timeout=timeout,
                **kwargs,
            )
            return response.content[0].text.strip()

        cache_key = hashlib.md5((system or "").encode()).hexdigest()
        if cache_key not in self._google_models:
            model_kwargs = {"model_name": self.model}
            if system:
                model_kwargs["system_instruction"] = system
            self._google_models[cache_key] = self._client.GenerativeModel(**model_kwargs)
        generation_config = {"max_output_tokens": max_tokens}
        if temperature is not None:
            generation_config["temperature"] = temperature
        response = self._google_models[cache_key].generate_content(
            prompt,
            generation_config=generation_config,
            request_options={"timeout": timeout},
        )
        return response.text.strip()
