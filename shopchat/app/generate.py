#!/usr/bin/env python3
"""
Generation module for the storefront chatbot.

GenerationClient talks to the hosted text-generation endpoint (Gemini or a
Groq/OpenAI-compatible chat completions API). ModelGateway is what the rest of
the pipeline uses: plain completions, schema-constrained completions with a
repair loop, and embeddings.
"""

import json
import re
from typing import List, Optional, Type, Union

from pydantic import BaseModel, ValidationError

from .config import Config
from .embed import EmbeddingClient
from .errors import MalformedModelOutput, UpstreamUnavailable
from .http_client import post_json
from ..utils.logger import get_logger

logger = get_logger()

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class GenerationClient:
    """Client for generating text with the configured LLM provider."""

    def __init__(self, provider: str = None, api_key: str = None, model: str = None):
        """Initialize the generation client."""
        self.provider = (provider or Config.LLM_PROVIDER).lower()
        if self.provider == "gemini":
            self.api_key = api_key or Config.GEMINI_API_KEY
            self.model = model or Config.GEMINI_MODEL
            self.api_base_url = f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
        elif self.provider == "groq":
            self.api_key = api_key or Config.GROQ_API_KEY
            self.model = model or Config.GROQ_LLM_MODEL
            self.api_base_url = f"{Config.GROQ_BASE_URL.rstrip('/')}/chat/completions"
        else:
            raise ValueError(f"Unsupported LLM provider: {self.provider}")

        if not self.api_key:
            raise ValueError(f"{self.provider} API key is required")
        logger.info(f"[LLM_PROVIDER] {self.provider} model={self.model}")

    def generate(self, prompt: str, temperature: float = None) -> str:
        """
        Generate text for a prompt.

        Args:
            prompt: Fully formatted prompt
            temperature: Sampling temperature, defaults to Config.TEMPERATURE

        Returns:
            Generated text

        Raises:
            UpstreamUnavailable: on network failure or an unusable response
        """
        temperature = Config.TEMPERATURE if temperature is None else temperature
        logger.debug(f"[LLM] prompt length: {len(prompt)}")
        if self.provider == "gemini":
            payload = {
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": {
                    "temperature": temperature,
                    "maxOutputTokens": Config.MAX_OUTPUT_TOKENS,
                },
            }
            data = post_json(self.api_base_url, payload, params={"key": self.api_key})
            try:
                return data["candidates"][0]["content"]["parts"][0]["text"].strip()
            except (KeyError, IndexError, TypeError):
                logger.error(f"[LLM] unexpected Gemini response structure: {data}")
                raise UpstreamUnavailable("No candidates found in Gemini response")

        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": Config.MAX_OUTPUT_TOKENS,
        }
        data = post_json(self.api_base_url, payload, headers={"Authorization": f"Bearer {self.api_key}"})
        try:
            return (data["choices"][0]["message"]["content"] or "").strip()
        except (KeyError, IndexError, TypeError):
            logger.error(f"[LLM] unexpected chat completion structure: {data}")
            raise UpstreamUnavailable("No choices found in chat completion response")


def extract_json_object(text: str) -> str:
    """Return the outermost {...} block of a model reply, or the stripped text."""
    if not text:
        return ""
    match = _JSON_OBJECT.search(text)
    return match.group() if match else text.strip()


def schema_instructions(schema: Type[BaseModel]) -> str:
    shape = json.dumps(schema.model_json_schema(), indent=2)
    return (
        "\n\nRespond with ONLY a JSON object that validates against this JSON schema. "
        "No markdown fences, no comments, no extra text.\n"
        f"{shape}"
    )


def repair_prompt(prompt: str, schema: Type[BaseModel], raw_output: str, error: str) -> str:
    return (
        f"{prompt}{schema_instructions(schema)}\n\n"
        "Your previous reply could not be used.\n"
        f"Previous reply:\n{raw_output}\n\n"
        f"Validation error:\n{error}\n\n"
        "Return a corrected JSON object that fixes this error."
    )


class ModelGateway:
    """Single entry point for model completions and embeddings."""

    def __init__(self, generator: GenerationClient = None, embedder: EmbeddingClient = None,
                 max_attempts: int = None):
        self.generator = generator or GenerationClient()
        self.embedder = embedder or EmbeddingClient()
        self.max_attempts = max(1, max_attempts or Config.SCHEMA_REPAIR_ATTEMPTS)

    def complete(self, prompt: str, schema: Optional[Type[BaseModel]] = None) -> Union[str, BaseModel]:
        """
        Run a completion.

        Args:
            prompt: Prompt text
            schema: Optional pydantic model the reply must validate against

        Returns:
            Raw text when no schema is given, otherwise a validated schema instance

        Raises:
            MalformedModelOutput: the reply never validated within the attempt bound
            UpstreamUnavailable: the endpoint could not be reached
        """
        if schema is None:
            return self.generator.generate(prompt)
        return self._complete_structured(prompt, schema)

    def _complete_structured(self, prompt: str, schema: Type[BaseModel]) -> BaseModel:
        current = prompt + schema_instructions(schema)
        raw_output = ""
        last_error = ""
        for attempt in range(1, self.max_attempts + 1):
            raw_output = self.generator.generate(current)
            try:
                return schema.model_validate_json(extract_json_object(raw_output))
            except ValidationError as e:
                last_error = str(e)
            logger.warning(
                f"[SCHEMA] {schema.__name__} attempt {attempt}/{self.max_attempts} failed: "
                f"{last_error.splitlines()[0] if last_error else ''} | raw output: {raw_output!r}"
            )
            current = repair_prompt(prompt, schema, raw_output, last_error)

        raise MalformedModelOutput(
            f"{schema.__name__} output still invalid after {self.max_attempts} attempts",
            raw_output=raw_output,
            last_error=last_error,
            attempts=self.max_attempts,
        )

    def embed(self, text: str) -> List[float]:
        return self.embedder.embed(text)
