#!/usr/bin/env python3
"""
Embedding module for the storefront chatbot.

Local embeddings come from sentence-transformers; the remote provider calls an
OpenAI-compatible /embeddings endpoint.
"""

from typing import List

from .config import Config
from .errors import UpstreamUnavailable
from .http_client import post_json


class EmbeddingClient:
    """Client for generating text embeddings."""

    def __init__(self, provider: str = None, model_name: str = None):
        """Initialize the embedding client. The local model is loaded on first use."""
        self.provider = (provider or Config.EMBEDDING_PROVIDER).lower()
        self.model_name = model_name or Config.EMBEDDING_MODEL
        self._model = None
        if self.provider not in ("local", "remote"):
            raise ValueError(f"Unsupported embedding provider: {self.provider}")

    @property
    def model(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed(self, text: str) -> List[float]:
        """
        Generate embedding for a text string.

        Args:
            text: Text to embed

        Returns:
            Embedding vector as a list of floats
        """
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for a batch of text strings.

        Args:
            texts: List of texts to embed

        Returns:
            List of embedding vectors
        """
        if self.provider == "local":
            embeddings = self.model.encode(texts)
            return embeddings.tolist()

        data = post_json(
            f"{Config.EMBEDDING_BASE_URL.rstrip('/')}/embeddings",
            {"model": self.model_name, "input": texts},
            headers={"Authorization": f"Bearer {Config.EMBEDDING_API_KEY}"},
        )
        try:
            rows = sorted(data["data"], key=lambda row: row.get("index", 0))
            return [row["embedding"] for row in rows]
        except (KeyError, TypeError):
            raise UpstreamUnavailable("Embedding response missing 'data'")
