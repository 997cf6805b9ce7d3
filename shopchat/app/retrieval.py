#!/usr/bin/env python3
"""
Retrieval module for the storefront chatbot.

Looks up the nearest knowledge-base passages for a query embedding in a
prebuilt FAISS index. `create_faiss_index` builds that index offline from the
chunks file written by `shopchat.scripts.ingest_data`.
"""

import json
import os
import threading
from typing import List, Optional

import faiss
import numpy as np

from .config import Config
from ..schemas.io_models import RetrievedPassage
from ..utils.logger import get_logger

logger = get_logger()


class KnowledgeRetriever:
    """Vector retriever over a FAISS index and its chunk file."""

    def __init__(self, index_path: str = None, chunks_path: str = None):
        """Initialize the retriever and load the index and chunks."""
        self.index_path = index_path or Config.FAISS_INDEX_PATH
        self.chunks_path = chunks_path or Config.CHUNKS_FILE_PATH
        self.faiss_index = None
        self.chunks = []

        self._load_data()
        self._load_faiss_index()

    def _load_data(self):
        """Load document chunks from file."""
        if os.path.exists(self.chunks_path):
            with open(self.chunks_path, "r", encoding="utf-8") as f:
                self.chunks = json.load(f)
            logger.info(f"[RAG] Loaded {len(self.chunks)} document chunks")
        else:
            logger.warning(f"[RAG] No chunks file found at {self.chunks_path}")
            self.chunks = []

    def _load_faiss_index(self):
        """Load FAISS index from file."""
        if os.path.exists(self.index_path):
            self.faiss_index = faiss.read_index(self.index_path)
            logger.info(f"[RAG] Loaded FAISS index with {self.faiss_index.ntotal} vectors")
        else:
            logger.warning(f"[RAG] No FAISS index found at {self.index_path}")
            self.faiss_index = None

    def search(self, query_embedding: List[float], k: int = None) -> List[RetrievedPassage]:
        """
        Search the index for passages similar to a query vector.

        Args:
            query_embedding: Query embedding vector
            k: Number of results to return

        Returns:
            Passages ordered by similarity score, highest first
        """
        k = k or Config.TOP_K
        if self.faiss_index is None or not self.chunks:
            return []

        query_vector = np.array(query_embedding).astype("float32").reshape(1, -1)
        distances, indices = self.faiss_index.search(query_vector, k)

        passages = []
        for idx, distance in zip(indices[0], distances[0]):
            # -1 means no result
            if idx == -1 or idx >= len(self.chunks):
                continue
            chunk = self.chunks[int(idx)]
            passages.append(RetrievedPassage(
                text=chunk["text"],
                # Convert L2 distance to similarity
                score=1.0 / (1.0 + float(distance)),
                source=chunk.get("source"),
            ))

        passages.sort(key=lambda p: p.score, reverse=True)
        return passages


_retriever: Optional[KnowledgeRetriever] = None
_retriever_lock = threading.Lock()


def get_retriever() -> KnowledgeRetriever:
    global _retriever
    if _retriever is None:
        with _retriever_lock:
            if _retriever is None:
                _retriever = KnowledgeRetriever()
    return _retriever


def create_faiss_index(chunks_file: str, index_file: str, embed_client=None) -> int:
    """
    Create FAISS index from document chunks.

    Args:
        chunks_file: Path to chunks JSON file
        index_file: Path to save FAISS index
        embed_client: Anything with `embed_batch(texts)`; defaults to EmbeddingClient

    Returns:
        Number of vectors written
    """
    with open(chunks_file, "r", encoding="utf-8") as f:
        chunks = json.load(f)

    if not chunks:
        logger.warning("[RAG] No chunks found, skipping FAISS index creation")
        return 0

    if embed_client is None:
        from .embed import EmbeddingClient

        embed_client = EmbeddingClient()

    texts = [chunk["text"] for chunk in chunks]
    logger.info(f"[RAG] Generating embeddings for {len(texts)} chunks...")
    embeddings_array = np.array(embed_client.embed_batch(texts)).astype("float32")

    index = faiss.IndexFlatL2(embeddings_array.shape[1])
    index.add(embeddings_array)

    os.makedirs(os.path.dirname(index_file) or ".", exist_ok=True)
    faiss.write_index(index, index_file)
    logger.info(f"[RAG] FAISS index created with {index.ntotal} vectors")
    return index.ntotal
