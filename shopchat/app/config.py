#!/usr/bin/env python3
"""
Configuration management for the storefront chatbot pipeline.
"""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

_DATA_DIR = os.path.join(os.path.dirname(__file__), "..", "data")


class Config:
    """Configuration class for the application."""

    # Text generation provider (gemini|groq)
    LLM_PROVIDER = os.getenv("LLM_PROVIDER", "gemini").lower()

    # Gemini (Google) API Configuration
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
    GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")

    # Groq / OpenAI-compatible chat completions
    GROQ_API_KEY = os.getenv("GROQ_API_KEY")
    GROQ_LLM_MODEL = os.getenv("GROQ_LLM_MODEL", "llama-3.1-8b-instant")
    GROQ_BASE_URL = os.getenv("GROQ_BASE_URL", "https://api.groq.com/openai/v1")

    # Embeddings (local|remote)
    EMBEDDING_PROVIDER = os.getenv("EMBEDDING_PROVIDER", "local").lower()
    EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "all-MiniLM-L6-v2")
    EMBEDDING_API_KEY = os.getenv("EMBEDDING_API_KEY")
    EMBEDDING_BASE_URL = os.getenv("EMBEDDING_BASE_URL", "https://api.openai.com/v1")

    # Outbound call behaviour
    REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", 30))
    NETWORK_RETRIES = int(os.getenv("NETWORK_RETRIES", 3))
    RETRY_BACKOFF_SECONDS = float(os.getenv("RETRY_BACKOFF_SECONDS", 2.0))
    SCHEMA_REPAIR_ATTEMPTS = int(os.getenv("SCHEMA_REPAIR_ATTEMPTS", 3))
    TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", 0.1))
    MAX_OUTPUT_TOKENS = int(os.getenv("LLM_MAX_OUTPUT_TOKENS", 800))

    # Application Configuration
    SHOP_NAME = os.getenv("SHOP_NAME", "Merry's Way Coffee Shop")
    MAX_CONVERSATION_TURNS = 14
    TOP_K = int(os.getenv("RETRIEVAL_TOP_K", 4))
    RECOMMENDATION_TOP_N = int(os.getenv("RECOMMENDATION_TOP_N", 3))
    RECOMMENDATION_MAX_PER_CATEGORY = int(os.getenv("RECOMMENDATION_MAX_PER_CATEGORY", 2))

    # Fixed user-facing replies
    DECLINE_MESSAGE = (
        "Sorry, I can't help with that. I can answer questions about our shop "
        "and menu, take your order, or suggest something you might like."
    )
    APOLOGY_MESSAGE = (
        "Sorry, something went wrong on our side while handling your message. "
        "Could you please try again in a moment?"
    )

    # Static data
    MENU_PATH = os.getenv("MENU_PATH", os.path.join(_DATA_DIR, "raw", "menu.csv"))
    APRIORI_PATH = os.getenv(
        "APRIORI_PATH", os.path.join(_DATA_DIR, "raw", "apriori_recommendations.json")
    )
    POPULARITY_PATH = os.getenv(
        "POPULARITY_PATH", os.path.join(_DATA_DIR, "raw", "popularity_recommendation.csv")
    )

    # FAISS Configuration
    FAISS_INDEX_PATH = os.getenv("FAISS_INDEX_PATH", os.path.join(_DATA_DIR, "processed", "faiss_index.bin"))
    CHUNKS_FILE_PATH = os.getenv("CHUNKS_FILE_PATH", os.path.join(_DATA_DIR, "processed", "chunks.json"))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    @classmethod
    def debug_print(cls):
        print(f"[CONFIG] LLM_PROVIDER={cls.LLM_PROVIDER}")
        print(f"[CONFIG] GEMINI_MODEL={cls.GEMINI_MODEL} set={bool(cls.GEMINI_API_KEY)}")
        print(f"[CONFIG] GROQ_MODEL={cls.GROQ_LLM_MODEL} set={bool(cls.GROQ_API_KEY)}")
        print(f"[CONFIG] EMBEDDING_PROVIDER={cls.EMBEDDING_PROVIDER} model={cls.EMBEDDING_MODEL}")

    @classmethod
    def validate(cls):
        """Validate that all required configuration is present."""
        missing = []

        key = cls.GEMINI_API_KEY if cls.LLM_PROVIDER == "gemini" else cls.GROQ_API_KEY
        # Allow a 'test' sentinel value to skip enforcing external API keys during local tests
        if key in ("test", "dev"):
            return True

        if cls.LLM_PROVIDER not in ("gemini", "groq"):
            missing.append("LLM_PROVIDER (gemini|groq)")
        if not key:
            missing.append("GEMINI_API_KEY" if cls.LLM_PROVIDER == "gemini" else "GROQ_API_KEY")
        if cls.EMBEDDING_PROVIDER == "remote" and not cls.EMBEDDING_API_KEY:
            missing.append("EMBEDDING_API_KEY")

        if missing:
            raise ValueError(f"Missing required configuration: {', '.join(missing)}")

        return True
