"""
SHOPCHAT: Storefront Chat Agent Pipeline
========================================

Module-style README for the shopchat service: a guarded, multi-agent chatbot
that answers shop questions, takes orders and suggests products for a coffee
shop storefront.

How to use this file
--------------------
- Read it in an editor.
- Run `python README.py` to print the outline.

Table of Contents
-----------------
1. System Overview
2. Request Flow
3. Package Layout
4. Order Flow
5. Recommendations
6. Knowledge Base
7. Configuration & Environment
8. Testing
9. Running

"""

from __future__ import annotations

import textwrap


def section(title: str, body: str) -> str:
    return f"\n{title}\n{'-' * len(title)}\n{body.strip()}\n"


SYSTEM_OVERVIEW = section(
    "1. System Overview",
    """
    The service is stateless. Each request carries the whole transcript plus the
    `memory` object returned with the previous reply; the response carries the
    reply text and the next memory. Nothing is stored server side.
    """,
)


REQUEST_FLOW = section(
    "2. Request Flow",
    """
    guard -> intent classifier -> exactly one agent -> reply + memory
    - Guard: blocks off-topic or harmful messages; fails closed.
    - Classifier: details | order_taking | recommendation, with sticky routing
      while an order is in progress.
    - Any failure after the guard becomes a short apology; memory is returned
      unchanged so the client can simply retry.
    """,
)


PACKAGE_LAYOUT = section(
    "3. Package Layout",
    """
    shopchat/app/
      - main.py: FastAPI app, /chat, /runsync, /health.
      - controller.py: the pipeline.
      - generate.py: generation client + ModelGateway (schema repair loop).
      - http_client.py: retries, backoff, Retry-After.
      - embed.py / retrieval.py: embeddings and FAISS search.
      - prompt_builder.py: one prompt per stage.
    shopchat/nlu/      guard.py, llm_router.py, rules.py
    shopchat/agents/   details_agent.py, order_agent.py, recommendation_agent.py
    shopchat/data/     menu_store.py, recommendation_store.py, raw/
    shopchat/scripts/  ingest_data.py
    """,
)


ORDER_FLOW = section(
    "4. Order Flow",
    """
    empty -> building -> awaiting_confirmation -> handed_off
    - The model extracts item mentions; the tiered matcher (exact, substring,
      token overlap) maps them to menu items. Ambiguous or unknown mentions
      produce a clarifying question and never an order line.
    - "that's all" moves to awaiting_confirmation with a summary and total.
    - A plain "yes" (no negation) hands the order to checkout; a "yes" that also
      names items adds them and asks for confirmation again.
    - Re-sending the same turn with the returned memory does not change the order.
    """,
)


RECOMMENDATIONS = section(
    "5. Recommendations",
    """
    - apriori: items bought together with the current order.
    - popular / popular_in_category: best sellers by transaction count.
    - Empty results fall back to best sellers, then to menu order.
    """,
)


KNOWLEDGE_BASE = section(
    "6. Knowledge Base",
    """
    - Source documents live in `shopchat/data/raw/` (`=== Section ===` text files
      and menu.csv).
    - Build chunks and the FAISS index:
        python -m shopchat.scripts.ingest_data --build-index
    - Without an index the Details agent still answers, saying it has no context.
    """,
)


CONFIG_ENV = section(
    "7. Configuration & Environment",
    """
    - `.env` compatible; keys: LLM_PROVIDER, GEMINI_API_KEY, GROQ_API_KEY,
      EMBEDDING_PROVIDER, EMBEDDING_API_KEY, LOG_LEVEL.
    - Defaults live in `shopchat/app/config.py`.
    """,
)


TESTING = section(
    "8. Testing",
    """
    - pip install -e ".[test]"
    - python -m pytest tests -v
    - Model calls are mocked; no API key is needed.
    """,
)


RUNNING = section(
    "9. Running",
    """
    - uvicorn shopchat.app.main:app --reload
    """,
)


def as_text() -> str:
    return "\n".join(
        [
            SYSTEM_OVERVIEW,
            REQUEST_FLOW,
            PACKAGE_LAYOUT,
            ORDER_FLOW,
            RECOMMENDATIONS,
            KNOWLEDGE_BASE,
            CONFIG_ENV,
            TESTING,
            RUNNING,
        ]
    )


def main() -> None:
    print(textwrap.dedent(as_text()))


if __name__ == "__main__":
    main()
