"""Details Agent: answers shop and product questions from the knowledge base.

Embeds the question, pulls the nearest passages and asks the model to answer
from those passages only. The model's text is returned as-is.
"""
from typing import List

from .base_agent import BaseAgent
from ..app.config import Config
from ..app.prompt_builder import PromptBuilder
from ..nlu.llm_router import latest_user_text
from ..schemas.io_models import AgentResult, ConversationTurn, IntentLabel, Memory
from ..utils.logger import get_logger
from ..utils.security import mask_pii

logger = get_logger()


class DetailsAgent(BaseAgent):
    name = "details_agent"
    intent = IntentLabel.details

    def __init__(self, gateway, retriever, builder: PromptBuilder = None, top_k: int = None):
        self.gateway = gateway
        self.retriever = retriever
        self.builder = builder or PromptBuilder()
        self.top_k = top_k or Config.TOP_K

    def answer(self, query: str, conversation: List[ConversationTurn]) -> str:
        """
        Answer a question grounded in retrieved passages.

        Args:
            query: The customer's question
            conversation: Full transcript, used for follow-up context

        Returns:
            The model's answer text
        """
        embedding = self.gateway.embed(query)
        passages = self.retriever.search(embedding, k=self.top_k)
        logger.info(f"[RAG] Retrieved {len(passages)} passages for {mask_pii(query)!r}")
        if not passages:
            logger.info("[RAG] No relevant documents found, answering without context")

        prompt = self.builder.build_details_prompt(query, passages, conversation)
        return self.gateway.complete(prompt)

    def handle(self, conversation: List[ConversationTurn], memory: Memory) -> AgentResult:
        logger.info("[WORKFLOW] Executing DetailsAgent...")
        query = latest_user_text(conversation)
        response = self.answer(query, conversation)
        return self._ok(response, memory)
