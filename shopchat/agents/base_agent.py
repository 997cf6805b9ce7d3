"""BaseAgent interface for all responders."""
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ..schemas.io_models import AgentResult, ConversationTurn, IntentLabel, Memory
from ..utils.logger import get_logger

logger = get_logger()


class BaseAgent(ABC):
    name: str = "base"
    intent: IntentLabel = IntentLabel.details

    @abstractmethod
    def handle(self, conversation: List[ConversationTurn], memory: Memory) -> AgentResult:
        """Produce the reply text and the next memory. Never mutates `memory`."""
        ...

    def _ok(self, response: str, memory: Memory, facts: Dict[str, Any] = None) -> AgentResult:
        return AgentResult(
            agent=self.name,
            intent=self.intent,
            response=response,
            memory=memory.model_copy(update={"agent": self.intent.value}),
            facts=facts or {},
        )

    def _clarify(self, question: str, memory: Memory, facts: Dict[str, Any] = None) -> AgentResult:
        logger.info(f"[CLARIFY] {self.name}: {question}")
        return AgentResult(
            agent=self.name,
            intent=self.intent,
            response=question,
            memory=memory.model_copy(update={"agent": self.intent.value}),
            facts=facts or {},
            status="clarify",
        )
