"""Controller / Orchestrator: Guard -> Classify -> one responder.

The pipeline is a pure function of the transcript and the client-held memory.
Whatever goes wrong after the guard, the customer gets a natural-language apology
and the memory they sent, so resubmitting the same request is safe.
"""
import threading
from typing import Dict, List, Optional, Tuple

from .config import Config
from .errors import PipelineError
from .generate import ModelGateway
from .prompt_builder import PromptBuilder
from ..agents.base_agent import BaseAgent
from ..nlu.guard import Guard
from ..nlu.llm_router import IntentClassifier, latest_user_text
from ..schemas.io_models import ChatRequest, ChatResponse, ConversationTurn, IntentLabel, Memory
from ..utils.logger import get_logger
from ..utils.security import mask_pii

logger = get_logger()


def resolve_memory(conversation: List[ConversationTurn], memory: Optional[Memory] = None) -> Memory:
    """Explicit memory wins, then the memory on the latest assistant turn, else empty."""
    if memory is not None:
        return memory
    for turn in reversed(conversation):
        if turn.role == "assistant" and turn.memory is not None:
            return turn.memory
    return Memory()


class Controller:
    def __init__(self, gateway: ModelGateway = None, guard: Guard = None,
                 classifier: IntentClassifier = None, agents: Dict[IntentLabel, BaseAgent] = None):
        self.gateway = gateway
        self.builder = PromptBuilder()
        self.guard = guard
        self.classifier = classifier
        self.agents = agents
        self._lock = threading.Lock()

    def _ensure_components(self):
        """Build the default components the first time they are needed."""
        if self._ready():
            return
        with self._lock:
            if not self._ready():
                self._build_components()

    def _ready(self) -> bool:
        return self.guard is not None and self.classifier is not None and self.agents is not None

    def _build_components(self):
        if self.gateway is None:
            self.gateway = ModelGateway()
        if self.guard is None:
            self.guard = Guard(self.gateway, self.builder)
        if self.classifier is None:
            self.classifier = IntentClassifier(self.gateway, self.builder)
        if self.agents is None:
            from ..agents.details_agent import DetailsAgent
            from ..agents.order_agent import OrderAgent
            from ..agents.recommendation_agent import RecommendationAgent
            from ..data.menu_store import get_menu_store
            from ..data.recommendation_store import get_recommendation_store
            from .retrieval import get_retriever

            menu = get_menu_store()
            self.agents = {
                IntentLabel.details: DetailsAgent(self.gateway, get_retriever(), self.builder),
                IntentLabel.order_taking: OrderAgent(self.gateway, menu, self.builder),
                IntentLabel.recommendation: RecommendationAgent(
                    self.gateway, get_recommendation_store(), menu, self.builder
                ),
            }

    def process(self, conversation: List[ConversationTurn], memory: Optional[Memory] = None) -> Tuple[str, Memory]:
        """
        Run one turn of the pipeline.

        Args:
            conversation: Full transcript, oldest first
            memory: Memory to continue from; defaults to the latest assistant turn's memory

        Returns:
            (reply text, memory to send back with the reply)
        """
        memory = resolve_memory(conversation, memory)
        logger.info("=" * 50)
        logger.info(f"[WORKFLOW] 1. Controller received: {mask_pii(latest_user_text(conversation))!r}")

        stage = "setup"
        try:
            self._ensure_components()

            stage = "guard"
            logger.info("[WORKFLOW] 2. Running guard...")
            decision = self.guard.check(conversation)
            if not decision.allowed:
                logger.info(f"[WORKFLOW] 2a. Blocked by guard: {decision.reason}")
                return Config.DECLINE_MESSAGE, memory

            stage = "classify"
            logger.info("[WORKFLOW] 3. Classifying intent...")
            intent = self.classifier.classify(conversation, memory)

            stage = intent.value
            agent = self.agents[intent]
            logger.info(f"[WORKFLOW] 4. Dispatching to {agent.name}")
            result = agent.handle(conversation, memory)
        except PipelineError as e:
            logger.error(f"[ERROR] stage={e.stage or stage} {type(e).__name__}: {e}")
            return Config.APOLOGY_MESSAGE, memory
        except Exception:
            logger.exception(f"[ERROR] stage={stage} unexpected failure")
            return Config.APOLOGY_MESSAGE, memory

        logger.info(f"[WORKFLOW] 5. {result.agent} status={result.status} facts={result.facts}")
        logger.info("=" * 50)
        return result.response, result.memory

    def handle(self, request: ChatRequest) -> ChatResponse:
        content, memory = self.process(request.messages, request.memory)
        return ChatResponse(content=content, memory=memory)
