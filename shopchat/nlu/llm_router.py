"""LLM-based intent router with sticky order routing.

The model picks one of the three agents. Anything it cannot answer cleanly is
routed to `details`, which only answers questions and never touches the order.
"""
from typing import List

from pydantic import BaseModel

from .rules import is_bare_order_phrase
from ..app.errors import MalformedModelOutput, UnsupportedIntent
from ..app.prompt_builder import PromptBuilder
from ..schemas.io_models import ConversationTurn, IntentLabel, Memory
from ..utils.logger import get_logger

logger = get_logger()

DEFAULT_INTENT = IntentLabel.details


class RouterOutput(BaseModel):
    chain_of_thought: str = ""
    decision: IntentLabel
    new_topic: bool = False


def latest_user_text(conversation: List[ConversationTurn]) -> str:
    for turn in reversed(conversation):
        if turn.role == "user":
            return turn.content
    return ""


class IntentClassifier:
    name = "classifier"

    def __init__(self, gateway, builder: PromptBuilder = None):
        self.gateway = gateway
        self.builder = builder or PromptBuilder()

    def _llm_route(self, conversation: List[ConversationTurn], memory: Memory) -> RouterOutput:
        prompt = self.builder.build_classifier_prompt(conversation, memory.order)
        try:
            return self.gateway.complete(prompt, schema=RouterOutput)
        except MalformedModelOutput as e:
            raise UnsupportedIntent(f"no valid intent label: {e.last_error}") from e

    def classify(self, conversation: List[ConversationTurn], memory: Memory = None) -> IntentLabel:
        memory = memory or Memory()
        sticky = memory.agent == IntentLabel.order_taking.value and bool(memory.order)
        text = latest_user_text(conversation)

        if sticky and is_bare_order_phrase(text):
            logger.info("[ROUTER] order in progress and bare completion/confirmation phrase -> order_taking")
            return IntentLabel.order_taking

        try:
            routed = self._llm_route(conversation, memory)
        except UnsupportedIntent as e:
            logger.warning(f"[ROUTER] {type(e).__name__}: {e}; defaulting to {DEFAULT_INTENT.value}")
            return DEFAULT_INTENT

        label = routed.decision
        if sticky and label != IntentLabel.order_taking and not routed.new_topic:
            logger.info(f"[ROUTER] sticky order routing overrides {label.value} -> order_taking")
            return IntentLabel.order_taking

        logger.info(f"[ROUTER] intent={label.value} new_topic={routed.new_topic}")
        return label
