"""Guard stage: decides whether the latest user message may be handled at all.

Fails closed. If the model cannot give a valid decision the message is blocked.
"""
from typing import List, Literal

from pydantic import BaseModel

from ..app.errors import MalformedModelOutput, UpstreamUnavailable
from ..app.prompt_builder import PromptBuilder
from ..schemas.io_models import ConversationTurn, GuardDecision
from ..utils.logger import get_logger

logger = get_logger()


class GuardOutput(BaseModel):
    chain_of_thought: str = ""
    decision: Literal["allowed", "not allowed"]
    message: str = ""


class Guard:
    name = "guard"

    def __init__(self, gateway, builder: PromptBuilder = None):
        self.gateway = gateway
        self.builder = builder or PromptBuilder()

    def check(self, conversation: List[ConversationTurn]) -> GuardDecision:
        if not conversation or not any(turn.role == "user" for turn in conversation):
            return GuardDecision(allowed=False, reason="no user message")

        prompt = self.builder.build_guard_prompt(conversation)
        try:
            output = self.gateway.complete(prompt, schema=GuardOutput)
        except MalformedModelOutput as e:
            logger.error(f"[GUARD] no valid decision after {e.attempts} attempts, blocking. raw output: {e.raw_output!r}")
            return GuardDecision(allowed=False, reason="guard_unavailable")
        except UpstreamUnavailable as e:
            logger.error(f"[GUARD] model unavailable, blocking: {e}")
            return GuardDecision(allowed=False, reason="guard_unavailable")

        allowed = output.decision == "allowed"
        logger.info(f"[GUARD] decision={output.decision} reason={output.message!r}")
        return GuardDecision(allowed=allowed, reason=None if allowed else (output.message or "not allowed"))
