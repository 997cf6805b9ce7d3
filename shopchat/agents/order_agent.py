"""Order Agent: builds the customer's order across turns.

The order lives in the client-held memory, so every turn starts by rebuilding
the cart and its state from that memory:

    empty -> building -> awaiting_confirmation -> handed_off

The model only extracts item mentions and a "wants to finish" hint. Menu
resolution, quantity defaults, merging, and the final hand-off decision are all
deterministic. A line is never added unless it resolves to exactly one menu item.
"""
import hashlib
from typing import Dict, List, Optional, Tuple

from .base_agent import BaseAgent
from ..app.errors import MalformedModelOutput
from ..app.prompt_builder import PromptBuilder
from ..data.menu_store import MatchStatus, MenuMatch, MenuStore
from ..nlu.rules import is_order_completion, is_strong_confirmation
from ..schemas.io_models import AgentResult, ConversationTurn, IntentLabel, Memory
from ..schemas.order_models import OrderExtraction, OrderLine, OrderState
from ..utils.logger import get_logger
from ..utils.security import mask_pii

logger = get_logger()


class OrderAgent(BaseAgent):
    name = "order_taking_agent"
    intent = IntentLabel.order_taking

    class Cart:
        def __init__(self, lines: Optional[List[OrderLine]] = None):
            # copies, so the incoming memory is never touched
            self.lines: List[OrderLine] = [line.model_copy() for line in (lines or [])]

        def add_item(self, item: str, price: float, quantity: int):
            """Add an item or increase the quantity of the existing line."""
            for i, line in enumerate(self.lines):
                if line.item.lower() == item.lower():
                    self.lines[i] = line.model_copy(update={"quantity": line.quantity + quantity})
                    return
            self.lines.append(OrderLine(item=item, price=price, quantity=quantity))

        def is_empty(self) -> bool:
            return not self.lines

        def get_total(self) -> float:
            return sum(line.price * line.quantity for line in self.lines)

        def get_summary(self) -> str:
            summary = []
            for line in self.lines:
                summary.append(f"- {line.quantity}x {line.item}: ${line.price * line.quantity:.2f}")
            summary.append(f"\nTotal: ${self.get_total():.2f}")
            return "\n".join(summary)

    def __init__(self, gateway, menu: MenuStore, builder: PromptBuilder = None):
        self.gateway = gateway
        self.menu = menu
        self.builder = builder or PromptBuilder()

    @staticmethod
    def current_state(memory: Memory) -> OrderState:
        if memory.order_state is not None:
            if not memory.order and memory.order_state != OrderState.handed_off:
                return OrderState.empty
            return memory.order_state
        return OrderState.building if memory.order else OrderState.empty

    @staticmethod
    def turn_fingerprint(conversation: List[ConversationTurn]) -> Optional[str]:
        """Identify the latest user turn; None when no user turn follows the last reply."""
        if not conversation or conversation[-1].role != "user":
            return None
        ordinal = sum(1 for turn in conversation if turn.role == "user")
        digest = hashlib.sha1(conversation[-1].content.strip().encode("utf-8")).hexdigest()[:16]
        return f"{ordinal}:{digest}"

    def _priced(self, lines: List[OrderLine]) -> List[OrderLine]:
        """Fill in catalog prices for lines the client sent without one."""
        priced = []
        for line in lines:
            item = self.menu.get(line.item) if line.price <= 0 else None
            priced.append(line.model_copy(update={"price": item.price}) if item else line)
        return priced

    def _extract(self, conversation: List[ConversationTurn], cart: "OrderAgent.Cart") -> OrderExtraction:
        prompt = self.builder.build_order_prompt(conversation, cart.lines, self.menu.item_names)
        return self.gateway.complete(prompt, schema=OrderExtraction)

    def _apply(self, extraction: OrderExtraction, cart: "OrderAgent.Cart") -> Tuple[List[Tuple[str, int]], List[MenuMatch]]:
        added: Dict[str, int] = {}
        unresolved: List[MenuMatch] = []
        for mention in extraction.items:
            match = self.menu.resolve(mention.item)
            if match.status != MatchStatus.matched:
                logger.info(f"[ORDER] {match.status.value} mention {mention.item!r}: "
                            f"{[c.name for c in match.candidates]}")
                unresolved.append(match)
                continue
            quantity = mention.quantity if mention.quantity and mention.quantity > 0 else 1
            cart.add_item(match.item.name, match.item.price, quantity)
            added[match.item.name] = added.get(match.item.name, 0) + quantity
            logger.info(f"[ORDER] {mention.item!r} -> {match.item.name} x{quantity} ({match.tier} match)")
        return list(added.items()), unresolved

    def _clarification_for(self, match: MenuMatch) -> str:
        if match.status == MatchStatus.ambiguous:
            names = [c.name for c in match.candidates]
            return f'By "{match.mention}" did you mean {self._join(names, "or")}?'
        suggestions = self.menu.suggest(match.mention)
        if suggestions:
            return f'I couldn\'t find "{match.mention}" on our menu. Did you mean {self._join(suggestions, "or")}?'
        return f'I couldn\'t find "{match.mention}" on our menu. Could you pick something from the menu instead?'

    @staticmethod
    def _join(names: List[str], word: str) -> str:
        if len(names) <= 1:
            return "".join(names)
        return f"{', '.join(names[:-1])} {word} {names[-1]}"

    def _result(self, response: str, memory: Memory, cart: "OrderAgent.Cart", state: OrderState,
                fingerprint: Optional[str], clarify: bool = False, facts: Dict = None) -> AgentResult:
        next_memory = memory.model_copy(update={
            "order": cart.lines,
            "order_state": state,
            "last_user_turn": fingerprint,
        })
        facts = {"order_state": state.value, **(facts or {})}
        logger.info(f"[CART] state={state.value} lines={[(l.item, l.quantity) for l in cart.lines]}")
        if clarify:
            return self._clarify(response, next_memory, facts)
        return self._ok(response, next_memory, facts)

    def handle(self, conversation: List[ConversationTurn], memory: Memory) -> AgentResult:
        logger.info("[WORKFLOW] Executing OrderAgent...")
        state = self.current_state(memory)
        cart = OrderAgent.Cart(self._priced(memory.order))
        fingerprint = self.turn_fingerprint(conversation)

        # Nothing new from the customer: replay the current order untouched
        if fingerprint is None or fingerprint == memory.last_user_turn:
            logger.info("[ORDER] no new user content, order unchanged")
            if cart.is_empty():
                return self._result("What can I get for you today?", memory, cart, state,
                                     memory.last_user_turn, clarify=True)
            return self._result(f"Here's your order so far:\n{cart.get_summary()}", memory, cart, state,
                                memory.last_user_turn)

        text = conversation[-1].content
        logger.info(f"[ORDER] state={state.value} text={mask_pii(text)!r}")

        # Only a summary shown by this agent can be confirmed
        confirming = (memory.agent == IntentLabel.order_taking.value
                      and state == OrderState.awaiting_confirmation
                      and is_strong_confirmation(text))

        try:
            extraction = self._extract(conversation, cart)
        except MalformedModelOutput as e:
            logger.error(f"[ORDER] extraction failed after {e.attempts} attempts; raw output: {e.raw_output!r}")
            return self._result(
                "Sorry, I didn't quite catch that. Which items would you like, and how many of each?",
                memory, cart, state, fingerprint, clarify=True,
            )

        if confirming and not extraction.items:
            logger.info("[CONFIRMATION] customer confirmed, handing order to checkout")
            return self._result(
                f"Your order is confirmed and ready for checkout:\n{cart.get_summary()}\n"
                "Thank you! You'll be taken to payment to complete your purchase.",
                memory, cart, OrderState.handed_off, fingerprint,
                facts={"handoff": True},
            )

        added, unresolved = self._apply(extraction, cart)
        finishing = confirming or extraction.wants_to_finish or is_order_completion(text)
        facts = {"added": added, "unresolved": [m.mention for m in unresolved]}

        lines = []
        if added:
            lines.append("Added " + ", ".join(f"{qty} x {name}" for name, qty in added) + " to your order.")

        if unresolved:
            lines.extend(self._clarification_for(m) for m in unresolved)
            next_state = OrderState.empty if cart.is_empty() else OrderState.building
            if not cart.is_empty():
                lines.append(f"Your order so far:\n{cart.get_summary()}")
            return self._result("\n".join(lines), memory, cart, next_state, fingerprint, clarify=True, facts=facts)

        if finishing:
            if cart.is_empty():
                return self._result(
                    "Your order is empty at the moment. What would you like to have?",
                    memory, cart, OrderState.empty, fingerprint, clarify=True, facts=facts,
                )
            lines.append(f"Here's your order:\n{cart.get_summary()}")
            lines.append("Shall I place it? Reply \"yes\" to confirm, or tell me what to change.")
            return self._result("\n".join(lines), memory, cart, OrderState.awaiting_confirmation,
                                fingerprint, facts=facts)

        if added:
            lines.append(f"Your order so far:\n{cart.get_summary()}")
            lines.append("Would you like anything else?")
            return self._result("\n".join(lines), memory, cart, OrderState.building, fingerprint, facts=facts)

        if cart.is_empty():
            examples = self._join(self.menu.item_names[:3], "or")
            question = "What can I get for you today?"
            if examples:
                question += f" For example, {examples}."
            return self._result(question, memory, cart, OrderState.empty, fingerprint, clarify=True, facts=facts)

        if state == OrderState.awaiting_confirmation:
            return self._result(
                f"Here's your order:\n{cart.get_summary()}\n"
                "Shall I place it? Reply \"yes\" to confirm, or tell me what to change.",
                memory, cart, OrderState.awaiting_confirmation, fingerprint, clarify=True, facts=facts,
            )

        return self._result(
            f"I didn't catch any new items. Your order so far:\n{cart.get_summary()}\n"
            "Would you like anything else, or is that all?",
            memory, cart, OrderState.building, fingerprint, clarify=True, facts=facts,
        )
