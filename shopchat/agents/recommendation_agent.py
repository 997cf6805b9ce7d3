"""Recommendation Agent: suggests items from the precomputed tables.

Which items get suggested, and in what order, is fully deterministic. The model
picks the recommendation kind and writes the wording, and its wording is only
kept if it names every item in rank order.
"""
import re
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, Field

from .base_agent import BaseAgent
from ..app.config import Config
from ..app.errors import MalformedModelOutput, UpstreamUnavailable
from ..app.prompt_builder import PromptBuilder
from ..data.menu_store import MenuStore
from ..data.recommendation_store import RecommendationEntry, RecommendationStore
from ..nlu.llm_router import latest_user_text
from ..schemas.io_models import AgentResult, ConversationTurn, IntentLabel, Memory
from ..schemas.order_models import OrderLine
from ..utils.logger import get_logger

logger = get_logger()

APRIORI = "apriori"
POPULAR = "popular"
POPULAR_IN_CATEGORY = "popular_in_category"


class RecommendationClassification(BaseModel):
    chain_of_thought: str = ""
    recommendation_type: Literal["apriori", "popular", "popular_in_category"]
    parameters: List[str] = Field(default_factory=list)


class RecommendationAgent(BaseAgent):
    name = "recommendation_agent"
    intent = IntentLabel.recommendation

    def __init__(self, gateway, store: RecommendationStore, menu: MenuStore = None,
                 builder: PromptBuilder = None):
        self.gateway = gateway
        self.store = store
        self.menu = menu
        self.builder = builder or PromptBuilder()

    def _classify(self, conversation: List[ConversationTurn], order: List[OrderLine]) -> Tuple[str, Optional[str]]:
        fallback = APRIORI if order else POPULAR
        prompt = self.builder.build_recommendation_classifier_prompt(conversation, order, self.store.categories())
        try:
            output = self.gateway.complete(prompt, schema=RecommendationClassification)
        except MalformedModelOutput as e:
            logger.warning(f"[RECOMMEND] sub-type classification failed ({e.last_error!r}); using {fallback}")
            return fallback, None

        kind = output.recommendation_type
        category = output.parameters[0].strip() if output.parameters else None
        if kind == POPULAR_IN_CATEGORY and not category:
            kind = POPULAR
        if kind == APRIORI and not order:
            kind = POPULAR
        return kind, category

    def select(self, order: List[OrderLine], kind: str = APRIORI,
               requested_category: Optional[str] = None) -> Tuple[List[RecommendationEntry], str]:
        """
        Pick the items to suggest.

        Args:
            order: Lines currently in the order
            kind: apriori, popular or popular_in_category
            requested_category: Category for popular_in_category

        Returns:
            (ranked entries, the kind that actually produced them)
        """
        in_order = [line.item for line in order]
        entries: List[RecommendationEntry] = []
        if kind == APRIORI:
            entries = self.store.apriori(in_order)
        elif kind == POPULAR_IN_CATEGORY and requested_category:
            entries = self.store.popular(category=requested_category, exclude=in_order)
        else:
            kind = POPULAR
            entries = self.store.popular(exclude=in_order)

        if not entries and kind != POPULAR:
            logger.info(f"[RECOMMEND] no {kind} candidates, falling back to popular items")
            kind = POPULAR
            entries = self.store.popular(exclude=in_order)
        if not entries:
            entries = self.store.popular()
        if not entries and self.menu is not None:
            logger.info("[RECOMMEND] popularity table empty, falling back to menu order")
            entries = [RecommendationEntry(item=i.name, score=0.0, category=i.category)
                       for i in self.menu.list_all_items()
                       if i.name.lower() not in {n.lower() for n in in_order}][:Config.RECOMMENDATION_TOP_N]
        return entries, kind

    @staticmethod
    def template_message(names: List[str], kind: str, category: Optional[str] = None) -> str:
        if kind == APRIORI:
            intro = "Customers who order the same as you often add:"
        elif kind == POPULAR_IN_CATEGORY and category:
            intro = f"Our most popular picks in {category}:"
        else:
            intro = "Here are some of our most popular items:"
        bullets = "\n".join(f"{i}. {name}" for i, name in enumerate(names, 1))
        return f"{intro}\n{bullets}\nWould you like to add any of these to your order?"

    @staticmethod
    def mentions_in_order(text: str, names: List[str]) -> bool:
        """True when every name appears in `text` and in the given order."""
        lowered = (text or "").lower()
        cursor = 0
        for name in names:
            match = re.search(r"\b" + re.escape(name.lower()) + r"\b", lowered[cursor:])
            if not match:
                return False
            cursor += match.end()
        return True

    def render(self, names: List[str], kind: str, category: Optional[str], query: str) -> str:
        reason = {
            APRIORI: "they are often bought together with what is in the customer's order",
            POPULAR_IN_CATEGORY: f"they are our best sellers in {category}",
        }.get(kind, "they are our best sellers")
        prompt = self.builder.build_recommendation_render_prompt(names, reason, query)
        try:
            text = self.gateway.complete(prompt)
        except UpstreamUnavailable as e:
            logger.warning(f"[RECOMMEND] wording model unavailable ({e}); using template")
            return self.template_message(names, kind, category)
        if text and self.mentions_in_order(text, names):
            return text
        logger.warning(f"[RECOMMEND] model wording dropped or reordered items; raw output: {text!r}")
        return self.template_message(names, kind, category)

    def recommend(self, order: List[OrderLine], requested_category: Optional[str] = None,
                  kind: Optional[str] = None, query: str = "") -> Tuple[List[str], str]:
        """Return the ranked item names and the reply text."""
        if kind is None:
            kind = POPULAR_IN_CATEGORY if requested_category else (APRIORI if order else POPULAR)
        entries, kind = self.select(order, kind, requested_category)
        names = [e.item for e in entries]
        logger.info(f"[RECOMMEND] kind={kind} category={requested_category!r} items={names}")
        if not names:
            return [], "I'm sorry, I don't have anything to recommend right now."
        return names, self.render(names, kind, requested_category, query)

    def handle(self, conversation: List[ConversationTurn], memory: Memory) -> AgentResult:
        logger.info("[WORKFLOW] Executing RecommendationAgent...")
        kind, category = self._classify(conversation, memory.order)
        names, response = self.recommend(memory.order, category, kind, latest_user_text(conversation))
        if not names:
            return self._clarify(response, memory)
        return self._ok(response, memory, facts={"recommendation_type": kind, "items": names})
