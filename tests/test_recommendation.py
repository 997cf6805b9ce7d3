#!/usr/bin/env python3
"""
Tests for the recommendation tables and the Recommendation agent.

TEST COVERAGE:
    - Association ranking, tie-breaks, per-category cap and exclusion
    - Popularity ranking and category filtering
    - Fallback from empty association candidates to popular items
    - Model wording accepted only when it keeps the ranked order
"""

import os
import sys
import unittest
from unittest.mock import MagicMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from shopchat.agents.recommendation_agent import RecommendationAgent, RecommendationClassification
from shopchat.app.errors import MalformedModelOutput, UpstreamUnavailable
from shopchat.data.menu_store import MenuStore
from shopchat.data.recommendation_store import RecommendationEntry, RecommendationStore
from shopchat.schemas.io_models import ConversationTurn, Memory
from shopchat.schemas.order_models import OrderLine

MENU = MenuStore()

POPULARITY = [
    RecommendationEntry("Latte", 1180, "Coffee"),
    RecommendationEntry("Cappuccino", 1042, "Coffee"),
    RecommendationEntry("Croissant", 930, "Bakery"),
    RecommendationEntry("Chai Tea", 470, "Tea"),
    RecommendationEntry("Earl Grey Tea", 287, "Tea"),
]


def latte_order():
    return [OrderLine(item="Latte", price=4.75, quantity=1)]


class TestRecommendationStore(unittest.TestCase):

    def test_loads_shipped_tables(self):
        store = RecommendationStore(position=MENU.position)
        self.assertIn("latte", store.rules)
        self.assertEqual(store.popular(top_n=1)[0].item, "Latte")
        self.assertIn("Bakery", store.categories())

    def test_apriori_max_confidence_and_exclusion(self):
        rules = {
            "latte": [RecommendationEntry("Croissant", 0.6, "Bakery"), RecommendationEntry("Espresso", 0.2, "Coffee")],
            "espresso": [RecommendationEntry("Croissant", 0.3, "Bakery"), RecommendationEntry("Latte", 0.9, "Coffee")],
        }
        store = RecommendationStore(rules=rules, popularity=[], position=MENU.position)
        picks = store.apriori(["Latte", "Espresso"])
        self.assertEqual([(p.item, p.score) for p in picks], [("Croissant", 0.6)])

    def test_ties_use_catalog_order(self):
        rules = {"latte": [
            RecommendationEntry("Oatmeal Scone", 0.5, "Bakery"),
            RecommendationEntry("Croissant", 0.5, "Bakery"),
            RecommendationEntry("Chai Tea", 0.5, "Tea"),
        ]}
        store = RecommendationStore(rules=rules, popularity=[], position=MENU.position)
        self.assertEqual([p.item for p in store.apriori(["Latte"])], ["Chai Tea", "Croissant", "Oatmeal Scone"])

    def test_max_per_category(self):
        rules = {"latte": [
            RecommendationEntry("Croissant", 0.9, "Bakery"),
            RecommendationEntry("Blueberry Muffin", 0.8, "Bakery"),
            RecommendationEntry("Ginger Scone", 0.7, "Bakery"),
            RecommendationEntry("Vanilla Syrup", 0.1, "Flavours"),
        ]}
        store = RecommendationStore(rules=rules, popularity=[], position=MENU.position)
        picks = [p.item for p in store.apriori(["Latte"], top_n=3, max_per_category=2)]
        self.assertEqual(picks, ["Croissant", "Blueberry Muffin", "Vanilla Syrup"])

    def test_popular_by_category(self):
        store = RecommendationStore(rules={}, popularity=POPULARITY, position=MENU.position)
        self.assertEqual([p.item for p in store.popular(category="tea")], ["Chai Tea", "Earl Grey Tea"])
        self.assertEqual([p.item for p in store.popular(exclude=["Latte"], top_n=2)], ["Cappuccino", "Croissant"])


class TestRecommendationAgent(unittest.TestCase):

    def setUp(self):
        self.rules = {"latte": [
            RecommendationEntry("Croissant", 0.6, "Bakery"),
            RecommendationEntry("Blueberry Muffin", 0.4, "Bakery"),
        ]}
        self.store = RecommendationStore(rules=self.rules, popularity=POPULARITY, position=MENU.position)
        self.gateway = MagicMock()
        self.agent = RecommendationAgent(self.gateway, self.store, MENU)
        self.classification = RecommendationClassification(recommendation_type="apriori")
        self.wording = "How about something new today?"

        def complete(prompt, schema=None):
            if schema is RecommendationClassification:
                if isinstance(self.classification, Exception):
                    raise self.classification
                return self.classification
            if isinstance(self.wording, Exception):
                raise self.wording
            return self.wording

        self.gateway.complete.side_effect = complete

    def handle(self, text, order=None):
        memory = Memory(agent="order_taking", order=order or [])
        return self.agent.handle([ConversationTurn(role="user", content=text)], memory), memory

    def test_apriori_order_in_reply(self):
        result, memory = self.handle("what goes well with my latte?", latte_order())

        reply = result.response
        self.assertLess(reply.index("Croissant"), reply.index("Blueberry Muffin"))
        self.assertEqual(result.facts["items"], ["Croissant", "Blueberry Muffin"])
        self.assertEqual(result.memory.agent, "recommendation")
        self.assertEqual(result.memory.order, memory.order)

    def test_model_wording_kept_when_order_preserved(self):
        self.wording = "Try a flaky Croissant, or if you prefer, a Blueberry Muffin!"
        result, _ = self.handle("suggest something", latte_order())
        self.assertEqual(result.response, self.wording)

    def test_model_wording_rejected_when_reordered(self):
        self.wording = "A Blueberry Muffin or a Croissant would be lovely."
        result, _ = self.handle("suggest something", latte_order())
        self.assertNotEqual(result.response, self.wording)
        self.assertLess(result.response.index("Croissant"), result.response.index("Blueberry Muffin"))

    def test_empty_association_falls_back_to_popular(self):
        result, _ = self.handle("anything to go with it?", [OrderLine(item="Chai Tea", price=3.75, quantity=1)])

        self.assertTrue(result.response)
        self.assertEqual(result.facts["recommendation_type"], "popular")
        self.assertEqual(result.facts["items"], ["Latte", "Cappuccino", "Croissant"])

    def test_popular_in_category(self):
        self.classification = RecommendationClassification(
            recommendation_type="popular_in_category", parameters=["Tea"]
        )
        result, _ = self.handle("which tea is best?")
        self.assertEqual(result.facts["items"], ["Chai Tea", "Earl Grey Tea"])

    def test_category_without_parameter_means_popular(self):
        self.classification = RecommendationClassification(recommendation_type="popular_in_category")
        result, _ = self.handle("what do people like?")
        self.assertEqual(result.facts["recommendation_type"], "popular")

    def test_classification_failure_defaults(self):
        self.classification = MalformedModelOutput("bad")
        result, _ = self.handle("recommend me something", latte_order())
        self.assertEqual(result.facts["recommendation_type"], "apriori")

        result, _ = self.handle("recommend me something")
        self.assertEqual(result.facts["recommendation_type"], "popular")

    def test_render_upstream_failure_uses_template(self):
        self.wording = UpstreamUnavailable("down")
        result, _ = self.handle("suggest something", latte_order())
        self.assertIn("1. Croissant", result.response)
        self.assertIn("2. Blueberry Muffin", result.response)

    def test_menu_order_when_tables_empty(self):
        agent = RecommendationAgent(self.gateway, RecommendationStore(rules={}, popularity=[]), MENU)
        names, text = agent.recommend([], kind="popular")
        self.assertEqual(names, ["Espresso", "Cappuccino", "Latte"])
        self.assertTrue(text)

    def test_mentions_in_order(self):
        self.assertTrue(RecommendationAgent.mentions_in_order("Latte then Croissant", ["Latte", "Croissant"]))
        self.assertFalse(RecommendationAgent.mentions_in_order("Croissant then Latte", ["Latte", "Croissant"]))
        self.assertFalse(RecommendationAgent.mentions_in_order("Just a Latte", ["Latte", "Croissant"]))


if __name__ == "__main__":
    unittest.main()
