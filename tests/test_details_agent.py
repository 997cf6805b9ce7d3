#!/usr/bin/env python3
"""Tests for the Details agent (retrieval-grounded answers)."""

import os
import sys
import unittest
from unittest.mock import MagicMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from shopchat.agents.details_agent import DetailsAgent
from shopchat.schemas.io_models import ConversationTurn, Memory, RetrievedPassage
from shopchat.schemas.order_models import OrderLine


class TestDetailsAgent(unittest.TestCase):

    def setUp(self):
        self.gateway = MagicMock()
        self.gateway.embed.return_value = [0.0, 1.0]
        self.gateway.complete.return_value = "We open at 7am on weekdays."
        self.retriever = MagicMock()
        self.agent = DetailsAgent(self.gateway, self.retriever, top_k=4)

    def test_answer_grounded_in_passages(self):
        self.retriever.search.return_value = [
            RetrievedPassage(text="Opening Hours: Monday to Friday from 7:00 AM", score=0.9, source="about_shop.txt"),
        ]
        conversation = [ConversationTurn(role="user", content="When do you open?")]
        answer = self.agent.answer("When do you open?", conversation)

        self.assertEqual(answer, "We open at 7am on weekdays.")
        self.gateway.embed.assert_called_once_with("When do you open?")
        self.retriever.search.assert_called_once_with([0.0, 1.0], k=4)
        prompt = self.gateway.complete.call_args[0][0]
        self.assertIn("Monday to Friday from 7:00 AM", prompt)
        self.assertIn("When do you open?", prompt)

    def test_no_passages_still_answers(self):
        self.retriever.search.return_value = []
        self.gateway.complete.return_value = "Sorry, I don't have that information."
        answer = self.agent.answer("Do you sell bicycles?", [])

        self.assertEqual(answer, "Sorry, I don't have that information.")
        self.assertIn("No relevant context was found", self.gateway.complete.call_args[0][0])

    def test_handle_keeps_order(self):
        self.retriever.search.return_value = []
        memory = Memory(agent="order_taking", order=[OrderLine(item="Latte", price=4.75, quantity=1)])
        result = self.agent.handle([ConversationTurn(role="user", content="Is the latte hot?")], memory)

        self.assertEqual(result.memory.agent, "details")
        self.assertEqual(result.memory.order, memory.order)
        self.assertEqual(result.response, "We open at 7am on weekdays.")
        self.assertEqual(memory.agent, "order_taking")


if __name__ == "__main__":
    unittest.main()
