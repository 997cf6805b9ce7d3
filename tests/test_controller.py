#!/usr/bin/env python3
"""
Tests for the pipeline controller.

All stages are mocks; these check orchestration only: the guard short-circuit,
dispatch to exactly one agent, memory resolution and the apology path.
"""

import os
import sys
import time
import unittest
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from shopchat.app.config import Config
from shopchat.app.controller import Controller, resolve_memory
from shopchat.app.errors import MalformedModelOutput, UpstreamUnavailable
from shopchat.schemas.io_models import (
    AgentResult,
    ChatRequest,
    ConversationTurn,
    GuardDecision,
    IntentLabel,
    Memory,
)
from shopchat.schemas.order_models import OrderLine


def user(text):
    return ConversationTurn(role="user", content=text)


class TestResolveMemory(unittest.TestCase):

    def test_explicit_memory_wins(self):
        explicit = Memory(agent="details")
        on_turn = Memory(agent="order_taking")
        conversation = [user("hi"), ConversationTurn(role="assistant", content="hey", memory=on_turn), user("x")]
        self.assertIs(resolve_memory(conversation, explicit), explicit)

    def test_latest_assistant_memory(self):
        older = Memory(agent="details")
        newer = Memory(agent="order_taking", order=[OrderLine(item="Latte", price=4.75)])
        conversation = [
            user("hi"),
            ConversationTurn(role="assistant", content="a", memory=older),
            user("a latte"),
            ConversationTurn(role="assistant", content="b", memory=newer),
            user("that's all"),
        ]
        self.assertIs(resolve_memory(conversation), newer)

    def test_empty_by_default(self):
        self.assertEqual(resolve_memory([user("hi")]), Memory())


class TestController(unittest.TestCase):

    def setUp(self):
        self.guard = MagicMock()
        self.guard.check.return_value = GuardDecision(allowed=True)
        self.classifier = MagicMock()
        self.classifier.classify.return_value = IntentLabel.order_taking
        self.agents = {label: MagicMock() for label in IntentLabel}
        for label, agent in self.agents.items():
            agent.name = f"{label.value}_agent"
        self.controller = Controller(guard=self.guard, classifier=self.classifier, agents=self.agents)
        self.memory = Memory(agent="order_taking", order=[OrderLine(item="Latte", price=4.75, quantity=1)],
                             client_id="abc")

    def test_guard_denial_short_circuits(self):
        self.guard.check.return_value = GuardDecision(allowed=False, reason="off topic")
        reply, memory = self.controller.process([user("tell me a joke about cats")], self.memory)

        self.assertEqual(reply, Config.DECLINE_MESSAGE)
        self.assertEqual(memory, self.memory)
        self.classifier.classify.assert_not_called()
        for agent in self.agents.values():
            agent.handle.assert_not_called()

    def test_dispatches_to_exactly_one_agent(self):
        next_memory = self.memory.model_copy(update={"order_state": "building"})
        self.agents[IntentLabel.order_taking].handle.return_value = AgentResult(
            agent="order_taking_agent", intent=IntentLabel.order_taking,
            response="Added 1 x Croissant to your order.", memory=next_memory,
        )
        conversation = [user("and a croissant")]
        reply, memory = self.controller.process(conversation, self.memory)

        self.assertEqual(reply, "Added 1 x Croissant to your order.")
        self.assertIs(memory, next_memory)
        self.agents[IntentLabel.order_taking].handle.assert_called_once_with(conversation, self.memory)
        self.agents[IntentLabel.details].handle.assert_not_called()
        self.agents[IntentLabel.recommendation].handle.assert_not_called()

    def test_pipeline_error_becomes_apology(self):
        self.classifier.classify.side_effect = UpstreamUnavailable("down")
        reply, memory = self.controller.process([user("hi")], self.memory)
        self.assertEqual(reply, Config.APOLOGY_MESSAGE)
        self.assertEqual(memory, self.memory)

    def test_agent_error_becomes_apology(self):
        self.agents[IntentLabel.order_taking].handle.side_effect = MalformedModelOutput("bad")
        reply, memory = self.controller.process([user("hi")], self.memory)
        self.assertEqual(reply, Config.APOLOGY_MESSAGE)
        self.assertEqual(memory.order, self.memory.order)

    def test_unexpected_error_becomes_apology(self):
        self.agents[IntentLabel.order_taking].handle.side_effect = KeyError("boom")
        reply, memory = self.controller.process([user("hi")], self.memory)
        self.assertEqual(reply, Config.APOLOGY_MESSAGE)
        self.assertEqual(memory, self.memory)

    def test_handle_wraps_process(self):
        self.guard.check.return_value = GuardDecision(allowed=False)
        response = self.controller.handle(ChatRequest(messages=[user("hack the planet")]))

        self.assertEqual(response.role, "assistant")
        self.assertEqual(response.content, Config.DECLINE_MESSAGE)
        self.assertEqual(response.memory, Memory())

    def test_extra_memory_keys_survive(self):
        self.guard.check.return_value = GuardDecision(allowed=False)
        _, memory = self.controller.process([user("x")], self.memory)
        self.assertEqual(memory.model_dump()["client_id"], "abc")

    def test_components_built_once_under_concurrency(self):
        built = []

        def slow_guard(gateway, builder):
            built.append(gateway)
            time.sleep(0.05)
            return self.guard

        controller = Controller(gateway=MagicMock(), classifier=self.classifier, agents=self.agents)
        with patch("shopchat.app.controller.Guard", side_effect=slow_guard):
            with ThreadPoolExecutor(max_workers=8) as pool:
                list(pool.map(lambda _: controller._ensure_components(), range(8)))

        self.assertEqual(len(built), 1)
        self.assertIs(controller.guard, self.guard)


if __name__ == "__main__":
    unittest.main()
