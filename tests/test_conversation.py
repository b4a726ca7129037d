import unittest

import pytest

from lead_relay.exceptions import InvalidTransitionError
from lead_relay.models.conversation import (
    ConversationEvent,
    ConversationPhase,
    InMemoryConversationStore,
    next_phase,
)
from lead_relay.models.openai_schemas import MessageRole


class TestNextPhase:

    @pytest.mark.parametrize(
        "phase,event,expected",
        [
            (ConversationPhase.NEW, ConversationEvent.INBOUND, ConversationPhase.NEW),
            (ConversationPhase.NEW, ConversationEvent.REPLY_SENT, ConversationPhase.AWAITING_REPLY),
            (ConversationPhase.AWAITING_REPLY, ConversationEvent.INBOUND, ConversationPhase.NEW),
            (ConversationPhase.AWAITING_REPLY, ConversationEvent.FINISHED, ConversationPhase.TERMINAL),
            (ConversationPhase.TERMINAL, ConversationEvent.RESET, ConversationPhase.NEW),
        ],
    )
    def test_allowed_transitions(self, phase, event, expected):
        assert next_phase(phase, event) == expected

    def test_terminal_rejects_inbound(self):
        with pytest.raises(InvalidTransitionError):
            next_phase(ConversationPhase.TERMINAL, ConversationEvent.INBOUND)

    def test_terminal_rejects_reply(self):
        with pytest.raises(ValueError):
            next_phase(ConversationPhase.TERMINAL, ConversationEvent.REPLY_SENT)


class TestInMemoryConversationStore(unittest.TestCase):

    def setUp(self):
        self.store = InMemoryConversationStore()
        self.sender = "+15551234567"

    def test_get_or_create_creates_once(self):
        first = self.store.get_or_create(self.sender)
        second = self.store.get_or_create(self.sender)

        self.assertEqual(first.conversation_id, second.conversation_id)
        self.assertEqual(first.phase, ConversationPhase.NEW)
        self.assertEqual(first.history, [])
        self.assertEqual(len(self.store), 1)

    def test_get_or_create_fills_missing_name_only(self):
        self.store.get_or_create(self.sender)
        self.assertEqual(self.store.get_or_create(self.sender, name="Sam").name, "Sam")
        self.assertEqual(self.store.get_or_create(self.sender, name="Other").name, "Sam")

    def test_returned_state_is_a_copy(self):
        state = self.store.get_or_create(self.sender)
        state.history.append("tampered")
        state.step = 99

        stored = self.store.get(self.sender)
        self.assertEqual(stored.history, [])
        self.assertEqual(stored.step, 0)

    def test_history_keeps_order(self):
        self.store.get_or_create(self.sender)
        self.store.append_turn(self.sender, MessageRole.SYSTEM, "prompt")
        self.store.append_turn(self.sender, MessageRole.USER, "hi")
        self.store.append_turn(self.sender, MessageRole.ASSISTANT, "hello")

        roles = [message.role for message in self.store.history(self.sender)]
        self.assertEqual(roles, [MessageRole.SYSTEM, MessageRole.USER, MessageRole.ASSISTANT])

    def test_append_turn_requires_conversation(self):
        with self.assertRaises(KeyError):
            self.store.append_turn("+19999999999", MessageRole.USER, "hi")

    def test_processing_flag_is_exclusive(self):
        self.assertTrue(self.store.try_set_processing(self.sender))
        self.assertFalse(self.store.try_set_processing(self.sender))

        self.store.clear_processing(self.sender)
        self.assertTrue(self.store.try_set_processing(self.sender))

    def test_reply_sent_advances_step_and_phase(self):
        self.store.get_or_create(self.sender)
        state = self.store.apply_event(self.sender, ConversationEvent.REPLY_SENT)

        self.assertEqual(state.step, 1)
        self.assertTrue(state.waiting_for_reply)

        state = self.store.apply_event(self.sender, ConversationEvent.INBOUND)
        self.assertFalse(state.waiting_for_reply)
        self.assertEqual(state.step, 1)

    def test_reset_clears_history_but_keeps_name(self):
        self.store.get_or_create(self.sender, name="Sam")
        self.store.append_turn(self.sender, MessageRole.USER, "hi")
        self.store.apply_event(self.sender, ConversationEvent.REPLY_SENT)
        self.store.set_thread_ref(self.sender, "resp_1")
        self.store.apply_event(self.sender, ConversationEvent.FINISHED)

        state = self.store.reset(self.sender)

        self.assertEqual(state.phase, ConversationPhase.NEW)
        self.assertEqual(state.history, [])
        self.assertEqual(state.step, 0)
        self.assertIsNone(state.thread_ref)
        self.assertEqual(state.name, "Sam")

    def test_get_by_id_and_detail(self):
        created = self.store.get_or_create(self.sender, name="Sam")
        self.store.append_turn(self.sender, MessageRole.USER, "hi")

        detail = self.store.get_by_id(created.conversation_id).detail()

        self.assertEqual(detail["phone_number"], self.sender)
        self.assertEqual(detail["messages"][0]["sender"], "user")
        self.assertEqual(detail["messages"][0]["content"], "hi")
        self.assertIsNone(self.store.get_by_id("missing"))

    def test_list_orders_by_most_recent_update(self):
        self.store.get_or_create("+15550000001")
        self.store.get_or_create("+15550000002")
        self.store.append_turn("+15550000001", MessageRole.USER, "later")

        senders = [state.sender_id for state in self.store.list_conversations()]
        self.assertEqual(senders, ["+15550000001", "+15550000002"])


if __name__ == "__main__":
    unittest.main()
