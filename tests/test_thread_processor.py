"""Tests for raw thread processing."""

from datetime import datetime, timedelta, timezone

import pytest

from factories import make_message
from scripts.conversations.thread_processor import (
    get_ai_score,
    process_thread,
    resolve_conversation_id,
)
from scripts.lib.errors import SchemaValidationError
from scripts.lib.timestamps import parse_timestamp

T0 = datetime(2025, 6, 18, 2, 0, tzinfo=timezone.utc)


class TestFieldMapping:
    @pytest.mark.parametrize("raw,expected", [
        ({"lead_name": "A", "source_name": "B"}, "A"),
        ({"source_name": "B", "name": "C"}, "B"),
        ({"name": "C", "client_name": "D"}, "C"),
        ({"client_name": "D", "sender_name": "E"}, "D"),
        ({"sender_name": "E"}, "E"),
        ({"lead_name": "", "name": "C"}, "C"),
        ({}, "Unknown Lead"),
    ])
    def test_lead_name_chain(self, raw, expected):
        assert process_thread(raw, []).lead_name == expected

    def test_database_field_names(self):
        thread = process_thread({
            "conversation_id": "c-9",
            "source_name": "Maria Lopez",
            "source": "maria@example.com",
            "phone_number": "555-0100",
            "city": "Austin",
            "summary": "Looking for a 3-bed near downtown",
            "budget": "$400k-$500k",
            "timeframe": "3 months",
            "property_types": "single family",
        }, [])
        assert thread.conversation_id == "c-9"
        assert thread.lead_name == "Maria Lopez"
        assert thread.client_email == "maria@example.com"
        assert thread.source_name == "Maria Lopez"
        assert thread.phone == "555-0100"
        assert thread.location == "Austin"
        assert thread.ai_summary == "Looking for a 3-bed near downtown"
        assert thread.budget_range == "$400k-$500k"
        assert thread.timeline == "3 months"
        assert thread.preferred_property_types == "single family"

    def test_defaults(self):
        thread = process_thread({}, [])
        assert thread.priority == "normal"
        assert thread.client_email == ""
        assert thread.ai_score is None
        parse_timestamp(thread.created_at)

    def test_created_at_aliases(self):
        thread = process_thread({"created_at": "2025-01-01T00:00:00Z", "updatedAt": "2025-02-01T00:00:00Z"}, [])
        assert thread.created_at == "2025-01-01T00:00:00Z"
        assert thread.updated_at == "2025-02-01T00:00:00Z"

    def test_non_mapping_rejected(self):
        with pytest.raises(SchemaValidationError):
            process_thread("thread", [])


class TestStrictFlags:
    def test_only_true_counts(self):
        thread = process_thread({
            "spam": "true",
            "busy": 1,
            "flag": "yes",
            "completed": True,
            "lcp_enabled": True,
            "read": False,
        }, [])
        assert thread.spam is False
        assert thread.busy is False
        assert thread.flag is False
        assert thread.completed is True
        assert thread.lcp_enabled is True
        assert thread.read is False


class TestLastMessageAt:
    def test_uses_most_recent_message(self):
        messages = [
            make_message(T0, timestamp="2025-06-18T02:00:00"),
            make_message(T0 + timedelta(hours=3), timestamp="2025-06-18T05:00:00"),
            make_message(T0 + timedelta(hours=1), timestamp="2025-06-18T03:00:00"),
        ]
        thread = process_thread({"lastMessageAt": "2020-01-01T00:00:00Z"}, messages)
        assert thread.last_message_at == "2025-06-18T05:00:00"

    def test_tie_keeps_first_in_array_order(self):
        messages = [
            make_message(T0, timestamp="2025-06-18T02:00:00Z"),
            make_message(T0, timestamp="2025-06-18T02:00:00.000Z"),
        ]
        assert process_thread({}, messages).last_message_at == "2025-06-18T02:00:00Z"

    def test_falls_back_to_raw_last_message_at(self):
        thread = process_thread({"lastMessageAt": "2025-01-01T00:00:00Z", "last_updated": "x"}, [])
        assert thread.last_message_at == "2025-01-01T00:00:00Z"

    def test_falls_back_to_last_updated(self):
        thread = process_thread({"last_updated": "2025-02-01T00:00:00Z"}, [])
        assert thread.last_message_at == "2025-02-01T00:00:00Z"

    def test_falls_back_to_now(self):
        before = datetime.now(timezone.utc)
        thread = process_thread({}, [])
        assert parse_timestamp(thread.last_message_at) >= before.replace(microsecond=0)


class TestAiScore:
    def test_first_scored_message_in_array_order(self):
        messages = [
            make_message(T0 + timedelta(hours=5)),
            make_message(T0, ev_score=10.0),
            make_message(T0 + timedelta(hours=9), ev_score=90.0),
        ]
        assert get_ai_score(messages) == 10.0
        assert process_thread({}, messages).ai_score == 10.0

    def test_none_without_scores(self):
        assert get_ai_score([make_message(T0)]) is None


class TestConversationId:
    def test_prefers_conversation_id_over_id(self):
        assert resolve_conversation_id({"conversation_id": "a", "id": "b"}) == "a"

    def test_uses_id(self):
        assert resolve_conversation_id({"id": "b"}) == "b"

    def test_falls_back_to_first_message(self):
        raw_messages = ["bad", {"body": "x"}, {"conversation_id": "from-msg"}]
        assert resolve_conversation_id({}, raw_messages) == "from-msg"

    def test_empty_when_unknown(self):
        assert resolve_conversation_id({}) == ""
