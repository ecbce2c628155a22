"""Tests for per-conversation helpers."""

from datetime import datetime, timedelta, timezone

import pytest

from factories import exchange, make_conversation, make_message
from models.conversation_models import INBOUND_EMAIL, OUTBOUND_EMAIL
from scripts.conversations.conversation_utils import (
    format_duration,
    get_average_response_time,
    get_conversation_duration,
    get_conversation_stats,
    get_conversation_title,
    get_first_message,
    get_latest_evaluable_message,
    get_messages_in_time_range,
    get_most_recent_message,
    group_messages_by_date,
    is_conversation_busy,
    is_conversation_completed,
    is_conversation_flagged_for_review,
    sort_messages_by_date,
)

T0 = datetime(2025, 6, 18, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def thread_messages():
    return exchange(
        T0,
        (0, INBOUND_EMAIL),
        (30, OUTBOUND_EMAIL),
        (60, INBOUND_EMAIL),
        (70, INBOUND_EMAIL),
        (130, OUTBOUND_EMAIL),
    )


class TestOrdering:
    def test_sort_does_not_mutate(self, thread_messages):
        original = list(thread_messages)
        newest_first = sort_messages_by_date(thread_messages)
        assert thread_messages == original
        assert newest_first[0].local_date == T0 + timedelta(minutes=130)

    def test_ascending(self, thread_messages):
        shuffled = [thread_messages[3], thread_messages[0], thread_messages[4]]
        ordered = sort_messages_by_date(shuffled, ascending=True)
        assert [m.local_date for m in ordered] == sorted(m.local_date for m in shuffled)

    def test_first_and_most_recent(self, thread_messages):
        conversation = make_conversation(list(reversed(thread_messages)))
        assert get_first_message(conversation).local_date == T0
        assert get_most_recent_message(conversation).local_date == T0 + timedelta(minutes=130)

    def test_empty_conversation(self):
        conversation = make_conversation()
        assert get_first_message(conversation) is None
        assert get_most_recent_message(conversation) is None
        assert get_latest_evaluable_message(conversation) is None


class TestTiming:
    def test_duration(self, thread_messages):
        assert get_conversation_duration(make_conversation(thread_messages)) == timedelta(minutes=130)

    def test_duration_single_message(self):
        conversation = make_conversation([make_message(T0)])
        assert get_conversation_duration(conversation) == timedelta(0)

    def test_average_response_time_counts_every_gap(self, thread_messages):
        # gaps of 30, 30, 10 and 60 minutes
        average = get_average_response_time(make_conversation(thread_messages))
        assert average == timedelta(minutes=32.5)

    def test_average_response_time_needs_two_messages(self):
        assert get_average_response_time(make_conversation()) == timedelta(0)

    def test_messages_in_time_range_inclusive(self, thread_messages):
        conversation = make_conversation(thread_messages)
        found = get_messages_in_time_range(
            conversation, T0 + timedelta(minutes=30), T0 + timedelta(minutes=70)
        )
        assert len(found) == 3


class TestStats:
    def test_stats(self, thread_messages):
        stats = get_conversation_stats(make_conversation(thread_messages))
        assert stats.total_messages == 5
        assert stats.client_messages == 3
        assert stats.user_messages == 2
        assert stats.duration_seconds == 130 * 60
        assert stats.avg_response_seconds == 32.5 * 60
        assert stats.first_message_type == INBOUND_EMAIL
        assert stats.last_message_type == OUTBOUND_EMAIL
        assert stats.first_message == T0.isoformat()

    def test_unknown_types_not_counted_either_way(self):
        stats = get_conversation_stats(make_conversation([make_message(T0, type="note")]))
        assert stats.client_messages == 0
        assert stats.user_messages == 0

    def test_latest_evaluable_message(self):
        messages = [
            make_message(T0, ev_score=10.0),
            make_message(T0 + timedelta(hours=2), ev_score=50.0),
            make_message(T0 + timedelta(hours=3)),
        ]
        assert get_latest_evaluable_message(make_conversation(messages)).ev_score == 50.0


class TestGrouping:
    def test_group_by_day(self):
        messages = [
            make_message(datetime(2025, 6, 19, 8, tzinfo=timezone.utc)),
            make_message(datetime(2025, 6, 18, 23, tzinfo=timezone.utc)),
            make_message(datetime(2025, 6, 18, 7, tzinfo=timezone.utc)),
        ]
        groups = group_messages_by_date(messages)
        assert list(groups) == ["June 18, 2025", "June 19, 2025"]
        assert [m.local_date.hour for m in groups["June 18, 2025"]] == [7, 23]


class TestFormatting:
    @pytest.mark.parametrize("duration,expected", [
        (timedelta(minutes=15), "15m"),
        (timedelta(hours=3, minutes=15), "3h 15m"),
        (timedelta(days=2, hours=3, minutes=15), "2d 3h 15m"),
        (timedelta(0), "0m"),
    ])
    def test_format_duration(self, duration, expected):
        assert format_duration(duration) == expected

    def test_title_fallbacks(self):
        assert get_conversation_title(make_conversation(lead_name="Jane")) == "Jane"
        assert get_conversation_title(
            make_conversation(lead_name="", client_email="j@x.com")
        ) == "j@x.com"


class TestPredicates:
    def test_flags(self):
        conversation = make_conversation(completed=True, busy=True)
        assert is_conversation_completed(conversation)
        assert is_conversation_busy(conversation)
        assert not is_conversation_flagged_for_review(conversation)
