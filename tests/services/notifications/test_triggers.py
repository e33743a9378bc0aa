"""
Tests for event classification and the level gate.
"""

from __future__ import annotations

import pytest

from chime.services.notifications import (
    EventType,
    NotificationLevel,
    determine_event_type,
    extract_mentioned_user_ids,
    is_event_allowed_by_level,
    is_reply_to_user,
)


class TestDetermineEventType:
    """Test determine_event_type."""

    def test_plain_channel_message(self, context_factory):
        """No DM, mention or reply is a plain message."""
        assert determine_event_type(context_factory()) is EventType.MESSAGE

    def test_conversation_is_dm(self, context_factory):
        """A conversation id makes the event a DM."""
        context = context_factory(server_id=None, channel_id=None, conversation_id="dm-1")
        assert determine_event_type(context) is EventType.DM

    def test_dm_never_reclassified_as_mention(self, context_factory):
        """DM wins even when the recipient is mentioned."""
        context = context_factory(conversation_id="dm-1", mentioned_user_ids=["bob"])
        assert determine_event_type(context) is EventType.DM

    def test_mention(self, context_factory):
        """Recipient in the mention list is a mention."""
        context = context_factory(mentioned_user_ids=["carol", "bob"])
        assert determine_event_type(context) is EventType.MENTION

    def test_mention_of_someone_else(self, context_factory):
        """Mentions of other users do not count."""
        context = context_factory(mentioned_user_ids=["carol"])
        assert determine_event_type(context) is EventType.MESSAGE

    def test_mention_beats_reply(self, context_factory):
        """A mention that is also a reply is a mention."""
        context = context_factory(mentioned_user_ids=["bob"], is_reply_to_recipient=True)
        assert determine_event_type(context) is EventType.MENTION

    def test_reply(self, context_factory):
        """A reply to the recipient is a thread reply."""
        context = context_factory(is_reply_to_recipient=True)
        assert determine_event_type(context) is EventType.THREAD_REPLY


class TestLevelGate:
    """Test is_event_allowed_by_level."""

    @pytest.mark.parametrize("event_type", list(EventType))
    def test_all_allows_everything(self, event_type):
        """all lets every event through."""
        assert is_event_allowed_by_level(NotificationLevel.ALL, event_type) is True

    @pytest.mark.parametrize("event_type", list(EventType))
    def test_nothing_allows_nothing(self, event_type):
        """nothing blocks every event."""
        assert is_event_allowed_by_level(NotificationLevel.NOTHING, event_type) is False

    @pytest.mark.parametrize(
        "event_type,allowed",
        [
            (EventType.DM, True),
            (EventType.MENTION, True),
            (EventType.THREAD_REPLY, True),
            (EventType.MESSAGE, False),
        ],
    )
    def test_mentions(self, event_type, allowed):
        """mentions allows direct attention only."""
        assert is_event_allowed_by_level(NotificationLevel.MENTIONS, event_type) is allowed

    def test_unknown_level_blocks(self):
        """Unknown raw levels allow nothing."""
        assert is_event_allowed_by_level("loud", EventType.DM) is False


class TestExtractMentions:
    """Test extract_mentioned_user_ids."""

    def test_extracts_in_order(self):
        """Ids come back in message order."""
        content = "hey <@bob> and <@carol42>, see above"
        assert extract_mentioned_user_ids(content) == ["bob", "carol42"]

    def test_duplicates_kept(self):
        """Repeated mentions are kept."""
        assert extract_mentioned_user_ids("<@bob> <@bob>") == ["bob", "bob"]

    def test_ignores_malformed_tokens(self):
        """Only alphanumeric ids inside <@...> count."""
        content = "<@> <@bo-b> @bob <bob> <@ bob>"
        assert extract_mentioned_user_ids(content) == []

    def test_empty(self):
        """Empty content has no mentions."""
        assert extract_mentioned_user_ids("") == []


class TestIsReplyToUser:
    """Test is_reply_to_user."""

    def test_match(self):
        assert is_reply_to_user("bob", "bob") is True

    def test_other_author(self):
        assert is_reply_to_user("carol", "bob") is False

    def test_not_a_reply(self):
        assert is_reply_to_user(None, "bob") is False
