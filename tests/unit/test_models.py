"""
Tests for the core Pydantic data models.

These models define the persisted record shape, so their serialization and
validation behavior is what keeps stored sessions readable across releases.
"""

import pytest
from palaver.models import (
    ASSISTANT_ROLE,
    USER_ROLE,
    ChatMessage,
    RecentSession,
    Session,
    make_title,
    new_message_id,
)
from pydantic import ValidationError


class TestChatMessage:
    """Test ChatMessage model validation and behavior."""

    def test_valid_message_creation(self):
        """Test creating user and assistant messages."""
        user_msg = ChatMessage(role=USER_ROLE, content="Hello!")
        assert user_msg.role == "user"
        assert user_msg.content == "Hello!"

        assistant_msg = ChatMessage(role=ASSISTANT_ROLE, content="Hi there!")
        assert assistant_msg.role == "assistant"

    def test_only_user_and_assistant_roles(self):
        """System and tool roles are not part of a session transcript."""
        with pytest.raises(ValidationError):
            ChatMessage(role="system", content="You are helpful.")
        with pytest.raises(ValidationError):
            ChatMessage(role="tool", content="42")

    def test_missing_required_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            ChatMessage(content="Hello")
        assert any(error["loc"] == ("role",) for error in exc_info.value.errors())

    def test_ids_are_generated_and_unique(self):
        ids = {ChatMessage(role=USER_ROLE, content="x").id for _ in range(200)}
        assert len(ids) == 200
        assert all(message_id.startswith("msg-") for message_id in ids)

    def test_timestamp_is_epoch_milliseconds(self):
        msg = ChatMessage(role=USER_ROLE, content="x")
        assert isinstance(msg.timestamp, int)
        assert msg.timestamp > 1_600_000_000_000

    def test_message_id_embeds_stamp(self):
        message_id = new_message_id(1234)
        prefix, stamp, suffix = message_id.split("-")
        assert prefix == "msg"
        assert stamp == "1234"
        assert len(suffix) == 7


class TestSession:
    """Test Session serialization to and from the persisted record shape."""

    def test_fresh_session_has_no_id(self):
        session = Session()
        assert session.id is None
        assert session.messages == []

    def test_record_uses_camel_case_and_omits_id(self, sample_messages):
        session = Session(
            id="session-1-abc", messages=sample_messages, created_at=10, updated_at=20
        )
        record = session.to_record()

        assert set(record) == {"messages", "createdAt", "updatedAt"}
        assert record["createdAt"] == 10
        assert record["updatedAt"] == 20
        assert set(record["messages"][0]) == {"id", "role", "content", "timestamp"}

    def test_accepts_camel_case_and_snake_case(self):
        from_record = Session.model_validate({"createdAt": 1, "updatedAt": 2})
        from_fields = Session(created_at=1, updated_at=2)
        assert from_record.created_at == from_fields.created_at == 1
        assert from_record.updated_at == from_fields.updated_at == 2

    def test_record_round_trip(self, sample_messages):
        session = Session(id="session-5-xyz", messages=sample_messages)
        restored = Session.model_validate({**session.to_record(), "id": session.id})
        assert restored == session

    def test_index_of(self, sample_messages):
        session = Session(messages=sample_messages)
        assert session.index_of(sample_messages[2].id) == 2
        assert session.index_of("missing") == -1


class TestRecentSession:
    def test_defaults(self):
        entry = RecentSession(id="session-1-a", timestamp_key=1)
        assert entry.last_message == ""
        assert entry.title == ""

    @pytest.mark.parametrize(
        "content, expected",
        [
            ("Short question", "Short question"),
            ("x" * 40, "x" * 40),
            ("y" * 41, "y" * 40 + "..."),
        ],
    )
    def test_make_title(self, content, expected):
        assert make_title(content) == expected
