"""
Unit tests for the collaboration wire protocol
==============================================
Parsing of inbound frames into typed messages and serialization of
outbound messages with camelCase keys.
"""

import json

import pytest

from src.api.protocol import (
    CursorUpdateMessage,
    HeartbeatMessage,
    JoinedMessage,
    JoinMessage,
    LeaveMessage,
    MessageType,
    SchemaUpdateMessage,
    UserJoinedMessage,
    UserLeftMessage,
    encode_message,
    parse_inbound,
    user_summary,
)
from src.core.exceptions import MessageValidationError


class TestParseInbound:
    """Inbound frame parsing"""

    def test_join_with_camel_case_fields(self):
        """Join frame is parsed into a JoinMessage"""
        message = parse_inbound(json.dumps({
            "type": "join", "projectId": "p1", "userId": "u-alice", "username": "alice"
        }))

        assert isinstance(message, JoinMessage)
        assert message.project_id == "p1"
        assert message.user_id == "u-alice"
        assert message.username == "alice"
        assert message.message_type == MessageType.JOIN

    def test_join_missing_username(self):
        """Missing required field is reported by name"""
        with pytest.raises(MessageValidationError) as exc_info:
            parse_inbound(json.dumps({"type": "join", "projectId": "p1", "userId": "u1"}))

        assert exc_info.value.message_type == "join"
        assert any("username" in error for error in exc_info.value.errors)

    def test_join_empty_project_id(self):
        """Empty identifiers are rejected"""
        with pytest.raises(MessageValidationError):
            parse_inbound(json.dumps({"type": "join", "projectId": "", "userId": "u1", "username": "a"}))

    def test_invalid_json(self):
        """Unparseable text is rejected"""
        with pytest.raises(MessageValidationError) as exc_info:
            parse_inbound("{not json")

        assert exc_info.value.errors[0].startswith("Invalid JSON")

    def test_non_object_payload(self):
        """Arrays and scalars are not messages"""
        with pytest.raises(MessageValidationError):
            parse_inbound("[1, 2, 3]")
        with pytest.raises(MessageValidationError):
            parse_inbound('"join"')

    def test_missing_type(self):
        with pytest.raises(MessageValidationError) as exc_info:
            parse_inbound(json.dumps({"projectId": "p1"}))

        assert "type" in exc_info.value.errors[0]

    def test_unknown_type(self):
        """Unknown type is rejected with the offending type recorded"""
        with pytest.raises(MessageValidationError) as exc_info:
            parse_inbound(json.dumps({"type": "explode"}))

        assert exc_info.value.message_type == "explode"

    def test_outbound_type_is_not_accepted_inbound(self):
        """Clients cannot send server-only message kinds"""
        with pytest.raises(MessageValidationError):
            parse_inbound(json.dumps({"type": "user-joined", "user": {"userId": "x", "username": "x"}}))

    def test_leave_ignores_extra_fields(self):
        """Clients send projectId/userId with leave; they are ignored"""
        message = parse_inbound(json.dumps({"type": "leave", "projectId": "p1", "userId": "u1"}))

        assert isinstance(message, LeaveMessage)

    def test_cursor_and_update_carry_opaque_data(self):
        cursor = parse_inbound(json.dumps({"type": "cursor", "data": {"line": 3, "column": 7}}))
        update = parse_inbound(json.dumps({"type": "update", "data": {"schema": "CREATE TABLE t ();"}}))

        assert cursor.data == {"line": 3, "column": 7}
        assert update.data == {"schema": "CREATE TABLE t ();"}

    def test_data_defaults_to_none(self):
        message = parse_inbound(json.dumps({"type": "cursor"}))

        assert message.data is None


class TestHeartbeatCursor:
    """Cursor extraction from heartbeat payloads"""

    def test_heartbeat_with_cursor(self):
        message = HeartbeatMessage(data={"cursor": 42})

        assert message.has_cursor is True
        assert message.cursor == 42

    def test_heartbeat_with_zero_cursor(self):
        """A cursor at offset 0 is still a cursor"""
        message = HeartbeatMessage(data={"cursor": 0})

        assert message.has_cursor is True
        assert message.cursor == 0

    def test_heartbeat_without_data(self):
        message = HeartbeatMessage()

        assert message.has_cursor is False
        assert message.cursor is None

    def test_heartbeat_with_non_object_data(self):
        message = HeartbeatMessage(data=[1, 2])

        assert message.has_cursor is False


class TestEncodeMessage:
    """Outbound serialization"""

    def test_joined_uses_camel_case(self):
        message = JoinedMessage(
            session_id="s-1",
            active_users=[user_summary("u-alice", "alice"), user_summary("u-bob", "bob")],
        )

        assert json.loads(encode_message(message)) == {
            "type": "joined",
            "sessionId": "s-1",
            "activeUsers": [
                {"userId": "u-alice", "username": "alice"},
                {"userId": "u-bob", "username": "bob"},
            ],
        }

    def test_user_joined_and_user_left(self):
        bob = user_summary("u-bob", "bob")

        joined = json.loads(encode_message(UserJoinedMessage(user=bob, active_users=[bob])))
        left = json.loads(encode_message(UserLeftMessage(user=bob)))

        assert joined == {
            "type": "user-joined",
            "user": {"userId": "u-bob", "username": "bob"},
            "activeUsers": [{"userId": "u-bob", "username": "bob"}],
        }
        assert left == {"type": "user-left", "user": {"userId": "u-bob", "username": "bob"}}

    def test_cursor_update_keeps_null_cursor(self):
        """Only fields of the message kind appear, a null cursor included"""
        payload = json.loads(encode_message(CursorUpdateMessage(user_id="u1", username="alice")))

        assert payload == {"type": "cursor-update", "userId": "u1", "username": "alice", "cursor": None}

    def test_schema_update(self):
        payload = json.loads(encode_message(
            SchemaUpdateMessage(user_id="u1", username="alice", changes={"tables": ["users"]})
        ))

        assert payload["type"] == "schema-update"
        assert payload["changes"] == {"tables": ["users"]}
        assert "data" not in payload
