"""
Unit tests for the AI hand-off client, chat session and automation controls.
"""
import pytest
import requests
from unittest.mock import MagicMock, Mock

from unified_inbox import config
from unified_inbox.core.ai_handoff import (
    RATE_LIMITED_MESSAGE,
    AIHandoffClient,
    AutomationClient,
    ChatSession,
    ChatStatus,
    HandoffReply,
)
from unified_inbox.storage import repository
from unified_inbox.utils.errors import (
    HandoffError,
    HandoffTimeoutError,
    RateLimitError,
)

from conftest import make_connection, make_message


def response(status_code=200, json_data=None):
    resp = Mock()
    resp.status_code = status_code
    if json_data is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = json_data
    return resp


def client_with(resp=None, side_effect=None):
    session = MagicMock()
    if side_effect is not None:
        session.post.side_effect = side_effect
    else:
        session.post.return_value = resp
    return AIHandoffClient(endpoint_url="https://ai.example.com/chat", session=session), session


class TestAIHandoffClient:
    """Response mapping of request_reply"""

    def test_successful_reply(self):
        client, session = client_with(response(200, {"response": "Hello!", "usage": {"used": 3}}))

        reply = client.request_reply("Hi", "s-1", agent_id="agent-1")

        assert reply.text == "Hello!"
        assert reply.usage == {"used": 3}
        payload = session.post.call_args.kwargs["json"]
        assert payload == {"message": "Hi", "session_id": "s-1", "agent_id": "agent-1"}
        assert session.post.call_args.kwargs["timeout"] == config.AI_TIMEOUT_SECONDS

    def test_http_429_is_rate_limit(self):
        client, _ = client_with(response(429, {"usage": {"used": 20, "limit": 20}}))

        with pytest.raises(RateLimitError) as exc_info:
            client.request_reply("Hi", "s-1")

        assert str(exc_info.value) == RATE_LIMITED_MESSAGE
        assert exc_info.value.usage == {"used": 20, "limit": 20}

    def test_limit_reached_body_is_rate_limit(self):
        client, _ = client_with(response(403, {"error": "Daily Limit Reached"}))

        with pytest.raises(RateLimitError):
            client.request_reply("Hi", "s-1")

    def test_timeout(self):
        client, _ = client_with(side_effect=requests.exceptions.Timeout())

        with pytest.raises(HandoffTimeoutError):
            client.request_reply("Hi", "s-1")

    def test_connection_error(self):
        client, _ = client_with(side_effect=requests.exceptions.ConnectionError("refused"))

        with pytest.raises(HandoffError):
            client.request_reply("Hi", "s-1")

    def test_server_error(self):
        client, _ = client_with(response(500, {"error": "boom"}))

        with pytest.raises(HandoffError) as exc_info:
            client.request_reply("Hi", "s-1")

        assert not isinstance(exc_info.value, RateLimitError)

    def test_empty_response(self):
        client, _ = client_with(response(200, {"response": "   "}))

        with pytest.raises(HandoffError):
            client.request_reply("Hi", "s-1")

    def test_hand_off_new_mail_sends_one_request(self):
        client, session = client_with(response(200, {"response": "Summary"}))
        messages = [make_message(2), make_message(1)]

        client.hand_off_new_mail(make_connection("a@example.com"), messages, agent_id="agent-1")

        session.post.assert_called_once()
        payload = session.post.call_args.kwargs["json"]
        assert payload["message_ids"] == ["msg-2", "msg-1"]
        assert payload["email_address"] == "a@example.com"
        assert payload["message"].startswith("2 new email(s)")


class TestChatSession:
    """Status transitions of ChatSession"""

    def make_session(self, side_effect):
        client = Mock(spec=AIHandoffClient)
        client.request_reply.side_effect = side_effect
        return ChatSession(client, log_turns=False, clock=lambda: 0.0), client

    def test_successful_turn(self):
        chat, _ = self.make_session([HandoffReply("Hi there")])

        entry = chat.submit("Hello")

        assert entry.text == "Hi there"
        assert [e.role for e in chat.entries] == ["user", "assistant"]
        assert chat.status == ChatStatus.READY

    def test_rate_limit_is_sticky_until_reset(self):
        chat, client = self.make_session([RateLimitError("Limit reached", usage={"used": 20})])

        assert chat.submit("Hello") is None
        assert chat.status == ChatStatus.RATE_LIMITED
        assert chat.entries[-1].role == "system"
        assert chat.usage == {"used": 20}

        assert chat.submit("Again") is None
        assert client.request_reply.call_count == 1

        chat.reset()
        assert chat.can_submit

    def test_timeout_appends_fallback_reply(self):
        chat, _ = self.make_session([HandoffTimeoutError("timed out")])

        entry = chat.submit("Hello")

        assert entry.is_fallback
        assert entry.text == config.AI_FALLBACK_REPLY
        assert chat.status == ChatStatus.READY

    def test_other_failure_sets_error(self):
        chat, _ = self.make_session([HandoffError("boom")])

        assert chat.submit("Hello") is None
        assert chat.error
        assert chat.status == ChatStatus.READY

    def test_blank_text_is_ignored(self):
        chat, client = self.make_session([])

        assert chat.submit("   ") is None
        client.request_reply.assert_not_called()

    def test_turns_are_logged(self, temp_db):
        client = Mock(spec=AIHandoffClient)
        client.request_reply.return_value = HandoffReply("Hi there")
        chat = ChatSession(client, session_id="chat-1")

        chat.submit("Hello")

        rows = repository.select("conversation_logs", {"session_id": "chat-1"}, order_by="id")
        assert [(r["role"], r["content"]) for r in rows] == [
            ("user", "Hello"),
            ("assistant", "Hi there"),
        ]


class TestAutomationClient:
    """Debounced status checks"""

    def make_client(self, clock):
        session = MagicMock()
        session.request.return_value = response(200, {"active": True})
        client = AutomationClient(
            endpoint_url="https://ai.example.com/automation",
            debounce_seconds=5.0,
            session=session,
            clock=clock,
        )
        return client, session

    def test_status_is_debounced(self, clock):
        client, session = self.make_client(clock)

        client.status("user-1")
        clock.advance(2)
        result = client.status("user-1")

        assert result == {"active": True}
        assert session.request.call_count == 1

        clock.advance(5)
        client.status("user-1")
        assert session.request.call_count == 2

    def test_status_window_is_per_user(self, clock):
        client, session = self.make_client(clock)
        session.request.side_effect = lambda method, url, params, **kwargs: response(
            200, {"user": params["user_id"]}
        )

        client.status("alice@example.com")
        clock.advance(1)
        result = client.status("bob@example.com")

        assert result == {"user": "bob@example.com"}
        assert session.request.call_count == 2

    def test_start_resets_debounce(self, clock):
        client, session = self.make_client(clock)

        client.status("user-1")
        client.start("user-1")
        client.status("user-1")

        methods = [c.args[0] for c in session.request.call_args_list]
        assert methods == ["GET", "POST", "GET"]

    def test_http_error(self, clock):
        client, session = self.make_client(clock)
        session.request.return_value = response(500, {"error": "down"})

        with pytest.raises(HandoffError):
            client.stop("user-1")
