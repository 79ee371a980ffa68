"""
Unit tests for compose, reply and forward drafts.
"""
import pytest

from unified_inbox.core.compose import (
    FORWARD_SEPARATOR,
    ComposeSession,
    forward_draft,
    new_draft,
    prefix_subject,
    reply_draft,
    validate_draft,
)
from unified_inbox.models import ComposeDraft, ComposeMode
from unified_inbox.utils.errors import ProviderError

from conftest import make_message


class TestPrefixSubject:
    """Idempotent Re:/Fwd: prefixes"""

    @pytest.mark.parametrize("subject,expected", [
        ("Hello", "Re: Hello"),
        ("Re: Hello", "Re: Hello"),
        ("RE: Hello", "RE: Hello"),
        ("re:Hello", "re:Hello"),
        ("", "Re:"),
    ])
    def test_reply(self, subject, expected):
        assert prefix_subject(subject, ComposeMode.REPLY) == expected

    @pytest.mark.parametrize("subject,expected", [
        ("Hello", "Fwd: Hello"),
        ("Fwd: Hello", "Fwd: Hello"),
        ("FW: Hello", "FW: Hello"),
        ("Re: Hello", "Fwd: Re: Hello"),
    ])
    def test_forward(self, subject, expected):
        assert prefix_subject(subject, ComposeMode.FORWARD) == expected


class TestDrafts:
    """Draft builders"""

    def test_new_draft_is_blank(self):
        draft = new_draft()
        assert (draft.to, draft.subject, draft.body) == ("", "", "")
        assert draft.mode == ComposeMode.COMPOSE

    def test_reply_targets_sender_and_keeps_thread(self):
        original = make_message(
            1, subject="Re: Hello", thread_id="t-1", internet_message_id="<abc@example.com>"
        )

        draft = reply_draft(original)

        assert draft.to == original.sender
        assert draft.subject == "Re: Hello"
        assert draft.reply_to_id == "msg-1"
        assert draft.thread_id == "t-1"
        assert draft.in_reply_to == "<abc@example.com>"

    def test_forward_quotes_original(self):
        original = make_message(1, subject="Hello", body="Full body")

        draft = forward_draft(original)

        assert draft.to == ""
        assert draft.subject == "Fwd: Hello"
        assert FORWARD_SEPARATOR in draft.body
        assert f"From: {original.sender}" in draft.body
        assert "Subject: Hello" in draft.body
        assert draft.body.endswith("Full body")

    def test_forward_uses_preview_without_body(self):
        draft = forward_draft(make_message(1, body=None, body_preview="Short preview"))
        assert draft.body.endswith("Short preview")


class TestValidation:
    """Field errors"""

    def test_all_fields_present(self):
        draft = ComposeDraft(to="bob@example.com", subject="Hi", body="Hello")
        assert validate_draft(draft) == {}

    @pytest.mark.parametrize("field", ["to", "subject", "body"])
    def test_missing_field(self, field):
        values = {"to": "bob@example.com", "subject": "Hi", "body": "Hello"}
        values[field] = "   "

        errors = validate_draft(ComposeDraft(**values))

        assert set(errors) == {field}

    def test_invalid_address(self):
        errors = validate_draft(ComposeDraft(to="not-an-address", subject="Hi", body="x"))
        assert "to" in errors

    def test_named_address_accepted(self):
        draft = ComposeDraft(to="Bob Smith <bob@example.com>; carol@example.com", subject="Hi", body="x")
        assert validate_draft(draft) == {}


class TestComposeSession:
    """Sending through a provider"""

    def test_invalid_draft_makes_no_network_call(self, fake_provider):
        session = ComposeSession(ComposeDraft(to="", subject="Hi", body="Hello"))

        assert session.send(fake_provider) is False
        assert "to" in session.errors
        assert fake_provider.sent == []
        assert session.is_open

    def test_successful_send_closes_session(self, fake_provider):
        session = ComposeSession(ComposeDraft(to="bob@example.com, eve@example.com", subject="Hi", body="Hello"))

        assert session.send(fake_provider) is True
        assert fake_provider.sent[0].to == ["bob@example.com", "eve@example.com"]
        assert session.draft is None
        assert not session.is_open

    def test_failed_send_keeps_draft(self, fake_provider):
        fake_provider.fail_with = ProviderError("boom", status_code=500)
        draft = ComposeDraft(to="bob@example.com", subject="Hi", body="Hello")
        session = ComposeSession(draft)

        assert session.send(fake_provider) is False
        assert session.draft is draft
        assert session.send_error
        assert session.is_open
