"""
Unit tests for the Gmail adapter and the shared request handling.
"""
import base64
import email

import pytest
import requests
from unittest.mock import MagicMock, Mock

from unified_inbox.models import FolderKey, OutgoingMessage
from unified_inbox.providers.gmail import GmailProvider
from unified_inbox.utils.errors import (
    AuthenticationError,
    ProviderError,
    TokenRefreshError,
    TransportError,
)

from conftest import make_connection


def response(status_code=200, json_data=None, text=""):
    resp = Mock()
    resp.status_code = status_code
    resp.json.return_value = json_data or {}
    resp.text = text
    return resp


def provider_with(responses, token_refresher=None):
    session = MagicMock()
    session.request.side_effect = responses
    provider = GmailProvider(
        make_connection("alice@gmail.com"), token_refresher=token_refresher, session=session
    )
    return provider, session


class TestListFolders:

    def test_system_labels_are_well_known(self):
        provider, _ = provider_with([response(200, {"labels": [
            {"id": "INBOX", "name": "INBOX", "messagesUnread": 4, "messagesTotal": 10},
            {"id": "SENT", "name": "SENT"},
            {"id": "Label_1", "name": "Receipts"},
        ]})])

        folders = {f.id: f for f in provider.list_folders()}

        assert folders["INBOX"].folder_key == FolderKey.INBOX
        assert folders["INBOX"].well_known
        assert folders["INBOX"].unread_count == 4
        assert folders["SENT"].folder_key == FolderKey.SENT
        assert folders["Label_1"].folder_key is None
        assert not folders["Label_1"].well_known


class TestListMessages:

    def test_metadata_is_normalized(self):
        listing = response(200, {"messages": [{"id": "m1"}]})
        detail = response(200, {
            "id": "m1",
            "threadId": "t1",
            "labelIds": ["INBOX", "STARRED"],
            "snippet": "Tom &amp; Jerry",
            "internalDate": "1714564800000",
            "payload": {"headers": [
                {"name": "From", "value": "Bob <bob@example.com>"},
                {"name": "Subject", "value": "Lunch"},
                {"name": "Message-Id", "value": "<CAB123@mail.gmail.com>"},
            ]},
        })
        provider, session = provider_with([listing, detail])

        [message] = provider.list_messages("INBOX", page_size=10)

        assert message.subject == "Lunch"
        assert message.sender == "Bob <bob@example.com>"
        assert message.is_read
        assert message.is_starred
        assert message.body_preview == "Tom & Jerry"
        assert message.thread_id == "t1"
        assert message.received_at.year == 2024
        assert message.internet_message_id == "<CAB123@mail.gmail.com>"

        first_call = session.request.call_args_list[0]
        assert first_call.kwargs["params"] == {"labelIds": "INBOX", "maxResults": 10}
        assert first_call.kwargs["headers"]["Authorization"] == "Bearer access-alice@gmail.com"

    def test_unread_label(self):
        listing = response(200, {"messages": [{"id": "m1"}]})
        detail = response(200, {"id": "m1", "labelIds": ["INBOX", "UNREAD"]})
        provider, _ = provider_with([listing, detail])

        [message] = provider.list_messages("INBOX")

        assert not message.is_read

    def test_empty_folder(self):
        provider, _ = provider_with([response(200, {"resultSizeEstimate": 0})])
        assert provider.list_messages("SPAM") == []


class TestSendMessage:

    def test_raw_mime_with_thread(self):
        provider, session = provider_with([response(200, {"id": "sent-1"})])

        provider.send_message(OutgoingMessage(
            to=["bob@example.com"],
            subject="Re: Lunch",
            body="Sounds good",
            reply_to_id="m1",
            thread_id="t1",
            in_reply_to="<CAB123@mail.gmail.com>",
        ))

        method, url = session.request.call_args.args
        assert method == "POST"
        assert url.endswith("/messages/send")
        body = session.request.call_args.kwargs["json"]
        assert body["threadId"] == "t1"
        mime = email.message_from_bytes(base64.urlsafe_b64decode(body["raw"]))
        assert mime["To"] == "bob@example.com"
        assert mime["Subject"] == "Re: Lunch"
        assert mime["In-Reply-To"] == "<CAB123@mail.gmail.com>"
        assert mime["References"] == "<CAB123@mail.gmail.com>"

    def test_no_reply_headers_without_message_id(self):
        provider, session = provider_with([response(200, {"id": "sent-2"})])

        provider.send_message(OutgoingMessage(
            to=["bob@example.com"], subject="Re: Lunch", body="Ok", reply_to_id="m1", thread_id="t1",
        ))

        raw = session.request.call_args.kwargs["json"]["raw"]
        mime = email.message_from_bytes(base64.urlsafe_b64decode(raw))
        assert mime["In-Reply-To"] is None
        assert mime["References"] is None


class TestAuthorization:
    """401 handling in MailProvider._request"""

    def test_refresh_then_retry_once(self):
        refreshed = make_connection("alice@gmail.com")
        refreshed.access_token = "fresh-token"
        refresher = Mock(return_value=refreshed)
        provider, session = provider_with(
            [response(401), response(200, {"labels": []})], token_refresher=refresher
        )

        assert provider.list_folders() == []

        refresher.assert_called_once()
        assert session.request.call_count == 2
        retry = session.request.call_args_list[1]
        assert retry.kwargs["headers"]["Authorization"] == "Bearer fresh-token"

    def test_second_401_raises_authentication_error(self):
        refresher = Mock(side_effect=lambda conn: conn)
        provider, session = provider_with(
            [response(401), response(401)], token_refresher=refresher
        )

        with pytest.raises(AuthenticationError):
            provider.list_folders()

        assert session.request.call_count == 2

    def test_401_without_refresher(self):
        provider, _ = provider_with([response(401)])

        with pytest.raises(AuthenticationError):
            provider.list_folders()

    def test_refresh_failure_is_token_refresh_error(self):
        refresher = Mock(side_effect=RuntimeError("invalid_grant"))
        provider, _ = provider_with([response(401)], token_refresher=refresher)

        with pytest.raises(TokenRefreshError):
            provider.list_folders()

    def test_missing_token_makes_no_request(self):
        provider, session = provider_with([])
        provider.connection.access_token = ""

        with pytest.raises(AuthenticationError):
            provider.list_folders()

        session.request.assert_not_called()


class TestFailures:

    def test_timeout_is_transport_error(self):
        provider, _ = provider_with(requests.exceptions.Timeout())

        with pytest.raises(TransportError):
            provider.list_folders()

    def test_server_error_is_not_retried(self):
        provider, session = provider_with([response(503, text="unavailable")])

        with pytest.raises(ProviderError) as exc_info:
            provider.list_folders()

        assert exc_info.value.status_code == 503
        assert session.request.call_count == 1
