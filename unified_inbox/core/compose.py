"""
Compose, reply and forward drafts.

Builds ComposeDraft values from an original message, validates them, and
turns a valid draft into the OutgoingMessage handed to a provider adapter.
Validation failures are returned as field errors, not raised.
"""
import logging
import re
from typing import Dict, Optional

from unified_inbox.models import ComposeDraft, ComposeMode, Message, OutgoingMessage
from unified_inbox.providers.base import MailProvider
from unified_inbox.utils.errors import InboxError, human_friendly_message
from unified_inbox.utils.helpers import split_addresses, validate_email

logger = logging.getLogger(__name__)

REPLY_PREFIX = "Re:"
FORWARD_PREFIX = "Fwd:"

_REPLY_RE = re.compile(r"^\s*re\s*:", re.IGNORECASE)
_FORWARD_RE = re.compile(r"^\s*(fwd|fw)\s*:", re.IGNORECASE)

FORWARD_SEPARATOR = "---------- Forwarded message ----------"


def prefix_subject(subject: str, mode: ComposeMode) -> str:
    """
    Prefix a subject for reply or forward without doubling an existing prefix.

    >>> prefix_subject("Re: Hello", ComposeMode.REPLY)
    'Re: Hello'
    >>> prefix_subject("Hello", ComposeMode.FORWARD)
    'Fwd: Hello'
    """
    subject = (subject or "").strip()
    if mode == ComposeMode.REPLY:
        pattern, prefix = _REPLY_RE, REPLY_PREFIX
    elif mode == ComposeMode.FORWARD:
        pattern, prefix = _FORWARD_RE, FORWARD_PREFIX
    else:
        return subject

    if pattern.match(subject):
        return subject
    return f"{prefix} {subject}" if subject else prefix


def _format_date(message: Message) -> str:
    if message.received_at is None:
        return ""
    return message.received_at.strftime("%a, %d %b %Y %H:%M")


def new_draft() -> ComposeDraft:
    return ComposeDraft(mode=ComposeMode.COMPOSE)


def reply_draft(original: Message) -> ComposeDraft:
    """Reply to the original sender, keeping the thread reference."""
    return ComposeDraft(
        to=original.sender,
        subject=prefix_subject(original.subject, ComposeMode.REPLY),
        body="",
        mode=ComposeMode.REPLY,
        reply_to_id=original.id,
        thread_id=original.thread_id,
        in_reply_to=original.internet_message_id,
    )


def forward_draft(original: Message) -> ComposeDraft:
    """Forward with a quoted header block followed by the original content."""
    content = original.body or original.body_preview
    body = (
        f"\n\n{FORWARD_SEPARATOR}\n"
        f"From: {original.sender}\n"
        f"Date: {_format_date(original)}\n"
        f"Subject: {original.subject}\n\n"
        f"{content}"
    )
    return ComposeDraft(
        to="",
        subject=prefix_subject(original.subject, ComposeMode.FORWARD),
        body=body,
        mode=ComposeMode.FORWARD,
    )


def build_draft(mode: ComposeMode, original: Optional[Message] = None) -> ComposeDraft:
    if mode == ComposeMode.COMPOSE or original is None:
        return new_draft()
    if mode == ComposeMode.REPLY:
        return reply_draft(original)
    return forward_draft(original)


def validate_draft(draft: ComposeDraft) -> Dict[str, str]:
    """
    Check a draft before sending.

    Returns:
        Mapping of field name to error text; empty when the draft can be sent.
    """
    errors: Dict[str, str] = {}
    recipients = split_addresses(draft.to)
    if not draft.to.strip() or not recipients:
        errors["to"] = "Please enter at least one recipient."
    else:
        invalid = [addr for addr in recipients if not validate_email(_bare_address(addr))]
        if invalid:
            errors["to"] = f"Invalid email address: {invalid[0]}"
    if not draft.subject.strip():
        errors["subject"] = "Please enter a subject."
    if not draft.body.strip():
        errors["body"] = "Please enter a message."
    return errors


def _bare_address(value: str) -> str:
    match = re.search(r"<([^>]+)>", value)
    return match.group(1) if match else value


def to_outgoing(draft: ComposeDraft) -> OutgoingMessage:
    return OutgoingMessage(
        to=split_addresses(draft.to),
        cc=split_addresses(draft.cc),
        bcc=split_addresses(draft.bcc),
        subject=draft.subject.strip(),
        body=draft.body,
        reply_to_id=draft.reply_to_id,
        thread_id=draft.thread_id,
        in_reply_to=draft.in_reply_to,
    )


class ComposeSession:
    """
    State of an open compose surface.

    The draft survives a failed send so the user can retry; a successful send
    discards it and closes the session.
    """

    def __init__(self, draft: ComposeDraft):
        self.draft = draft
        self.errors: Dict[str, str] = {}
        self.send_error: Optional[str] = None
        self.is_open = True

    def send(self, provider: MailProvider) -> bool:
        """
        Validate and send the draft.

        Returns:
            True when the message was sent. On validation failure no network
            call is made and ``errors`` holds the field errors; on send failure
            ``send_error`` holds a user-facing message.
        """
        self.send_error = None
        self.errors = validate_draft(self.draft)
        if self.errors:
            return False

        try:
            provider.send_message(to_outgoing(self.draft))
        except InboxError as e:
            logger.error(f"Send failed: {e}")
            self.send_error = human_friendly_message(e)
            return False

        self.close()
        return True

    def close(self) -> None:
        self.draft = None
        self.is_open = False
