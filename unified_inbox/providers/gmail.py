"""
Gmail REST v1 adapter.

Gmail exposes folders as labels. System labels (INBOX, SENT, DRAFT, SPAM,
TRASH) map directly onto canonical folder keys; Gmail has no archive label,
so archive is left to the display-name fallback.
"""
import base64
import html
import logging
from datetime import datetime, timezone
from email.mime.text import MIMEText
from typing import Any, Dict, List, Optional

from unified_inbox import config
from unified_inbox.models import Folder, FolderKey, Message, OutgoingMessage
from unified_inbox.providers.base import MailProvider

logger = logging.getLogger(__name__)

SYSTEM_LABELS = {
    "INBOX": FolderKey.INBOX,
    "SENT": FolderKey.SENT,
    "DRAFT": FolderKey.DRAFTS,
    "SPAM": FolderKey.SPAM,
    "TRASH": FolderKey.TRASH,
}

METADATA_HEADERS = ["From", "Subject", "Date", "Message-ID"]


class GmailProvider(MailProvider):
    """Adapter for the Gmail REST API."""

    BASE_URL = "https://gmail.googleapis.com/gmail/v1/users/me"

    def list_folders(self) -> List[Folder]:
        data = self._get_json("/labels")
        folders = []
        for label in data.get("labels", []):
            label_id = label.get("id", "")
            folder_key = SYSTEM_LABELS.get(label_id)
            folders.append(
                Folder(
                    id=label_id,
                    name=label.get("name", label_id),
                    folder_key=folder_key,
                    well_known=folder_key is not None,
                    unread_count=int(label.get("messagesUnread", 0) or 0),
                    total_count=int(label.get("messagesTotal", 0) or 0),
                )
            )
        logger.debug(f"Gmail returned {len(folders)} labels for {self.email_address}")
        return folders

    def list_messages(self, folder_id: str, page_size: int = config.DEFAULT_PAGE_SIZE) -> List[Message]:
        listing = self._get_json(
            "/messages", params={"labelIds": folder_id, "maxResults": page_size}
        )
        messages = []
        for ref in listing.get("messages", []):
            detail = self._get_json(
                f"/messages/{ref['id']}",
                params={"format": "metadata", "metadataHeaders": METADATA_HEADERS},
            )
            messages.append(self._to_message(detail))
        return messages

    def send_message(self, payload: OutgoingMessage) -> None:
        mime = MIMEText(payload.body, "plain", "utf-8")
        mime["To"] = ", ".join(payload.to)
        if payload.cc:
            mime["Cc"] = ", ".join(payload.cc)
        if payload.bcc:
            mime["Bcc"] = ", ".join(payload.bcc)
        mime["From"] = self.email_address
        mime["Subject"] = payload.subject
        if payload.in_reply_to:
            mime["In-Reply-To"] = payload.in_reply_to
            mime["References"] = payload.in_reply_to

        body: Dict[str, Any] = {
            "raw": base64.urlsafe_b64encode(mime.as_bytes()).decode("ascii")
        }
        if payload.thread_id:
            body["threadId"] = payload.thread_id

        self._request("POST", "/messages/send", json=body)
        logger.info(f"Sent message from {self.email_address} via Gmail")

    @staticmethod
    def _to_message(detail: Dict[str, Any]) -> Message:
        headers = {
            h.get("name", "").lower(): h.get("value", "")
            for h in detail.get("payload", {}).get("headers", [])
        }
        label_ids = detail.get("labelIds") or []
        return Message(
            id=detail["id"],
            subject=headers.get("subject", ""),
            sender=headers.get("from", ""),
            received_at=_parse_internal_date(detail.get("internalDate")),
            is_read="UNREAD" not in label_ids,
            is_starred="STARRED" in label_ids,
            body_preview=html.unescape(detail.get("snippet", "")),
            thread_id=detail.get("threadId"),
            internet_message_id=headers.get("message-id") or None,
        )


def _parse_internal_date(value: Optional[str]) -> Optional[datetime]:
    """internalDate is epoch milliseconds as a string."""
    if not value:
        return None
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    except (TypeError, ValueError):
        return None
