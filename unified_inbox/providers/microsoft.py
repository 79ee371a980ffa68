"""
Microsoft Graph v1.0 adapter.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from unified_inbox import config
from unified_inbox.models import Folder, FolderKey, Message, OutgoingMessage
from unified_inbox.providers.base import MailProvider
from unified_inbox.utils.errors import ProviderError
from unified_inbox.utils.helpers import parse_email_address

logger = logging.getLogger(__name__)

WELL_KNOWN_FOLDERS = {
    "inbox": FolderKey.INBOX,
    "sentitems": FolderKey.SENT,
    "drafts": FolderKey.DRAFTS,
    "archive": FolderKey.ARCHIVE,
    "junkemail": FolderKey.SPAM,
    "deleteditems": FolderKey.TRASH,
}

MESSAGE_FIELDS = (
    "id,subject,from,receivedDateTime,isRead,flag,bodyPreview,conversationId,"
    "internetMessageId"
)


class MicrosoftProvider(MailProvider):
    """Adapter for Outlook mail through Microsoft Graph."""

    BASE_URL = "https://graph.microsoft.com/v1.0/me"

    def list_folders(self) -> List[Folder]:
        data = self._get_json("/mailFolders", params={"$top": 100})
        folders = {item["id"]: self._to_folder(item) for item in data.get("value", [])}

        # Graph does not tag folders in the listing; ask for each well-known name
        for well_known_name, folder_key in WELL_KNOWN_FOLDERS.items():
            try:
                item = self._get_json(f"/mailFolders/{well_known_name}")
            except ProviderError as e:
                if e.status_code == 404:
                    logger.debug(f"No {well_known_name} folder for {self.email_address}")
                    continue
                raise
            folder = folders.get(item["id"]) or self._to_folder(item)
            folder.folder_key = folder_key
            folder.well_known = True
            folders[item["id"]] = folder

        return list(folders.values())

    def list_messages(self, folder_id: str, page_size: int = config.DEFAULT_PAGE_SIZE) -> List[Message]:
        data = self._get_json(
            f"/mailFolders/{folder_id}/messages",
            params={
                "$top": page_size,
                "$orderby": "receivedDateTime desc",
                "$select": MESSAGE_FIELDS,
            },
        )
        return [self._to_message(item) for item in data.get("value", [])]

    def send_message(self, payload: OutgoingMessage) -> None:
        message: Dict[str, Any] = {
            "subject": payload.subject,
            "body": {"contentType": "Text", "content": payload.body},
            "toRecipients": _recipients(payload.to),
        }
        if payload.cc:
            message["ccRecipients"] = _recipients(payload.cc)
        if payload.bcc:
            message["bccRecipients"] = _recipients(payload.bcc)

        if payload.reply_to_id:
            # Replying through the original keeps the message in its conversation
            self._request(
                "POST", f"/messages/{payload.reply_to_id}/reply", json={"message": message}
            )
        else:
            self._request(
                "POST", "/sendMail", json={"message": message, "saveToSentItems": True}
            )
        logger.info(f"Sent message from {self.email_address} via Microsoft Graph")

    @staticmethod
    def _to_folder(item: Dict[str, Any]) -> Folder:
        return Folder(
            id=item["id"],
            name=item.get("displayName", ""),
            unread_count=int(item.get("unreadItemCount", 0) or 0),
            total_count=int(item.get("totalItemCount", 0) or 0),
        )

    @staticmethod
    def _to_message(item: Dict[str, Any]) -> Message:
        address = (item.get("from") or {}).get("emailAddress") or {}
        name = address.get("name", "")
        email = address.get("address", "")
        sender = f"{name} <{email}>" if name and email and name != email else (email or name)
        return Message(
            id=item["id"],
            subject=item.get("subject") or "",
            sender=sender,
            received_at=_parse_graph_datetime(item.get("receivedDateTime")),
            is_read=bool(item.get("isRead", False)),
            is_starred=(item.get("flag") or {}).get("flagStatus") == "flagged",
            body_preview=item.get("bodyPreview") or "",
            thread_id=item.get("conversationId"),
            internet_message_id=item.get("internetMessageId"),
        )


def _recipients(addresses: List[str]) -> List[Dict[str, Any]]:
    """Graph wants the bare address, with any display name passed separately."""
    recipients = []
    for entry in addresses:
        name, address = parse_email_address(entry)
        email_address = {"address": address or entry}
        if name:
            email_address["name"] = name
        recipients.append({"emailAddress": email_address})
    return recipients


def _parse_graph_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
