"""
Knowledge documents for the AI assistant.

Uploads are validated (size and type) and registered with status "pending";
transcription happens elsewhere.
"""
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from unified_inbox import config
from unified_inbox.storage import repository
from unified_inbox.utils.errors import KnowledgeUploadError
from unified_inbox.utils.helpers import format_file_size

logger = logging.getLogger(__name__)

TABLE = "knowledge_documents"
STATUS_PENDING = "pending"


@dataclass(slots=True)
class KnowledgeDocument:
    id: int
    filename: str
    mime_type: str
    size_bytes: int
    local_path: str
    status: str
    agent_id: Optional[str] = None
    created_at: Optional[str] = None


def validate_upload(path: Path) -> str:
    """
    Validate a file for upload.

    Returns:
        The MIME type of the file.

    Raises:
        KnowledgeUploadError: Missing file, unsupported type or too large.
    """
    path = Path(path)
    if not path.is_file():
        raise KnowledgeUploadError(f"File not found: {path.name}")

    mime_type = config.ALLOWED_KNOWLEDGE_EXTENSIONS.get(path.suffix.lower())
    if mime_type is None:
        allowed = ", ".join(ext.lstrip(".").upper() for ext in config.ALLOWED_KNOWLEDGE_EXTENSIONS)
        raise KnowledgeUploadError(f"Unsupported file type. Allowed types: {allowed}")

    size = path.stat().st_size
    if size > config.MAX_KNOWLEDGE_FILE_BYTES:
        raise KnowledgeUploadError(
            f"File is too large ({format_file_size(size)}). "
            f"Maximum size is {format_file_size(config.MAX_KNOWLEDGE_FILE_BYTES)}."
        )
    return mime_type


def _row_to_document(row) -> KnowledgeDocument:
    return KnowledgeDocument(
        id=row["id"],
        filename=row["filename"],
        mime_type=row["mime_type"],
        size_bytes=row["size_bytes"],
        local_path=row["local_path"],
        status=row["status"],
        agent_id=row.get("agent_id"),
        created_at=row.get("uploaded_at"),
    )


def register_document(
    path: Path,
    agent_id: Optional[str] = None,
    storage_dir: Optional[Path] = None,
) -> KnowledgeDocument:
    """Validate a file, copy it into the knowledge directory and record it."""
    path = Path(path)
    mime_type = validate_upload(path)

    storage_dir = storage_dir or (config.BASE_DIR / "knowledge")
    storage_dir.mkdir(parents=True, exist_ok=True)
    target = storage_dir / path.name
    if target.exists():
        target = storage_dir / f"{path.stem}-{target.stat().st_mtime_ns}{path.suffix}"
    shutil.copy2(path, target)

    doc_id = repository.insert(
        TABLE,
        {
            "agent_id": agent_id,
            "filename": path.name,
            "mime_type": mime_type,
            "size_bytes": path.stat().st_size,
            "local_path": str(target),
            "status": STATUS_PENDING,
        },
    )
    logger.info(f"Registered knowledge document {path.name} ({doc_id})")
    return _row_to_document(repository.select_one(TABLE, {"id": doc_id}))


def list_documents(agent_id: Optional[str] = None) -> List[KnowledgeDocument]:
    filters = {"agent_id": agent_id} if agent_id else None
    return [_row_to_document(row) for row in repository.select(TABLE, filters, order_by="id")]


def delete_document(doc_id: int) -> None:
    """
    Remove a document record and its stored copy.

    Raises:
        KnowledgeUploadError: If the document does not exist.
    """
    row = repository.select_one(TABLE, {"id": doc_id})
    if row is None:
        raise KnowledgeUploadError(f"Document {doc_id} not found")
    repository.delete(TABLE, {"id": doc_id})
    Path(row["local_path"]).unlink(missing_ok=True)
    logger.info(f"Deleted knowledge document {row['filename']}")
