"""
Canonical folder resolution.

Maps provider folders onto the six canonical folder keys. Identifiers the
provider itself returns (Gmail system labels, Graph well-known names) are
authoritative; the display-name heuristic only fills keys still unresolved,
and every heuristic guess is logged because it can be wrong.
"""
import logging
from dataclasses import replace
from typing import Dict, Iterable, List

from unified_inbox.models import Folder, FolderKey

logger = logging.getLogger(__name__)

NAME_HINTS: Dict[FolderKey, tuple] = {
    FolderKey.INBOX: ("inbox", "caixa de entrada"),
    FolderKey.SENT: ("sent", "enviados", "enviadas"),
    FolderKey.DRAFTS: ("draft", "rascunho"),
    FolderKey.ARCHIVE: ("archive", "arquivo"),
    FolderKey.SPAM: ("junk", "spam", "lixo eletr"),
    FolderKey.TRASH: ("deleted", "trash", "excluídos", "excluidos", "lixeira"),
}


def _match_name(name: str, key: FolderKey) -> bool:
    lowered = name.lower()
    return any(hint in lowered for hint in NAME_HINTS[key])


def resolve_folder_map(folders: Iterable[Folder]) -> Dict[FolderKey, Folder]:
    """
    Resolve canonical keys to provider folders.

    Args:
        folders: Folders as returned by a provider adapter.

    Returns:
        Mapping of each resolvable FolderKey to its folder. Keys that could
        not be resolved are absent.
    """
    folders = list(folders)
    resolved: Dict[FolderKey, Folder] = {}

    for folder in folders:
        if folder.well_known and folder.folder_key and folder.folder_key not in resolved:
            resolved[folder.folder_key] = folder

    used_ids = {folder.id for folder in resolved.values()}
    for key in FolderKey:
        if key in resolved:
            continue
        candidates: List[Folder] = [
            f for f in folders if f.id not in used_ids and _match_name(f.name, key)
        ]
        if not candidates:
            logger.warning(f"No folder found for '{key.value}'")
            continue
        match = replace(candidates[0], folder_key=key)
        resolved[key] = match
        used_ids.add(match.id)
        logger.warning(
            f"Folder '{key.value}' resolved by name heuristic to '{match.name}' ({match.id})"
        )

    return resolved
