"""
Helper utility functions
"""
import re
from email.utils import formataddr, getaddresses, parseaddr
from typing import List, Tuple


def validate_email(email: str) -> bool:
    """Validate email address format"""
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(pattern, email))


def parse_email_address(email_string: str) -> Tuple[str, str]:
    """Parse email address string into (name, email) tuple"""
    name, email = parseaddr(email_string)
    return name, email


def split_addresses(value: str) -> List[str]:
    """Split a comma/semicolon separated recipient field into addresses."""
    if not value:
        return []
    normalized = value.replace(";", ",")
    return [
        formataddr((name, addr)) if name else addr
        for name, addr in getaddresses([normalized])
        if addr
    ]


def format_sender(name: str, address: str) -> str:
    """Render a sender as 'Name <address>' or just the address."""
    if name and address and name != address:
        return formataddr((name, address))
    return address or name or ""


def truncate_text(text: str, max_length: int = 50) -> str:
    """Truncate text to max length with ellipsis"""
    if len(text) <= max_length:
        return text
    return text[:max_length - 3] + "..."


def format_file_size(size_bytes: float) -> str:
    """Format file size in human-readable format"""
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size_bytes < 1024.0:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.1f} TB"
