"""Utility functions for pygitpush."""

import base64
import hashlib
import re
from typing import Union

# =============================================================================
# Constants for sync operations
# =============================================================================

# Largest archive accepted before any processing starts (50 MB)
MAX_ARCHIVE_SIZE: int = 50 * 1024 * 1024

# Maximum number of blobs created per batch
MAX_BATCH_SIZE: int = 30

# Pause between two consecutive batches
BATCH_PAUSE_SECONDS: float = 1.0

# Per-item retry policy for blob creation
DEFAULT_MAX_ATTEMPTS: int = 5
DEFAULT_RETRY_DELAY: float = 1.0  # seconds, multiplied by the attempt number

# Rate-limit thresholds for the write phase
RATE_LIMIT_SAFETY_MARGIN: int = 10
RATE_LIMIT_HARD_FLOOR: int = 10
RATE_LIMIT_SHORT_WAIT_SECONDS: int = 300

# Proactive pacing of mutating requests
MIN_WRITE_INTERVAL_SECONDS: float = 1.0
BURST_SIZE: int = 5
BURST_PAUSE_SECONDS: float = 2.0

# Exponential backoff on throttling responses
THROTTLE_BASE_DELAY_SECONDS: float = 1.0
THROTTLE_MAX_DELAY_SECONDS: float = 60.0

# Synthetic root folder added by project exports
ROOT_PREFIX: str = "project/"

# File mode used for every blob written to a tree
BLOB_FILE_MODE: str = "100644"

# Number of leading bytes inspected when sniffing binary content
BINARY_SNIFF_LENGTH: int = 8000


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


# =============================================================================
# Hash calculation utilities
# =============================================================================


def calculate_git_blob_hash(content: Union[bytes, str]) -> str:
    """Calculate the Git blob hash for file content.

    Git addresses a blob by the SHA-1 of ``"blob <size>\\0"`` followed by
    the raw bytes, where size is the byte length of the content. The
    result can be compared directly with the ``sha`` GitHub reports for
    a tree entry.

    Args:
        content: File content (str is encoded as UTF-8)

    Returns:
        40 character hexadecimal SHA-1 digest

    Examples:
        >>> calculate_git_blob_hash(b"")
        'e69de29bb2d1d6434b8b29ae775ad8c2e48c5391'
        >>> calculate_git_blob_hash("hello\\n")
        'ce013625030ba8dba906f756967f9e9ca394464a'
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    header = f"blob {len(content)}\0".encode("ascii")
    return hashlib.sha1(header + content).hexdigest()


# =============================================================================
# Content normalization utilities
# =============================================================================

_TRAILING_WHITESPACE = re.compile(r"[ \t]+$", re.MULTILINE)
_TRAILING_NEWLINES = re.compile(r"\n+$")


def normalize_content_for_comparison(content: str) -> str:
    """Normalize text so editor artifacts do not register as changes.

    Line endings become LF, trailing spaces and tabs are removed from every
    line and a run of trailing newlines collapses into one. The result is
    only ever used for comparison, never uploaded.

    Args:
        content: Text content

    Returns:
        Normalized text

    Examples:
        >>> normalize_content_for_comparison("a  \\r\\nb\\r\\n\\r\\n")
        'a\\nb\\n'
    """
    content = content.replace("\r\n", "\n").replace("\r", "\n")
    content = _TRAILING_WHITESPACE.sub("", content)
    return _TRAILING_NEWLINES.sub("\n", content)


def is_binary_content(content: bytes) -> bool:
    """Check whether content should be treated as binary.

    Content is binary if it has a NUL byte near the start or is not valid
    UTF-8. Binary content is compared byte for byte, without normalization.

    Args:
        content: Raw file content

    Returns:
        True if the content is binary
    """
    if b"\0" in content[:BINARY_SNIFF_LENGTH]:
        return True
    try:
        content.decode("utf-8")
    except UnicodeDecodeError:
        return True
    return False


def decode_base64_content(encoded: str) -> bytes:
    """Decode the base64 payload of a GitHub contents response.

    GitHub wraps the payload at 60 columns, so whitespace is removed first.

    Args:
        encoded: Base64 text, possibly containing newlines

    Returns:
        Decoded bytes

    Raises:
        ValueError: If the payload is not valid base64
    """
    compact = re.sub(r"\s", "", encoded)
    try:
        return base64.b64decode(compact, validate=True)
    except ValueError as e:
        raise ValueError("Invalid base64 content") from e


def encode_base64_content(content: bytes) -> str:
    """Encode raw bytes for a blob creation payload."""
    return base64.b64encode(content).decode("ascii")


# =============================================================================
# Path utilities
# =============================================================================


def strip_root_prefix(path: str, prefix: str = ROOT_PREFIX) -> str:
    """Remove the synthetic export root folder from an archive path.

    Args:
        path: Archive entry path
        prefix: Root prefix to strip (default: "project/")

    Returns:
        Path relative to the repository root

    Examples:
        >>> strip_root_prefix("project/src/app.js")
        'src/app.js'
        >>> strip_root_prefix("src/app.js")
        'src/app.js'
    """
    if path.startswith(prefix):
        return path[len(prefix) :]
    return path


def is_directory_entry(path: str) -> bool:
    """Check if an archive path denotes a directory placeholder."""
    return path.endswith("/")
