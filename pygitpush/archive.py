"""Archive extraction for project exports."""

import io
import logging
import zipfile

from .exceptions import GitPushExtractionError, GitPushSizeLimitError
from .utils import MAX_ARCHIVE_SIZE, format_size

logger = logging.getLogger(__name__)


def check_archive_size(data: bytes, max_size: int = MAX_ARCHIVE_SIZE) -> None:
    """Reject archives above the size ceiling.

    An archive of exactly ``max_size`` bytes is accepted.

    Raises:
        GitPushSizeLimitError: If the archive is too large
    """
    if len(data) > max_size:
        raise GitPushSizeLimitError(
            f"File too large. Maximum size is {format_size(max_size)} "
            f"(got {format_size(len(data))})"
        )


def extract_archive(data: bytes) -> dict[str, bytes]:
    """Extract every file of a ZIP archive into memory.

    Directory entries are skipped. Paths are returned as stored in the
    archive, including any export root folder.

    Args:
        data: ZIP archive bytes

    Returns:
        Mapping of archive path to file content

    Raises:
        GitPushExtractionError: If the archive cannot be read
    """
    files: dict[str, bytes] = {}
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                files[info.filename] = archive.read(info)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, ValueError) as e:
        raise GitPushExtractionError(f"Failed to process ZIP file: {e}") from e

    logger.debug(f"Extracted {len(files)} file(s) from archive")
    return files
