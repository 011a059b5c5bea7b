from __future__ import annotations

import io
import logging
import zipfile
import zlib

from .errors import ArchiveError, NoImageFoundError

logger = logging.getLogger(__name__)


def extract_image(data: bytes) -> bytes:
    """Return the decompressed bytes of the first file entry in a ZIP archive.

    The API answers with a single-image archive. If more entries are present
    only the first one in archive order is returned.

    Raises:
        ArchiveError: If the bytes are not a readable ZIP archive.
        NoImageFoundError: If the archive holds only directories or nothing.
    """
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            entries = [info for info in zf.infolist() if not info.is_dir()]
            if not entries:
                raise NoImageFoundError("Archive contains no image entry")
            entry = entries[0]
            if len(entries) > 1:
                logger.warning(
                    "Archive holds %d entries; using the first one (%s)",
                    len(entries),
                    entry.filename,
                )
            image = zf.read(entry)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, EOFError, NotImplementedError) as e:
        raise ArchiveError(f"Response is not a valid archive: {e}") from e

    logger.debug("Extracted %s (%d bytes)", entry.filename, len(image))
    return image
