from __future__ import annotations

import logging
import re
import uuid
from pathlib import Path, PurePath

"""Raw upload storage on the local filesystem.

Uploaded bytes are kept under a generated unique name so that two uploads of
the same file never collide; the original name only contributes its suffix.
"""

__all__ = [
    "FileStorage",
]

logger = logging.getLogger(__name__)

_SAFE_SUFFIX = re.compile(r"^\.[A-Za-z0-9]{1,8}$")


class FileStorage:
    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def _stored_name(self, original_name: str) -> str:
        suffix = PurePath(original_name).suffix.lower()
        if not _SAFE_SUFFIX.match(suffix):
            suffix = ""
        return f"{uuid.uuid4().hex}{suffix}"

    def save(self, original_name: str, data: bytes) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / self._stored_name(original_name)
        path.write_bytes(data)
        logger.debug("stored %s (%d bytes) as %s", original_name, len(data), path.name)
        return path

    def delete(self, path: Path | str) -> bool:
        """Remove a stored file; a missing file is logged, not raised."""
        target = Path(path)
        try:
            target.unlink()
        except FileNotFoundError:
            logger.warning(f"could not delete stored file (missing): {target}")
            return False
        return True
