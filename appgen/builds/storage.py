"""Artifact storage for generated app archives.

Archive paths are a pure function of the build id, so the download path
can be derived without any extra lookup.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Protocol

logger = logging.getLogger(__name__)

BUILD_FILE_EXTENSION = ".zip"


def get_build_file_path(build_id: str) -> str:
    """Return the storage path of a build's generated archive.

    Args:
        build_id: Build ID.

    Returns:
        Path relative to the storage root.
    """
    return f"{build_id}{BUILD_FILE_EXTENSION}"


class ArtifactStore(Protocol):
    """Storage backend for generated archives."""

    def exists(self, path: str) -> bool: ...

    def get_stream(self, path: str) -> BinaryIO: ...

    def put(self, path: str, data: bytes) -> None: ...


class LocalArtifactStore:
    """Artifact store on the local filesystem.

    Args:
        root: Root directory holding the archives.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def _resolve(self, path: str) -> Path:
        root = self.root.resolve()
        full_path = (root / path).resolve()
        if not full_path.is_relative_to(root):
            raise ValueError(f"Path escapes artifact root: {path}")
        return full_path

    def exists(self, path: str) -> bool:
        """Check whether an archive exists at path."""
        return self._resolve(path).is_file()

    def get_stream(self, path: str) -> BinaryIO:
        """Open the archive at path for reading.

        The caller owns the returned stream and must close it.

        Raises:
            FileNotFoundError: If nothing is stored at path.
        """
        return self._resolve(path).open("rb")

    def put(self, path: str, data: bytes) -> None:
        """Store data at path, replacing any previous archive.

        The file is written next to its destination and renamed into place
        so readers never see a partial archive.
        """
        full_path = self._resolve(path)
        full_path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=full_path.parent, prefix=".upload_")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, full_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info("Stored %d bytes at %s", len(data), full_path)


__all__ = [
    "BUILD_FILE_EXTENSION",
    "ArtifactStore",
    "LocalArtifactStore",
    "get_build_file_path",
]
