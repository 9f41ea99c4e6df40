"""In-memory frontend bundle.

The prebuilt frontend is read from disk once, at startup, and served from memory afterwards. Lookups
are exact matches on the bundle-relative path; nothing on disk is consulted per request.
"""

import logging
import mimetypes
import os
from typing import Dict, Optional

logger = logging.getLogger(__name__)

INDEX_DOCUMENT = "index.html"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class StaticBundle:
    """Immutable mapping of bundle-relative paths to file contents."""

    def __init__(self, files: Optional[Dict[str, bytes]] = None) -> None:
        self._files: Dict[str, bytes] = dict(files or {})

    @classmethod
    def load(cls, directory: str) -> "StaticBundle":
        """
        Read every file below `directory` into memory.

        Keys are POSIX-style paths relative to `directory` (`assets/app.js`), which is the shape
        request paths arrive in. A missing directory yields an empty bundle so the API still runs
        without a frontend build.
        """
        files: Dict[str, bytes] = {}
        if not os.path.isdir(directory):
            logger.warning("Frontend bundle directory %s does not exist", directory)
            return cls(files)

        for root, _, filenames in os.walk(directory):
            for filename in filenames:
                full_path = os.path.join(root, filename)
                relative_path = os.path.relpath(full_path, directory).replace(os.sep, "/")
                with open(full_path, "rb") as fd:
                    files[relative_path] = fd.read()

        logger.info("Loaded %d frontend files from %s", len(files), directory)
        return cls(files)

    def get(self, path: str) -> Optional[bytes]:
        return self._files.get(path)

    @property
    def index(self) -> Optional[bytes]:
        return self._files.get(INDEX_DOCUMENT)

    def __contains__(self, path: str) -> bool:
        return path in self._files

    def __len__(self) -> int:
        return len(self._files)


def content_type_for(path: str) -> str:
    """Infer a content type from the file extension, defaulting to a binary stream."""
    content_type, _ = mimetypes.guess_type(path, strict=False)
    return content_type or DEFAULT_CONTENT_TYPE
