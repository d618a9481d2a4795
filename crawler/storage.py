"""
Local file storage for downloads
"""

import os
import shutil
from typing import Optional, Union

import structlog

from .urls import basename

logger = structlog.get_logger(__name__)

Owner = Union[str, int, None]


class FileStorage:
    def __init__(self, download_path: Optional[str] = None, file_mode: Optional[int] = 0o777,
                 file_owner: Owner = None, file_group: Owner = None, use_remote_time: bool = True):
        self.download_path = download_path
        self.file_mode = file_mode
        self.file_owner = file_owner
        self.file_group = file_group
        self.use_remote_time = use_remote_time

    @property
    def download_path(self) -> Optional[str]:
        return self._download_path

    @download_path.setter
    def download_path(self, path: Optional[str]):
        path = path.strip() if path is not None else None
        self._download_path = path or None

    def resolve(self, path: str) -> str:
        """Resolve a relative path against the download directory."""
        if not os.path.isabs(path) and self.download_path:
            path = os.path.join(self.download_path, path)
        return os.path.normpath(path)

    def filename_for(self, url: str, destination: Optional[str] = None) -> str:
        """Destination filename for ``url``; empty when none can be derived.

        Without a destination the base name of the URL path is used. A
        destination ending with a separator is treated as a directory.
        """
        destination = destination.strip() if destination is not None else ""
        if not destination:
            destination = basename(url)
        elif destination.endswith(("/", os.sep)):
            name = basename(url)
            if not name:
                return ""
            destination += name
        if not destination:
            return ""
        return self.resolve(destination)

    def open(self, filename: str):
        """Create missing parent directories and open ``filename`` for binary writing."""
        directory = os.path.dirname(filename)
        if directory:
            os.makedirs(directory, exist_ok=True)
        return open(filename, 'wb')

    def discard(self, filename: str):
        try:
            os.unlink(filename)
        except FileNotFoundError:
            pass
        logger.info("download_discarded", filename=filename)

    def finalize(self, filename: str, document_time: Optional[int] = None):
        """Apply the configured mode, owner, group and remote modification time."""
        if self.file_mode:
            os.chmod(filename, self.file_mode)
        if self.file_owner is not None or self.file_group is not None:
            shutil.chown(filename, user=self.file_owner, group=self.file_group)
        if self.use_remote_time and document_time is not None and document_time >= 0:
            os.utime(filename, (document_time, document_time))
