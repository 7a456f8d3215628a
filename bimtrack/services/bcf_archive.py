"""
BCF archive reader: named-entry access to a .bcfzip container.

BCFzip structure:
    <archive>.bcfzip
    ├── bcf.version
    └── <topic_guid>/
        ├── markup.bcf
        ├── viewpoint.bcfv
        └── snapshot.png (optional)

The reader is read-only and may be shared by every issue reader of one
import run.
"""

import io
import logging
import os
import zipfile
import zlib

from bimtrack.core.exceptions import CorruptEntryError, InvalidArchiveError

logger = logging.getLogger(__name__)

MARKUP_FILENAME = "markup.bcf"

# Raised by zipfile while inflating or verifying a damaged member
_CORRUPT_MEMBER_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError, OSError, NotImplementedError)


class FileEntry:
    """Byte stream plus the filename it should be stored under.

    Read errors from a damaged archive member surface as CorruptEntryError.
    """

    def __init__(self, stream, filename: str, source: str | None = None) -> None:
        self.stream = stream
        self.filename = filename
        self.source = source or filename

    def read(self, size: int = -1) -> bytes:
        try:
            return self.stream.read(size)
        except _CORRUPT_MEMBER_ERRORS as exc:
            raise CorruptEntryError(self.source, str(exc)) from exc

    def close(self) -> None:
        self.stream.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class ArchiveEntry:
    """One named member of a BCF archive."""

    def __init__(self, archive: "BcfArchive", info: zipfile.ZipInfo) -> None:
        self._archive = archive
        self.info = info

    @property
    def name(self) -> str:
        return self.info.filename

    @property
    def topic_uuid(self) -> str | None:
        """First path segment, or None for entries at the archive root."""
        head, sep, _ = self.name.partition("/")
        return head if sep and head else None

    def open(self, filename: str | None = None) -> FileEntry:
        """Return a fresh stream over the entry's bytes.

        ``filename`` defaults to the entry's basename.
        """
        try:
            stream = self._archive.zip.open(self.info)
        except _CORRUPT_MEMBER_ERRORS as exc:
            raise CorruptEntryError(self.name, str(exc)) from exc
        return FileEntry(stream, filename or os.path.basename(self.name), source=self.name)

    def read(self) -> bytes:
        with self.open() as stream:
            return stream.read()

    def __repr__(self):
        return f"<ArchiveEntry {self.name}>"


class BcfArchive:
    """Read-only wrapper around a zip file holding BCF topics.

    Accepts a filesystem path, raw bytes, or a binary file object.
    """

    def __init__(self, source) -> None:
        if isinstance(source, (bytes, bytearray)):
            source = io.BytesIO(source)
        try:
            self.zip = zipfile.ZipFile(source)
        except (zipfile.BadZipFile, OSError) as exc:
            raise InvalidArchiveError(f"Not a valid BCF archive: {exc}") from exc
        self.name = source if isinstance(source, (str, os.PathLike)) else getattr(source, "name", None)
        self._entries = {
            info.filename: info for info in self.zip.infolist() if not info.is_dir()
        }

    def find_entry(self, path: str) -> ArchiveEntry | None:
        info = self._entries.get(path)
        return ArchiveEntry(self, info) if info is not None else None

    def entry_path(self, topic_uuid: str, filename: str) -> str:
        return "/".join([topic_uuid, filename])

    def markup_entries(self) -> list[ArchiveEntry]:
        """All ``<topic>/markup.bcf`` entries, ordered by name."""
        names = sorted(
            name for name in self._entries
            if name.count("/") == 1 and name.endswith("/" + MARKUP_FILENAME)
        )
        return [ArchiveEntry(self, self._entries[name]) for name in names]

    def close(self) -> None:
        self.zip.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
