"""Deterministic ZIP packaging of a project folder.

This module provides:
- ArchiveEntry / Archive: Immutable, ordered archive value
- Archiver: Walks a folder tree and builds an Archive
- Archive.to_bytes() / Archive.write(): ZIP serialization

Entry paths are relative to the walked folder and always use ``/`` as
separator, so archives built on any platform look the same to the compile
service. Entries are stored with a fixed timestamp so the same tree always
produces the same bytes.
"""

from __future__ import annotations

import io
import zipfile
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

import structlog

from tinyqueries_core.config import CONFIG_FILE_NAMES
from tinyqueries_core.errors import DirectoryUnreadableError, FileUnreadableError

logger = structlog.get_logger(__name__)

# Timestamp stored for every entry (earliest date ZIP can represent)
ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)

# Permission bits stored for file and directory entries
FILE_MODE = 0o644
DIR_MODE = 0o755


@dataclass(frozen=True)
class ArchiveEntry:
    """A single archive entry.

    Attributes:
        path: Relative path using ``/`` separators, without trailing slash.
        content: File content, or None for a directory marker.
    """

    path: str
    content: bytes | None = None

    @property
    def is_dir(self) -> bool:
        """True if the entry is a directory marker."""
        return self.content is None

    @classmethod
    def directory(cls, path: str) -> ArchiveEntry:
        """Create a directory marker entry."""
        return cls(path=path.rstrip("/"))

    @classmethod
    def file(cls, path: str, content: bytes) -> ArchiveEntry:
        """Create a file entry."""
        return cls(path=path, content=content)


@dataclass(frozen=True)
class Archive:
    """Ordered, immutable collection of archive entries.

    Example:
        >>> archive = Archive((ArchiveEntry.file("a.sql", b"select 1"),))
        >>> archive.paths()
        ['a.sql']
        >>> data = archive.to_bytes()
    """

    entries: tuple[ArchiveEntry, ...] = ()

    def __iter__(self) -> Iterator[ArchiveEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def paths(self) -> list[str]:
        """Return entry paths in archive order."""
        return [entry.path for entry in self.entries]

    def files(self) -> dict[str, bytes]:
        """Return file entries as a path -> content mapping."""
        return {e.path: e.content for e in self.entries if e.content is not None}

    def _write_to(self, fileobj: BinaryIO) -> None:
        with zipfile.ZipFile(fileobj, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for entry in self.entries:
                if entry.is_dir:
                    info = zipfile.ZipInfo(f"{entry.path}/", date_time=ZIP_EPOCH)
                    info.external_attr = (0o40000 | DIR_MODE) << 16
                    info.external_attr |= 0x10  # MS-DOS directory flag
                    zf.writestr(info, b"")
                else:
                    info = zipfile.ZipInfo(entry.path, date_time=ZIP_EPOCH)
                    info.external_attr = FILE_MODE << 16
                    info.compress_type = zipfile.ZIP_DEFLATED
                    zf.writestr(info, entry.content or b"")

    def to_bytes(self) -> bytes:
        """Serialize the archive as ZIP bytes."""
        buffer = io.BytesIO()
        self._write_to(buffer)
        return buffer.getvalue()

    def write(self, path: Path) -> Path:
        """Write the archive as a ZIP file.

        Args:
            path: Destination file path.

        Returns:
            The path written.
        """
        with path.open("wb") as fh:
            self._write_to(fh)
        return path


class Archiver:
    """Builds an Archive from a folder tree.

    Attributes:
        excluded_names: Entry names skipped at every level of the walk. The
            config file names are excluded because the client adds the config
            separately.

    Example:
        >>> archiver = Archiver()
        >>> archive = archiver.build(Path("tinyqueries"))
        >>> "tinyqueries.yaml" in archive.paths()
        False
    """

    def __init__(self, excluded_names: Iterable[str] = CONFIG_FILE_NAMES) -> None:
        self.excluded_names = frozenset({".", "..", *excluded_names})

    def is_file_to_upload(self, name: str) -> bool:
        """Check whether a folder entry belongs in the archive."""
        return name not in self.excluded_names

    def build(
        self,
        root_folder: Path,
        extra_files: Iterable[ArchiveEntry] = (),
    ) -> Archive:
        """Walk ``root_folder`` recursively and collect its contents.

        Args:
            root_folder: Folder to package.
            extra_files: Entries placed before the folder contents.

        Returns:
            Archive with ``extra_files`` followed by the walked entries, in
            name-sorted depth-first order.

        Raises:
            DirectoryUnreadableError: If a folder cannot be listed.
            FileUnreadableError: If a file cannot be read.
        """
        entries = list(extra_files)
        entries.extend(self._walk(Path(root_folder), ""))
        archive = Archive(tuple(entries))
        logger.debug("archive_built", root=str(root_folder), entries=len(archive))
        return archive

    def _walk(self, folder: Path, relative: str) -> Iterator[ArchiveEntry]:
        try:
            children = sorted(folder.iterdir(), key=lambda p: p.name)
        except OSError as e:
            raise DirectoryUnreadableError(str(folder), internal_details=repr(e)) from None

        for child in children:
            if not self.is_file_to_upload(child.name):
                continue
            child_relative = f"{relative}/{child.name}" if relative else child.name
            if child.is_dir():
                yield ArchiveEntry.directory(child_relative)
                yield from self._walk(child, child_relative)
            else:
                try:
                    content = child.read_bytes()
                except OSError as e:
                    raise FileUnreadableError(str(child), internal_details=repr(e)) from None
                yield ArchiveEntry.file(child_relative, content)
