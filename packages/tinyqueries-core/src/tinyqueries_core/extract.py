"""Applying the compile service's response archive to the local filesystem."""

from __future__ import annotations

import re
import tempfile
import uuid
import zipfile
from pathlib import Path, PurePosixPath

import structlog

from tinyqueries_core.errors import ArchiveCorruptError, WriteFailedError

logger = structlog.get_logger(__name__)

DOWNLOAD_PREFIX = "download-"

# Windows drive prefix such as "C:"
_DRIVE_PATTERN = re.compile(r"^[A-Za-z]:")


def _is_directory_marker(name: str) -> bool:
    return name.endswith("/") or name.endswith("\\")


class Extractor:
    """Writes the files of a ZIP archive below a target folder.

    Directory entries become folders, empty ones included; intermediate
    folders are created for each file as needed. Extraction is best-effort:
    files written before a failure stay on disk.

    Attributes:
        target_dir: Folder receiving the files. None means the current
            working directory at extraction time.
        work_dir: Folder for the temporary download archive. None means the
            system temp folder.

    Example:
        >>> Extractor().extract(response.content)
    """

    def __init__(self, target_dir: Path | None = None, work_dir: Path | None = None) -> None:
        self.target_dir = target_dir
        self.work_dir = work_dir

    def extract(self, archive_bytes: bytes, tag: str | None = None) -> list[Path]:
        """Write the archive's files to disk.

        Args:
            archive_bytes: ZIP data received from the compile service.
            tag: Unique tag used in the temporary file name.

        Returns:
            Paths of the files written, in archive order.

        Raises:
            ArchiveCorruptError: If the data is not a valid ZIP archive.
            WriteFailedError: If a file cannot be written, or an entry points
                outside the target folder.
        """
        target = (self.target_dir if self.target_dir is not None else Path.cwd()).resolve()
        work_dir = self.work_dir if self.work_dir is not None else Path(tempfile.gettempdir())
        zip_path = work_dir / f"{DOWNLOAD_PREFIX}{tag or uuid.uuid4().hex}.zip"

        try:
            zip_path.write_bytes(archive_bytes)
        except OSError as e:
            zip_path.unlink(missing_ok=True)
            raise WriteFailedError(str(zip_path), internal_details=repr(e)) from None

        try:
            return self._extract_file(zip_path, target)
        finally:
            zip_path.unlink(missing_ok=True)

    def _extract_file(self, zip_path: Path, target: Path) -> list[Path]:
        try:
            zf = zipfile.ZipFile(zip_path)
        except (zipfile.BadZipFile, OSError) as e:
            raise ArchiveCorruptError(internal_details=repr(e)) from None

        written: list[Path] = []
        with zf:
            for info in zf.infolist():
                name = info.filename
                if _is_directory_marker(name):
                    folder = self._destination(target, name.rstrip("/\\"))
                    try:
                        folder.mkdir(parents=True, exist_ok=True)
                    except OSError as e:
                        raise WriteFailedError(name, internal_details=repr(e)) from None
                    continue

                destination = self._destination(target, name)
                try:
                    content = zf.read(info)
                except (zipfile.BadZipFile, OSError, RuntimeError) as e:
                    raise ArchiveCorruptError(internal_details=f"{name}: {e!r}") from None

                try:
                    destination.parent.mkdir(parents=True, exist_ok=True)
                    destination.write_bytes(content)
                except OSError as e:
                    raise WriteFailedError(name, internal_details=repr(e)) from None

                written.append(destination)
                logger.debug("file_extracted", path=name, size=len(content))

        logger.info("archive_extracted", files=len(written), target=str(target))
        return written

    @staticmethod
    def _destination(target: Path, name: str) -> Path:
        """Resolve an entry name below ``target``, refusing escapes."""
        parts = PurePosixPath(name.replace("\\", "/")).parts
        if not parts or parts[0] == "/" or ".." in parts or _DRIVE_PATTERN.match(parts[0]):
            raise WriteFailedError(name, "path outside target folder")

        destination = target.joinpath(*parts).resolve()
        if destination != target and target not in destination.parents:
            raise WriteFailedError(name, "path outside target folder")
        return destination
