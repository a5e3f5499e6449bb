"""Pack a finished document tree into a single archive, and unpack it again."""

import asyncio
import logging
import tarfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .._utils import get_logger
from ..errors import ArchivePipelineError

ARCHIVE_EXTENSIONS = {
    "gz": ".tar.gz",
    "bz2": ".tar.bz2",
    "xz": ".tar.xz",
    "none": ".tar",
}


@dataclass
class ArchiveResult:
    path: Path
    size_bytes: int
    compression: str


def archive_name(backup_id: str, compression: str) -> str:
    """File name of the archive for ``backup_id``."""
    return f"{backup_id}{ARCHIVE_EXTENSIONS[compression]}"


class Archiver(ABC):
    """Turns a directory into one artifact. Never touches the source directory."""

    @abstractmethod
    async def archive(self, source_dir: Path, destination_artifact: Path, compression: str) -> ArchiveResult:
        pass

    @abstractmethod
    async def extract(self, artifact: Path, output_dir: Path) -> None:
        pass

    @abstractmethod
    async def read_member(self, artifact: Path, name: str) -> bytes:
        """Read one file of the archive without unpacking the rest."""
        pass


class TarArchiver(Archiver):
    """tar archives through ``tarfile``, optionally gzip/bzip2/xz compressed.

    The tarfile work runs in a worker thread so the event loop stays free.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = get_logger(logger)

    @staticmethod
    def _write_tar(source_dir: Path, destination_artifact: Path, mode: str) -> None:
        destination_artifact.parent.mkdir(parents=True, exist_ok=True)
        with tarfile.open(destination_artifact, mode) as tar:
            tar.add(source_dir, arcname=".")

    @staticmethod
    def _extract_tar(artifact: Path, output_dir: Path) -> None:
        with tarfile.open(artifact, "r:*") as tar:
            tar.extractall(output_dir, filter="data")

    @staticmethod
    def _read_tar_member(artifact: Path, name: str) -> Optional[bytes]:
        with tarfile.open(artifact, "r:*") as tar:
            member = tar.extractfile(f"./{name}")
            return None if member is None else member.read()

    async def archive(self, source_dir: Path, destination_artifact: Path, compression: str = "gz") -> ArchiveResult:
        """Create archive from directory.

        Args:
            source_dir: Directory to archive
            destination_artifact: Output archive path
            compression: One of ``gz``, ``bz2``, ``xz`` or ``none``

        Returns:
            ArchiveResult with the archive path and size

        Raises:
            ArchivePipelineError: if the archive could not be written
        """
        if compression not in ARCHIVE_EXTENSIONS:
            raise ArchivePipelineError(f"Unsupported compression: {compression}")
        if not source_dir.is_dir():
            raise ArchivePipelineError(f"Nothing to archive, {source_dir} is not a directory")

        mode = "w" if compression == "none" else f"w:{compression}"
        self.logger.info(f"Creating archive: {destination_artifact}")

        try:
            await asyncio.to_thread(self._write_tar, source_dir, destination_artifact, mode)
        except (OSError, tarfile.TarError) as e:
            # A truncated artifact is worse than none; the source tree stays
            if destination_artifact.exists():
                destination_artifact.unlink()
            raise ArchivePipelineError(
                f"Failed to archive {source_dir} to {destination_artifact}",
                diagnostic=f"{type(e).__name__}: {e}",
            ) from e

        size = destination_artifact.stat().st_size
        self.logger.info(f"Archive created: {size:,} bytes")
        return ArchiveResult(path=destination_artifact, size_bytes=size, compression=compression)

    async def extract(self, artifact: Path, output_dir: Path) -> None:
        """Extract archive to directory.

        Args:
            artifact: Path to the archive
            output_dir: Directory to extract to
        """
        self.logger.info(f"Extracting archive: {artifact} to {output_dir}")
        output_dir.mkdir(parents=True, exist_ok=True)

        try:
            await asyncio.to_thread(self._extract_tar, artifact, output_dir)
        except (OSError, tarfile.TarError) as e:
            raise ArchivePipelineError(
                f"Failed to extract {artifact}",
                diagnostic=f"{type(e).__name__}: {e}",
            ) from e

        self.logger.info("Archive extracted successfully")

    async def read_member(self, artifact: Path, name: str) -> bytes:
        """Read a top-level file from the archive.

        Raises:
            ArchivePipelineError: if the archive or the member cannot be read
        """
        try:
            data = await asyncio.to_thread(self._read_tar_member, artifact, name)
        except (OSError, KeyError, tarfile.TarError) as e:
            raise ArchivePipelineError(
                f"Failed to read {name} from {artifact}",
                diagnostic=f"{type(e).__name__}: {e}",
            ) from e
        if data is None:
            raise ArchivePipelineError(f"{name} in {artifact} is not a regular file")
        return data
