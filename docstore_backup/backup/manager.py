"""Backup and restore orchestration for document store indices."""

import json
import logging
import shutil
from dataclasses import replace
from pathlib import Path
from typing import List, Optional
from datetime import datetime, timezone

from .._utils import get_logger
from ..client.base import BaseDocumentStoreClient
from ..config import BackupJob, RestoreConfig
from ..errors import ArchivePipelineError
from .archiver import ARCHIVE_EXTENSIONS, Archiver, TarArchiver, archive_name
from .batcher import BulkBatcher
from .exporters import get_export_strategy
from .models import BackupManifest, BackupMetadata, ExportSummary, RestoreSummary
from .utils import (
    compute_checksum,
    verify_checksum,
    compute_directory_checksum,
    generate_backup_id,
    save_manifest,
    load_manifest,
)
from .walker import MANIFEST_NAME, RestoreWalker
from .writer import DiskWriter


class BackupManager:
    """Orchestrate export, archiving and restore of document store indices."""

    def __init__(
        self,
        client: BaseDocumentStoreClient,
        backup_dir: str = "./backups",
        archiver: Optional[Archiver] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize backup manager.

        Args:
            client: Store client used for both export and restore
            backup_dir: Directory for backup archives
            archiver: Archive implementation, defaults to ``TarArchiver``
            logger: Logger to report to, defaults to the package logger
        """
        self.client = client
        self.logger = get_logger(logger)
        self.archiver = archiver or TarArchiver(logger=self.logger)
        self.backup_dir = Path(backup_dir)
        self.backup_dir.mkdir(parents=True, exist_ok=True)

    async def export_tree(self, job: BackupJob) -> ExportSummary:
        """Export the job's indices to ``job.destination_path``, one file per document.

        Existing files for the same documents are overwritten, so running the
        same job twice over an unchanged source yields the same tree.
        """
        strategy = get_export_strategy(job.mode, self.client, logger=self.logger)
        writer = DiskWriter(job.destination_path, on_collision=job.on_collision, logger=self.logger)
        return await strategy.export(job, writer)

    async def create_backup(
        self,
        job: BackupJob,
        backup_id: Optional[str] = None
    ) -> BackupMetadata:
        """Export, write the manifest and pack everything into one archive.

        The document tree is staged in ``<backup_dir>/<backup_id>/`` (the
        job's destination path is replaced by it) and removed only once the
        archive has been written. On any failure it stays for inspection.

        Args:
            job: What to export
            backup_id: Optional custom backup ID. If None, generates timestamp-based ID.

        Returns:
            BackupMetadata with backup information
        """
        backup_id = backup_id or generate_backup_id()
        self.logger.info(f"Starting backup: {backup_id}")

        dump_dir = self.backup_dir / backup_id
        if dump_dir.exists():
            shutil.rmtree(dump_dir)
        dump_dir.mkdir(parents=True)

        staged_job = replace(job, destination_path=dump_dir)
        try:
            summary = await self.export_tree(staged_job)
        except Exception as e:
            self.logger.error(f"Export failed for {backup_id}, partial dump left at {dump_dir}: {e}")
            raise

        manifest = BackupManifest(
            backup_id=backup_id,
            created_at=datetime.now(timezone.utc),
            docstore_backup_version=self._get_version(),
            source_url=self._get_source_url(),
            indices=sorted(job.indices),
            mode=job.mode,
            statistics=summary.statistics(),
            checksum=compute_directory_checksum(dump_dir, exclude=[MANIFEST_NAME]),
        )
        await save_manifest(manifest.model_dump(), dump_dir / MANIFEST_NAME)

        artifact = self.backup_dir / archive_name(backup_id, job.compression)
        try:
            result = await self.archiver.archive(dump_dir, artifact, job.compression)
        except ArchivePipelineError:
            self.logger.error(f"Archiving failed for {backup_id}, dump kept at {dump_dir}")
            raise

        # Archive checksum next to the archive, verified before any restore
        checksum_path = self.backup_dir / f"{backup_id}.checksum"
        with open(checksum_path, "w") as f:
            f.write(compute_checksum(result.path))

        shutil.rmtree(dump_dir)

        if summary.collisions:
            self.logger.warning(f"Backup {backup_id} had {len(summary.collisions)} path collisions")
        self.logger.info(
            f"Backup complete: {backup_id} ({summary.documents} documents, {result.size_bytes:,} bytes)"
        )

        return BackupMetadata(
            backup_id=backup_id,
            created_at=manifest.created_at,
            size_bytes=result.size_bytes,
            artifact=result.path.name,
            indices=manifest.indices,
            statistics=manifest.statistics,
        )

    async def restore_directory(
        self,
        source_dir: Path,
        config: Optional[RestoreConfig] = None
    ) -> RestoreSummary:
        """Replay every stored document under ``source_dir`` into the store.

        Args:
            source_dir: Root of a document tree
            config: Restore settings, defaults to ``RestoreConfig()``

        Returns:
            RestoreSummary with per-document outcome counts
        """
        if not Path(source_dir).is_dir():
            raise FileNotFoundError(f"Restore source not found: {source_dir}")

        config = config or RestoreConfig()
        walker = RestoreWalker(source_dir, strict=config.strict, logger=self.logger)
        batcher = BulkBatcher(
            self.client,
            batch_size=config.batch_size,
            abort_on_error=config.abort_on_error,
            include_type=config.include_type,
            max_in_flight=config.max_in_flight,
            logger=self.logger,
        )

        self.logger.info(f"Restoring documents from {source_dir} (batch size {config.batch_size})")
        async with batcher:
            for record in walker.iter_records():
                await batcher.add(walker.to_action(record, index_prefix=config.index_prefix))

        summary = batcher.summary
        summary.parse_errors = len(walker.errors)
        summary.errors = [str(e) for e in walker.errors] + summary.errors

        self.logger.info(
            f"Restore complete from {source_dir}: {summary.succeeded} succeeded, "
            f"{summary.total_failed} failed ({summary.parse_errors} unparseable files) "
            f"in {summary.batches} batches"
        )
        return summary

    async def restore_backup(
        self,
        backup_id: str,
        config: Optional[RestoreConfig] = None
    ) -> RestoreSummary:
        """Restore from backup archive.

        Args:
            backup_id: Backup ID to restore
            config: Restore settings
        """
        archive_path = await self.get_backup_path(backup_id)

        if archive_path is None:
            raise FileNotFoundError(f"Backup not found: {backup_id}")

        self.logger.info(f"Starting restore: {backup_id}")

        checksum_path = self.backup_dir / f"{backup_id}.checksum"
        if checksum_path.exists():
            expected = checksum_path.read_text().strip()
            if not verify_checksum(archive_path, expected):
                raise ArchivePipelineError(
                    f"Archive checksum mismatch for {backup_id}",
                    diagnostic=f"expected {expected}, got {compute_checksum(archive_path)}",
                )

        # Leftovers of an interrupted restore must not be replayed
        temp_dir = self.backup_dir / f"restore_{backup_id}"
        if temp_dir.exists():
            shutil.rmtree(temp_dir)
        temp_dir.mkdir(parents=True)

        try:
            await self.archiver.extract(archive_path, temp_dir)

            manifest_path = temp_dir / MANIFEST_NAME
            if manifest_path.exists():
                manifest = BackupManifest(**await load_manifest(manifest_path))
                if manifest.checksum:
                    computed = compute_directory_checksum(temp_dir, exclude=[MANIFEST_NAME])
                    if computed == manifest.checksum:
                        self.logger.info(f"Payload checksum verified: {computed}")
                    else:
                        self.logger.warning(
                            f"Checksum mismatch! Expected: {manifest.checksum}, Got: {computed}"
                        )
            else:
                self.logger.warning(f"Backup {backup_id} has no manifest")

            summary = await self.restore_directory(temp_dir, config)
            self.logger.info(f"Restore complete: {backup_id}")
            return summary

        finally:
            if temp_dir.exists():
                shutil.rmtree(temp_dir)

    async def list_backups(self) -> List[BackupMetadata]:
        """List all available backups.

        Returns:
            List of BackupMetadata, newest first
        """
        backups = []

        for archive_path in self._iter_archives():
            try:
                data = await self.archiver.read_member(archive_path, MANIFEST_NAME)
                manifest = BackupManifest(**json.loads(data))

                backups.append(BackupMetadata(
                    backup_id=manifest.backup_id,
                    created_at=manifest.created_at,
                    size_bytes=archive_path.stat().st_size,
                    artifact=archive_path.name,
                    indices=manifest.indices,
                    statistics=manifest.statistics,
                ))
            except Exception as e:
                self.logger.warning(f"Failed to read backup {archive_path.name}: {e}")

        backups.sort(key=lambda b: b.created_at, reverse=True)

        return backups

    async def delete_backup(self, backup_id: str) -> bool:
        """Delete backup archive.

        Args:
            backup_id: Backup ID to delete

        Returns:
            True if deleted, False if not found
        """
        archive_path = await self.get_backup_path(backup_id)
        checksum_path = self.backup_dir / f"{backup_id}.checksum"

        if archive_path is None:
            return False

        archive_path.unlink()

        if checksum_path.exists():
            checksum_path.unlink()

        self.logger.info(f"Deleted backup: {backup_id}")

        return True

    async def get_backup_path(self, backup_id: str) -> Optional[Path]:
        """Get path to backup archive.

        Args:
            backup_id: Backup ID

        Returns:
            Path to archive or None if not found
        """
        for extension in ARCHIVE_EXTENSIONS.values():
            archive_path = self.backup_dir / f"{backup_id}{extension}"
            if archive_path.exists():
                return archive_path
        return None

    def _iter_archives(self) -> List[Path]:
        archives = []
        for extension in ARCHIVE_EXTENSIONS.values():
            archives.extend(self.backup_dir.glob(f"*{extension}"))
        return sorted(archives)

    def _get_version(self) -> str:
        """Get docstore-backup version."""
        try:
            from .. import __version__
            return __version__
        except ImportError:
            return "unknown"

    def _get_source_url(self) -> str:
        config = getattr(self.client, "config", None)
        return getattr(config, "url", "") or ""
