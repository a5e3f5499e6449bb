"""Tests for BackupManager."""

import json
import pytest
from unittest.mock import AsyncMock, patch

from docstore_backup.backup.archiver import TarArchiver
from docstore_backup.backup.manager import BackupManager
from docstore_backup.config import BackupJob, RestoreConfig
from docstore_backup.errors import ArchivePipelineError, TransportError

from tests.backup.mock_store import InMemoryDocumentStore


def _seed(store, count, index="articles"):
    for i in range(count):
        store.add_document(index, f"doc-{i}", {"title": f"Document {i}", "n": i})


def _tree(root):
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*")) if p.is_file()
    }


@pytest.mark.asyncio
async def test_backup_manager_initialization(store, temp_dir):
    backup_dir = temp_dir / "backups"
    manager = BackupManager(store, str(backup_dir))

    assert manager.client is store
    assert manager.backup_dir == backup_dir
    assert backup_dir.exists()
    assert isinstance(manager.archiver, TarArchiver)


@pytest.mark.asyncio
async def test_export_tree_is_idempotent(store, temp_dir):
    _seed(store, 12)
    store.add_document("people", "a/b c\"d", {"name": "odd id"})
    manager = BackupManager(store, str(temp_dir / "backups"))
    job = BackupJob(indices={"articles", "people"}, page_size=5, destination_path=temp_dir / "tree")

    first_summary = await manager.export_tree(job)
    first = _tree(temp_dir / "tree")
    await manager.export_tree(job)
    second = _tree(temp_dir / "tree")

    assert first_summary.documents == 13
    assert len(first) == 13
    assert first == second
    assert "people/_doc/a-b\\ c\\\"d.json" in first


@pytest.mark.asyncio
@pytest.mark.parametrize("count", [0, 1, 99, 100, 101])
async def test_export_then_restore_round_trip(temp_dir, count):
    source = InMemoryDocumentStore()
    _seed(source, count)
    target = InMemoryDocumentStore()

    tree = temp_dir / "tree"
    await BackupManager(source, str(temp_dir / "b1")).export_tree(
        BackupJob(indices={"articles"}, page_size=30, destination_path=tree)
    )
    summary = await BackupManager(target, str(temp_dir / "b2")).restore_directory(
        tree, RestoreConfig(batch_size=100)
    )

    assert target.documents("articles") == source.documents("articles")
    assert summary.succeeded == count
    assert summary.total_failed == 0
    assert target.bulk_sizes == ([100] * (count // 100) + ([count % 100] if count % 100 else []))


@pytest.mark.asyncio
async def test_restore_reports_malformed_file(temp_dir):
    source = InMemoryDocumentStore()
    _seed(source, 49)
    tree = temp_dir / "tree"
    await BackupManager(source, str(temp_dir / "b")).export_tree(
        BackupJob(indices={"articles"}, destination_path=tree)
    )
    (tree / "articles" / "_doc" / "garbage.json").write_text("{{{")

    target = InMemoryDocumentStore()
    summary = await BackupManager(target, str(temp_dir / "b")).restore_directory(tree)

    assert summary.succeeded == 49
    assert summary.parse_errors == 1
    assert summary.total_failed == 1
    assert "garbage.json" in summary.errors[0]
    assert len(target.documents("articles")) == 49


@pytest.mark.asyncio
async def test_restore_with_index_prefix(temp_dir):
    source = InMemoryDocumentStore()
    _seed(source, 3)
    tree = temp_dir / "tree"
    await BackupManager(source, str(temp_dir / "b")).export_tree(
        BackupJob(indices={"_all"}, destination_path=tree)
    )

    target = InMemoryDocumentStore()
    await BackupManager(target, str(temp_dir / "b")).restore_directory(
        tree, RestoreConfig(index_prefix="copy-")
    )

    assert set(target.indices) == {"copy-articles"}


@pytest.mark.asyncio
async def test_create_backup(store, temp_dir):
    _seed(store, 7)
    manager = BackupManager(store, str(temp_dir))

    metadata = await manager.create_backup(BackupJob(indices={"articles"}, page_size=3), backup_id="test_backup")

    assert metadata.backup_id == "test_backup"
    assert metadata.artifact == "test_backup.tar.gz"
    assert metadata.size_bytes > 0
    assert metadata.statistics == {"documents": 7, "pages": 3, "collisions": 0}
    assert (temp_dir / "test_backup.tar.gz").exists()
    assert (temp_dir / "test_backup.checksum").read_text().startswith("sha256:")
    # Staging tree is gone once the archive exists
    assert not (temp_dir / "test_backup").exists()

    manifest = json.loads(await manager.archiver.read_member(temp_dir / "test_backup.tar.gz", "manifest.json"))
    assert manifest["indices"] == ["articles"]
    assert manifest["mode"] == "scan"


@pytest.mark.asyncio
async def test_archive_failure_keeps_dump(store, temp_dir):
    _seed(store, 4)
    manager = BackupManager(store, str(temp_dir))
    manager.archiver.archive = AsyncMock(side_effect=ArchivePipelineError("tar failed", "disk full"))

    with pytest.raises(ArchivePipelineError):
        await manager.create_backup(BackupJob(indices={"articles"}), backup_id="kept")

    assert (temp_dir / "kept" / "manifest.json").exists()
    assert len(list((temp_dir / "kept" / "articles" / "_doc").glob("*.json"))) == 4
    assert not (temp_dir / "kept.checksum").exists()


@pytest.mark.asyncio
async def test_export_failure_propagates(store, temp_dir):
    _seed(store, 4)
    store.advance_scroll = AsyncMock(side_effect=TransportError("connection reset"))
    manager = BackupManager(store, str(temp_dir))

    with pytest.raises(TransportError):
        await manager.create_backup(BackupJob(indices={"articles"}, page_size=2), backup_id="partial")

    assert (temp_dir / "partial" / "articles").exists()
    assert await manager.get_backup_path("partial") is None


@pytest.mark.asyncio
async def test_restore_backup_round_trip(temp_dir):
    source = InMemoryDocumentStore()
    _seed(source, 42)
    _seed(source, 5, index="people")
    await BackupManager(source, str(temp_dir)).create_backup(
        BackupJob(indices={"_all"}, compression="xz"), backup_id="full"
    )

    target = InMemoryDocumentStore()
    summary = await BackupManager(target, str(temp_dir)).restore_backup("full", RestoreConfig(batch_size=10))

    assert summary.succeeded == 47
    assert target.documents("articles") == source.documents("articles")
    assert target.documents("people") == source.documents("people")
    assert not (temp_dir / "restore_full").exists()


@pytest.mark.asyncio
async def test_restore_missing_backup(store, temp_dir):
    manager = BackupManager(store, str(temp_dir))

    with pytest.raises(FileNotFoundError, match="Backup not found"):
        await manager.restore_backup("nope")


@pytest.mark.asyncio
async def test_list_backups(store, temp_dir):
    _seed(store, 2)
    manager = BackupManager(store, str(temp_dir))
    await manager.create_backup(BackupJob(indices={"articles"}), backup_id="first")
    await manager.create_backup(BackupJob(indices={"articles"}, compression="none"), backup_id="second")
    (temp_dir / "broken.tar.gz").write_bytes(b"junk")

    backups = await manager.list_backups()

    assert [b.backup_id for b in backups] == ["second", "first"]
    assert backups[0].artifact == "second.tar"
    assert backups[1].statistics["documents"] == 2


@pytest.mark.asyncio
async def test_delete_backup(store, temp_dir):
    manager = BackupManager(store, str(temp_dir))
    (temp_dir / "test_backup.tar.gz").write_text("fake backup")
    (temp_dir / "test_backup.checksum").write_text("sha256:x")

    assert await manager.delete_backup("test_backup") is True
    assert not (temp_dir / "test_backup.tar.gz").exists()
    assert not (temp_dir / "test_backup.checksum").exists()

    assert await manager.delete_backup("non_existent") is False


@pytest.mark.asyncio
async def test_get_backup_path(store, temp_dir):
    manager = BackupManager(store, str(temp_dir))
    backup_file = temp_dir / "test_backup.tar.bz2"
    backup_file.write_text("fake backup")

    assert await manager.get_backup_path("test_backup") == backup_file
    assert await manager.get_backup_path("non_existent") is None


@pytest.mark.asyncio
async def test_checksum_mismatch_is_logged(temp_dir, caplog):
    source = InMemoryDocumentStore()
    _seed(source, 2)
    manager = BackupManager(source, str(temp_dir))
    await manager.create_backup(BackupJob(indices={"articles"}), backup_id="b")

    original_extract = manager.archiver.extract

    async def tampering_extract(artifact, output_dir):
        await original_extract(artifact, output_dir)
        (output_dir / "articles" / "_doc" / "doc-0.json").write_text(
            json.dumps({"_index": "articles", "_id": "doc-0", "_source": {"tampered": True}})
        )

    target = InMemoryDocumentStore()
    restorer = BackupManager(target, str(temp_dir))
    with patch.object(restorer.archiver, "extract", tampering_extract):
        with caplog.at_level("WARNING", logger="docstore-backup"):
            await restorer.restore_backup("b")

    assert "Checksum mismatch" in caplog.text
    assert target.documents("articles")["doc-0"] == {"tampered": True}


@pytest.mark.asyncio
async def test_tampered_archive_is_refused(temp_dir):
    source = InMemoryDocumentStore()
    _seed(source, 2)
    manager = BackupManager(source, str(temp_dir))
    await manager.create_backup(BackupJob(indices={"articles"}), backup_id="b")
    (temp_dir / "b.checksum").write_text("sha256:0000")

    target = InMemoryDocumentStore()
    with pytest.raises(ArchivePipelineError, match="Archive checksum mismatch"):
        await BackupManager(target, str(temp_dir)).restore_backup("b")

    assert target.bulk_sizes == []
    assert not (temp_dir / "restore_b").exists()


@pytest.mark.asyncio
async def test_round_trip_with_long_and_unencodable_ids(temp_dir):
    source = InMemoryDocumentStore()
    long_ids = ["x" * 300, " " * 130, "y" * 511]
    for doc_id in long_ids:
        source.add_document("articles", doc_id, {"id_length": len(doc_id)})
    source.add_document("articles", "surrogate", {"t": "\ud800"})
    target = InMemoryDocumentStore()

    tree = temp_dir / "tree"
    export_summary = await BackupManager(source, str(temp_dir / "b1")).export_tree(
        BackupJob(indices={"articles"}, destination_path=tree)
    )
    summary = await BackupManager(target, str(temp_dir / "b2")).restore_directory(tree)

    assert export_summary.documents == 4
    assert summary.succeeded == 4
    assert summary.parse_errors == 0
    assert target.documents("articles") == source.documents("articles")


@pytest.mark.asyncio
async def test_restore_discards_leftover_extraction_dir(temp_dir):
    source = InMemoryDocumentStore()
    _seed(source, 3)
    await BackupManager(source, str(temp_dir)).create_backup(
        BackupJob(indices={"articles"}), backup_id="b"
    )

    stale = temp_dir / "restore_b" / "stale" / "_doc"
    stale.mkdir(parents=True)
    (stale / "ghost.json").write_text(
        json.dumps({"_index": "stale", "_id": "ghost", "_source": {"left": "over"}})
    )

    target = InMemoryDocumentStore()
    summary = await BackupManager(target, str(temp_dir)).restore_backup("b")

    assert summary.succeeded == 3
    assert target.documents("stale") == {}
    assert target.documents("articles") == source.documents("articles")
    assert not (temp_dir / "restore_b").exists()
