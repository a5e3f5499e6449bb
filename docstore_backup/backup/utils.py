"""Utility functions for backup/restore operations."""

import hashlib
import json
from pathlib import Path
from typing import Dict, Any, Iterable
from datetime import datetime, timezone

from .._utils import logger


def compute_checksum(file_path: Path) -> str:
    """Compute SHA-256 checksum of file.

    Args:
        file_path: Path to file

    Returns:
        SHA-256 checksum as hex string with 'sha256:' prefix
    """
    sha256 = hashlib.sha256()

    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            sha256.update(chunk)

    return f"sha256:{sha256.hexdigest()}"


def compute_directory_checksum(directory: Path, exclude: Iterable[str] = ()) -> str:
    """Compute SHA-256 checksum of directory contents.

    Files are hashed in sorted relative-path order, path first and contents
    second, so two trees with the same files always agree.

    Args:
        directory: Directory to compute checksum for
        exclude: Relative paths (posix form) left out of the hash

    Returns:
        SHA-256 checksum as hex string with 'sha256:' prefix
    """
    excluded = set(exclude)
    sha256 = hashlib.sha256()

    all_files = sorted(directory.rglob("*"), key=lambda p: p.relative_to(directory).as_posix())

    for file_path in all_files:
        if not file_path.is_file():
            continue
        relative_path = file_path.relative_to(directory).as_posix()
        if relative_path in excluded:
            continue

        sha256.update(relative_path.encode("utf-8"))
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(8192), b""):
                sha256.update(chunk)

    return f"sha256:{sha256.hexdigest()}"


def verify_checksum(file_path: Path, expected_checksum: str) -> bool:
    """Verify file checksum.

    Args:
        file_path: Path to file
        expected_checksum: Expected checksum (with 'sha256:' prefix)

    Returns:
        True if checksum matches, False otherwise
    """
    actual_checksum = compute_checksum(file_path)
    return actual_checksum == expected_checksum


def generate_backup_id() -> str:
    """Generate backup ID with timestamp.

    Returns:
        Backup ID in format: docstore_YYYY-MM-DDTHH-MM-SSZ
    """
    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%SZ")
    return f"docstore_{timestamp}"


async def save_manifest(manifest: Dict[str, Any], output_path: Path) -> None:
    """Save manifest JSON to file.

    Args:
        manifest: Manifest dictionary
        output_path: Output file path
    """
    with open(output_path, "w") as f:
        json.dump(manifest, f, indent=2, default=str)

    logger.debug(f"Manifest saved: {output_path}")


async def load_manifest(manifest_path: Path) -> Dict[str, Any]:
    """Load manifest JSON from file.

    Args:
        manifest_path: Manifest file path

    Returns:
        Manifest dictionary
    """
    with open(manifest_path, "r") as f:
        manifest = json.load(f)

    logger.debug(f"Manifest loaded: {manifest_path}")
    return manifest
