"""Configuration management for docstore-backup."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Optional

from ._utils import is_valid_duration


SUPPORTED_COMPRESSION = ("gz", "bz2", "xz", "none")
COLLISION_POLICIES = ("suffix", "error")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class ClientConfig:
    """Document store connection configuration."""
    url: str = "http://localhost:9200"
    api_key: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    request_timeout: float = 60.0
    max_retries: int = 3
    verify_certs: bool = True

    @classmethod
    def from_env(cls) -> 'ClientConfig':
        """Create config from environment variables."""
        return cls(
            url=os.getenv("DOCSTORE_URL", "http://localhost:9200"),
            api_key=os.getenv("DOCSTORE_API_KEY"),
            username=os.getenv("DOCSTORE_USERNAME"),
            password=os.getenv("DOCSTORE_PASSWORD"),
            request_timeout=float(os.getenv("DOCSTORE_REQUEST_TIMEOUT", "60.0")),
            max_retries=int(os.getenv("DOCSTORE_MAX_RETRIES", "3")),
            verify_certs=_env_bool("DOCSTORE_VERIFY_CERTS", "true"),
        )

    def __post_init__(self):
        """Validate configuration."""
        if not self.url:
            raise ValueError("url must not be empty")
        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be positive, got {self.request_timeout}")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {self.max_retries}")


@dataclass(frozen=True)
class BackupJob:
    """One export run: which indices, how to page, where to write."""
    indices: FrozenSet[str] = field(default_factory=lambda: frozenset({"_all"}))
    page_size: int = 100
    scroll_ttl: str = "10m"
    destination_path: Path = Path("./backups")
    mode: str = "scan"
    prefetch: bool = False
    on_collision: str = "suffix"  # suffix, error
    compression: str = "gz"  # gz, bz2, xz, none

    @classmethod
    def from_env(cls) -> 'BackupJob':
        """Create job from environment variables."""
        indices = [i.strip() for i in os.getenv("BACKUP_INDICES", "_all").split(",")]
        return cls(
            indices=frozenset(i for i in indices if i),
            page_size=int(os.getenv("BACKUP_PAGE_SIZE", "100")),
            scroll_ttl=os.getenv("BACKUP_SCROLL_TTL", "10m"),
            destination_path=Path(os.getenv("BACKUP_DIR", "./backups")),
            mode=os.getenv("BACKUP_MODE", "scan"),
            prefetch=_env_bool("BACKUP_PREFETCH", "false"),
            on_collision=os.getenv("BACKUP_ON_COLLISION", "suffix"),
            compression=os.getenv("BACKUP_COMPRESSION", "gz"),
        )

    def __post_init__(self):
        """Validate configuration."""
        # Accept any iterable of names, store as frozenset
        object.__setattr__(self, "indices", frozenset(self.indices))
        object.__setattr__(self, "destination_path", Path(self.destination_path))
        if not self.indices:
            raise ValueError("indices must not be empty")
        if self.page_size <= 0:
            raise ValueError(f"page_size must be positive, got {self.page_size}")
        if not is_valid_duration(self.scroll_ttl):
            raise ValueError(f"scroll_ttl must be a duration like '10m', got {self.scroll_ttl!r}")
        if self.on_collision not in COLLISION_POLICIES:
            raise ValueError(f"on_collision must be one of {COLLISION_POLICIES}, got {self.on_collision!r}")
        if self.compression not in SUPPORTED_COMPRESSION:
            raise ValueError(f"compression must be one of {SUPPORTED_COMPRESSION}, got {self.compression!r}")

    @property
    def index_expression(self) -> str:
        """Comma-joined index names in stable order."""
        return ",".join(sorted(self.indices))


@dataclass(frozen=True)
class RestoreConfig:
    """Restore run configuration."""
    batch_size: int = 100
    strict: bool = False
    abort_on_error: bool = True
    include_type: bool = False  # only for stores that still have mapping types
    max_in_flight: int = 0
    index_prefix: str = ""

    @classmethod
    def from_env(cls) -> 'RestoreConfig':
        """Create config from environment variables."""
        return cls(
            batch_size=int(os.getenv("RESTORE_BATCH_SIZE", "100")),
            strict=_env_bool("RESTORE_STRICT", "false"),
            abort_on_error=_env_bool("RESTORE_ABORT_ON_ERROR", "true"),
            include_type=_env_bool("RESTORE_INCLUDE_TYPE", "false"),
            max_in_flight=int(os.getenv("RESTORE_MAX_IN_FLIGHT", "0")),
            index_prefix=os.getenv("RESTORE_INDEX_PREFIX", ""),
        )

    def __post_init__(self):
        """Validate configuration."""
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.max_in_flight not in (0, 1):
            raise ValueError(f"max_in_flight must be 0 or 1, got {self.max_in_flight}")
