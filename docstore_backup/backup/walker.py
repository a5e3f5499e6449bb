"""Enumerate stored document files and parse them back into records."""

import json
import logging
from pathlib import Path
from typing import Iterator, List, Optional, Union

from .._utils import get_logger
from ..errors import ParseError
from ..schemas import DocumentRecord, IndexAction
from .sanitizer import DOCUMENT_SUFFIX

MANIFEST_NAME = "manifest.json"


class RestoreWalker:
    """Walk a document tree in a stable order, one record per file."""

    def __init__(
        self,
        root: Union[str, Path],
        strict: bool = False,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize walker.

        Args:
            root: Root of a tree written by ``DiskWriter``
            strict: Raise on the first unparseable file instead of skipping it
            logger: Logger to report to, defaults to the package logger
        """
        self.root = Path(root)
        self.strict = strict
        self.logger = get_logger(logger)
        self.errors: List[ParseError] = []
        self.files_seen = 0

    def iter_files(self) -> List[Path]:
        """All stored document files, sorted by relative path."""
        files = [
            path for path in self.root.rglob(f"*{DOCUMENT_SUFFIX}")
            if path.is_file() and path != self.root / MANIFEST_NAME
        ]
        return sorted(files, key=lambda p: p.relative_to(self.root).as_posix())

    @staticmethod
    def parse_file(path: Path) -> DocumentRecord:
        """Parse one stored file.

        Raises:
            ParseError: if the file is not JSON or not a stored hit
        """
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError(path, str(e)) from e

        if not isinstance(raw, dict) or "_index" not in raw or "_id" not in raw:
            raise ParseError(path, "not a stored hit (missing _index or _id)")
        if not isinstance(raw.get("_source", {}), dict):
            raise ParseError(path, "_source is not an object")
        return DocumentRecord.from_hit(raw)

    def iter_records(self) -> Iterator[DocumentRecord]:
        """Yield a record for every parseable file."""
        for path in self.iter_files():
            self.files_seen += 1
            try:
                record = self.parse_file(path)
            except ParseError as e:
                if self.strict:
                    raise
                self.errors.append(e)
                self.logger.warning(f"Skipping unparseable file: {e}")
                continue
            yield record

    @staticmethod
    def to_action(record: DocumentRecord, index_prefix: str = "") -> IndexAction:
        """Indexing instruction: the record's metadata merged with its body."""
        metadata = record.metadata()
        return IndexAction(
            index_name=f"{index_prefix}{record.index_name}",
            type_name=record.type_name,
            document_id=record.document_id,
            source=record.source,
            routing=metadata.get("_routing"),
        )
