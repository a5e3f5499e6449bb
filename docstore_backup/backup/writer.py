"""Persist scroll hits as one JSON file per document."""

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple, Union

from .._utils import get_logger
from ..errors import PathCollisionError
from ..schemas import DEFAULT_TYPE, Hit
from .models import ExportSummary
from .sanitizer import DOCUMENT_SUFFIX, PathSanitizer, fit_name

Identity = Tuple[str, str, str]


class DiskWriter:
    """Write hits under ``<destination>/<index>/<type>/<id>.json``.

    Paths claimed during the run are remembered, so two identities that
    sanitize to the same file are detected instead of silently overwritten.
    """

    def __init__(
        self,
        destination: Union[str, Path],
        on_collision: str = "suffix",
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize writer.

        Args:
            destination: Root of the document tree
            on_collision: ``"suffix"`` to write the newcomer to ``<id>~N.json``,
                ``"error"`` to raise ``PathCollisionError``
            logger: Logger to report to, defaults to the package logger
        """
        self.destination = Path(destination)
        self.destination.mkdir(parents=True, exist_ok=True)
        self.sanitizer = PathSanitizer(self.destination)
        self.on_collision = on_collision
        self.logger = get_logger(logger)

        self.summary = ExportSummary()
        self._claimed: Dict[Path, Identity] = {}

    @staticmethod
    def identity_of(hit: Hit) -> Identity:
        return (hit["_index"], hit.get("_type") or DEFAULT_TYPE, str(hit["_id"]))

    @staticmethod
    def serialize(hit: Hit) -> bytes:
        """Encode a hit as UTF-8 JSON.

        Strings UTF-8 cannot carry (lone surrogates) fall back to ASCII
        ``\\uXXXX`` escapes, which read back to the same value.
        """
        try:
            return json.dumps(hit, ensure_ascii=False).encode("utf-8")
        except UnicodeEncodeError:
            return json.dumps(hit).encode("ascii")

    def _resolve_path(self, identity: Identity) -> Path:
        dir_path, file_name = self.sanitizer.sanitize(*identity)
        path = dir_path / file_name

        existing = self._claimed.get(path)
        if existing is None or existing == identity:
            self._claimed[path] = identity
            return path

        if self.on_collision == "error":
            raise PathCollisionError(path, existing, identity)

        stem = file_name[: -len(DOCUMENT_SUFFIX)]
        counter = 1
        while True:
            candidate = dir_path / fit_name(
                f"{stem}~{counter}", f"{identity[2]}~{counter}", DOCUMENT_SUFFIX
            )
            owner = self._claimed.get(candidate)
            if owner is None or owner == identity:
                break
            counter += 1

        if candidate in self._claimed:
            return candidate

        self._claimed[candidate] = identity
        self.summary.collisions.append(f"{identity} -> {candidate.name} (taken by {existing})")
        self.logger.warning(
            f"Path collision: {identity} sanitizes to {path} already used by {existing}, "
            f"writing to {candidate.name}"
        )
        return candidate

    def write_hit(self, hit: Hit) -> Path:
        """Write one hit and return the file it went to."""
        path = self._resolve_path(self.identity_of(hit))
        data = self.serialize(hit)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)
        self.summary.documents += 1
        return path

    def write_page(self, hits: Iterable[Hit]) -> int:
        """Write every hit in a page, return how many were written."""
        count = 0
        for hit in hits:
            self.write_hit(hit)
            count += 1
        self.summary.pages += 1
        self.logger.debug(f"Wrote page {self.summary.pages}: {count} documents")
        return count
