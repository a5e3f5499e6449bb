"""Core data structures shared by the export and restore paths.

Architecture:
- Wire layer: Hit/ScrollPage/BulkResult - what the store sends back
- Record layer: DocumentRecord - one stored hit, parsed back from disk
- Write layer: IndexAction - one bulk indexing instruction
"""

import json
from dataclasses import dataclass, field
from typing import TypedDict, Optional, List, Dict, Any

DEFAULT_TYPE = "_doc"

# Hit fields that describe the search, not the document
SEARCH_ARTIFACT_FIELDS = ("_source", "_score", "sort", "matched_queries", "highlight")


class Hit(TypedDict, total=False):
    """One hit as returned by a search or scroll response."""
    _index: str
    _type: str
    _id: str
    _score: Optional[float]
    _source: Dict[str, Any]


@dataclass
class ScrollPage:
    """One page of a scroll: the token to continue with and its hits."""
    scroll_id: Optional[str]
    hits: List[Hit] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.hits


@dataclass
class ScrollState:
    """Cursor position. Held in memory only, never persisted."""
    scroll_id: Optional[str] = None
    is_exhausted: bool = False


@dataclass
class DocumentRecord:
    index_name: str
    type_name: str
    document_id: str
    source: Dict[str, Any]
    raw: Dict[str, Any]

    @classmethod
    def from_hit(cls, raw: Dict[str, Any]) -> 'DocumentRecord':
        """Build a record from a raw hit.

        Raises:
            KeyError: if the hit has no ``_index`` or ``_id``
        """
        return cls(
            index_name=raw["_index"],
            type_name=raw.get("_type") or DEFAULT_TYPE,
            document_id=str(raw["_id"]),
            source=dict(raw.get("_source") or {}),
            raw=raw,
        )

    def metadata(self) -> Dict[str, Any]:
        """Raw hit without the body and search artifacts."""
        return {k: v for k, v in self.raw.items() if k not in SEARCH_ARTIFACT_FIELDS}


@dataclass
class IndexAction:
    """Bulk ``index`` instruction: raw metadata merged with the document body."""
    index_name: str
    type_name: str
    document_id: str
    source: Dict[str, Any]
    routing: Optional[str] = None

    def to_bulk_lines(self, include_type: bool = False) -> List[str]:
        """Render the action/metadata line and the source line, ASCII-escaped."""
        meta: Dict[str, Any] = {"_index": self.index_name, "_id": self.document_id}
        if include_type:
            meta["_type"] = self.type_name
        if self.routing is not None:
            meta["routing"] = self.routing
        return [
            json.dumps({"index": meta}),
            json.dumps(self.source),
        ]


@dataclass
class BulkResult:
    """Outcome of one bulk request."""
    succeeded: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
