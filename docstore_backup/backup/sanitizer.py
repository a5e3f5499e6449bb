"""Map document identities to safe file system paths."""

import hashlib
import re
from pathlib import Path
from typing import Tuple, Union

# Characters left as-is; everything else gets a backslash in front
_UNSAFE_RE = re.compile(r"([^A-Za-z0-9_\-.,:+/@\n])")

DOCUMENT_SUFFIX = ".json"

# Most file systems cap a single name at 255 bytes
MAX_NAME_BYTES = 255
# Head room for the writer's "~N" collision suffix
_SUFFIX_RESERVE = 8
_DIGEST_CHARS = 16


def escape_component(value: str) -> str:
    """Shell-word escape a single path component.

    Every character outside ``[A-Za-z0-9_-.,:+/@]`` is prefixed with a
    backslash, a newline becomes ``'\\n'`` and the empty string becomes ``''``.
    Separators are replaced with ``-`` afterwards and the bare names ``.`` and
    ``..`` are escaped, so the result is always a single safe segment.
    """
    if not value:
        return "''"

    escaped = _UNSAFE_RE.sub(r"\\\1", value)
    escaped = escaped.replace("\n", "'\n'")
    escaped = escaped.replace("/", "-")

    if escaped in (".", ".."):
        escaped = escaped.replace(".", "\\.")
    return escaped


def fit_name(escaped: str, raw: str, extension: str = "") -> str:
    """Keep ``escaped + extension`` within ``MAX_NAME_BYTES``.

    Over-long names are cut to a prefix and tagged with a digest of the raw
    value, ``<prefix>~h<sha1>``, so distinct values stay distinct and the
    same value always maps to the same name.
    """
    if len((escaped + extension).encode("utf-8", "surrogatepass")) <= MAX_NAME_BYTES:
        return escaped + extension

    digest = hashlib.sha1(raw.encode("utf-8", "surrogatepass")).hexdigest()[:_DIGEST_CHARS]
    tag = f"~h{digest}"
    budget = MAX_NAME_BYTES - _SUFFIX_RESERVE - len(tag) - len(extension.encode("utf-8"))
    prefix = escaped.encode("utf-8", "surrogatepass")[:budget].decode("utf-8", "ignore")
    return prefix + tag + extension


class PathSanitizer:
    """Derive ``<destination>/<index>/<type>/<id>.json`` for a document."""

    def __init__(self, destination: Union[str, Path]):
        self.destination = Path(destination)

    def sanitize(self, index_name: str, type_name: str, document_id: str) -> Tuple[Path, str]:
        """Return ``(dir_path, file_name)`` for a document identity."""
        dir_path = (
            self.destination
            / fit_name(escape_component(index_name), index_name)
            / fit_name(escape_component(type_name), type_name)
        )
        document_id = str(document_id)
        file_name = fit_name(escape_component(document_id), document_id, DOCUMENT_SUFFIX)
        return dir_path, file_name

    def path_for(self, index_name: str, type_name: str, document_id: str) -> Path:
        dir_path, file_name = self.sanitize(index_name, type_name, document_id)
        return dir_path / file_name

    def relative_path(self, index_name: str, type_name: str, document_id: str) -> Path:
        return self.path_for(index_name, type_name, document_id).relative_to(self.destination)
