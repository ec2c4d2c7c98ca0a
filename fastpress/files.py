"""
Uploaded-file descriptors.

The host's upload mechanism stores files before the request is built and
hands over one descriptor per field. A field may carry several files, either
as a list of descriptors or in the column-wise shape produced by
``name[]`` form fields::

    {"name": ["a.txt", "b.txt"], "type": [...], "tmp_name": [...],
     "error": [...], "size": [...]}

Both shapes are normalised to a list of :class:`UploadedFile`.
"""

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Union

UPLOAD_ERR_OK = 0
UPLOAD_ERR_NO_FILE = 4

_FIELDS = ("name", "type", "tmp_name", "error", "size")


@dataclass(frozen=True)
class UploadedFile:
    """Metadata of one uploaded file."""

    name: str = ""
    type: str = ""
    tmp_name: str = ""
    error: int = UPLOAD_ERR_NO_FILE
    size: int = 0

    @property
    def ok(self) -> bool:
        """True when the upload finished without error (empty files included)."""
        return self.error == UPLOAD_ERR_OK

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "UploadedFile":
        return cls(
            name=str(data.get("name") or ""),
            type=str(data.get("type") or ""),
            tmp_name=str(data.get("tmp_name") or ""),
            error=_as_int(data.get("error"), UPLOAD_ERR_NO_FILE),
            size=_as_int(data.get("size"), 0),
        )


def _as_int(value: Any, fallback: int) -> int:
    if value is None or isinstance(value, bool):
        return fallback
    try:
        return int(value)
    except (TypeError, ValueError):
        return fallback


FileEntry = Union[UploadedFile, List[UploadedFile]]


def normalize_file_entry(entry: Any) -> Optional[FileEntry]:
    """Turn one raw upload entry into an UploadedFile or a list of them."""
    if entry is None:
        return None
    if isinstance(entry, UploadedFile):
        return entry
    if isinstance(entry, (list, tuple)):
        return [normalize_file_entry(item) for item in entry]
    if isinstance(entry, Mapping):
        if isinstance(entry.get("name"), (list, tuple)):
            return _from_columns(entry)
        return UploadedFile.from_mapping(entry)
    raise TypeError(f"Unsupported upload descriptor: {type(entry).__name__}")


def _from_columns(entry: Mapping[str, Any]) -> List[UploadedFile]:
    count = len(entry["name"])
    files = []
    for index in range(count):
        row = {}
        for field in _FIELDS:
            column = entry.get(field)
            if isinstance(column, (list, tuple)) and index < len(column):
                row[field] = column[index]
        files.append(UploadedFile.from_mapping(row))
    return files
