from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any


def read_json_object(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Invalid state file format at {path}")
    return data


def write_json_object(path: Path, payload: dict[str, Any]) -> None:
    """Write ``payload`` next to ``path`` and move it into place."""

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True)
            f.write("\n")
        tmp_path.replace(path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


class JsonFileStorage:
    """Key-value storage persisted as a flat JSON object.

    Every call re-reads the file so several client processes see each other's
    writes (last write wins). I/O and decode errors propagate.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        return {str(k): str(v) for k, v in read_json_object(self._path).items()}

    def get_item(self, key: str) -> str | None:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._load()
        items[key] = value
        write_json_object(self._path, items)

    def remove_item(self, key: str) -> None:
        items = self._load()
        if key not in items:
            return
        del items[key]
        write_json_object(self._path, items)
