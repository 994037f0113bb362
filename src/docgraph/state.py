"""Read and write the JSON state files under the state directory.

Each file is owned by exactly one component (numbering.json by the
allocator, references.json by the reference graph). Writes go to a sibling
tmp file under an exclusive flock and are renamed over the target, so a
reader never observes a half-written file.
"""

from __future__ import annotations

import fcntl
import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger("docgraph.state")


class CorruptStateError(ValueError):
    """A state file exists but does not contain valid JSON."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"Corrupt state file {path}: {reason}")


def file_timestamp() -> str:
    """ISO-8601 UTC timestamp safe for use in a filename (no ':' or '.')."""
    stamp = datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
    return stamp.replace(":", "-").replace(".", "-")


def read_json(path: Path) -> Any | None:
    """Return the parsed content of path, or None if it does not exist.

    Raises CorruptStateError when the file is present but unparseable.
    """
    if not path.exists():
        return None
    try:
        with path.open(encoding="utf-8") as f:
            fcntl.flock(f, fcntl.LOCK_SH)
            return json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise CorruptStateError(path, str(exc)) from exc


def write_json(path: Path, data: Any) -> None:
    """Atomically write data as indented JSON under exclusive flock."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        fcntl.flock(f, fcntl.LOCK_EX)
        json.dump(data, f, indent=2)
        f.write("\n")
    tmp.replace(path)


def quarantine(path: Path) -> Path:
    """Move an unreadable state file aside so it can be inspected later."""
    target = path.with_name(f"{path.name}.corrupt.{file_timestamp()}")
    path.replace(target)
    logger.error("moved corrupt state file %s to %s", path, target)
    return target
