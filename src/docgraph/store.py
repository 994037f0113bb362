"""Read and write markdown documents with YAML frontmatter.

DocumentStore is the public API:
    store = DocumentStore("/path/to/project")
    store.write("docs/work/plan-001-parser.md", Document(path=..., content="...", metadata={...}))
    doc = store.read("docs/work/plan-001-parser.md")
    for path in store.list("docs/**/*.md"): ...

File layout (UTF-8):
    ---
    title: Improve Parser
    number: '001'
    tags: [parser]
    ---

    body text...

Overwrites never destroy content: an existing file is renamed to
<path>.backup.<timestamp> before the new version is written. Backups are
excluded from list/search/get_recent.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

import frontmatter
import yaml

from docgraph.errors import DocumentNotFoundError, MalformedDocumentError
from docgraph.models import Document
from docgraph.state import file_timestamp

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger("docgraph.store")

_BACKUP_MARKER = ".backup."


def is_backup(path: Path | str) -> bool:
    return _BACKUP_MARKER in Path(path).name


class DocumentStore:
    """Frontmatter markdown files rooted at base_path."""

    def __init__(self, base_path: Path | str) -> None:
        self.base_path = Path(base_path).resolve()

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def _full_path(self, path: str | Path) -> Path:
        p = Path(path)
        return p if p.is_absolute() else self.base_path / p

    def _relative(self, full: Path) -> str:
        try:
            return full.relative_to(self.base_path).as_posix()
        except ValueError:
            return full.as_posix()

    def _relative_pattern(self, pattern: str) -> str:
        p = Path(pattern)
        if not p.is_absolute():
            return pattern
        try:
            return p.relative_to(self.base_path).as_posix()
        except ValueError:
            msg = f"Pattern is outside the store: {pattern}"
            raise ValueError(msg) from None

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def read(self, path: str) -> Document:
        """Load one document. Raises DocumentNotFoundError / MalformedDocumentError."""
        full = self._full_path(path)
        if not full.is_file():
            raise DocumentNotFoundError(str(path))

        try:
            post = frontmatter.loads(full.read_text(encoding="utf-8"))
        except (yaml.YAMLError, TypeError, ValueError) as exc:
            raise MalformedDocumentError(str(path), str(exc)) from exc

        return Document(
            path=self._relative(full),
            content=post.content,
            metadata=dict(post.metadata),
        )

    def exists(self, path: str) -> bool:
        try:
            return self._full_path(path).exists()
        except (OSError, ValueError):
            return False

    def get_metadata(self, path: str) -> dict[str, Any]:
        return self.read(path).metadata

    def list(self, pattern: str) -> list[str]:
        """Relative paths of files matching a glob pattern, backups excluded."""
        rel_pattern = self._relative_pattern(pattern)
        return sorted(
            self._relative(p)
            for p in self.base_path.glob(rel_pattern)
            if p.is_file() and not is_backup(p)
        )

    def iter_documents(self, pattern: str) -> Iterator[Document]:
        """Yield every readable document matching pattern; bad files are skipped."""
        for path in self.list(pattern):
            try:
                yield self.read(path)
            except (MalformedDocumentError, OSError) as exc:
                logger.warning("skipping %s: %s", path, exc)

    def list_documents(self, pattern: str) -> list[Document]:
        return list(self.iter_documents(pattern))

    def list_directories(self, path: str) -> list[str]:
        full = self._full_path(path)
        if not full.is_dir():
            return []
        return sorted(self._relative(d) for d in full.iterdir() if d.is_dir())

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def search(self, pattern: str, query: str) -> list[Document]:
        """Documents whose body, title or tags match query (case-insensitive).

        query is used as a regular expression; an invalid expression is
        matched as a literal substring instead.
        """
        try:
            rx = re.compile(query, re.IGNORECASE)
        except re.error:
            rx = re.compile(re.escape(query), re.IGNORECASE)

        results: list[Document] = []
        for doc in self.iter_documents(pattern):
            if rx.search(doc.content) or (doc.title and rx.search(doc.title)):
                results.append(doc)
            elif any(rx.search(tag) for tag in doc.tags):
                results.append(doc)
        return results

    def get_recent(self, pattern: str, limit: int = 10) -> list[Document]:
        """Up to limit documents matching pattern, most recently modified first."""
        dated: list[tuple[float, Document]] = []
        for path in self.list(pattern):
            try:
                mtime = self._full_path(path).stat().st_mtime
                dated.append((mtime, self.read(path)))
            except (MalformedDocumentError, OSError) as exc:
                logger.warning("skipping %s: %s", path, exc)

        dated.sort(key=lambda item: item[0], reverse=True)
        return [doc for _, doc in dated[: max(0, limit)]]

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def write(self, path: str, document: Document) -> None:
        """Serialize document to path, backing up any existing file first.

        Serialization happens before the backup, so metadata YAML cannot
        represent leaves the existing file in place.
        """
        post = frontmatter.Post(document.content)
        post.metadata.update(document.metadata)
        text = frontmatter.dumps(post, sort_keys=False)

        full = self._full_path(path)
        full.parent.mkdir(parents=True, exist_ok=True)
        if full.exists():
            self.create_backup(path)
        full.write_text(text + "\n", encoding="utf-8")
        logger.debug("wrote %s", self._relative(full))

    def create_backup(self, path: str) -> str:
        """Rename path to <path>.backup.<timestamp>. Returns the backup path."""
        full = self._full_path(path)
        if not full.exists():
            raise DocumentNotFoundError(str(path))

        backup = full.with_name(f"{full.name}{_BACKUP_MARKER}{file_timestamp()}")
        n = 1
        while backup.exists():
            backup = full.with_name(f"{full.name}{_BACKUP_MARKER}{file_timestamp()}-{n}")
            n += 1
        full.rename(backup)
        return self._relative(backup)

    def update_metadata(self, path: str, updates: dict[str, Any]) -> Document:
        """Shallow-merge updates into a document's metadata and rewrite it."""
        doc = self.read(path)
        doc.metadata = {**doc.metadata, **updates}
        self.write(path, doc)
        return doc

    def delete(self, path: str) -> None:
        full = self._full_path(path)
        if not full.is_file():
            raise DocumentNotFoundError(str(path))
        full.unlink()

    def move(self, old_path: str, new_path: str) -> str:
        """Rename a document. Refuses to overwrite an existing target."""
        src = self._full_path(old_path)
        if not src.is_file():
            raise DocumentNotFoundError(str(old_path))
        dst = self._full_path(new_path)
        if dst.exists():
            msg = f"Document already exists: {new_path}"
            raise FileExistsError(msg)
        dst.parent.mkdir(parents=True, exist_ok=True)
        src.rename(dst)
        return self._relative(dst)

    def ensure_directory(self, path: str) -> Path:
        full = self._full_path(path)
        full.mkdir(parents=True, exist_ok=True)
        return full
