"""One logical document store per project.

A Workspace is built once (at CLI start or by the embedding application)
and handed to every caller. It owns the single DocumentStore,
NumberRegistry and ReferenceGraph for a project root, so two callers never
hold separate counters or edge lists for the same state files.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from docgraph.config import DocgraphConfig, load_config
from docgraph.errors import DocumentNotFoundError, MalformedDocumentError
from docgraph.models import Document, RelationType
from docgraph.numbering import NumberRegistry, extract_components
from docgraph.references import ReferenceGraph
from docgraph.store import DocumentStore, is_backup

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

logger = logging.getLogger("docgraph.workspace")

# (type, target) or (type, target, description)
Relation = tuple[str | RelationType, str] | tuple[str | RelationType, str, str | None]


@dataclass
class Workspace:
    config: DocgraphConfig
    store: DocumentStore
    numbering: NumberRegistry
    references: ReferenceGraph

    @classmethod
    def open(cls, root: Path | str | None = None) -> Workspace:
        cfg = load_config(root)
        return cls.from_config(cfg)

    @classmethod
    def from_config(cls, cfg: DocgraphConfig) -> Workspace:
        cfg.state_dir.mkdir(parents=True, exist_ok=True)
        store = DocumentStore(cfg.root)
        return cls(
            config=cfg,
            store=store,
            numbering=NumberRegistry(cfg.numbering_path, digits=cfg.digits),
            references=ReferenceGraph(cfg.references_path, store),
        )

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def document_pattern(self, family: str | None = None) -> str:
        if family is None:
            return f"**/*{self.config.extension}"
        return f"{self.config.directory_for(family)}/*{self.config.extension}"

    async def create_document(
        self,
        family: str,
        title: str,
        content: str = "",
        metadata: dict[str, Any] | None = None,
        relations: Iterable[Relation] = (),
    ) -> Document:
        """Allocate a number, write the document, then record its relations."""
        number = await self.numbering.get_next_number(family)
        padded = self.numbering.format_number(number)
        filename = self.numbering.generate_filename(family, number, title, self.config.extension)
        path = f"{self.config.directory_for(family)}/{filename}"

        meta: dict[str, Any] = {
            "title": title,
            "number": padded,
            "date": datetime.now(UTC).date().isoformat(),
            "author": self.config.defaults.author,
        }
        meta.update(metadata or {})
        meta["title"] = title
        meta["number"] = padded

        doc = Document(path=path, content=content, metadata=meta)
        self.store.write(path, doc)
        logger.info("created %s", path)

        for relation in relations:
            rel_type, target, *rest = relation
            self.references.add_relationship(path, target, rel_type, rest[0] if rest else None)

        return doc

    # ------------------------------------------------------------------
    # Numbering reconciliation
    # ------------------------------------------------------------------

    def _numbered_files(self) -> list[str]:
        """Filenames found in the configured document directories, backups excluded."""
        names: list[str] = []
        for rel in sorted(set(self.config.paths.as_dict().values())):
            directory = self.config.root / rel
            if not directory.is_dir():
                continue
            names.extend(
                entry.name for entry in directory.iterdir()
                if entry.is_file() and not is_backup(entry)
            )
        return sorted(names)

    async def sync_numbering(self, family: str | None = None) -> dict[str, int]:
        """Raise each family's counter to the highest number present on disk.

        Every file named "<family>-..." is a candidate for that family; one
        that does not follow the filename grammar still counts through its
        first run of digits.
        """
        names = self._numbered_files()
        if family:
            families = [family]
        else:
            found = {parts.family for parts in map(extract_components, names) if parts is not None}
            families = sorted(found | set(self.numbering.get_registry()))
        result: dict[str, int] = {}
        for name in families:
            candidates = [n for n in names if n.startswith(f"{name}-")]
            result[name] = await self.numbering.scan_and_update(name, candidates)
        return result

    # ------------------------------------------------------------------
    # Lookup / maintenance
    # ------------------------------------------------------------------

    def find_document(self, identifier: str, family: str | None = None) -> Document | None:
        """Resolve identifier as a path, else by number or title within family."""
        try:
            return self.store.read(identifier)
        except DocumentNotFoundError:
            pass
        except MalformedDocumentError as exc:
            logger.warning("cannot read %s: %s", identifier, exc)
            return None

        wanted = identifier.strip().lower()
        for doc in self.store.iter_documents(self.document_pattern(family)):
            number = doc.number
            if number and (number == identifier or (number.isdigit() and identifier.isdigit()
                                                    and int(number) == int(identifier))):
                return doc
            if doc.title.lower() == wanted:
                return doc
        return None

    def move_document(self, old_path: str, new_path: str) -> str:
        """Rename a document and repoint the reference graph at its new path."""
        moved = self.store.move(old_path, new_path)
        touched = self.references.update_document_path(old_path, moved)
        logger.info("moved %s -> %s (%d references updated)", old_path, moved, touched)
        return moved

    def delete_document(self, path: str, *, prune_references: bool = True) -> int:
        """Delete a document; returns the number of references pruned with it."""
        self.store.delete(path)
        if not prune_references:
            return 0
        return self.references.remove_document(path)
