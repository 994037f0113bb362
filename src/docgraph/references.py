"""Typed relationships between documents, persisted in references.json.

    graph = ReferenceGraph(cfg.references_path, store)
    graph.add_relationship("docs/adrs/adr-002-x.md", "docs/adrs/adr-001-y.md", "supersedes")
    graph.get_related_documents("docs/adrs/adr-002-x.md", max_depth=2)
    graph.create_superseding_chain("docs/adrs/adr-002-x.md")

references.json layout:
    {
      "references": [
        {"from": "...", "to": "...", "type": "supersedes", "description": "..."}
      ],
      "lastUpdated": "2026-..."
    }

At most one edge is stored per (from, to, type); adding the same triple again
replaces its description. The graph may contain cycles. Traversals terminate
through visited sets; only the supersession walk reports a cycle, as a
logged warning and in ChainWalk.cycle.
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from docgraph.models import ChainWalk, Direction, Reference, RelationType, ValidationReport
from docgraph.state import CorruptStateError, quarantine, read_json, write_json

if TYPE_CHECKING:
    from pathlib import Path

    from docgraph.store import DocumentStore

logger = logging.getLogger("docgraph.references")


class ReferenceGraph:
    """Directed, typed edge list between document identifiers."""

    def __init__(self, registry_path: Path, store: DocumentStore) -> None:
        self.registry_path = registry_path
        self.store = store
        self.last_updated = datetime.now(UTC).isoformat()
        self._references: list[Reference] = []
        self._load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> None:
        try:
            raw = read_json(self.registry_path)
        except CorruptStateError as exc:
            logger.error("failed to load reference registry: %s", exc)
            quarantine(self.registry_path)
            raw = None

        if raw is None:
            self._save()
            return

        entries: list[Any] = raw.get("references", []) if isinstance(raw, dict) else []
        by_key: dict[tuple[str, str, RelationType], Reference] = {}
        for entry in entries:
            try:
                ref = Reference.from_dict(entry)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("skipping malformed reference %r: %s", entry, exc)
                continue
            by_key[ref.key] = ref
        self._references = list(by_key.values())
        if isinstance(raw, dict) and raw.get("lastUpdated"):
            self.last_updated = str(raw["lastUpdated"])

    def _save(self) -> None:
        self.last_updated = datetime.now(UTC).isoformat()
        write_json(self.registry_path, {
            "references": [r.to_dict() for r in self._references],
            "lastUpdated": self.last_updated,
        })

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_reference(self, reference: Reference) -> None:
        """Insert reference, or replace the stored edge with the same (from, to, type)."""
        for i, existing in enumerate(self._references):
            if existing.key == reference.key:
                self._references[i] = reference
                break
        else:
            self._references.append(reference)
        self._save()

    def add_relationship(
        self,
        source: str,
        target: str,
        rel_type: str | RelationType,
        description: str | None = None,
    ) -> Reference:
        ref = Reference(source=source, target=target, type=rel_type, description=description)
        self.add_reference(ref)
        return ref

    def remove_reference(
        self,
        source: str,
        target: str,
        rel_type: str | RelationType | None = None,
    ) -> int:
        """Delete edges source->target (of rel_type, or of any type). Returns count removed."""
        wanted = RelationType.parse(rel_type) if rel_type is not None else None
        kept = [
            r for r in self._references
            if not (r.source == source and r.target == target and (wanted is None or r.type == wanted))
        ]
        removed = len(self._references) - len(kept)
        if removed:
            self._references = kept
            self._save()
        return removed

    def update_document_path(self, old_path: str, new_path: str) -> int:
        """Point every edge endpoint at old_path to new_path. Returns edges touched."""
        touched = 0
        by_key: dict[tuple[str, str, RelationType], Reference] = {}
        for ref in self._references:
            if old_path in (ref.source, ref.target):
                touched += 1
                ref = Reference(
                    source=new_path if ref.source == old_path else ref.source,
                    target=new_path if ref.target == old_path else ref.target,
                    type=ref.type,
                    description=ref.description,
                )
            by_key[ref.key] = ref

        if touched:
            self._references = list(by_key.values())
            self._save()
        return touched

    def remove_document(self, doc_id: str) -> int:
        """Delete every edge that starts or ends at doc_id."""
        kept = [r for r in self._references if doc_id not in (r.source, r.target)]
        removed = len(self._references) - len(kept)
        if removed:
            self._references = kept
            self._save()
        return removed

    def clear(self) -> None:
        self._references = []
        self._save()

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def get_all_references(self) -> list[Reference]:
        return list(self._references)

    def get_references(self, doc_id: str, direction: str | Direction = Direction.BOTH) -> list[Reference]:
        direction = Direction.parse(direction)
        outgoing = direction in (Direction.FROM, Direction.BOTH)
        incoming = direction in (Direction.TO, Direction.BOTH)
        return [
            r for r in self._references
            if (outgoing and r.source == doc_id) or (incoming and r.target == doc_id)
        ]

    def get_relationships(self, doc_id: str) -> list[Reference]:
        return self.get_references(doc_id, Direction.BOTH)

    def get_references_of_type(self, rel_type: str | RelationType) -> list[Reference]:
        wanted = RelationType.parse(rel_type)
        return [r for r in self._references if r.type == wanted]

    def find_bidirectional_references(self, doc_id: str) -> dict[str, list[Reference]]:
        return {
            "incoming": self.get_references(doc_id, Direction.TO),
            "outgoing": self.get_references(doc_id, Direction.FROM),
        }

    def get_related_documents(self, doc_id: str, max_depth: int = 2) -> set[str]:
        """Documents reachable from doc_id within max_depth hops, ignoring edge direction."""
        related: set[str] = set()
        visited: set[str] = set()
        queue: deque[tuple[str, int]] = deque([(doc_id, 0)])

        while queue:
            current, depth = queue.popleft()
            if current in visited or depth >= max_depth:
                continue
            visited.add(current)

            for ref in self.get_references(current):
                neighbor = ref.target if ref.source == current else ref.source
                if neighbor not in visited:
                    related.add(neighbor)
                    queue.append((neighbor, depth + 1))

        related.discard(doc_id)
        return related

    def walk_superseding_chain(self, doc_id: str) -> ChainWalk:
        """Follow supersedes edges from doc_id, stopping at the first revisit."""
        chain = [doc_id]
        seen = {doc_id}
        current = doc_id

        while True:
            nxt = next(
                (r.target for r in self._references
                 if r.source == current and r.type == RelationType.SUPERSEDES),
                None,
            )
            if nxt is None:
                return ChainWalk(chain=chain)
            if nxt in seen:
                logger.warning(
                    "circular supersedes reference: %s -> %s (chain: %s)",
                    current, nxt, " -> ".join(chain),
                )
                return ChainWalk(chain=chain, cycle=nxt)
            chain.append(nxt)
            seen.add(nxt)
            current = nxt

    def create_superseding_chain(self, doc_id: str) -> list[str]:
        return self.walk_superseding_chain(doc_id).chain

    # ------------------------------------------------------------------
    # Integrity
    # ------------------------------------------------------------------

    def validate_references(self) -> ValidationReport:
        """Split edges by whether both endpoints exist in the document store."""
        report = ValidationReport()
        for ref in self._references:
            if self.store.exists(ref.source) and self.store.exists(ref.target):
                report.valid.append(ref)
            else:
                report.broken.append(ref)
        if report.broken:
            logger.warning("%d of %d references are broken", len(report.broken), len(self._references))
        return report

    def clean_broken_references(self) -> int:
        """Drop edges with a missing endpoint. Returns how many were removed."""
        broken = self.validate_references().broken
        if broken:
            broken_keys = {r.key for r in broken}
            self._references = [r for r in self._references if r.key not in broken_keys]
            self._save()
            logger.info("removed %d broken references", len(broken))
        return len(broken)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def export_to_markdown(self) -> str:
        if not self._references:
            return "# Cross References\n\nNo references found."

        lines = [
            "# Cross References",
            "",
            f"Last Updated: {self.last_updated}",
            "",
            "| From | To | Type | Description |",
            "| --- | --- | --- | --- |",
        ]
        for ref in self._references:
            description = _cell(ref.description) if ref.description else "-"
            lines.append(f"| {_cell(ref.source)} | {_cell(ref.target)} | {ref.type.value} | {description} |")
        return "\n".join(lines) + "\n"


def _cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")
