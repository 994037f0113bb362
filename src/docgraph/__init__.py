"""File-based document store: markdown + frontmatter files as source of truth.

Layout:
    docgraph.toml
    .workflow/
        numbering.json      # last number issued per family: {"adr": 3, "plan": 7}
        references.json     # {"references": [...], "lastUpdated": ...}
    docs/.../<family>-<NNN>-<kebab-title>.md

Documents are written by DocumentStore (backup-before-overwrite), numbered by
NumberRegistry (per-family asyncio locks, ratcheting counters) and linked by
ReferenceGraph (typed edges, cycle-safe traversal, integrity repair).
"""

from docgraph.config import DocgraphConfig, init_config, load_config
from docgraph.errors import DocgraphError, DocumentNotFoundError, InvalidReferenceError, MalformedDocumentError
from docgraph.models import ChainWalk, Direction, Document, FilenameParts, Reference, RelationType, ValidationReport
from docgraph.numbering import NumberRegistry
from docgraph.references import ReferenceGraph
from docgraph.store import DocumentStore
from docgraph.workspace import Workspace

__all__ = [
    "ChainWalk",
    "Direction",
    "DocgraphConfig",
    "DocgraphError",
    "Document",
    "DocumentNotFoundError",
    "DocumentStore",
    "FilenameParts",
    "InvalidReferenceError",
    "MalformedDocumentError",
    "NumberRegistry",
    "Reference",
    "ReferenceGraph",
    "RelationType",
    "ValidationReport",
    "Workspace",
    "init_config",
    "load_config",
]
