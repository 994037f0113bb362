"""Data models for the document store and reference graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from docgraph.errors import InvalidReferenceError


class RelationType(StrEnum):
    REFERENCES = "references"
    SUPERSEDES = "supersedes"
    IMPLEMENTS = "implements"
    RELATES_TO = "relates-to"

    @classmethod
    def parse(cls, value: str | RelationType) -> RelationType:
        """Accept enum members, canonical names and the legacy ``relates_to``."""
        if isinstance(value, RelationType):
            return value
        normalized = str(value).strip().lower().replace("_", "-")
        try:
            return cls(normalized)
        except ValueError:
            msg = f"Unknown relationship type: {value!r}"
            raise InvalidReferenceError(msg) from None


class Direction(StrEnum):
    FROM = "from"      # edges where the document is the source
    TO = "to"          # edges where the document is the target
    BOTH = "both"

    @classmethod
    def parse(cls, value: str | Direction) -> Direction:
        if isinstance(value, Direction):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            msg = f"Unknown direction: {value!r} (expected from, to or both)"
            raise InvalidReferenceError(msg) from None


@dataclass
class Document:
    """A document: relative path, body text and frontmatter metadata."""

    path: str
    content: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def title(self) -> str:
        return str(self.metadata.get("title", ""))

    @property
    def number(self) -> str:
        return str(self.metadata.get("number", ""))

    @property
    def tags(self) -> list[str]:
        tags = self.metadata.get("tags") or []
        if isinstance(tags, str):
            return [tags]
        return [str(t) for t in tags]


@dataclass
class Reference:
    """A typed, directed edge between two document identifiers."""

    source: str
    target: str
    type: RelationType
    description: str | None = None

    def __post_init__(self) -> None:
        self.type = RelationType.parse(self.type)

    @property
    def key(self) -> tuple[str, str, RelationType]:
        return (self.source, self.target, self.type)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Reference:
        return cls(
            source=d["from"],
            target=d["to"],
            type=d["type"],
            description=d.get("description"),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "from": self.source,
            "to": self.target,
            "type": self.type.value,
        }
        if self.description is not None:
            d["description"] = self.description
        return d


@dataclass(frozen=True)
class FilenameParts:
    """Components recovered from ``<family>-<number>-<title>.<ext>``."""

    family: str
    number: str
    title: str


@dataclass
class ValidationReport:
    valid: list[Reference] = field(default_factory=list)
    broken: list[Reference] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.broken


@dataclass
class ChainWalk:
    """Result of following ``supersedes`` edges.

    ``cycle`` names the document whose revisit stopped the walk, or None
    when the chain ended naturally.
    """

    chain: list[str]
    cycle: str | None = None

    @property
    def has_cycle(self) -> bool:
        return self.cycle is not None
