"""Exceptions raised by the document store, allocator and reference graph."""

from __future__ import annotations


class DocgraphError(Exception):
    """Base class for all docgraph errors."""


class DocumentNotFoundError(DocgraphError, FileNotFoundError):
    """A single-document operation targeted a path that does not exist."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Document not found: {path}")


class MalformedDocumentError(DocgraphError, ValueError):
    """The frontmatter block of a document could not be parsed."""

    def __init__(self, path: str, reason: str = "") -> None:
        self.path = path
        self.reason = reason
        msg = f"Malformed frontmatter in {path}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class InvalidReferenceError(DocgraphError, ValueError):
    """Unknown relationship type or direction."""
