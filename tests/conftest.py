"""Shared fixtures: every test gets its own project root under tmp_path."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from docgraph.config import load_config
from docgraph.numbering import NumberRegistry
from docgraph.references import ReferenceGraph
from docgraph.store import DocumentStore
from docgraph.workspace import Workspace

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def store(tmp_path: Path) -> DocumentStore:
    return DocumentStore(tmp_path)


@pytest.fixture
def registry(tmp_path: Path) -> NumberRegistry:
    return NumberRegistry(tmp_path / ".workflow" / "numbering.json")


@pytest.fixture
def graph(tmp_path: Path, store: DocumentStore) -> ReferenceGraph:
    return ReferenceGraph(tmp_path / ".workflow" / "references.json", store)


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Workspace:
    monkeypatch.setenv("DOCGRAPH_AUTHOR", "tester")
    return Workspace.from_config(load_config(tmp_path))
