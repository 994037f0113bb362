"""DocgraphConfig: project-local config for the document store.

Default layout (all relative to the project root):

    docgraph.toml              # project config (git-tracked, optional)
    .workflow/                 # state directory
        numbering.json         # family -> last issued number
        references.json        # typed edges between documents
    docs/
        architecture/adrs/     # adr-001-....md
        context/               # session-001-....md
        discussions/           # design-001-....md
        standards/
        work/                  # plan-, checklist-, refactor- documents

docgraph.toml example:

    [docgraph]
    name = "my-project"
    # state_dir = ".workflow"   # default
    # digits = 3                # zero padding of document numbers
    # extension = ".md"

    [paths]
    adrs = "docs/architecture/adrs"
    sessions = "docs/context"
    discussions = "docs/discussions"
    standards = "docs/standards"
    work = "docs/work"

    [defaults]
    author = "jane"     # falls back to $DOCGRAPH_AUTHOR, then $USER
    deciders = []
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

_CONFIG_FILENAME = "docgraph.toml"
_DEFAULT_STATE_DIR = ".workflow"
_NUMBERING_FILENAME = "numbering.json"
_REFERENCES_FILENAME = "references.json"

# family -> [paths] key
_FAMILY_ROUTES = {
    "adr": "adrs",
    "session": "sessions",
    "context": "sessions",
    "design": "discussions",
    "standards": "standards",
}
_FALLBACK_ROUTE = "work"


@dataclass
class PathsConfig:
    adrs: str = "docs/architecture/adrs"
    sessions: str = "docs/context"
    discussions: str = "docs/discussions"
    standards: str = "docs/standards"
    work: str = "docs/work"

    def as_dict(self) -> dict[str, str]:
        return {
            "adrs": self.adrs,
            "sessions": self.sessions,
            "discussions": self.discussions,
            "standards": self.standards,
            "work": self.work,
        }


@dataclass
class DefaultsConfig:
    author: str = ""
    deciders: list[str] = field(default_factory=list)


@dataclass
class DocgraphConfig:
    """Resolved configuration for a document project."""

    root: Path                      # directory that contains docgraph.toml
    name: str = ""
    state_dir: Path = field(default_factory=Path)
    digits: int = 3
    extension: str = ".md"
    paths: PathsConfig = field(default_factory=PathsConfig)
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)

    @property
    def numbering_path(self) -> Path:
        return self.state_dir / _NUMBERING_FILENAME

    @property
    def references_path(self) -> Path:
        return self.state_dir / _REFERENCES_FILENAME

    def directory_for(self, family: str) -> str:
        """Project-relative directory that holds documents of family."""
        key = _FAMILY_ROUTES.get(family, _FALLBACK_ROUTE)
        return getattr(self.paths, key)

    def ensure_dirs(self) -> None:
        """Create the state directory and every document directory."""
        self.state_dir.mkdir(parents=True, exist_ok=True)
        for rel in self.paths.as_dict().values():
            (self.root / rel).mkdir(parents=True, exist_ok=True)


def _default_author() -> str:
    return os.environ.get("DOCGRAPH_AUTHOR") or os.environ.get("USER") or "Unknown"


def load_config(root: Path | str | None = None) -> DocgraphConfig:
    """Load docgraph.toml from root (or search upward from cwd if root is None)."""
    root_path = _find_root(Path(root).resolve() if root else Path.cwd())
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    main = raw.get("docgraph", {})
    paths_section = raw.get("paths", {})
    defaults_section = raw.get("defaults", {})

    defaults = PathsConfig()
    paths = PathsConfig(**{
        key: str(paths_section.get(key, value))
        for key, value in defaults.as_dict().items()
    })

    extension = str(main.get("extension", ".md"))
    if extension and not extension.startswith("."):
        extension = "." + extension

    return DocgraphConfig(
        root=root_path,
        name=main.get("name", root_path.name),
        state_dir=root_path / main.get("state_dir", _DEFAULT_STATE_DIR),
        digits=int(main.get("digits", 3)),
        extension=extension,
        paths=paths,
        defaults=DefaultsConfig(
            author=str(defaults_section.get("author") or _default_author()),
            deciders=list(defaults_section.get("deciders", [])),
        ),
    )


def _find_root(start: Path) -> Path:
    """Walk upward from start looking for docgraph.toml."""
    for directory in (start, *start.parents):
        if (directory / _CONFIG_FILENAME).exists():
            return directory
    return start


def init_config(root: Path, name: str | None = None) -> Path:
    """Write a default docgraph.toml at root. Raises if already exists."""
    config_path = root / _CONFIG_FILENAME
    if config_path.exists():
        msg = f"docgraph.toml already exists at {config_path}"
        raise FileExistsError(msg)

    project_name = name or root.name
    content = f"""\
[docgraph]
name = "{project_name}"
# state_dir = ".workflow"   # numbering.json + references.json live here
# digits = 3                # adr-001, adr-002, ...
# extension = ".md"

[paths]
adrs = "docs/architecture/adrs"
sessions = "docs/context"
discussions = "docs/discussions"
standards = "docs/standards"
work = "docs/work"

[defaults]
# author = ""               # default: $DOCGRAPH_AUTHOR or $USER
deciders = []
"""
    config_path.write_text(content)
    return config_path
