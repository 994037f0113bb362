"""docgraph CLI — numbered markdown documents with a reference graph.

Commands:
    docgraph init [NAME]              create docgraph.toml + document dirs
    docgraph new FAMILY TITLE         allocate a number and write a document
    docgraph show IDENT               print a document (path, number or title)
    docgraph ls [PATTERN]             list documents
    docgraph search QUERY             regex/substring search over body, title, tags
    docgraph recent                   most recently modified documents
    docgraph next / reserve / sync    numbering registry
    docgraph link / unlink / refs     reference graph edges
    docgraph related / chain          graph traversal
    docgraph check [--fix]            validate (and prune) broken references
    docgraph mv OLD NEW               rename a document, keeping its references
    docgraph export                   references as a markdown table
    docgraph status                   project summary
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

import click

from docgraph.config import init_config, load_config
from docgraph.errors import DocgraphError
from docgraph.models import Direction, RelationType
from docgraph.workspace import Workspace

if TYPE_CHECKING:
    from collections.abc import Iterator

    from docgraph.models import Document, Reference

RELATION_TYPES = [t.value for t in RelationType]
DIRECTIONS = [d.value for d in Direction]

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_ws() -> Workspace:
    try:
        return Workspace.open()
    except Exception as exc:
        raise click.ClickException(str(exc)) from exc


@contextlib.contextmanager
def _errors() -> Iterator[None]:
    """Turn store errors into a clean CLI error (exit code 1)."""
    try:
        yield
    except (DocgraphError, FileExistsError) as exc:
        raise click.ClickException(str(exc)) from exc


@contextlib.contextmanager
def _pattern_errors(param_hint: str) -> Iterator[None]:
    """Report an unusable glob (empty, or outside the project) as a bad parameter."""
    try:
        yield
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint=param_hint) from exc


def _parse_meta(pairs: tuple[str, ...]) -> dict[str, str]:
    meta: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected KEY=VALUE, got {pair!r}", param_hint="--meta")
        meta[key.strip()] = value.strip()
    return meta


def _echo_ref(ref: Reference) -> None:
    line = f"{ref.source} --{ref.type.value}--> {ref.target}"
    if ref.description:
        line += f"  ({ref.description})"
    click.echo(line)


def _echo_doc_line(doc: Document) -> None:
    number = f"#{doc.number} " if doc.number else ""
    click.echo(f"{doc.path}  {number}{doc.title}")


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="docgraph")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def cli(verbose: bool) -> None:
    """docgraph — numbered, cross-referenced project documents."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(message)s",
    )


# ---------------------------------------------------------------------------
# docgraph init
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("name", required=False)
@click.option("--dir", "root", default=".", show_default=True, help="Project root")
def init(name: str | None, root: str) -> None:
    """Create docgraph.toml, the state dir and the document directories."""
    root_path = Path(root).resolve()
    try:
        config_path = init_config(root_path, name=name)
        click.echo(f"Created {config_path}")
    except FileExistsError:
        click.echo("docgraph.toml already exists — skipping init")

    cfg = load_config(root_path)
    cfg.ensure_dirs()
    click.echo(f"State dir : {cfg.state_dir}")
    for key, rel in cfg.paths.as_dict().items():
        click.echo(f"{key:<10}: {rel}")

    ws = Workspace.from_config(cfg)
    counters = asyncio.run(ws.sync_numbering())
    if counters:
        click.echo("Numbering: " + ", ".join(f"{k}={v}" for k, v in counters.items()))


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("family")
@click.argument("title")
@click.option("--body", default="", help="Document body")
@click.option("--body-file", type=click.File("r", encoding="utf-8"), default=None, help="Read body from file ('-' for stdin)")
@click.option("--tag", "tags", multiple=True, help="Tag (repeatable)")
@click.option("--meta", "meta_pairs", multiple=True, help="Extra metadata KEY=VALUE (repeatable)")
@click.option("--supersedes", multiple=True, help="Document this one supersedes")
@click.option("--implements", multiple=True, help="Document this one implements")
@click.option("--references", "refs", multiple=True, help="Document this one references")
@click.option("--relates-to", multiple=True, help="Related document")
def new(
    family: str,
    title: str,
    body: str,
    body_file: TextIO | None,
    tags: tuple[str, ...],
    meta_pairs: tuple[str, ...],
    supersedes: tuple[str, ...],
    implements: tuple[str, ...],
    refs: tuple[str, ...],
    relates_to: tuple[str, ...],
) -> None:
    """Create a new numbered document.

    \b
    docgraph new adr "Use Postgres" --tag storage
    docgraph new adr "Use SQLite" --supersedes docs/architecture/adrs/adr-001-use-postgres.md
    """
    ws = _load_ws()
    metadata: dict[str, object] = dict(_parse_meta(meta_pairs))
    if tags:
        metadata["tags"] = list(tags)
    if body_file is not None:
        body = body_file.read()

    relations = [
        *((RelationType.SUPERSEDES, p) for p in supersedes),
        *((RelationType.IMPLEMENTS, p) for p in implements),
        *((RelationType.REFERENCES, p) for p in refs),
        *((RelationType.RELATES_TO, p) for p in relates_to),
    ]
    with _errors():
        doc = asyncio.run(ws.create_document(family, title, body, metadata, relations))
    click.echo(doc.path)


@cli.command()
@click.argument("identifier")
@click.option("--family", "-f", default=None, help="Restrict number/title lookup to one family")
def show(identifier: str, family: str | None) -> None:
    """Print a document, found by path, number or title."""
    ws = _load_ws()
    doc = ws.find_document(identifier, family)
    if doc is None:
        raise click.ClickException(f"Document not found: {identifier}")
    click.echo(f"# {doc.path}")
    for key, value in doc.metadata.items():
        click.echo(f"{key}: {value}")
    click.echo("")
    click.echo(doc.content)


@cli.command("ls")
@click.argument("pattern", required=False)
@click.option("--family", "-f", default=None, help="Only documents of this family")
def ls_cmd(pattern: str | None, family: str | None) -> None:
    """List documents (backups excluded)."""
    ws = _load_ws()
    with _pattern_errors("PATTERN"):
        paths = ws.store.list(ws.document_pattern(family) if pattern is None else pattern)
    for path in paths:
        click.echo(path)


@cli.command()
@click.argument("query")
@click.option("--pattern", "-p", default=None, help="Glob of files to search")
def search(query: str, pattern: str | None) -> None:
    """Search bodies, titles and tags (case-insensitive)."""
    ws = _load_ws()
    with _pattern_errors("--pattern"):
        results = ws.store.search(ws.document_pattern() if pattern is None else pattern, query)
    for doc in results:
        _echo_doc_line(doc)
    if not results:
        click.echo("No matches.")


@cli.command()
@click.option("--pattern", "-p", default=None, help="Glob of files to consider")
@click.option("--limit", "-l", default=10, show_default=True)
def recent(pattern: str | None, limit: int) -> None:
    """Most recently modified documents."""
    ws = _load_ws()
    with _pattern_errors("--pattern"):
        docs = ws.store.get_recent(ws.document_pattern() if pattern is None else pattern, limit)
    for doc in docs:
        _echo_doc_line(doc)


@cli.command("rm")
@click.argument("path")
@click.option("--keep-refs", is_flag=True, help="Leave references to the document in place")
def rm_cmd(path: str, keep_refs: bool) -> None:
    """Delete a document and (by default) its references."""
    ws = _load_ws()
    with _errors():
        pruned = ws.delete_document(path, prune_references=not keep_refs)
    click.echo(f"Deleted {path}" + (f" ({pruned} references removed)" if pruned else ""))


@cli.command()
@click.argument("path")
@click.argument("pairs", nargs=-1, required=True)
def meta(path: str, pairs: tuple[str, ...]) -> None:
    """Update metadata fields: docgraph meta PATH status=accepted."""
    ws = _load_ws()
    with _errors():
        ws.store.update_metadata(path, _parse_meta(pairs))
    click.echo(f"Updated {path}")


@cli.command()
@click.argument("old_path")
@click.argument("new_path")
def mv(old_path: str, new_path: str) -> None:
    """Rename a document and rewrite references that point at it."""
    ws = _load_ws()
    with _errors():
        moved = ws.move_document(old_path, new_path)
    click.echo(f"Moved {old_path} -> {moved}")


# ---------------------------------------------------------------------------
# Numbering
# ---------------------------------------------------------------------------


@cli.command("next")
@click.argument("family")
def next_cmd(family: str) -> None:
    """Allocate and print the next number for FAMILY."""
    ws = _load_ws()
    number = asyncio.run(ws.numbering.get_next_number(family))
    click.echo(ws.numbering.format_number(number))


@cli.command()
@click.argument("family")
@click.argument("number", type=click.IntRange(min=1))
def reserve(family: str, number: int) -> None:
    """Raise FAMILY's counter to NUMBER (never lowers it)."""
    ws = _load_ws()
    asyncio.run(ws.numbering.reserve_number(family, number))
    click.echo(f"{family}: {ws.numbering.get_current_number(family)}")


@cli.command()
@click.argument("family", required=False)
def sync(family: str | None) -> None:
    """Reconcile counters with the numbered files on disk."""
    ws = _load_ws()
    counters = asyncio.run(ws.sync_numbering(family))
    for name, value in counters.items():
        click.echo(f"{name}: {value}")
    if not counters:
        click.echo("No numbered documents found.")


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("source")
@click.argument("target")
@click.option("--type", "rel_type", default="references", show_default=True, type=click.Choice(RELATION_TYPES))
@click.option("--description", "-d", default=None)
def link(source: str, target: str, rel_type: str, description: str | None) -> None:
    """Record SOURCE --type--> TARGET (replaces the description if it exists)."""
    ws = _load_ws()
    ref = ws.references.add_relationship(source, target, rel_type, description)
    _echo_ref(ref)


@cli.command()
@click.argument("source")
@click.argument("target")
@click.option("--type", "rel_type", default=None, type=click.Choice(RELATION_TYPES), help="Only this type (default: all)")
def unlink(source: str, target: str, rel_type: str | None) -> None:
    """Remove edges from SOURCE to TARGET."""
    ws = _load_ws()
    removed = ws.references.remove_reference(source, target, rel_type)
    click.echo(f"Removed {removed} reference(s)")


@cli.command()
@click.argument("doc_id")
@click.option("--direction", default="both", show_default=True, type=click.Choice(DIRECTIONS))
def refs(doc_id: str, direction: str) -> None:
    """Edges touching DOC_ID."""
    ws = _load_ws()
    found = ws.references.get_references(doc_id, direction)
    for ref in found:
        _echo_ref(ref)
    if not found:
        click.echo("No references.")


@cli.command()
@click.argument("doc_id")
@click.option("--depth", default=2, show_default=True, type=click.IntRange(min=0))
def related(doc_id: str, depth: int) -> None:
    """Documents within DEPTH hops of DOC_ID (any edge type or direction)."""
    ws = _load_ws()
    for path in sorted(ws.references.get_related_documents(doc_id, depth)):
        click.echo(path)


@cli.command()
@click.argument("doc_id")
def chain(doc_id: str) -> None:
    """Follow supersedes edges from DOC_ID."""
    ws = _load_ws()
    walk = ws.references.walk_superseding_chain(doc_id)
    click.echo(" -> ".join(walk.chain))
    if walk.has_cycle:
        click.echo(f"warning: cycle back to {walk.cycle}", err=True)


@cli.command()
@click.option("--fix", is_flag=True, help="Remove broken references")
def check(fix: bool) -> None:
    """Validate that every reference endpoint exists."""
    ws = _load_ws()
    report = ws.references.validate_references()
    click.echo(f"Valid: {len(report.valid)}  Broken: {len(report.broken)}")
    for ref in report.broken:
        _echo_ref(ref)
    if fix and report.broken:
        removed = ws.references.clean_broken_references()
        click.echo(f"Removed {removed} broken reference(s)")
    elif report.broken:
        raise SystemExit(1)


@cli.command()
@click.option("--output", "-o", type=click.Path(dir_okay=False, writable=True), default=None)
def export(output: str | None) -> None:
    """Render all references as a markdown table."""
    ws = _load_ws()
    text = ws.references.export_to_markdown()
    if output:
        Path(output).write_text(text if text.endswith("\n") else text + "\n", encoding="utf-8")
        click.echo(f"Wrote {output}")
    else:
        click.echo(text)


# ---------------------------------------------------------------------------
# docgraph status
# ---------------------------------------------------------------------------


@cli.command()
def status() -> None:
    """Show document counts, numbering counters and reference health."""
    from rich.console import Console
    from rich.table import Table

    ws = _load_ws()
    cfg = ws.config
    console = Console()

    table = Table(title=f"docgraph — {cfg.name}", show_header=True, header_style="bold")
    table.add_column("Metric", style="dim", no_wrap=True)
    table.add_column("Value", justify="right")

    table.add_row("Root", str(cfg.root))
    table.add_row("State dir", str(cfg.state_dir))
    table.add_row("", "")

    for key, rel in cfg.paths.as_dict().items():
        count = len(ws.store.list(f"{rel}/*{cfg.extension}"))
        table.add_row(f"Documents ({key})", str(count))
    table.add_row("", "")

    for family, value in sorted(ws.numbering.get_registry().items()):
        table.add_row(f"Next {family}", ws.numbering.format_number(value + 1))

    report = ws.references.validate_references()
    table.add_row("References", str(len(report.valid) + len(report.broken)))
    if report.broken:
        table.add_row("[yellow]Broken references[/yellow]", f"[yellow]{len(report.broken)}[/yellow]")

    console.print(table)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
