"""Tests for DocumentStore: frontmatter I/O, backups, listing and search."""

from __future__ import annotations

import os
import time

import pytest
import yaml

from docgraph.errors import DocumentNotFoundError, MalformedDocumentError
from docgraph.models import Document
from docgraph.store import DocumentStore, is_backup


def _doc(path: str, title: str, body: str = "", **meta: object) -> Document:
    return Document(path=path, content=body, metadata={"title": title, "number": "001", "date": "2026-01-05", **meta})


class TestReadWrite:
    def test_round_trip_preserves_body_and_metadata(self, store: DocumentStore):
        store.write("docs/adr-001-x.md", _doc("docs/adr-001-x.md", "Use X", "We use X.", tags=["infra", "db"]))

        doc = store.read("docs/adr-001-x.md")

        assert doc.path == "docs/adr-001-x.md"
        assert doc.content == "We use X."
        assert doc.title == "Use X"
        assert doc.metadata["number"] == "001"
        assert doc.metadata["date"] == "2026-01-05"
        assert doc.tags == ["infra", "db"]

    def test_file_layout_is_frontmatter_blank_line_body(self, store: DocumentStore, tmp_path):
        store.write("a.md", _doc("a.md", "A", "body"))

        text = (tmp_path / "a.md").read_text(encoding="utf-8")

        assert text.startswith("---\n")
        assert "\n---\n\nbody" in text

    def test_write_creates_parent_directories(self, store: DocumentStore, tmp_path):
        store.write("deep/nested/dir/doc.md", _doc("deep/nested/dir/doc.md", "Deep"))
        assert (tmp_path / "deep" / "nested" / "dir" / "doc.md").is_file()

    def test_read_missing_raises_not_found(self, store: DocumentStore):
        with pytest.raises(DocumentNotFoundError):
            store.read("nope.md")

    def test_not_found_is_a_file_not_found_error(self, store: DocumentStore):
        with pytest.raises(FileNotFoundError):
            store.read("nope.md")

    def test_read_malformed_frontmatter_raises(self, store: DocumentStore, tmp_path):
        (tmp_path / "bad.md").write_text("---\ntitle: [unclosed\n---\n\nbody\n", encoding="utf-8")

        with pytest.raises(MalformedDocumentError) as exc_info:
            store.read("bad.md")
        assert exc_info.value.path == "bad.md"

    def test_file_without_frontmatter_reads_as_body(self, store: DocumentStore, tmp_path):
        (tmp_path / "plain.md").write_text("just text\n", encoding="utf-8")

        doc = store.read("plain.md")

        assert doc.metadata == {}
        assert doc.content == "just text"

    def test_exists(self, store: DocumentStore):
        assert store.exists("a.md") is False
        store.write("a.md", _doc("a.md", "A"))
        assert store.exists("a.md") is True


class TestBackups:
    def test_overwrite_renames_previous_version_to_backup(self, store: DocumentStore, tmp_path):
        store.write("a.md", _doc("a.md", "First", "v1"))
        store.write("a.md", _doc("a.md", "Second", "v2"))

        backups = [p for p in tmp_path.iterdir() if is_backup(p)]
        assert len(backups) == 1
        assert backups[0].name.startswith("a.md.backup.")
        assert "v1" in backups[0].read_text(encoding="utf-8")
        assert store.read("a.md").content == "v2"

    def test_backup_timestamp_has_no_colons_or_dots(self, store: DocumentStore):
        store.write("a.md", _doc("a.md", "A"))

        backup = store.create_backup("a.md")

        stamp = backup.split(".backup.", 1)[1]
        assert ":" not in stamp
        assert "." not in stamp

    def test_rapid_overwrites_never_lose_a_version(self, store: DocumentStore, tmp_path):
        for i in range(5):
            store.write("a.md", _doc("a.md", f"v{i}", f"body {i}"))

        backups = [p for p in tmp_path.iterdir() if is_backup(p)]
        assert len(backups) == 4

    def test_update_metadata_merges_and_backs_up(self, store: DocumentStore, tmp_path):
        store.write("a.md", _doc("a.md", "A", "body", status="proposed"))

        store.update_metadata("a.md", {"status": "accepted", "deciders": ["ann"]})

        doc = store.read("a.md")
        assert doc.metadata["status"] == "accepted"
        assert doc.metadata["deciders"] == ["ann"]
        assert doc.title == "A"
        assert any(is_backup(p) for p in tmp_path.iterdir())

    def test_unserializable_metadata_leaves_existing_file_in_place(self, store: DocumentStore, tmp_path):
        store.write("a.md", _doc("a.md", "A", "v1"))

        with pytest.raises(yaml.YAMLError):
            store.write("a.md", _doc("a.md", "A", "v2", p=object()))

        assert store.read("a.md").content == "v1"
        assert not any(is_backup(p) for p in tmp_path.iterdir())


class TestDelete:
    def test_delete_removes_file(self, store: DocumentStore):
        store.write("a.md", _doc("a.md", "A"))
        store.delete("a.md")
        assert not store.exists("a.md")

    def test_delete_missing_raises(self, store: DocumentStore):
        with pytest.raises(DocumentNotFoundError):
            store.delete("a.md")


class TestListing:
    def test_list_matches_glob_and_excludes_backups(self, store: DocumentStore):
        store.write("docs/a.md", _doc("docs/a.md", "A"))
        store.write("docs/a.md", _doc("docs/a.md", "A2"))
        store.write("docs/sub/b.md", _doc("docs/sub/b.md", "B"))
        store.write("docs/c.txt", _doc("docs/c.txt", "C"))

        assert store.list("docs/*.md") == ["docs/a.md"]
        assert store.list("docs/**/*.md") == ["docs/a.md", "docs/sub/b.md"]

    def test_list_is_restartable(self, store: DocumentStore):
        store.write("a.md", _doc("a.md", "A"))
        assert store.list("*.md") == store.list("*.md")

    def test_list_documents_skips_malformed(self, store: DocumentStore, tmp_path, caplog):
        store.write("good.md", _doc("good.md", "Good"))
        (tmp_path / "bad.md").write_text("---\ntitle: [oops\n---\nx\n", encoding="utf-8")

        docs = store.list_documents("*.md")

        assert [d.path for d in docs] == ["good.md"]
        assert "bad.md" in caplog.text

    def test_list_directories(self, store: DocumentStore, tmp_path):
        (tmp_path / "docs" / "one").mkdir(parents=True)
        (tmp_path / "docs" / "two").mkdir()
        (tmp_path / "docs" / "file.md").write_text("x")

        assert store.list_directories("docs") == ["docs/one", "docs/two"]
        assert store.list_directories("missing") == []


class TestSearch:
    @pytest.fixture(autouse=True)
    def _docs(self, store: DocumentStore):
        store.write("a.md", _doc("a.md", "Database choice", "We pick Postgres."))
        store.write("b.md", _doc("b.md", "Logging", "Structured logs.", tags=["Observability"]))
        store.write("c.md", _doc("c.md", "Caching", "Redis in front of the API."))

    def test_matches_body_case_insensitively(self, store: DocumentStore):
        assert [d.path for d in store.search("*.md", "postgres")] == ["a.md"]

    def test_matches_title(self, store: DocumentStore):
        assert [d.path for d in store.search("*.md", "CACHING")] == ["c.md"]

    def test_matches_tags(self, store: DocumentStore):
        assert [d.path for d in store.search("*.md", "observ")] == ["b.md"]

    def test_regex_query(self, store: DocumentStore):
        assert [d.path for d in store.search("*.md", "redis|postgres")] == ["a.md", "c.md"]

    def test_invalid_regex_falls_back_to_substring(self, store: DocumentStore):
        store.write("d.md", _doc("d.md", "Odd", "value (unbalanced"))
        assert [d.path for d in store.search("*.md", "(unbalanced")] == ["d.md"]


class TestRecent:
    def test_sorted_by_mtime_descending_and_limited(self, store: DocumentStore, tmp_path):
        for i, name in enumerate(["old.md", "mid.md", "new.md"]):
            store.write(name, _doc(name, name))
            stamp = time.time() - 100 + i * 10
            os.utime(tmp_path / name, (stamp, stamp))

        recent = store.get_recent("*.md", limit=2)

        assert [d.path for d in recent] == ["new.md", "mid.md"]
