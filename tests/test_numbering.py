"""Tests for NumberRegistry: allocation, ratcheting, filename grammar."""

from __future__ import annotations

import asyncio
import json

import pytest

from docgraph.models import FilenameParts
from docgraph.numbering import NumberRegistry, extract_components, format_number, generate_filename, parse_number


class TestAllocation:
    def test_sequential_numbers_start_at_one_without_gaps(self, registry: NumberRegistry):
        async def run() -> list[int]:
            return [await registry.get_next_number("adr") for _ in range(5)]

        assert asyncio.run(run()) == [1, 2, 3, 4, 5]

    def test_families_are_independent(self, registry: NumberRegistry):
        async def run() -> tuple[int, int, int]:
            a1 = await registry.get_next_number("adr")
            p1 = await registry.get_next_number("plan")
            a2 = await registry.get_next_number("adr")
            return a1, p1, a2

        assert asyncio.run(run()) == (1, 1, 2)

    def test_concurrent_callers_get_distinct_contiguous_numbers(self, registry: NumberRegistry):
        async def run() -> list[int]:
            return await asyncio.gather(*(registry.get_next_number("adr") for _ in range(20)))

        numbers = asyncio.run(run())
        assert sorted(numbers) == list(range(1, 21))

    def test_concurrent_mixed_families(self, registry: NumberRegistry):
        async def run() -> list[int]:
            calls = [registry.get_next_number("adr" if i % 2 else "plan") for i in range(10)]
            return await asyncio.gather(*calls)

        asyncio.run(run())
        assert registry.get_registry() == {"adr": 5, "plan": 5}

    def test_counter_is_persisted_and_survives_restart(self, registry: NumberRegistry):
        asyncio.run(registry.get_next_number("adr"))
        asyncio.run(registry.get_next_number("adr"))

        reopened = NumberRegistry(registry.registry_path)

        assert json.loads(registry.registry_path.read_text()) == {"adr": 2}
        assert asyncio.run(reopened.get_next_number("adr")) == 3

    def test_empty_registry_file_is_created_on_first_use(self, registry: NumberRegistry):
        assert json.loads(registry.registry_path.read_text()) == {}


class TestReserve:
    def test_reserve_above_counter_ratchets_up(self, registry: NumberRegistry):
        async def run() -> int:
            await registry.get_next_number("adr")
            await registry.reserve_number("adr", 10)
            return await registry.get_next_number("adr")

        assert asyncio.run(run()) == 11

    def test_reserve_below_counter_is_noop(self, registry: NumberRegistry):
        async def run() -> int:
            for _ in range(5):
                await registry.get_next_number("adr")
            await registry.reserve_number("adr", 3)
            return await registry.get_next_number("adr")

        assert asyncio.run(run()) == 6

    def test_reserve_racing_allocation_never_duplicates(self, registry: NumberRegistry):
        async def run() -> list[int]:
            calls = [registry.get_next_number("adr") for _ in range(5)]
            reservation = registry.reserve_number("adr", 3)
            results = await asyncio.gather(*calls[:2], reservation, *calls[2:])
            return [r for r in results if r is not None]

        numbers = asyncio.run(run())
        assert len(set(numbers)) == len(numbers) == 5
        assert numbers == sorted(numbers)

    def test_reset_single_family(self, registry: NumberRegistry):
        async def run() -> None:
            await registry.get_next_number("adr")
            await registry.get_next_number("plan")
            await registry.reset("adr")

        asyncio.run(run())
        assert registry.get_registry() == {"plan": 1}

    def test_reset_all(self, registry: NumberRegistry):
        async def run() -> None:
            await registry.get_next_number("adr")
            await registry.get_next_number("plan")
            await registry.reset()

        asyncio.run(run())
        assert registry.get_registry() == {}
        assert registry.get_current_number("adr") == 0


class TestScanAndUpdate:
    def test_raises_counter_to_highest_file_number(self, registry: NumberRegistry):
        files = ["adr-001-a.md", "adr-017-b.md", "adr-004-c.md"]

        assert asyncio.run(registry.scan_and_update("adr", files)) == 17
        assert asyncio.run(registry.get_next_number("adr")) == 18

    def test_never_lowers_counter(self, registry: NumberRegistry):
        asyncio.run(registry.reserve_number("adr", 50))

        assert asyncio.run(registry.scan_and_update("adr", ["adr-002-a.md"])) == 50

    def test_ignores_other_families(self, registry: NumberRegistry):
        files = ["adr-002-a.md", "plan-099-b.md"]

        assert asyncio.run(registry.scan_and_update("adr", files)) == 2

    def test_falls_back_to_embedded_digits(self, registry: NumberRegistry):
        assert asyncio.run(registry.scan_and_update("adr", ["ADR_0042 Legacy.md"])) == 42

    def test_no_numbers_leaves_registry_untouched(self, registry: NumberRegistry):
        assert asyncio.run(registry.scan_and_update("adr", ["readme.md"])) == 0
        assert registry.get_registry() == {}


class TestCorruptRegistry:
    def test_corrupt_file_is_moved_aside(self, tmp_path, caplog):
        path = tmp_path / "numbering.json"
        path.write_text("{not json")

        reg = NumberRegistry(path)

        assert reg.get_registry() == {}
        assert list(tmp_path.glob("numbering.json.corrupt.*"))
        assert "failed to load numbering registry" in caplog.text

    def test_non_integer_counters_are_dropped(self, tmp_path):
        path = tmp_path / "numbering.json"
        path.write_text(json.dumps({"adr": 4, "plan": "x"}))

        assert NumberRegistry(path).get_registry() == {"adr": 4}


class TestFilenames:
    def test_format_number(self):
        assert format_number(7) == "007"
        assert format_number(7, digits=5) == "00007"
        assert format_number(1234) == "1234"

    def test_generate_filename_slugifies_title(self):
        assert generate_filename("adr", 1, "Use PostgreSQL (v15)!") == "adr-001-use-postgresql-v15.md"
        assert generate_filename("plan", 12, "  Many   spaces -- and dashes ") == "plan-012-many-spaces-and-dashes.md"

    def test_generate_filename_accepts_preformatted_number(self):
        assert generate_filename("adr", "0042", "X", extension="txt") == "adr-0042-x.txt"

    def test_round_trip(self):
        name = generate_filename("plan", 7, "Improve Parser")

        assert extract_components(name) == FilenameParts(family="plan", number="007", title="improve parser")

    @pytest.mark.parametrize("title", ["日本語", "???", "  -- "])
    def test_title_without_ascii_words_gets_placeholder_slug(self, title):
        name = generate_filename("adr", 1, title)

        assert name == "adr-001-untitled.md"
        assert extract_components(name) == FilenameParts(family="adr", number="001", title="untitled")

    def test_extract_accepts_hyphenated_family(self):
        parts = extract_components("design-doc-004-cache-layer.md")

        assert parts == FilenameParts(family="design-doc", number="004", title="cache layer")

    def test_extract_accepts_empty_slug(self):
        assert extract_components("adr-001-.md") == FilenameParts(family="adr", number="001", title="")

    def test_extract_rejects_non_grammar_names(self):
        assert extract_components("README.md") is None
        assert extract_components("adr-01-short.md") is None
        assert extract_components("Adr-001-x.md") is None

    def test_parse_number(self):
        assert parse_number("adr-015-x.md") == 15
        assert parse_number("notes.md") is None

    def test_registry_uses_configured_digits(self, tmp_path):
        reg = NumberRegistry(tmp_path / "n.json", digits=4)

        assert reg.format_number(3) == "0003"
        assert reg.generate_filename("adr", 3, "X") == "adr-0003-x.md"

    @pytest.mark.parametrize("title", ["Improve Parser", "a b c", "v2 migration"])
    def test_extract_recovers_slug_words(self, title):
        parts = extract_components(generate_filename("design", 3, title))
        assert parts is not None
        assert parts.title == title.lower()
