"""Per-family sequence numbers backed by numbering.json.

    registry = NumberRegistry(cfg.numbering_path)
    n = await registry.get_next_number("adr")               # 1, 2, 3, ...
    name = registry.generate_filename("adr", n, "Use Postgres")
    # -> "adr-001-use-postgres.md"

numbering.json layout:
    {"adr": 3, "plan": 7}

Every mutation (allocate, reserve, scan, reset) for a family holds that
family's asyncio.Lock for its read-increment-write, so callers of the same
family are serialized while different families proceed independently.
Counters only ever move up, except through an explicit reset().
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import TYPE_CHECKING

from docgraph.models import FilenameParts
from docgraph.state import CorruptStateError, quarantine, read_json, write_json

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

logger = logging.getLogger("docgraph.numbering")

DEFAULT_DIGITS = 3
DEFAULT_EXTENSION = ".md"

_NUMBER_RE = re.compile(r"(\d{3,})")
_FILENAME_RE = re.compile(r"^([a-z][a-z0-9-]*?)-(\d{3,})-(.*)\.\w+$")
UNTITLED = "untitled"


def slugify(title: str) -> str:
    """Lowercase kebab-case slug; titles with no ASCII letters or digits become "untitled"."""
    slug = title.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-") or UNTITLED


def format_number(number: int, digits: int = DEFAULT_DIGITS) -> str:
    return str(number).zfill(digits)


def parse_number(filename: str) -> int | None:
    """First run of three or more digits in filename, or None."""
    m = _NUMBER_RE.search(filename)
    return int(m.group(1)) if m else None


def generate_filename(
    family: str,
    number: int | str,
    title: str,
    extension: str = DEFAULT_EXTENSION,
    digits: int = DEFAULT_DIGITS,
) -> str:
    padded = format_number(number, digits) if isinstance(number, int) else number
    if extension and not extension.startswith("."):
        extension = "." + extension
    return f"{family}-{padded}-{slugify(title)}{extension}"


def extract_components(filename: str) -> FilenameParts | None:
    """Inverse of generate_filename; None if filename does not follow the grammar."""
    m = _FILENAME_RE.match(filename)
    if m is None:
        return None
    return FilenameParts(family=m.group(1), number=m.group(2), title=m.group(3).replace("-", " "))


class NumberRegistry:
    """JSON-backed map of family name to the last number issued."""

    def __init__(self, registry_path: Path, digits: int = DEFAULT_DIGITS) -> None:
        self.registry_path = registry_path
        self.digits = digits
        self._locks: dict[str, asyncio.Lock] = {}
        self._registry: dict[str, int] = self._load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> dict[str, int]:
        try:
            raw = read_json(self.registry_path)
        except CorruptStateError as exc:
            logger.error("failed to load numbering registry: %s", exc)
            quarantine(self.registry_path)
            raw = None

        if raw is not None and not isinstance(raw, dict):
            logger.error("numbering registry %s is not an object; starting empty", self.registry_path)
            quarantine(self.registry_path)
            raw = None

        if raw is None:
            self._registry = {}
            self._save()
            return self._registry

        registry: dict[str, int] = {}
        for family, value in raw.items():
            try:
                registry[str(family)] = int(value)
            except (TypeError, ValueError):
                logger.warning("ignoring non-integer counter %r for family %s", value, family)
        return registry

    def _save(self) -> None:
        write_json(self.registry_path, self._registry)

    def _lock(self, family: str) -> asyncio.Lock:
        lock = self._locks.get(family)
        if lock is None:
            lock = self._locks[family] = asyncio.Lock()
        return lock

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------

    async def get_next_number(self, family: str) -> int:
        """Issue the next number for family and persist it before returning."""
        async with self._lock(family):
            number = self._registry.get(family, 0) + 1
            self._registry[family] = number
            self._save()
        logger.debug("allocated %s-%s", family, format_number(number, self.digits))
        return number

    async def reserve_number(self, family: str, number: int) -> None:
        """Ratchet family's counter up to number; no-op if it is already >= number."""
        async with self._lock(family):
            self._ratchet(family, number)

    def _ratchet(self, family: str, number: int) -> bool:
        current = self._registry.get(family, 0)
        if number <= current:
            return False
        self._registry[family] = number
        self._save()
        logger.debug("reserved %s up to %d (was %d)", family, number, current)
        return True

    async def scan_and_update(self, family: str, filenames: Iterable[str]) -> int:
        """Reserve the highest number found in filenames. Returns the resulting counter.

        Names following the family grammar count only when their family
        matches; other names fall back to their first run of 3+ digits.
        """
        highest = 0
        for name in filenames:
            base = name.rsplit("/", 1)[-1]
            parts = extract_components(base)
            if parts is not None:
                if parts.family != family:
                    continue
                number = int(parts.number)
            else:
                number = parse_number(base) or 0
            highest = max(highest, number)

        async with self._lock(family):
            if highest > 0 and self._ratchet(family, highest):
                logger.info("numbering for %s advanced to %d from files on disk", family, highest)
            return self._registry.get(family, 0)

    async def reset(self, family: str | None = None) -> None:
        """Forget one family's counter, or all of them."""
        if family is None:
            families = sorted(self._registry)
            for name in families:
                await self._lock(name).acquire()
            try:
                self._registry = {}
                self._save()
            finally:
                for name in families:
                    self._lock(name).release()
            return

        async with self._lock(family):
            self._registry.pop(family, None)
            self._save()

    # ------------------------------------------------------------------
    # Read-only helpers
    # ------------------------------------------------------------------

    def get_current_number(self, family: str) -> int:
        return self._registry.get(family, 0)

    def get_registry(self) -> dict[str, int]:
        return dict(self._registry)

    def format_number(self, number: int, digits: int | None = None) -> str:
        return format_number(number, self.digits if digits is None else digits)

    def generate_filename(
        self,
        family: str,
        number: int | str,
        title: str,
        extension: str = DEFAULT_EXTENSION,
    ) -> str:
        return generate_filename(family, number, title, extension, self.digits)

    extract_components = staticmethod(extract_components)
    parse_number = staticmethod(parse_number)
