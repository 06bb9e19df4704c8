"""
Pattern promotion - expands the component catalog from proven patterns.

When a skeleton is generated often enough with a high enough average score,
its representative snippet is registered in the catalog as a "user-proven"
variant so catalog search can return it directly.

The catalog is injected as a CatalogPort. A catalog write and the ledger's
promoted flag are not updated atomically: the flag only flips after the write
succeeds, and a failed write leaves the pattern eligible for the next cycle.
Catalog ids are derived from the skeleton hash, so re-registering the same
pattern overwrites the earlier entry.
"""

from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from uiforge.domain import CodePattern
from uiforge.exceptions import CatalogWriteError
from uiforge.feedback.pattern_ledger import PatternLedger

USER_PROVEN_VARIANT = "user-proven"
DEFAULT_COMPONENT_TYPE = "unknown"
DEFAULT_CATEGORY = "atom"


@dataclass
class CatalogEntry:
    """A catalog snippet built from a promoted pattern."""

    id: str
    name: str
    category: str
    type: str
    variant: str
    code: str
    tags: list[str] = field(default_factory=list)
    provenance: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CatalogEntry:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            category=data.get("category", DEFAULT_CATEGORY),
            type=data.get("type", DEFAULT_COMPONENT_TYPE),
            variant=data.get("variant", ""),
            code=data.get("code", ""),
            tags=list(data.get("tags", [])),
            provenance=dict(data.get("provenance", {})),
        )


def catalog_id_for(pattern: CodePattern) -> str:
    return f"promoted-{pattern.skeleton_hash[:8]}"


def build_catalog_entry(pattern: CodePattern, component_type: str, category: str) -> CatalogEntry:
    type_key = component_type.lower()
    return CatalogEntry(
        id=catalog_id_for(pattern),
        name=f"User-Proven {component_type} Pattern",
        category=category,
        type=type_key,
        variant=USER_PROVEN_VARIANT,
        code=pattern.snippet,
        tags=["promoted", USER_PROVEN_VARIANT, type_key],
        provenance={
            "pattern_id": pattern.id,
            "skeleton": pattern.skeleton,
            "frequency": pattern.frequency,
            "avg_score": round(pattern.avg_score, 4),
            "source": f"user-proven pattern ({pattern.frequency} gens, avg {pattern.avg_score:.2f})",
        },
    )


# =============================================================================
# Catalog ports
# =============================================================================


class CatalogPort(ABC):
    """Write target for promoted snippets. Registering an existing id overwrites it."""

    @abstractmethod
    def register_snippet(self, entry: CatalogEntry) -> None: ...

    @abstractmethod
    def get(self, entry_id: str) -> CatalogEntry | None: ...

    @abstractmethod
    def __len__(self) -> int: ...


class InMemoryCatalog(CatalogPort):
    def __init__(self) -> None:
        self._entries: dict[str, CatalogEntry] = {}

    def register_snippet(self, entry: CatalogEntry) -> None:
        self._entries[entry.id] = entry

    def get(self, entry_id: str) -> CatalogEntry | None:
        return self._entries.get(entry_id)

    def entries(self) -> list[CatalogEntry]:
        return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)


class JsonFileCatalog(CatalogPort):
    """
    Catalog persisted as a single JSON document: {"snippets": {id: entry}}.

    The whole document is rewritten on every registration. Any I/O or
    encoding failure surfaces as CatalogWriteError.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise CatalogWriteError(f"Catalog file {self.path} is not valid JSON: {e}") from e
        return dict(data.get("snippets", {}))

    def register_snippet(self, entry: CatalogEntry) -> None:
        with self._lock:
            try:
                snippets = self._read()
                snippets[entry.id] = entry.to_dict()
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp = self.path.with_suffix(self.path.suffix + ".tmp")
                tmp.write_text(json.dumps({"snippets": snippets}, indent=2), encoding="utf-8")
                tmp.replace(self.path)
            except OSError as e:
                raise CatalogWriteError(f"Failed to write catalog {self.path}: {e}") from e

    def get(self, entry_id: str) -> CatalogEntry | None:
        data = self._read().get(entry_id)
        return CatalogEntry.from_dict(data) if data else None

    def entries(self) -> list[CatalogEntry]:
        return [CatalogEntry.from_dict(d) for d in self._read().values()]

    def __len__(self) -> int:
        return len(self._read())


# =============================================================================
# Promotion engine
# =============================================================================


class PromotionEngine:
    """Sole transition from promoted=False to promoted=True."""

    def __init__(self, ledger: PatternLedger, catalog: CatalogPort):
        self.ledger = ledger
        self.catalog = catalog

    def promote(
        self,
        pattern: CodePattern,
        component_type: str = DEFAULT_COMPONENT_TYPE,
        category: str = DEFAULT_CATEGORY,
    ) -> CatalogEntry | None:
        """
        Register a pattern's snippet in the catalog and mark it promoted.

        Eligibility is checked again against the stored row. Returns None when
        the row is gone, the pattern is not eligible or the catalog write fails;
        in each case the ledger row is left untouched.
        """
        current = self.ledger.get_by_id(pattern.id)
        if current is None:
            logger.warning(f"Pattern {pattern.id} no longer in the ledger, skipping promotion")
            return None
        if not self.ledger.is_eligible(current):
            logger.debug(f"Pattern {pattern.id} not eligible for promotion")
            return None

        entry = build_catalog_entry(current, component_type, category)
        try:
            self.catalog.register_snippet(entry)
        except Exception as e:  # Catalog adapters are external; any failure leaves the row for retry
            logger.error(f"Failed to promote pattern {current.id}: {e}")
            return None

        if not self.ledger.mark_promoted(current.id):
            logger.warning(f"Pattern {current.id} vanished before it could be marked promoted")
            return None
        logger.info(
            f"Pattern {current.id} promoted to catalog as {entry.id} "
            f"(freq={current.frequency}, avg={current.avg_score:.2f})"
        )
        return entry

    def run_cycle(self) -> int:
        """Promote every currently eligible pattern. Returns the number promoted."""
        candidates = self.ledger.get_promotable()
        promoted = 0

        for pattern in candidates:
            entry = self.promote(
                pattern,
                component_type=pattern.component_type or DEFAULT_COMPONENT_TYPE,
                category=pattern.category or DEFAULT_CATEGORY,
            )
            if entry is not None:
                promoted += 1

        if promoted:
            logger.info(f"Promotion cycle complete: {promoted}/{len(candidates)} promoted")
        return promoted
