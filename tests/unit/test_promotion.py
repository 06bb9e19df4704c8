"""
Unit tests for pattern promotion and catalog ports.
"""

import json
from dataclasses import replace

import pytest

from uiforge.exceptions import CatalogWriteError
from uiforge.feedback.promotion import (
    CatalogEntry,
    CatalogPort,
    InMemoryCatalog,
    JsonFileCatalog,
    PromotionEngine,
    build_catalog_entry,
    catalog_id_for,
)


class FailingCatalog(CatalogPort):
    """Catalog whose writes always fail."""

    def __init__(self):
        self.attempts = 0

    def register_snippet(self, entry):
        self.attempts += 1
        raise CatalogWriteError("disk full")

    def get(self, entry_id):
        return None

    def __len__(self):
        return 0


def _record(ledger, skeleton_hash, scores, component_type=None):
    pattern = None
    for score in scores:
        pattern = ledger.record_pattern(
            skeleton_hash, f"div[{skeleton_hash}]", f"<div>{skeleton_hash}</div>",
            component_type=component_type, score=score,
        )
    return pattern


@pytest.fixture
def catalog():
    return InMemoryCatalog()


@pytest.fixture
def engine(ledger, catalog):
    return PromotionEngine(ledger, catalog)


class TestBuildCatalogEntry:
    def test_entry_shape(self, ledger):
        pattern = _record(ledger, "abcdef0123456789", [0.9, 0.9, 0.9])

        entry = build_catalog_entry(pattern, "Card", "molecule")

        assert entry.id == "promoted-abcdef01"
        assert entry.id == catalog_id_for(pattern)
        assert entry.name == "User-Proven Card Pattern"
        assert entry.type == "card"
        assert entry.variant == "user-proven"
        assert entry.category == "molecule"
        assert entry.tags == ["promoted", "user-proven", "card"]
        assert entry.code == pattern.snippet
        assert entry.provenance["frequency"] == 3
        assert entry.provenance["pattern_id"] == pattern.id

    def test_dict_round_trip(self, ledger):
        pattern = _record(ledger, "abcdef0123456789", [0.9])
        entry = build_catalog_entry(pattern, "hero", "organism")

        assert CatalogEntry.from_dict(entry.to_dict()) == entry


class TestPromote:
    """Tests for promoting a single pattern."""

    def test_eligible_pattern(self, engine, ledger, catalog):
        pattern = _record(ledger, "hash-ok", [0.9, 0.9, 0.9])

        entry = engine.promote(pattern, component_type="card")

        assert entry is not None
        assert len(catalog) == 1
        assert catalog.get(entry.id).code == pattern.snippet
        assert ledger.get("hash-ok").promoted is True

    def test_ineligible_pattern(self, engine, ledger, catalog):
        pattern = _record(ledger, "hash-rare", [1.0, 1.0])

        assert engine.promote(pattern) is None
        assert len(catalog) == 0
        assert ledger.get("hash-rare").promoted is False

    def test_already_promoted(self, engine, ledger, catalog):
        pattern = _record(ledger, "hash-ok", [0.9, 0.9, 0.9])
        engine.promote(pattern)

        assert engine.promote(pattern) is None
        assert len(catalog) == 1

    def test_eligibility_uses_stored_row(self, engine, ledger):
        """A stale in-memory copy cannot promote a pattern whose average dropped."""
        stale = _record(ledger, "hash-ok", [0.9, 0.9, 0.9])
        ledger.record_pattern("hash-ok", "div", "<div/>", score=-3.0)

        assert engine.promote(stale) is None

    def test_missing_row_is_not_promoted(self, engine, ledger, catalog):
        """A caller's copy of a pattern no longer in the ledger is never written to the catalog."""
        pattern = _record(ledger, "hash-ok", [0.9, 0.9, 0.9])
        gone = replace(pattern, id="pat-gone")

        assert engine.promote(gone) is None
        assert len(catalog) == 0

    def test_unmarked_promotion_is_not_counted(self, engine, ledger, monkeypatch):
        _record(ledger, "hash-ok", [0.9, 0.9, 0.9])
        monkeypatch.setattr(ledger, "mark_promoted", lambda pattern_id: False)

        assert engine.run_cycle() == 0

    def test_catalog_failure_leaves_row_eligible(self, ledger):
        failing = FailingCatalog()
        engine = PromotionEngine(ledger, failing)
        pattern = _record(ledger, "hash-ok", [0.9, 0.9, 0.9])

        assert engine.promote(pattern) is None
        assert failing.attempts == 1
        assert ledger.get("hash-ok").promoted is False
        assert [p.id for p in ledger.get_promotable()] == [pattern.id]


class TestRunCycle:
    def test_promotes_all_eligible(self, engine, ledger, catalog):
        _record(ledger, "hash-a", [0.9, 0.9, 0.9], component_type="card")
        _record(ledger, "hash-b", [1.0, 1.0, 1.0], component_type="navbar")
        _record(ledger, "hash-c", [0.1, 0.1, 0.1])

        assert engine.run_cycle() == 2
        assert len(catalog) == 2
        assert {e.type for e in catalog.entries()} == {"card", "navbar"}

        assert engine.run_cycle() == 0
        assert len(catalog) == 2

    def test_defaults_for_untyped_patterns(self, engine, ledger, catalog):
        _record(ledger, "hash-a", [0.9, 0.9, 0.9])

        engine.run_cycle()

        entry = catalog.entries()[0]
        assert entry.type == "unknown"
        assert entry.category == "atom"

    def test_failed_writes_are_retried_next_cycle(self, ledger):
        _record(ledger, "hash-a", [0.9, 0.9, 0.9])

        assert PromotionEngine(ledger, FailingCatalog()).run_cycle() == 0
        assert PromotionEngine(ledger, InMemoryCatalog()).run_cycle() == 1


class TestJsonFileCatalog:
    """Tests for the file-backed catalog."""

    def test_register_and_read(self, tmp_path, ledger):
        path = tmp_path / "catalog" / "promoted.json"
        catalog = JsonFileCatalog(path)
        entry = build_catalog_entry(_record(ledger, "abcdef0123456789", [0.9]), "card", "atom")

        catalog.register_snippet(entry)

        assert len(catalog) == 1
        assert catalog.get(entry.id) == entry
        data = json.loads(path.read_text(encoding="utf-8"))
        assert list(data["snippets"]) == [entry.id]

    def test_same_id_overwrites(self, tmp_path, ledger):
        catalog = JsonFileCatalog(tmp_path / "promoted.json")
        pattern = _record(ledger, "abcdef0123456789", [0.9])

        catalog.register_snippet(build_catalog_entry(pattern, "card", "atom"))
        catalog.register_snippet(build_catalog_entry(pattern, "hero", "organism"))

        assert len(catalog) == 1
        assert catalog.entries()[0].type == "hero"

    def test_missing_file_is_empty(self, tmp_path):
        catalog = JsonFileCatalog(tmp_path / "none.json")

        assert len(catalog) == 0
        assert catalog.get("promoted-x") is None

    def test_corrupt_file_raises(self, tmp_path, ledger):
        path = tmp_path / "promoted.json"
        path.write_text("{not json", encoding="utf-8")
        catalog = JsonFileCatalog(path)
        entry = build_catalog_entry(_record(ledger, "abcdef0123456789", [0.9]), "card", "atom")

        with pytest.raises(CatalogWriteError):
            catalog.register_snippet(entry)

    def test_engine_with_file_catalog(self, tmp_path, ledger):
        catalog = JsonFileCatalog(tmp_path / "promoted.json")
        _record(ledger, "hash-a", [0.9, 0.9, 0.9], component_type="card")

        assert PromotionEngine(ledger, catalog).run_cycle() == 1
        assert len(JsonFileCatalog(tmp_path / "promoted.json")) == 1
