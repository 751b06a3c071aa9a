import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

"""
Tests for the knowledge base corpus store.

Tests cover:
- Load-once semantics
- Fatal load errors (missing file, bad JSON, wrong top-level shape, duplicate ids)
- Quarantine of records with out-of-enum or missing fields
"""

import copy
import json

import pytest

from culturacheck.knowledge.corpus_store import (
    CorpusLoadError,
    CorpusStore,
    KnowledgeBaseError,
)
from culturacheck.knowledge.types import Category, Country, Severity

from conftest import SAMPLE_RECORDS, write_snapshot


class TestLoad:
    """Tests for loading a well-formed snapshot."""

    def test_loads_all_records_in_order(self, snapshot_path):
        store = CorpusStore(snapshot_path)
        records = store.load()
        assert [r.id for r in records] == [r["id"] for r in SAMPLE_RECORDS]
        assert store.is_loaded is True
        assert len(store) == len(SAMPLE_RECORDS)
        assert store.quarantined == []

    def test_fields_parsed_into_enums(self, store):
        first = store.records[0]
        assert first.country is Country.SAUDI_ARABIA
        assert first.category is Category.HOLIDAYS
        assert first.severity is Severity.WARNING
        assert first.tags == ("斋月", "工作时间")
        assert first.weight == 2

    def test_not_loaded_until_requested(self, snapshot_path):
        store = CorpusStore(snapshot_path)
        assert store.is_loaded is False

    def test_records_property_loads_lazily(self, snapshot_path):
        store = CorpusStore(snapshot_path)
        assert len(store.records) == len(SAMPLE_RECORDS)
        assert store.is_loaded is True

    def test_load_is_memoized(self, snapshot_path):
        """A second load returns the cached collection without re-reading the file."""
        store = CorpusStore(snapshot_path)
        first = store.load()
        snapshot_path.write_text("not json at all", encoding="utf-8")
        second = store.load()
        assert second is first

    def test_records_are_immutable(self, store):
        record = store.records[0]
        with pytest.raises(Exception):
            record.content = "changed"
        assert isinstance(store.records, tuple)

    def test_optional_fields_default(self, tmp_path):
        path = write_snapshot(tmp_path, [
            {
                "id": "minimal",
                "content": "左手被视为不洁",
                "country": "阿拉伯世界通用",
                "category": "商务礼仪",
                "severity": "warning",
            }
        ])
        record = CorpusStore(path).load()[0]
        assert record.tags == ()
        assert record.source == ""
        assert record.scenario == ""

    def test_empty_array_is_valid(self, tmp_path):
        path = write_snapshot(tmp_path, [])
        store = CorpusStore(path)
        assert store.load() == ()
        assert len(store) == 0


class TestFatalErrors:
    """Load-time failures propagate as CorpusLoadError."""

    def test_missing_file(self, tmp_path):
        store = CorpusStore(tmp_path / "missing.json")
        with pytest.raises(CorpusLoadError, match="not found"):
            store.load()
        assert store.is_loaded is False

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "kb.json"
        path.write_text("[{\"id\": ", encoding="utf-8")
        with pytest.raises(CorpusLoadError, match="not valid JSON"):
            CorpusStore(path).load()

    def test_top_level_object_rejected(self, tmp_path):
        path = tmp_path / "kb.json"
        path.write_text(json.dumps({"records": SAMPLE_RECORDS}), encoding="utf-8")
        with pytest.raises(CorpusLoadError, match="JSON array"):
            CorpusStore(path).load()

    def test_duplicate_ids_rejected(self, tmp_path):
        records = copy.deepcopy(SAMPLE_RECORDS)
        records[2]["id"] = records[0]["id"]
        path = write_snapshot(tmp_path, records)
        with pytest.raises(CorpusLoadError, match="Duplicate"):
            CorpusStore(path).load()

    def test_load_error_is_knowledge_base_error(self, tmp_path):
        with pytest.raises(KnowledgeBaseError):
            CorpusStore(tmp_path / "missing.json").load()


class TestQuarantine:
    """Malformed records are skipped, not fatal."""

    def test_out_of_enum_country_quarantined(self, tmp_path):
        records = copy.deepcopy(SAMPLE_RECORDS)
        records[1]["country"] = "伊朗"
        store = CorpusStore(write_snapshot(tmp_path, records))
        loaded = store.load()

        assert "pan-pork-alcohol" not in {r.id for r in loaded}
        assert len(loaded) == len(SAMPLE_RECORDS) - 1
        assert len(store.quarantined) == 1
        entry = store.quarantined[0]
        assert entry.index == 1
        assert entry.record_id == "pan-pork-alcohol"
        assert "country" in entry.reason

    def test_unknown_severity_quarantined(self, tmp_path):
        records = copy.deepcopy(SAMPLE_RECORDS)
        records[0]["severity"] = "urgent"
        store = CorpusStore(write_snapshot(tmp_path, records))
        store.load()
        assert [q.record_id for q in store.quarantined] == ["sa-ramadan-hours"]

    def test_missing_id_and_non_object_quarantined(self, tmp_path):
        records = copy.deepcopy(SAMPLE_RECORDS[:2])
        del records[0]["id"]
        records.append("just a string")
        store = CorpusStore(write_snapshot(tmp_path, records))
        loaded = store.load()

        assert [r.id for r in loaded] == ["pan-pork-alcohol"]
        assert [q.index for q in store.quarantined] == [0, 2]
        assert all(q.record_id is None for q in store.quarantined)

    def test_quarantined_list_is_a_copy(self, tmp_path):
        records = copy.deepcopy(SAMPLE_RECORDS)
        records[0]["category"] = "未知类别"
        store = CorpusStore(write_snapshot(tmp_path, records))
        store.load()
        store.quarantined.clear()
        assert len(store.quarantined) == 1
