"""
Unit tests for legacy_kms.store.backends
"""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from legacy_kms.errors import PersistenceError
from legacy_kms.store import JsonFileMedium, KnowledgeStore, MemoryMedium


class TestMemoryMedium:

    def test_read_missing_key(self):
        assert MemoryMedium().read("k") is None

    def test_write_then_read(self):
        m = MemoryMedium()
        m.write("k", "blob")
        assert m.read("k") == "blob"

    def test_quota_exceeded(self):
        m = MemoryMedium(quota_bytes=4)
        m.write("k", "1234")
        with pytest.raises(PersistenceError):
            m.write("k", "12345")
        assert m.read("k") == "1234"

    def test_quota_counts_encoded_bytes(self):
        m = MemoryMedium(quota_bytes=4)
        with pytest.raises(PersistenceError):
            m.write("k", "éé£")


class TestJsonFileMedium:

    def test_read_missing_file(self, tmp_path):
        assert JsonFileMedium(str(tmp_path)).read("k") is None

    def test_write_creates_directory(self, tmp_path):
        target = tmp_path / "nested" / "store"
        m = JsonFileMedium(str(target))
        m.write("kms_prototype_data", '{"flows": []}')
        assert (target / "kms_prototype_data.json").read_text(encoding="utf-8") == '{"flows": []}'
        assert m.read("kms_prototype_data") == '{"flows": []}'

    def test_no_temp_file_left_behind(self, tmp_path):
        m = JsonFileMedium(str(tmp_path))
        m.write("k", "{}")
        assert os.listdir(tmp_path) == ["k.json"]

    def test_rejects_path_like_keys(self, tmp_path):
        m = JsonFileMedium(str(tmp_path))
        with pytest.raises(ValueError):
            m.path_for("../escape")

    def test_failed_replace_keeps_previous_snapshot(self, tmp_path):
        m = JsonFileMedium(str(tmp_path))
        m.write("k", "old")
        with patch("legacy_kms.store.backends.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(PersistenceError):
                m.write("k", "new")
        assert m.read("k") == "old"
        assert not (tmp_path / "k.json.tmp").exists()

    def test_quota(self, tmp_path):
        m = JsonFileMedium(str(tmp_path), quota_bytes=10)
        with pytest.raises(PersistenceError):
            m.write("k", "x" * 11)
        assert m.read("k") is None

    def test_store_on_disk_round_trip(self, tmp_path):
        with KnowledgeStore(JsonFileMedium(str(tmp_path))) as s:
            rec = s.insert("sop_library", {"title": "Close day"})
        with KnowledgeStore(JsonFileMedium(str(tmp_path))) as s:
            assert s.get("sop_library", rec["id"])["title"] == "Close day"
