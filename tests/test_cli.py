"""
Tests for the legacy-kms command-line interface.

Each test points the CLI at a fresh store directory under tmp_path.
"""

from __future__ import annotations

import json
import os

import pytest

from legacy_kms.cli import main
from legacy_kms.store import JsonFileMedium, KnowledgeStore


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("KMS_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def run(tmp_path, capsys):
    store_dir = tmp_path / "store"
    no_config = tmp_path / "absent.yaml"

    def _run(*args):
        main(["--config", str(no_config), "--store-dir", str(store_dir), *args])
        return capsys.readouterr().out

    _run.store_dir = store_dir
    return _run


def _open(store_dir) -> KnowledgeStore:
    return KnowledgeStore(JsonFileMedium(str(store_dir))).open()


@pytest.fixture
def inbox(tmp_path):
    d = tmp_path / "inbox"
    d.mkdir()
    (d / "Prices.bas").write_text(
        'Public Sub Load()\n    sql = "SELECT * FROM prices WHERE a = 1"\nEnd Sub\n',
        encoding="utf-8",
    )
    (d / "pos.log").write_text("start sync\nERROR price mismatch\ncomplete\n",
                               encoding="utf-8")
    return d


# ---------------------------------------------------------------------------
# ingest / stats
# ---------------------------------------------------------------------------

class TestIngest:

    def test_ingest_directory(self, run, inbox):
        out = run("ingest", str(inbox))
        assert "Prices.bas" in out
        assert "pos.log" in out
        assert "Files    : 2" in out

        store = _open(run.store_dir)
        assert store.select("code_docs").count == 1
        assert store.select("query_library").count == 1
        assert store.select("error_logs").count == 1
        assert store.select("flows").count == 1

    def test_ingest_declared_kind(self, run, tmp_path):
        path = tmp_path / "close.txt"
        path.write_text("Closing\n1. Lock up\n", encoding="utf-8")
        run("ingest", str(path), "--kind", "sop")
        assert _open(run.store_dir).select("sop_library").count == 1

    def test_missing_file_is_skipped(self, run, tmp_path):
        out = run("ingest", str(tmp_path / "absent.log"))
        assert "Skipped  : 1" in out

    def test_stats_json(self, run, inbox):
        run("ingest", str(inbox))
        stats = json.loads(run("stats", "--json"))
        assert stats["code_docs"] == 1
        assert stats["total_items"] == 4
        assert stats["limit_reached"] is False


# ---------------------------------------------------------------------------
# Record commands
# ---------------------------------------------------------------------------

class TestRecordCommands:

    def test_list_show_update_delete(self, run, inbox):
        run("ingest", str(inbox / "pos.log"))
        records = json.loads(run("list", "flows", "--json"))
        record_id = records[0]["id"]

        shown = json.loads(run("show", "flows", record_id))
        assert shown["title"] == "Flow from pos.log"

        updated = json.loads(run("update", "flows", record_id, "--set", "title=Renamed"))
        assert updated["title"] == "Renamed"

        run("delete", "flows", record_id)
        assert _open(run.store_dir).select("flows").count == 0

    def test_update_decodes_json_values(self, run, inbox):
        run("ingest", str(inbox / "pos.log"))
        record_id = json.loads(run("list", "flows", "--json"))[0]["id"]
        updated = json.loads(run("update", "flows", record_id, "--set", 'tags=["pos"]'))
        assert updated["tags"] == ["pos"]

    def test_show_missing_record(self, run, capsys):
        with pytest.raises(SystemExit) as excinfo:
            run("show", "flows", "nope")
        assert excinfo.value.code == 1
        assert "not found" in capsys.readouterr().err

    def test_find_where(self, run, inbox):
        run("ingest", str(inbox))
        out = run("find", "query_library", "--where", "category=select")
        assert "1 record(s)" in out

    def test_search(self, run, inbox):
        run("ingest", str(inbox))
        out = run("search", "PRICES")
        assert "query_library" in out
        assert "code_docs" in out
        assert "error_logs" not in out

    def test_unknown_collection_rejected(self, run):
        with pytest.raises(SystemExit):
            run("list", "nope")


# ---------------------------------------------------------------------------
# Flows
# ---------------------------------------------------------------------------

class TestFlowCommands:

    def test_flow_prints_diagram_only(self, run, inbox):
        out = run("flow", str(inbox / "pos.log"))
        assert out.startswith("sequenceDiagram\n")
        assert "User->>System: start sync" in out
        assert not (run.store_dir / "kms_prototype_data.json").exists()

    def test_add_flow(self, run, tmp_path):
        diagram = tmp_path / "checkout.mmd"
        diagram.write_text("sequenceDiagram\n    A->>B: pay\n", encoding="utf-8")
        run("add-flow", "Checkout", str(diagram))
        flows = _open(run.store_dir).select("flows").records
        assert flows[0]["source"] == "manual"
        assert flows[0]["mermaid_text"] == "sequenceDiagram\n    A->>B: pay\n"


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

class TestSnapshotCommands:

    def test_export_then_import(self, run, inbox, tmp_path):
        run("ingest", str(inbox))
        export_dir = tmp_path / "exports"
        out = run("export", "--output", str(export_dir))
        exported = next(export_dir.iterdir())
        assert str(exported) in out

        run("clear", "--yes")
        assert _open(run.store_dir).select("code_docs").count == 0

        run("import", str(exported))
        assert _open(run.store_dir).select("code_docs").count == 1

    def test_import_invalid_snapshot(self, run, tmp_path, capsys):
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"code_docs": []}), encoding="utf-8")
        with pytest.raises(SystemExit) as excinfo:
            run("import", str(bad))
        assert excinfo.value.code == 1
        assert "missing" in capsys.readouterr().err

    def test_merge(self, run, tmp_path):
        snap = tmp_path / "snap.json"
        snap.write_text(json.dumps({"flows": [{"id": "x1", "title": "t"}]}), encoding="utf-8")
        assert "merged 1 new items" in run("merge", str(snap))
        assert "merged 0 new items" in run("merge", str(snap))

    def test_clear_requires_yes(self, run, inbox):
        run("ingest", str(inbox))
        with pytest.raises(SystemExit) as excinfo:
            run("clear")
        assert excinfo.value.code == 1
        assert _open(run.store_dir).select("code_docs").count == 1

    def test_clear_one_collection(self, run, inbox):
        run("ingest", str(inbox))
        run("clear", "--collection", "flows", "--yes")
        store = _open(run.store_dir)
        assert store.select("flows").count == 0
        assert store.select("code_docs").count == 1

    def test_validate(self, run, inbox):
        run("ingest", str(inbox))
        assert "Store is valid." in run("validate")
