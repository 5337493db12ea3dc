"""
Unit tests for legacy_kms.extract.logs
"""

from __future__ import annotations

from legacy_kms.extract.logs import parse_log


LOG = """\
2024-01-02 08:00:01 INFO  Starting POS sync
2024-01-02 08:00:02 ERROR Price mismatch for PLU 100234
2024-01-02 08:00:03 WARN  PLU 100999 not found in master
2024-01-02 08:00:04 INFO  heartbeat ok

2024-01-02 08:00:05 ERROR Connection to HQ failed
"""


class TestParseLog:

    def test_classifies_matching_lines(self):
        result = parse_log(LOG)
        assert [(e.line, e.category) for e in result.errors] == [
            (2, "price_mismatch"),
            (3, "plu_not_found"),
            (6, "general_error"),
        ]

    def test_pattern_is_trimmed_line(self):
        result = parse_log("   ERROR ppn salah   \n")
        assert result.errors[0].pattern == "ERROR ppn salah"
        assert result.errors[0].category == "ppn_error"
        assert result.errors[0].root_cause == "Tax calculation error or missing configuration"

    def test_one_error_per_line(self):
        # Matches price_mismatch, bkp_missing and general_error
        result = parse_log("error: price mismatch and bkp missing")
        assert len(result.errors) == 1
        assert result.errors[0].category == "price_mismatch"

    def test_general_error_never_shadows_specific(self):
        lines = [
            "exception: gudang mismatch",
            "failed: plu not found",
            "error in ppn error handler",
        ]
        result = parse_log("\n".join(lines))
        assert "general_error" not in [e.category for e in result.errors]
        assert len(result.errors) == 3

    def test_summary(self):
        assert parse_log(LOG).summary == "Log contains 3 error patterns detected."

    def test_clean_log_has_no_errors(self):
        result = parse_log("INFO all good\nINFO still good\n")
        assert result.errors == []
        assert result.notices == []

    def test_empty_log_reports_notice(self):
        result = parse_log("")
        assert result.errors == []
        assert len(result.notices) == 1
        assert result.summary == "Log contains 0 error patterns detected."

    def test_to_record(self):
        record = parse_log(LOG).to_record("pos.log", LOG)
        assert record["filename"] == "pos.log"
        assert record["content"] == LOG
        assert record["errors"][0] == {
            "pattern": "2024-01-02 08:00:02 ERROR Price mismatch for PLU 100234",
            "line": 2,
            "category": "price_mismatch",
            "root_cause": "Price synchronization issue between systems",
        }
