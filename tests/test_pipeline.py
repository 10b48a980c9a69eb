"""
Unit tests for the collect, analyse and assemble pipeline.
"""

import json
from unittest.mock import patch

from runreport.reporting.pipeline import ReportPipeline


class TestReportPipeline:
    def test_builds_report_from_store(self, config, store, write_artifact, vitest_artifact):
        write_artifact(
            "tests/login.test.js",
            vitest_artifact(
                "tests/login.test.js",
                [{"title": "login works"}, {"title": "rejects (bad) password", "status": "failed"}],
            ),
        )

        result = ReportPipeline(config, store).run()

        assert not result.degraded
        assert result.report_path == config.report_path
        assert result.summary.total == 2
        assert result.summary.failed == 1
        assert config.report_path.exists()
        assert config.data_path.exists()

    def test_records_history_after_analysis(self, config, store, write_artifact, vitest_artifact):
        write_artifact("tests/a.test.js", vitest_artifact("tests/a.test.js", [{"title": "t1"}]))

        ReportPipeline(config, store).run()
        ReportPipeline(config, store).run()

        history = json.loads(config.history_path.read_text())
        assert len(history["t1"]) == 2

    def test_history_can_be_skipped(self, config, store, write_artifact, vitest_artifact):
        write_artifact("tests/a.test.js", vitest_artifact("tests/a.test.js", [{"title": "t1"}]))

        ReportPipeline(config, store).run(record_history=False)

        assert not config.history_path.exists()

    def test_empty_store_still_writes_report(self, config, store):
        result = ReportPipeline(config, store).run()

        assert result.summary.total == 0
        assert config.report_path.exists()

    def test_collection_failure_writes_fallback(self, config, store):
        pipeline = ReportPipeline(config, store)

        with patch.object(pipeline.collector, "collect", side_effect=RuntimeError("disk gone")):
            result = pipeline.run()

        assert result.degraded
        assert result.error == "disk gone"
        assert "Test Report Generation Failed" in config.report_path.read_text(encoding="utf-8")
