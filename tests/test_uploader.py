"""Tests for the result uploader.

Covers:
- Results are mapped by the case id recorded in the state entry
- Iterations of a scenario are merged
- An active run is reused; otherwise a run scoped to the mapped cases is created
- Attachments are uploaded before results
- Per-case and per-attachment failures are collected, not fatal
- Nothing mapped means no run at all
- close_active_runs
"""

from __future__ import annotations

from tms_sync.core.adapter import RemoteRun
from tms_sync.sync.models import ExecutionSummary, ScenarioOutcome
from tms_sync.sync.state import FileEntry
from tms_sync.sync.uploader import (
    ResultUploader,
    close_active_runs,
    merge_outcomes,
)


def _entry() -> FileEntry:
    entry = FileEntry(path="scripts/login.yml", suite_id="S1", suite_name="login")
    entry.record("Login", "C10", "fp1")
    entry.record("Logout", "C11", "fp2")
    entry.record("Reset", "C12", "fp3")
    return entry


def _summary(*outcomes: ScenarioOutcome, attachments=()) -> ExecutionSummary:
    return ExecutionSummary(
        name="login run",
        script_path="scripts/login.yml",
        scenarios=list(outcomes),
        attachments=list(attachments),
    )


def _outcome(name, passes=1, fails=0, elapsed=1000) -> ScenarioOutcome:
    return ScenarioOutcome(
        name=name, pass_count=passes, fail_count=fails, elapsed_ms=elapsed
    )


class TestMergeOutcomes:
    def test_iterations_are_summed(self):
        merged = merge_outcomes(
            [_outcome("Login", 2, 0, 500), _outcome("Login", 1, 1, 700)]
        )
        login = merged["Login"]
        assert login.pass_count == 3
        assert login.fail_count == 1
        assert login.elapsed_ms == 1200
        assert not login.passed

    def test_first_appearance_order_is_kept(self):
        merged = merge_outcomes(
            [_outcome("B"), _outcome("A"), _outcome("B")]
        )
        assert list(merged) == ["B", "A"]


class TestUpload:
    def test_results_mapped_by_recorded_case_id(self, fake_adapter):
        report = ResultUploader(fake_adapter).upload(
            _summary(_outcome("Login"), _outcome("Reset", 0, 1)), _entry()
        )

        posted = {}
        for _, results in fake_adapter.calls_to("add_results"):
            posted.update(results)
        assert set(posted) == {"C10", "C12"}
        assert posted["C10"].passed
        assert not posted["C12"].passed
        assert posted["C12"].scenario == "Reset"
        assert report.uploaded == ["C10", "C12"]
        assert report.success

    def test_new_run_scoped_to_mapped_cases(self, fake_adapter):
        report = ResultUploader(fake_adapter).upload(
            _summary(_outcome("Logout"), _outcome("Login")), _entry()
        )

        runs = fake_adapter.calls_to("create_run")
        assert runs == [("S1", "login", ["C11", "C10"])]
        assert report.run_created
        assert report.run_id is not None

    def test_active_run_is_reused(self, fake_adapter):
        fake_adapter.active_runs["S1"] = [
            RemoteRun(id="R1", name="first"),
            RemoteRun(id="R2", name="second"),
        ]
        report = ResultUploader(fake_adapter).upload(
            _summary(_outcome("Login")), _entry()
        )

        assert fake_adapter.calls_to("create_run") == []
        assert report.run_id == "R1"
        assert not report.run_created
        assert fake_adapter.calls_to("add_results")[0][0] == "R1"

    def test_unknown_scenarios_are_reported(self, fake_adapter):
        report = ResultUploader(fake_adapter).upload(
            _summary(_outcome("Login"), _outcome("Ghost")), _entry()
        )
        assert report.missing == ["Ghost"]
        assert report.uploaded == ["C10"]

    def test_nothing_mapped_creates_no_run(self, fake_adapter):
        report = ResultUploader(fake_adapter).upload(
            _summary(_outcome("Ghost")), _entry()
        )
        assert fake_adapter.calls == []
        assert report.run_id is None
        assert report.missing == ["Ghost"]

    def test_attachments_uploaded_before_results(self, fake_adapter, tmp_path):
        junit = tmp_path / "junit.xml"
        junit.write_text("<testsuites/>")

        report = ResultUploader(fake_adapter).upload(
            _summary(_outcome("Login")), _entry(), attachments=[junit]
        )

        methods = [name for name, _ in fake_adapter.calls]
        assert methods.index("upload_attachment") < methods.index("add_results")
        assert report.attachments == [str(junit)]

    def test_failures_are_collected(self, fake_adapter, tmp_path):
        fake_adapter.fail_on["add_results"] = lambda run_id, results: "C10" in results
        fake_adapter.fail_on["upload_attachment"] = lambda run_id, path: True

        report = ResultUploader(fake_adapter).upload(
            _summary(_outcome("Login"), _outcome("Logout")),
            _entry(),
            attachments=[tmp_path / "out.html"],
        )

        assert report.uploaded == ["C11"]
        assert len(report.failures) == 2
        assert not report.success

    def test_close_run_on_request(self, fake_adapter):
        report = ResultUploader(fake_adapter).upload(
            _summary(_outcome("Login")), _entry(), close_run=True
        )
        assert fake_adapter.calls_to("close_run") == [(report.run_id,)]
        assert report.closed

    def test_run_left_open_by_default(self, fake_adapter):
        report = ResultUploader(fake_adapter).upload(
            _summary(_outcome("Login")), _entry()
        )
        assert fake_adapter.calls_to("close_run") == []
        assert not report.closed


class TestCloseActiveRuns:
    def test_closes_every_active_run(self, fake_adapter):
        fake_adapter.active_runs["S1"] = [RemoteRun(id="R1"), RemoteRun(id="R2")]
        assert close_active_runs(fake_adapter, "S1") == ["R1", "R2"]
        assert fake_adapter.calls_to("close_run") == [("R1",), ("R2",)]

    def test_no_active_runs(self, fake_adapter):
        assert close_active_runs(fake_adapter, "S1") == []
