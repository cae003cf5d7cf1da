"""Upload execution results against previously synchronised cases.

Results are addressed through the state entry of the executed artifact:
a scenario's case id is whatever the last import recorded for it, never
the result of a lookup by name on the remote side.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..core.adapter import CaseResult, TmsAdapter
from ..core.errors import TmsError
from .models import ExecutionSummary, ScenarioOutcome, UploadReport
from .state import FileEntry

logger = logging.getLogger(__name__)


def merge_outcomes(outcomes: list[ScenarioOutcome]) -> dict[str, ScenarioOutcome]:
    """Merge repeated outcomes (iterations) of the same scenario.

    The merged outcome sums counts and durations; it is passed only if
    every iteration passed. First-appearance order is kept.
    """
    merged: dict[str, ScenarioOutcome] = {}
    for outcome in outcomes:
        previous = merged.get(outcome.name)
        if previous is None:
            merged[outcome.name] = outcome
            continue
        merged[outcome.name] = ScenarioOutcome(
            name=outcome.name,
            pass_count=previous.pass_count + outcome.pass_count,
            fail_count=previous.fail_count + outcome.fail_count,
            skip_count=previous.skip_count + outcome.skip_count,
            elapsed_ms=previous.elapsed_ms + outcome.elapsed_ms,
            attachments=previous.attachments + outcome.attachments,
        )
    return merged


def close_active_runs(adapter: TmsAdapter, suite_id: str) -> list[str]:
    """Close every active run of *suite_id* and return the closed run ids."""
    closed = []
    for run in adapter.get_active_runs(suite_id):
        logger.info("Closing active run %s (%s)", run.id, run.name)
        adapter.close_run(run.id)
        closed.append(run.id)
    return closed


class ResultUploader:
    """Post an execution summary to the backend.

    Args:
        adapter: Backend adapter for remote operations.
    """

    def __init__(self, adapter: TmsAdapter) -> None:
        self.adapter = adapter

    def upload(
        self,
        summary: ExecutionSummary,
        entry: FileEntry,
        close_run: bool = False,
        attachments: list[Path] | None = None,
    ) -> UploadReport:
        """Upload *summary* against the cases recorded in *entry*.

        Args:
            summary: Execution summary to upload.
            entry: State entry of the executed artifact.
            close_run: Close the run after the results are posted.
            attachments: Run-level files to attach. Defaults to the
                summary's own attachment list.

        Returns:
            An ``UploadReport``. Per-attachment and per-case failures are
            collected in ``failures``; only failing to resolve the run
            stops the upload.
        """
        results: dict[str, CaseResult] = {}
        missing: list[str] = []
        for name, outcome in merge_outcomes(summary.scenarios).items():
            case_id = entry.case_id_for(name)
            if case_id is None:
                logger.warning(
                    "Scenario '%s' has no synced case in %s, skipping",
                    name,
                    entry.path,
                )
                missing.append(name)
                continue
            results[case_id] = CaseResult(
                case_id=case_id,
                scenario=name,
                passed=outcome.passed,
                pass_count=outcome.pass_count,
                fail_count=outcome.fail_count,
                skip_count=outcome.skip_count,
                elapsed_ms=outcome.elapsed_ms,
            )

        if not results:
            logger.warning("No result of %s maps to a synced case", entry.path)
            return UploadReport(suite_id=entry.suite_id, missing=missing)

        failures: list[str] = []
        active = self.adapter.get_active_runs(entry.suite_id)
        if active:
            run = active[0]
            run_created = False
            logger.info("Reusing active run %s", run.id)
        else:
            run = self.adapter.create_run(
                entry.suite_id, entry.suite_name or summary.name, list(results)
            )
            run_created = True
            logger.info("Created run %s", run.id)

        files = (
            attachments
            if attachments is not None
            else [Path(a) for a in summary.attachments]
        )
        uploaded_files = []
        for path in files:
            try:
                self.adapter.upload_attachment(run.id, path)
                uploaded_files.append(str(path))
            except (TmsError, OSError) as exc:
                logger.error("Failed to attach %s: %s", path, exc)
                failures.append(f"{path}: {exc}")

        uploaded = []
        for case_id, result in results.items():
            try:
                self.adapter.add_results(run.id, {case_id: result})
                uploaded.append(case_id)
            except TmsError as exc:
                logger.error(
                    "Failed to post result of '%s': %s", result.scenario, exc
                )
                failures.append(f"{result.scenario}: {exc}")

        closed = False
        if close_run:
            try:
                self.adapter.close_run(run.id)
                closed = True
            except TmsError as exc:
                logger.error("Failed to close run %s: %s", run.id, exc)
                failures.append(str(exc))

        return UploadReport(
            suite_id=entry.suite_id,
            run_id=run.id,
            run_created=run_created,
            uploaded=uploaded,
            missing=missing,
            attachments=uploaded_files,
            failures=failures,
            closed=closed,
        )
