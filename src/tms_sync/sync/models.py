"""Pydantic models for the import and upload pipelines.

Defines the data contracts used across the sync modules:

- ``ScenarioStep``, ``Scenario``, ``TestArtifact``: the local side, as
  produced by the artifact reader.
- ``ScenarioOutcome``, ``ExecutionSummary``: the execution results
  consumed by the uploader.
- ``SyncAction``, ``CaseSyncResult``, ``ArtifactReport``,
  ``ImportReport``, ``UploadReport``: outcome reports.

Local-side and report models are frozen (immutable).
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


class ScenarioStep(BaseModel):
    """One step of a scenario: what to do and what should happen."""

    description: str
    expected: str = ""

    model_config = {"frozen": True}


class Scenario(BaseModel):
    """A local scenario, synchronised 1:1 to a remote test case.

    Attributes:
        name: Scenario name, unique within its artifact.
        description: Free-text description.
        steps: Ordered steps.
    """

    name: str
    description: str = ""
    steps: list[ScenarioStep] = []

    model_config = {"frozen": True}


class TestArtifact(BaseModel):
    """A local script or plan subplan, synchronised to one remote suite.

    Attributes:
        path: Project-relative POSIX path of the file.
        project_id: Remote project the suite lives in.
        subplan: Subplan name when the file is a plan.
        scenarios: Ordered scenarios.
    """

    __test__ = False

    path: str
    project_id: str
    subplan: str | None = None
    scenarios: list[Scenario] = []

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _unique_scenario_names(self) -> TestArtifact:
        seen: set[str] = set()
        for scenario in self.scenarios:
            if scenario.name in seen:
                raise ValueError(
                    f"Duplicate scenario name '{scenario.name}' in {self.path}"
                )
            seen.add(scenario.name)
        return self

    @property
    def suite_name(self) -> str:
        """Remote suite name: the file stem, plus ``/subplan`` for plans."""
        stem = PurePosixPath(self.path).stem
        return f"{stem}/{self.subplan}" if self.subplan else stem

    @property
    def scenario_names(self) -> list[str]:
        return [s.name for s in self.scenarios]


# ---------------------------------------------------------------------------
# Execution results (input)
# ---------------------------------------------------------------------------

_SUMMARY_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    extra="ignore",
    frozen=True,
)


class ScenarioOutcome(BaseModel):
    """Execution result of one scenario (one iteration)."""

    name: str
    pass_count: int = 0
    fail_count: int = 0
    skip_count: int = 0
    elapsed_ms: int = 0
    attachments: list[str] = []

    model_config = _SUMMARY_CONFIG

    @property
    def passed(self) -> bool:
        return self.fail_count == 0


class ExecutionSummary(BaseModel):
    """Execution summary of one script or plan run.

    Attributes:
        name: Execution name.
        script_path: Project-relative path of the executed artifact.
        subplan: Subplan name for plan executions.
        start_time: Execution start.
        end_time: Execution end.
        scenarios: Per-scenario outcomes, possibly repeated per iteration.
        attachments: Run-level files (absolute or relative to the
            output directory).
    """

    name: str = ""
    script_path: str | None = None
    subplan: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    scenarios: list[ScenarioOutcome] = []
    attachments: list[str] = []

    model_config = _SUMMARY_CONFIG

    @property
    def pass_count(self) -> int:
        return sum(s.pass_count for s in self.scenarios)

    @property
    def fail_count(self) -> int:
        return sum(s.fail_count for s in self.scenarios)


# ---------------------------------------------------------------------------
# Reports (output)
# ---------------------------------------------------------------------------


class SyncAction(str, Enum):
    """What the synchronizer did (or would do) with one scenario."""

    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"
    DELETE = "delete"


class CaseSyncResult(BaseModel):
    """Result of synchronising one scenario.

    Attributes:
        scenario: Scenario name.
        action: Action taken or planned.
        case_id: Remote case id, once known.
        success: Whether the action succeeded.
        error: Error message if the action failed.
    """

    scenario: str
    action: SyncAction
    case_id: str | None = None
    success: bool = True
    error: str | None = None

    model_config = {"frozen": True}


class ArtifactReport(BaseModel):
    """Outcome of synchronising one artifact.

    Attributes:
        path: Artifact path.
        subplan: Subplan name for plans.
        suite_id: Remote suite id, once known.
        suite_created: Whether the suite was created by this run.
        results: Per-scenario results, in processing order.
        reordered: Whether a reorder call was issued.
        error: Error that aborted the artifact, if any.
    """

    path: str
    subplan: str | None = None
    suite_id: str | None = None
    suite_created: bool = False
    results: list[CaseSyncResult] = []
    reordered: bool = False
    error: str | None = None

    model_config = {"frozen": True}

    def _with_action(self, action: SyncAction) -> list[CaseSyncResult]:
        return [r for r in self.results if r.action == action]

    @property
    def created(self) -> list[CaseSyncResult]:
        return self._with_action(SyncAction.CREATE)

    @property
    def updated(self) -> list[CaseSyncResult]:
        return self._with_action(SyncAction.UPDATE)

    @property
    def skipped(self) -> list[CaseSyncResult]:
        return self._with_action(SyncAction.SKIP)

    @property
    def deleted(self) -> list[CaseSyncResult]:
        return self._with_action(SyncAction.DELETE)

    @property
    def success(self) -> bool:
        return self.error is None and all(r.success for r in self.results)


class ImportReport(BaseModel):
    """Aggregate report for one import invocation."""

    project_id: str
    dry_run: bool = False
    artifacts: list[ArtifactReport] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    @property
    def errors(self) -> list[ArtifactReport]:
        """Artifacts that did not complete cleanly."""
        return [a for a in self.artifacts if not a.success]

    def summary(self) -> str:
        """Format a short count summary of the import.

        Returns:
            Multi-line summary string with counts by action.
        """
        lines = [
            f"Import report for project '{self.project_id}'"
            + (" (dry run)" if self.dry_run else ""),
            f"  Artifacts: {len(self.artifacts)}",
            f"  Created:   {sum(len(a.created) for a in self.artifacts)}",
            f"  Updated:   {sum(len(a.updated) for a in self.artifacts)}",
            f"  Deleted:   {sum(len(a.deleted) for a in self.artifacts)}",
            f"  Skipped:   {sum(len(a.skipped) for a in self.artifacts)}",
            f"  Errors:    {len(self.errors)}",
        ]
        return "\n".join(lines)


class UploadReport(BaseModel):
    """Outcome of uploading one execution summary.

    Attributes:
        suite_id: Remote suite the results belong to.
        run_id: Run the results were posted to (None if nothing uploaded).
        run_created: Whether the run was created by this upload.
        uploaded: Case ids whose result was posted.
        missing: Scenario names with no case in the state store.
        attachments: Attachment paths uploaded.
        failures: Error messages collected along the way.
        closed: Whether the run was closed.
    """

    suite_id: str
    run_id: str | None = None
    run_created: bool = False
    uploaded: list[str] = []
    missing: list[str] = []
    attachments: list[str] = []
    failures: list[str] = []
    closed: bool = False

    model_config = {"frozen": True}

    @property
    def success(self) -> bool:
        return not self.failures
