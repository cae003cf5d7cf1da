"""Import orchestrator: pushes local artifacts to the remote TMS.

The ``Synchronizer`` ties together the state store, the fingerprints and
a backend adapter. For each artifact it:

1. Finds the artifact's entry in the persisted state.
2. Diffs every scenario against the recorded fingerprints.
3. Creates the suite, or refreshes its description when anything changed.
4. Creates the section lazily, the first time a case must be created.
5. Creates or updates cases, skipping unchanged ones.
6. Deletes the cases of scenarios that no longer exist locally.
7. Reorders cases when the local order differs from the recorded one.

Error handling is per-artifact: a failure aborts the remaining steps of
that artifact only. Everything recorded before the failure is kept, and
the state is saved once at the end of the run.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from ..core.adapter import TmsAdapter, build_suite_description
from ..core.errors import TmsError
from .fingerprint import fingerprint
from .models import (
    ArtifactReport,
    CaseSyncResult,
    ImportReport,
    Scenario,
    SyncAction,
    TestArtifact,
)
from .state import FileEntry, SyncState, SyncStateStore
from .uploader import close_active_runs

logger = logging.getLogger(__name__)

SECTION_NAME = "Scenarios"


class Synchronizer:
    """Synchronise test artifacts of one project with a backend.

    Args:
        adapter: Backend adapter for remote operations.
        store: State store holding the project's state document.
        project_id: Remote project id (also names the state document).
        close_runs_before_update: Close the active runs of an existing
            suite before any of its cases change.
    """

    def __init__(
        self,
        adapter: TmsAdapter,
        store: SyncStateStore,
        project_id: str,
        close_runs_before_update: bool = False,
    ) -> None:
        self.adapter = adapter
        self.store = store
        self.project_id = project_id
        self.close_runs_before_update = close_runs_before_update

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(
        self, artifacts: list[TestArtifact], dry_run: bool = False
    ) -> ImportReport:
        """Synchronise *artifacts* in order.

        Args:
            artifacts: Artifacts to import.
            dry_run: If ``True``, plan actions without any remote call and
                without saving state.

        Returns:
            An ``ImportReport`` with one ``ArtifactReport`` per artifact.
        """
        started_at = datetime.now(timezone.utc).isoformat()
        state = self.store.load(self.project_id)
        reports: list[ArtifactReport] = []

        try:
            for artifact in artifacts:
                if dry_run:
                    reports.append(self._plan_artifact(artifact, state))
                else:
                    reports.append(self._sync_artifact(artifact, state))
        finally:
            if not dry_run:
                self.store.save(state)

        return ImportReport(
            project_id=self.project_id,
            dry_run=dry_run,
            artifacts=reports,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
        )

    def remove(self, path: str, subplan: str | None = None) -> ArtifactReport:
        """Delete every remote case of an artifact and forget the artifact.

        The suite itself is left in place. The entry is removed only when
        every case was deleted.
        """
        state = self.store.load(self.project_id)
        entry = self.store.find_entry(state, path, subplan)
        if entry is None:
            return ArtifactReport(
                path=path, subplan=subplan, error="artifact was never synced"
            )

        results = []
        for ref in list(entry.scenarios):
            try:
                self.adapter.delete_case(ref.case_id)
            except TmsError as exc:
                logger.error("Failed to delete case %s: %s", ref.case_id, exc)
                results.append(
                    CaseSyncResult(
                        scenario=ref.name,
                        action=SyncAction.DELETE,
                        case_id=ref.case_id,
                        success=False,
                        error=str(exc),
                    )
                )
                continue
            entry.forget(ref.name)
            results.append(
                CaseSyncResult(
                    scenario=ref.name,
                    action=SyncAction.DELETE,
                    case_id=ref.case_id,
                )
            )

        if not entry.scenarios:
            self.store.remove_entry(state, path, subplan)
        self.store.save(state)
        return ArtifactReport(
            path=path, subplan=subplan, suite_id=entry.suite_id, results=results
        )

    # ------------------------------------------------------------------
    # Per-artifact sync
    # ------------------------------------------------------------------

    def _sync_artifact(
        self, artifact: TestArtifact, state: SyncState
    ) -> ArtifactReport:
        entry = self.store.find_entry(state, artifact.path, artifact.subplan)
        results: list[CaseSyncResult] = []
        suite_created = False
        reordered = False

        try:
            plan = _plan(artifact, entry)
            pending = any(a != SyncAction.SKIP for _, a in plan) or bool(
                _removed_names(artifact, entry)
            )
            description = build_suite_description(
                self.project_id, artifact.path
            )

            if entry is None:
                suite = self.adapter.create_suite(
                    artifact.suite_name, description
                )
                suite_created = True
                entry = FileEntry(
                    path=artifact.path,
                    subplan=artifact.subplan,
                    suite_id=suite.id,
                    suite_name=suite.name,
                    suite_url=suite.url,
                )
                self.store.upsert_entry(state, entry)
                logger.info(
                    "Created suite %s for %s", suite.id, artifact.suite_name
                )
            elif pending:
                if self.close_runs_before_update:
                    close_active_runs(self.adapter, entry.suite_id)
                self.adapter.update_suite(entry.suite_id, description)

            old_order = entry.case_order()

            for scenario, action in plan:
                results.append(self._apply(action, scenario, entry))

            for name in _removed_names(artifact, entry):
                case_id = entry.case_id_for(name)
                self.adapter.delete_case(case_id)
                entry.forget(name)
                results.append(
                    CaseSyncResult(
                        scenario=name, action=SyncAction.DELETE, case_id=case_id
                    )
                )

            local_order = [
                entry.case_id_for(s.name) for s in artifact.scenarios
            ]
            surviving = set(local_order)
            expected = [cid for cid in old_order if cid in surviving]
            expected += [cid for cid in local_order if cid not in expected]
            if local_order and local_order != expected:
                self.adapter.reorder_cases(
                    entry.suite_id, entry.section_id, local_order
                )
                reordered = True

            entry.reorder(artifact.scenario_names)

        except TmsError as exc:
            logger.error("Remote error syncing %s: %s", artifact.suite_name, exc)
            return self._failed(artifact, entry, results, suite_created, exc)
        except Exception as exc:
            logger.exception("Error syncing %s", artifact.suite_name)
            return self._failed(artifact, entry, results, suite_created, exc)

        return ArtifactReport(
            path=artifact.path,
            subplan=artifact.subplan,
            suite_id=entry.suite_id,
            suite_created=suite_created,
            results=results,
            reordered=reordered,
        )

    def _apply(
        self, action: SyncAction, scenario: Scenario, entry: FileEntry
    ) -> CaseSyncResult:
        """Create, update or skip one scenario, recording it in *entry*."""
        if action == SyncAction.SKIP:
            return CaseSyncResult(
                scenario=scenario.name,
                action=action,
                case_id=entry.case_id_for(scenario.name),
            )

        existing = entry.case_id_for(scenario.name)
        if action == SyncAction.CREATE and not entry.section_id:
            entry.section_id = self.adapter.add_section(
                entry.suite_id, SECTION_NAME
            )

        case_id = self.adapter.add_or_update_case(
            entry.suite_id, entry.section_id, scenario, existing
        )
        entry.record(scenario.name, case_id, fingerprint(scenario))
        logger.debug("%s case %s for '%s'", action.value, case_id, scenario.name)
        return CaseSyncResult(
            scenario=scenario.name, action=action, case_id=case_id
        )

    def _failed(
        self,
        artifact: TestArtifact,
        entry: FileEntry | None,
        results: list[CaseSyncResult],
        suite_created: bool,
        exc: Exception,
    ) -> ArtifactReport:
        return ArtifactReport(
            path=artifact.path,
            subplan=artifact.subplan,
            suite_id=entry.suite_id if entry else None,
            suite_created=suite_created,
            results=results,
            error=str(exc),
        )

    # ------------------------------------------------------------------
    # Dry run
    # ------------------------------------------------------------------

    def _plan_artifact(
        self, artifact: TestArtifact, state: SyncState
    ) -> ArtifactReport:
        entry = self.store.find_entry(state, artifact.path, artifact.subplan)
        results = [
            CaseSyncResult(
                scenario=scenario.name,
                action=action,
                case_id=entry.case_id_for(scenario.name) if entry else None,
            )
            for scenario, action in _plan(artifact, entry)
        ]
        results += [
            CaseSyncResult(
                scenario=name,
                action=SyncAction.DELETE,
                case_id=entry.case_id_for(name),
            )
            for name in _removed_names(artifact, entry)
        ]
        return ArtifactReport(
            path=artifact.path,
            subplan=artifact.subplan,
            suite_id=entry.suite_id if entry else None,
            suite_created=entry is None,
            results=results,
        )


def _plan(
    artifact: TestArtifact, entry: FileEntry | None
) -> list[tuple[Scenario, SyncAction]]:
    """Return the action each local scenario needs, in local order."""
    plan = []
    for scenario in artifact.scenarios:
        if entry is None or entry.case_id_for(scenario.name) is None:
            action = SyncAction.CREATE
        elif entry.cache.get(scenario.name) != fingerprint(scenario):
            action = SyncAction.UPDATE
        else:
            action = SyncAction.SKIP
        plan.append((scenario, action))
    return plan


def _removed_names(
    artifact: TestArtifact, entry: FileEntry | None
) -> list[str]:
    """Return recorded scenario names no longer present locally."""
    if entry is None:
        return []
    local = set(artifact.scenario_names)
    return [ref.name for ref in entry.scenarios if ref.name not in local]
