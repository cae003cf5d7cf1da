"""Report formatting functions.

Provides human-readable and machine-readable output for the CLI:

- ``format_import_report`` -- per-artifact import summary.
- ``format_dry_run_preview`` -- dry-run preview grouped by action.
- ``format_upload_report`` -- result upload summary.
- ``report_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from .models import SyncAction

if TYPE_CHECKING:
    from .models import ArtifactReport, ImportReport, UploadReport


def _artifact_label(report: ArtifactReport) -> str:
    if report.subplan:
        return f"{report.path} [{report.subplan}]"
    return report.path


# ------------------------------------------------------------------
# Import report
# ------------------------------------------------------------------


def format_import_report(report: ImportReport) -> str:
    """Format a complete import report as human-readable text.

    Unchanged scenarios are summarised by count only to avoid excessive
    output.

    Args:
        report: The completed import report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"Import report for project '{report.project_id}'"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    for artifact in report.artifacts:
        suite = artifact.suite_id or "(new suite)"
        status = "OK" if artifact.success else "FAILED"
        lines.append(f"{_artifact_label(artifact)} -> suite {suite}: {status}")
        if artifact.suite_created:
            lines.append("  suite created")
        for result in artifact.results:
            if result.action == SyncAction.SKIP:
                continue
            case = result.case_id or "?"
            line = f"  [{result.action.value.upper()}] {result.scenario} ({case})"
            if result.error:
                line += f": {result.error}"
            lines.append(line)
        if artifact.skipped:
            lines.append(f"  unchanged: {len(artifact.skipped)}")
        if artifact.reordered:
            lines.append("  cases reordered")
        if artifact.error:
            lines.append(f"  error: {artifact.error}")
        lines.append("")

    lines.append(
        f"{len(report.artifacts)} artifacts: "
        f"{sum(len(a.created) for a in report.artifacts)} created, "
        f"{sum(len(a.updated) for a in report.artifacts)} updated, "
        f"{sum(len(a.deleted) for a in report.artifacts)} deleted, "
        f"{len(report.errors)} errors"
    )
    return "\n".join(lines).rstrip()


def format_dry_run_preview(report: ImportReport) -> str:
    """Format a dry-run preview grouped by action type.

    Args:
        report: A dry-run import report (``dry_run=True``).

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = ["DRY RUN -- No changes will be made", ""]

    groups: dict[SyncAction, list[str]] = defaultdict(list)
    for artifact in report.artifacts:
        if artifact.suite_created:
            groups[SyncAction.CREATE].append(
                f"{_artifact_label(artifact)} (suite)"
            )
        for result in artifact.results:
            groups[result.action].append(
                f"{_artifact_label(artifact)}: {result.scenario}"
            )

    for action in (SyncAction.CREATE, SyncAction.UPDATE, SyncAction.DELETE):
        if action not in groups:
            continue
        lines.append(f"[{action.value.upper()}]")
        for item in groups[action]:
            lines.append(f"  {item}")
        lines.append("")

    skip_count = len(groups.get(SyncAction.SKIP, []))
    if skip_count > 0:
        lines.append(f"Skipped: {skip_count} scenarios (unchanged)")
        lines.append("")

    if not any(a != SyncAction.SKIP for a in groups):
        lines.append("No changes needed.")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Upload report
# ------------------------------------------------------------------


def format_upload_report(report: UploadReport) -> str:
    """Format a result upload as human-readable text."""
    if report.run_id is None:
        lines = [f"Suite {report.suite_id}: nothing to upload"]
    else:
        origin = "created" if report.run_created else "reused"
        lines = [
            f"Suite {report.suite_id}: run {report.run_id} ({origin})",
            f"  results uploaded: {len(report.uploaded)}",
            f"  attachments: {len(report.attachments)}",
        ]
        if report.closed:
            lines.append("  run closed")
    if report.missing:
        lines.append(f"  not synced: {', '.join(report.missing)}")
    for failure in report.failures:
        lines.append(f"  error: {failure}")
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: ImportReport) -> dict:
    """Convert an import report to a structured dict for JSON serialisation.

    Args:
        report: The import report.

    Returns:
        Dict with project info, counts, and per-artifact details.
    """
    artifacts = []
    for artifact in report.artifacts:
        item: dict = {
            "path": artifact.path,
            "subplan": artifact.subplan,
            "suite_id": artifact.suite_id,
            "suite_created": artifact.suite_created,
            "reordered": artifact.reordered,
            "success": artifact.success,
            "results": [
                r.model_dump(mode="json", exclude_none=True)
                for r in artifact.results
            ],
        }
        if artifact.error:
            item["error"] = artifact.error
        artifacts.append(item)

    return {
        "project_id": report.project_id,
        "dry_run": report.dry_run,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            "artifacts": len(report.artifacts),
            "created": sum(len(a.created) for a in report.artifacts),
            "updated": sum(len(a.updated) for a in report.artifacts),
            "deleted": sum(len(a.deleted) for a in report.artifacts),
            "skipped": sum(len(a.skipped) for a in report.artifacts),
            "errors": len(report.errors),
        },
        "artifacts": artifacts,
    }
