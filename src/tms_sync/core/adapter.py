"""Capability interface shared by every Test Management System backend.

The synchronizer and the result uploader only talk to a ``TmsAdapter``;
the concrete adapters (TestRail, Azure DevOps, Jira) satisfy it
structurally and are picked by ``core.factory.create_adapter``.
"""

from __future__ import annotations

import getpass
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol, runtime_checkable

from .. import __version__
from ..sync.models import Scenario


@dataclass(frozen=True)
class RemoteSuite:
    """A suite as reported by the backend."""

    id: str
    name: str
    url: str | None = None


@dataclass(frozen=True)
class RemoteRun:
    """A test run as reported by the backend."""

    id: str
    name: str = ""
    is_completed: bool = False


@dataclass(frozen=True)
class CaseResult:
    """The merged result of one scenario, addressed by its case id."""

    case_id: str
    scenario: str
    passed: bool
    pass_count: int = 0
    fail_count: int = 0
    skip_count: int = 0
    elapsed_ms: int = 0

    def comment(self) -> str:
        return (
            f"{self.scenario}: {self.pass_count} passed, "
            f"{self.fail_count} failed, {self.skip_count} skipped"
        )


@runtime_checkable
class TmsAdapter(Protocol):
    """Operations the sync pipeline needs from a backend.

    Every method raises ``TmsError`` on a network or protocol failure.
    Nothing is rolled back on partial success.
    """

    def create_suite(self, name: str, description: str) -> RemoteSuite: ...

    def update_suite(self, suite_id: str, description: str) -> None: ...

    def add_section(self, suite_id: str, name: str) -> str: ...

    def add_or_update_case(
        self,
        suite_id: str,
        section_id: str | None,
        scenario: Scenario,
        existing_case_id: str | None = None,
    ) -> str: ...

    def delete_case(self, case_id: str) -> bool: ...

    def reorder_cases(
        self,
        suite_id: str,
        section_id: str | None,
        ordered_case_ids: list[str],
    ) -> None: ...

    def get_active_runs(self, suite_id: str) -> list[RemoteRun]: ...

    def create_run(
        self, suite_id: str, name: str, case_ids: list[str]
    ) -> RemoteRun: ...

    def close_run(self, run_id: str) -> None: ...

    def add_results(self, run_id: str, results: dict[str, CaseResult]) -> None: ...

    def upload_attachment(self, run_id: str, file_path: Path) -> None: ...


def build_suite_description(
    project_id: str,
    path: str,
    user: str | None = None,
    version: str | None = None,
    timestamp: datetime | None = None,
) -> str:
    """Build the traceability block stored as a suite description.

    Names the project, the source file, who synchronised it, with which
    tool version and when. Missing values default to the current user,
    this package's version and the current UTC time.
    """
    if not user:
        try:
            user = getpass.getuser()
        except (KeyError, OSError):
            user = "unknown"
    version = version or __version__
    timestamp = timestamp or datetime.now(timezone.utc)
    return "\n".join(
        [
            f"Project: {project_id}",
            f"File: {path}",
            f"Synced by: {user}",
            f"Tool version: tms-sync {version}",
            f"Updated on: {timestamp.strftime('%Y-%m-%d %H:%M:%S %Z').strip()}",
        ]
    )


def format_steps_text(scenario: Scenario) -> tuple[str, str]:
    """Render a scenario's steps as numbered text for backends without
    structured steps.

    Returns:
        A ``(steps, expected)`` pair of newline-joined strings.
    """
    steps = []
    expected = []
    for i, step in enumerate(scenario.steps, 1):
        steps.append(f"{i}. {step.description}")
        if step.expected:
            expected.append(f"{i}. {step.expected}")
    return "\n".join(steps), "\n".join(expected)
