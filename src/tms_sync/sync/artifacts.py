"""Read test artifacts from YAML (or JSON) files.

A script file lists its scenarios directly::

    scenarios:
      - name: Login
        description: Valid credentials reach the dashboard
        steps:
          - description: Open the login page
            expected: Login form is shown
          - Submit the form

A plan file groups scenarios by subplan; each subplan is synchronised to
its own suite::

    subplans:
      smoke:
        scenarios: [...]
      regression:
        scenarios: [...]
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ..core.errors import ArtifactError
from .models import Scenario, ScenarioStep, TestArtifact

logger = logging.getLogger(__name__)


def relative_path(path: Path, project_root: Path | None = None) -> str:
    """Return *path* relative to *project_root* (default: CWD), POSIX style.

    Paths outside the root are kept absolute.
    """
    root = (project_root or Path.cwd()).resolve()
    resolved = path.resolve()
    try:
        return resolved.relative_to(root).as_posix()
    except ValueError:
        return resolved.as_posix()


def _read(path: Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        raise ArtifactError(f"Cannot read artifact {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ArtifactError(f"Artifact {path} must contain a mapping")
    return data


def _parse_step(raw: Any) -> ScenarioStep:
    if isinstance(raw, str):
        return ScenarioStep(description=raw)
    if isinstance(raw, dict):
        return ScenarioStep(
            description=str(raw.get("description", "")),
            expected=str(raw.get("expected") or ""),
        )
    raise ValueError(f"unsupported step: {raw!r}")


def _parse_scenarios(raw: Any, path: Path) -> list[Scenario]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ArtifactError(f"'scenarios' in {path} must be a list")
    scenarios = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("name"):
            raise ArtifactError(f"Scenario without a name in {path}")
        try:
            scenarios.append(
                Scenario(
                    name=str(item["name"]).strip(),
                    description=str(item.get("description") or ""),
                    steps=[_parse_step(s) for s in item.get("steps") or []],
                )
            )
        except (ValueError, ValidationError) as exc:
            raise ArtifactError(
                f"Invalid scenario '{item['name']}' in {path}: {exc}"
            ) from exc
    return scenarios


def list_subplans(path: Path | str) -> list[str]:
    """Return the subplan names of a plan file (empty for a script)."""
    data = _read(Path(path))
    subplans = data.get("subplans") or {}
    if not isinstance(subplans, dict):
        raise ArtifactError(f"'subplans' in {path} must be a mapping")
    return [str(name) for name in subplans]


def load_artifact(
    path: Path | str,
    project_id: str,
    subplan: str | None = None,
    project_root: Path | None = None,
) -> TestArtifact:
    """Load one artifact from *path*.

    Args:
        path: Script or plan file.
        project_id: Remote project the artifact belongs to.
        subplan: Subplan to load. Required for plan files.
        project_root: Root the stored path is made relative to.

    Raises:
        ArtifactError: If the file cannot be read, the subplan is unknown,
            or the content is malformed (including duplicate scenario
            names).
    """
    path = Path(path)
    data = _read(path)

    if subplan is not None:
        subplans = data.get("subplans") or {}
        if subplan not in subplans:
            raise ArtifactError(f"Subplan '{subplan}' not found in {path}")
        raw = (subplans[subplan] or {}).get("scenarios")
    elif "subplans" in data:
        raise ArtifactError(f"{path} is a plan; a subplan must be given")
    else:
        raw = data.get("scenarios")

    scenarios = _parse_scenarios(raw, path)
    try:
        artifact = TestArtifact(
            path=relative_path(path, project_root),
            project_id=project_id,
            subplan=subplan,
            scenarios=scenarios,
        )
    except ValidationError as exc:
        raise ArtifactError(f"Invalid artifact {path}: {exc}") from exc

    logger.debug(
        "Loaded %s with %d scenario(s)", artifact.suite_name, len(scenarios)
    )
    return artifact


def load_artifacts(
    path: Path | str,
    project_id: str,
    subplan: str | None = None,
    project_root: Path | None = None,
) -> list[TestArtifact]:
    """Load a script, one subplan, or every subplan of a plan file."""
    if subplan is None:
        names = list_subplans(path)
        if names:
            return [
                load_artifact(path, project_id, name, project_root)
                for name in names
            ]
    return [load_artifact(path, project_id, subplan, project_root)]
