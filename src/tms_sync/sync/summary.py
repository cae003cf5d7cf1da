"""Execution output discovery.

The test runner writes one timestamped directory per execution under
``<project>/output``. Each holds an ``execution-summary.json`` plus the
run-level files attached to the uploaded run.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from ..core.errors import ArtifactError
from .models import ExecutionSummary

logger = logging.getLogger(__name__)

SUMMARY_FILE = "execution-summary.json"

DEFAULT_ATTACHMENT_PATTERNS = ("junit.xml", "execution-output.html", "*.xlsx")


def load_execution_summary(output_dir: Path | str) -> ExecutionSummary:
    """Read ``execution-summary.json`` from *output_dir*.

    Raises:
        ArtifactError: If the file is missing or malformed.
    """
    path = Path(output_dir) / SUMMARY_FILE
    try:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
        return ExecutionSummary.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        raise ArtifactError(
            f"Cannot read execution summary {path}: {exc}"
        ) from exc


def find_latest_output(project_dir: Path | str) -> Path:
    """Return the newest execution directory under ``<project_dir>/output``.

    Directories are named by timestamp, so the newest sorts last; only
    directories holding an execution summary are considered.

    Raises:
        ArtifactError: If no execution output exists.
    """
    output_root = Path(project_dir) / "output"
    if not output_root.is_dir():
        raise ArtifactError(f"No output directory at {output_root}")
    candidates = sorted(
        p
        for p in output_root.iterdir()
        if p.is_dir() and (p / SUMMARY_FILE).is_file()
    )
    if not candidates:
        raise ArtifactError(f"No execution output under {output_root}")
    logger.debug("Latest execution output: %s", candidates[-1])
    return candidates[-1]


def collect_attachments(
    output_dir: Path | str,
    patterns: list[str] | tuple[str, ...] = DEFAULT_ATTACHMENT_PATTERNS,
    summary: ExecutionSummary | None = None,
) -> list[Path]:
    """Gather the run-level files of an execution.

    Matches *patterns* against the top level of *output_dir*, skipping
    ``~``-prefixed office lock files, then adds the attachments the
    summary itself lists (relative paths resolve against *output_dir*).
    Missing listed files are logged and left out.
    """
    output_dir = Path(output_dir)
    found: list[Path] = []
    for pattern in patterns:
        for path in sorted(output_dir.glob(pattern)):
            if path.is_file() and not path.name.startswith("~"):
                found.append(path)

    if summary is not None:
        listed = list(summary.attachments)
        for outcome in summary.scenarios:
            listed.extend(outcome.attachments)
        for name in listed:
            path = Path(name)
            if not path.is_absolute():
                path = output_dir / path
            if not path.is_file():
                logger.warning("Listed attachment %s does not exist", path)
                continue
            found.append(path)

    unique: list[Path] = []
    for path in found:
        if path not in unique:
            unique.append(path)
    return unique
