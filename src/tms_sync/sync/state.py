"""Sync state persistence layer.

Manages the JSON state documents that record, per project, which remote
suite, section and test cases each local artifact was synchronised to.
Each project gets its own document (``tms_{project_id}.json``) inside the
state directory (``.tms_sync/`` by default).

Key design choices:

* **Atomic writes**: ``save()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
* **Single writer**: a process-wide lock serialises ``save()``.
* **Lock-step entries**: ``FileEntry.cache`` (fingerprints) and
  ``FileEntry.scenarios`` (case ids, in last-synced order) are only
  changed together through ``record()`` and ``forget()``.
* **Mutable models**: entries are mutated freely during a sync run and
  persisted once at the end.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from ..core.errors import StateError

logger = logging.getLogger(__name__)

STATE_VERSION = 1

_STATE_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    extra="ignore",
    coerce_numbers_to_str=True,
)

# Guards every state file write in this process.
_SAVE_LOCK = threading.Lock()


class ScenarioRef(BaseModel):
    """A scenario name and the remote case it is synchronised to."""

    name: str
    case_id: str

    model_config = _STATE_CONFIG


class FileEntry(BaseModel):
    """Sync record of one artifact (one file, or one subplan of a plan).

    Attributes:
        path: Project-relative POSIX path of the artifact.
        subplan: Subplan name for plans.
        suite_id: Remote suite id.
        suite_name: Remote suite name.
        suite_url: Browser URL of the suite, when the backend reports one.
        section_id: Remote section id, created lazily.
        cache: Scenario name to fingerprint of the last synced content.
        scenarios: Scenario/case pairs in last-synced order.
    """

    path: str
    subplan: str | None = None
    suite_id: str
    suite_name: str = ""
    suite_url: str | None = None
    section_id: str | None = None
    cache: dict[str, str] = {}
    scenarios: list[ScenarioRef] = []

    model_config = _STATE_CONFIG

    @model_validator(mode="after")
    def _repair_lock_step(self) -> FileEntry:
        names = {ref.name for ref in self.scenarios}
        orphans = [name for name in self.cache if name not in names]
        missing = [name for name in names if name not in self.cache]
        if orphans or missing:
            logger.warning(
                "Repairing state entry %s: %d orphan fingerprint(s), "
                "%d scenario(s) without fingerprint",
                self.path,
                len(orphans),
                len(missing),
            )
            for name in orphans:
                del self.cache[name]
            # An empty fingerprint never matches, forcing an update.
            for name in missing:
                self.cache[name] = ""
        return self

    def matches(self, path: str, subplan: str | None = None) -> bool:
        return self.path == path and (self.subplan or None) == (subplan or None)

    def case_id_for(self, name: str) -> str | None:
        """Return the case id recorded for scenario *name*, if any."""
        for ref in self.scenarios:
            if ref.name == name:
                return ref.case_id
        return None

    def case_order(self) -> list[str]:
        """Return the recorded case ids in last-synced order."""
        return [ref.case_id for ref in self.scenarios]

    def record(self, name: str, case_id: str, digest: str) -> None:
        """Record that scenario *name* is synced to *case_id* with *digest*.

        An existing scenario keeps its position; a new one is appended.
        """
        self.cache[name] = digest
        for i, ref in enumerate(self.scenarios):
            if ref.name == name:
                self.scenarios[i] = ScenarioRef(name=name, case_id=case_id)
                return
        self.scenarios.append(ScenarioRef(name=name, case_id=case_id))

    def forget(self, name: str) -> None:
        """Remove scenario *name* from both the cache and the scenario list."""
        self.cache.pop(name, None)
        self.scenarios = [ref for ref in self.scenarios if ref.name != name]

    def reorder(self, names: list[str]) -> None:
        """Rewrite the scenario list to follow *names*.

        Recorded scenarios missing from *names* keep their relative order
        after the listed ones.
        """
        by_name = {ref.name: ref for ref in self.scenarios}
        ordered = [by_name.pop(name) for name in names if name in by_name]
        self.scenarios = ordered + [
            ref for ref in self.scenarios if ref.name in by_name
        ]


class SyncState(BaseModel):
    """The persisted document for one project."""

    project_id: str
    version: int = STATE_VERSION
    last_sync: str | None = None
    files: list[FileEntry] = []

    model_config = _STATE_CONFIG


class SyncStateStore:
    """Load, save, and query sync state documents.

    Args:
        state_dir: Directory where state documents are stored
            (typically ``.tms_sync/``).
    """

    def __init__(self, state_dir: Path | str) -> None:
        self._state_dir = Path(state_dir)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self, project_id: str) -> SyncState:
        """Load the state document for *project_id*.

        Returns:
            The state. An empty state is returned when no document exists.

        Raises:
            StateError: If the document is not valid JSON or does not
                match the expected structure.
        """
        path = self.state_path(project_id)
        if not path.exists():
            return SyncState(project_id=project_id)
        try:
            with open(path, encoding="utf-8") as fh:
                data = json.load(fh)
            state = SyncState.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            raise StateError(f"Cannot read sync state {path}: {exc}") from exc
        logger.debug(
            "Loaded sync state %s (%d file(s))", path, len(state.files)
        )
        return state

    def save(self, state: SyncState) -> None:
        """Persist *state* to disk atomically.

        Writes to a temporary file in the state directory then atomically
        replaces the target. Creates the directory if it does not exist.
        ``last_sync`` is set to the current UTC ISO 8601 timestamp before
        writing.
        """
        with _SAVE_LOCK:
            self._state_dir.mkdir(parents=True, exist_ok=True)
            state.last_sync = datetime.now(timezone.utc).isoformat()

            target = self.state_path(state.project_id)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self._state_dir), suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(
                        state.model_dump(mode="json", by_alias=True),
                        fh,
                        indent=2,
                        ensure_ascii=False,
                    )
                os.replace(tmp_path, target)
            except BaseException:
                # Clean up temp file on any failure.
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
                raise
        logger.debug("Saved sync state %s", target)

    # ------------------------------------------------------------------
    # Entry helpers
    # ------------------------------------------------------------------

    def find_entry(
        self, state: SyncState, path: str, subplan: str | None = None
    ) -> FileEntry | None:
        """Return the entry for *path* / *subplan*, or ``None`` if absent."""
        for entry in state.files:
            if entry.matches(path, subplan):
                return entry
        return None

    def upsert_entry(self, state: SyncState, entry: FileEntry) -> None:
        """Insert *entry*, replacing any entry for the same artifact.

        Mutates *state* in place.
        """
        for i, existing in enumerate(state.files):
            if existing.matches(entry.path, entry.subplan):
                state.files[i] = entry
                return
        state.files.append(entry)

    def remove_entry(
        self, state: SyncState, path: str, subplan: str | None = None
    ) -> FileEntry | None:
        """Remove and return the entry for *path* / *subplan*.

        No-op (returns ``None``) if not present.
        """
        entry = self.find_entry(state, path, subplan)
        if entry is not None:
            state.files.remove(entry)
        return entry

    def state_path(self, project_id: str) -> Path:
        """Return the path to the state document for *project_id*."""
        return self._state_dir / f"tms_{project_id}.json"
