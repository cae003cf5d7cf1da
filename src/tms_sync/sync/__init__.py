"""Test artifact import and result upload.

Modules:

- ``engine``      -- ``Synchronizer``: pushes artifacts to the backend.
- ``uploader``    -- ``ResultUploader``: posts execution results.
- ``state``       -- ``SyncStateStore``: load/save/query state documents.
- ``fingerprint`` -- content fingerprints of scenarios.
- ``models``      -- local artifacts, execution summaries and reports.
- ``artifacts``   -- YAML/JSON artifact reader.
- ``summary``     -- execution summary and output directory discovery.
- ``reporter``    -- human-readable and JSON report formatting.

Only the dependency-free modules are re-exported here; import
``engine`` and ``uploader`` directly.
"""

from .fingerprint import fingerprint
from .models import (
    ArtifactReport,
    CaseSyncResult,
    ExecutionSummary,
    ImportReport,
    Scenario,
    ScenarioOutcome,
    ScenarioStep,
    SyncAction,
    TestArtifact,
    UploadReport,
)
from .state import FileEntry, ScenarioRef, SyncState, SyncStateStore

__all__ = [
    "ArtifactReport",
    "CaseSyncResult",
    "ExecutionSummary",
    "FileEntry",
    "ImportReport",
    "Scenario",
    "ScenarioOutcome",
    "ScenarioRef",
    "ScenarioStep",
    "SyncAction",
    "SyncState",
    "SyncStateStore",
    "TestArtifact",
    "UploadReport",
    "fingerprint",
]
