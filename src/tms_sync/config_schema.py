"""Unified configuration schema for tms_sync.

Defines Pydantic models for the YAML config structure with dedicated
sections for the TMS connection, sync behaviour, Jira issue types and
logging.

Usage:
    from tms_sync.config_schema import UnifiedConfig, build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=unified.connection_fallbacks())
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class TmsConfig(BaseModel):
    """TMS server connection settings.

    All fields are optional: env vars and CLI args can supply them at
    runtime instead.
    """

    url: str | None = Field(default=None, description="TMS server URL")
    username: str | None = Field(default=None, description="TMS username")
    password: str | None = Field(
        default=None, description="TMS password or API token"
    )
    source: Literal["testrail", "azure", "jira"] | None = Field(
        default=None, description="Backend kind"
    )
    project_id: str | None = Field(
        default=None, description="Remote project id (Jira: project key)"
    )
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    debug: bool = Field(default=False, description="Enable debug mode")
    timeout: float = Field(
        default=60.0,
        gt=0,
        le=600,
        description="Read timeout in seconds for each request",
    )

    model_config = {"frozen": True, "coerce_numbers_to_str": True}


class SyncConfig(BaseModel):
    """Import and upload behaviour.

    Attributes:
        state_dir: Directory holding the per-project state documents.
        project_root: Directory artifact paths are made relative to.
            Defaults to the current working directory.
        close_runs_before_update: Close a suite's active runs before its
            cases are changed.
        close_run_after_upload: Close the run once results are uploaded.
        attachment_patterns: Globs, relative to the output directory, of
            run-level files uploaded with the results.
    """

    state_dir: str = Field(default=".tms_sync", description="State directory")
    project_root: str | None = Field(
        default=None, description="Root for relative artifact paths"
    )
    close_runs_before_update: bool = False
    close_run_after_upload: bool = False
    attachment_patterns: list[str] = Field(
        default_factory=lambda: [
            "junit.xml",
            "execution-output.html",
            "*.xlsx",
        ]
    )

    model_config = {"frozen": True}


class JiraConfig(BaseModel):
    """Issue types used when the backend is Jira."""

    suite_issue_type: str = "Story"
    case_issue_type: str = "Sub-task"

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        format: ``text`` or ``json``.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    format: Literal["text", "json"] = "text"

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has defaults, so ``UnifiedConfig()`` (zero-config) is
    always valid.
    """

    tms: TmsConfig = Field(default_factory=TmsConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    jira: JiraConfig = Field(default_factory=JiraConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}

    def connection_fallbacks(self) -> dict:
        """Return the ``yaml_fallbacks`` dict expected by ``load_config()``."""
        fallbacks = self.tms.model_dump(exclude_none=True)
        fallbacks.update(self.jira.model_dump())
        return fallbacks


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults. Unknown top-level sections are logged
    and ignored.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    known = set(UnifiedConfig.model_fields)
    unknown = sorted(set(raw_data) - known)
    if unknown:
        logger.warning(
            "Ignoring unknown config sections: %s", ", ".join(unknown)
        )

    return UnifiedConfig(
        **{k: v for k, v in raw_data.items() if k in known and v is not None}
    )
