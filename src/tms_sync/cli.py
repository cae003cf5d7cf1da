"""Command line interface: ``tms-sync``.

Subcommands:

- ``import``      -- synchronise artifact files to the TMS.
- ``upload``      -- upload an execution's results.
- ``close-runs``  -- close the active runs of an artifact's suite.
- ``remove``      -- delete an artifact's remote cases and forget it.
- ``status``      -- list what the state store knows about the project.
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from . import __version__
from .config import Config, load_config
from .config_loader import load_hierarchical_config
from .config_schema import UnifiedConfig, build_config
from .core.errors import ArtifactError, TmsError
from .core.factory import create_adapter
from .logger import setup_logging
from .sync.artifacts import load_artifacts, relative_path
from .sync.engine import Synchronizer
from .sync.reporter import (
    format_dry_run_preview,
    format_import_report,
    format_upload_report,
    report_to_json,
)
from .sync.state import SyncStateStore
from .sync.summary import (
    collect_attachments,
    find_latest_output,
    load_execution_summary,
)
from .sync.uploader import ResultUploader, close_active_runs

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tms-sync",
        description="Synchronise test artifacts and results with a Test Management System",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import a script (connection settings from .env or .tms_sync/config.yml)
  tms-sync import artifacts/login.yml

  # Preview what an import would change
  tms-sync import artifacts/*.yml --dry-run

  # Upload the latest execution of a project and close the run
  tms-sync upload --latest-from ./my-project --close-run

  # Use Azure DevOps with a personal access token
  tms-sync --source azure --url https://dev.azure.com/org --project-id Web import plan.yml
        """,
    )
    parser.add_argument("--url", help="Override TMS URL (takes precedence over TMS_URL)")
    parser.add_argument("--username", help="Override TMS username")
    parser.add_argument(
        "--password",
        help="Override TMS password or API token"
        " (visible in process list -- prefer TMS_PASSWORD env var for security)",
    )
    parser.add_argument(
        "--source",
        choices=["testrail", "azure", "jira"],
        help="Backend kind (default: testrail)",
    )
    parser.add_argument("--project-id", help="Remote project id (Jira: project key)")
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        help="Log output format (default: text)",
    )
    parser.add_argument(
        "--json", action="store_true", help="Print reports as JSON"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"tms-sync version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p_import = sub.add_parser("import", help="Synchronise artifact files")
    p_import.add_argument("files", nargs="+", type=Path, help="Script or plan files")
    p_import.add_argument("--subplan", help="Only this subplan of a plan file")
    p_import.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would change without calling the TMS",
    )

    p_upload = sub.add_parser("upload", help="Upload execution results")
    source = p_upload.add_mutually_exclusive_group(required=True)
    source.add_argument("output_dir", nargs="?", type=Path, help="Execution output directory")
    source.add_argument(
        "--latest-from",
        type=Path,
        metavar="PROJECT",
        help="Use the newest execution under PROJECT/output",
    )
    p_upload.add_argument(
        "--script",
        type=Path,
        help="Executed artifact (default: the summary's scriptPath)",
    )
    p_upload.add_argument("--subplan", help="Executed subplan (default: the summary's)")
    p_upload.add_argument(
        "--close-run", action="store_true", help="Close the run after uploading"
    )

    p_close = sub.add_parser("close-runs", help="Close active runs of a suite")
    p_close.add_argument("file", type=Path)
    p_close.add_argument("--subplan")

    p_remove = sub.add_parser("remove", help="Delete an artifact's remote cases")
    p_remove.add_argument("file", type=Path)
    p_remove.add_argument("--subplan")

    sub.add_parser("status", help="Show synced artifacts")
    return parser


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


def _connection(args: argparse.Namespace, unified: UnifiedConfig) -> Config:
    return load_config(
        url=args.url,
        username=args.username,
        password=args.password,
        source=args.source,
        project_id=args.project_id,
        insecure=args.insecure,
        debug=args.debug,
        yaml_fallbacks=unified.connection_fallbacks(),
    )


def _project_id(args: argparse.Namespace, unified: UnifiedConfig) -> str:
    project_id = args.project_id or os.getenv("TMS_PROJECT_ID") or unified.tms.project_id
    if not project_id:
        raise ValueError(
            "TMS project id not found. Set TMS_PROJECT_ID environment variable, "
            "pass --project-id CLI argument, or add 'project_id' to config.yml."
        )
    return str(project_id)


def _project_root(unified: UnifiedConfig) -> Path:
    return Path(unified.sync.project_root or Path.cwd())


def _store(unified: UnifiedConfig) -> SyncStateStore:
    return SyncStateStore(Path(unified.sync.state_dir))


def _print_json(data: dict) -> None:
    print(json.dumps(data, indent=2, default=str))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_import(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    project_id = _project_id(args, unified)
    root = _project_root(unified)

    artifacts = []
    failed = False
    for path in args.files:
        try:
            artifacts.extend(load_artifacts(path, project_id, args.subplan, root))
        except ArtifactError as exc:
            logger.error("%s", exc)
            failed = True

    if args.dry_run:
        # Planning needs no connection, only the state store.
        synchronizer = Synchronizer(None, _store(unified), project_id)
    else:
        config = _connection(args, unified)
        synchronizer = Synchronizer(
            create_adapter(config),
            _store(unified),
            config.project_id,
            close_runs_before_update=unified.sync.close_runs_before_update,
        )
    report = synchronizer.run(artifacts, dry_run=args.dry_run)

    if args.json:
        _print_json(report_to_json(report))
    elif args.dry_run:
        print(format_dry_run_preview(report))
    else:
        print(format_import_report(report))
    return 1 if failed or report.errors else 0


def cmd_upload(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    config = _connection(args, unified)
    output_dir = args.output_dir or find_latest_output(args.latest_from)
    summary = load_execution_summary(output_dir)

    root = _project_root(unified)
    if args.script:
        script = args.script
    elif summary.script_path:
        # scriptPath is relative to the project, not to the CWD
        script = root / summary.script_path
    else:
        raise ArtifactError(
            f"{output_dir}: summary names no script; pass --script"
        )
    path = relative_path(script, root)
    subplan = args.subplan or summary.subplan

    store = _store(unified)
    state = store.load(config.project_id)
    entry = store.find_entry(state, path, subplan)
    if entry is None:
        logger.error("%s has not been imported; run 'tms-sync import' first", path)
        return 1

    attachments = collect_attachments(
        output_dir, unified.sync.attachment_patterns, summary
    )
    report = ResultUploader(create_adapter(config)).upload(
        summary,
        entry,
        close_run=args.close_run or unified.sync.close_run_after_upload,
        attachments=attachments,
    )
    if args.json:
        _print_json(report.model_dump(mode="json"))
    else:
        print(format_upload_report(report))
    return 0 if report.success else 1


def _require_entry(
    args: argparse.Namespace, unified: UnifiedConfig, config: Config
):
    store = _store(unified)
    state = store.load(config.project_id)
    path = relative_path(args.file, _project_root(unified))
    entry = store.find_entry(state, path, args.subplan)
    if entry is None:
        logger.error("%s has not been imported", path)
    return path, entry


def cmd_close_runs(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    config = _connection(args, unified)
    _, entry = _require_entry(args, unified, config)
    if entry is None:
        return 1
    closed = close_active_runs(create_adapter(config), entry.suite_id)
    if args.json:
        _print_json({"suite_id": entry.suite_id, "closed": closed})
    else:
        print(f"Closed {len(closed)} run(s) of suite {entry.suite_id}")
    return 0


def cmd_remove(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    config = _connection(args, unified)
    path, entry = _require_entry(args, unified, config)
    if entry is None:
        return 1
    report = Synchronizer(
        create_adapter(config), _store(unified), config.project_id
    ).remove(path, args.subplan)
    if args.json:
        _print_json(report.model_dump(mode="json"))
    else:
        deleted = sum(1 for r in report.deleted if r.success)
        print(f"Deleted {deleted} case(s) of {path}")
        for result in report.results:
            if result.error:
                print(f"  error: {result.scenario}: {result.error}")
    return 0 if report.success else 1


def cmd_status(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    project_id = _project_id(args, unified)
    state = _store(unified).load(project_id)
    if args.json:
        _print_json(state.model_dump(mode="json", by_alias=True))
        return 0
    print(f"Project {project_id}: {len(state.files)} artifact(s), last sync {state.last_sync or 'never'}")
    for entry in state.files:
        label = f"{entry.path} [{entry.subplan}]" if entry.subplan else entry.path
        print(f"  {label} -> suite {entry.suite_id}: {len(entry.scenarios)} case(s)")
    return 0


COMMANDS = {
    "import": cmd_import,
    "upload": cmd_upload,
    "close-runs": cmd_close_runs,
    "remove": cmd_remove,
    "status": cmd_status,
}


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run the subcommand and return the exit status."""
    args = build_parser().parse_args(argv)
    load_dotenv()

    unified = build_config(load_hierarchical_config())
    setup_logging(
        debug=args.debug,
        log_file=args.log_file or unified.logging.file,
        log_format=args.log_format or unified.logging.format,
        level=unified.logging.level,
    )

    try:
        return COMMANDS[args.command](args, unified)
    except (ValueError, TmsError) as exc:
        # StateError and ArtifactError are ValueErrors too.
        logger.error("%s", exc)
        return 1


def run() -> None:
    """Entry point for the ``tms-sync`` console script."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
