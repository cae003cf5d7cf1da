import logging
from pathlib import Path
from typing import Any

from ..config import Config
from ..sync.models import Scenario
from .adapter import CaseResult, RemoteRun, RemoteSuite
from .errors import TmsError
from .http import RestClient

logger = logging.getLogger(__name__)

STATUS_PASSED = 1
STATUS_FAILED = 5


class TestRailAdapter:
    """TestRail backend over the ``index.php?/api/v2/`` REST API.

    Suites map to TestRail suites, sections to a single section per suite,
    and scenarios to cases with separated steps.
    """

    __test__ = False

    def __init__(self, config: Config, client: RestClient | None = None):
        self.config = config
        self.project_id = config.project_id
        self.client = client or RestClient(config)
        self.api_url = f"{config.tms_url}/index.php?/api/v2/"

    def _url(self, endpoint: str) -> str:
        return self.api_url + endpoint

    def suite_url(self, suite_id: str) -> str:
        return f"{self.config.tms_url}/index.php?/suites/view/{suite_id}"

    # ------------------------------------------------------------------
    # Suites and sections
    # ------------------------------------------------------------------

    def create_suite(self, name: str, description: str) -> RemoteSuite:
        logger.info("Creating suite '%s' in project %s", name, self.project_id)
        payload = self.client.post(
            self._url(f"add_suite/{self.project_id}"),
            "add_suite",
            json={"name": name, "description": description},
        )
        suite_id = _require_id(payload, "add_suite")
        return RemoteSuite(id=suite_id, name=name, url=self.suite_url(suite_id))

    def update_suite(self, suite_id: str, description: str) -> None:
        logger.info("Updating suite %s", suite_id)
        self.client.post(
            self._url(f"update_suite/{suite_id}"),
            "update_suite",
            json={"description": description},
        )

    def add_section(self, suite_id: str, name: str) -> str:
        logger.info("Adding section '%s' to suite %s", name, suite_id)
        payload = self.client.post(
            self._url(f"add_section/{self.project_id}"),
            "add_section",
            json={"suite_id": _as_int(suite_id), "name": name},
        )
        return _require_id(payload, "add_section")

    def get_section_id(self, suite_id: str) -> str | None:
        """Return the first section of *suite_id*, or ``None`` if it has none."""
        payload = self.client.get(
            self._url(f"get_sections/{self.project_id}&suite_id={suite_id}"),
            "get_sections",
        )
        sections = _unwrap_list(payload, "sections")
        if not sections:
            return None
        return str(sections[0]["id"])

    # ------------------------------------------------------------------
    # Cases
    # ------------------------------------------------------------------

    def add_or_update_case(
        self,
        suite_id: str,
        section_id: str | None,
        scenario: Scenario,
        existing_case_id: str | None = None,
    ) -> str:
        body = _case_payload(scenario)
        if existing_case_id:
            logger.info(
                "Updating case %s '%s'", existing_case_id, scenario.name
            )
            self.client.post(
                self._url(f"update_case/{existing_case_id}"),
                "update_case",
                json=body,
            )
            return existing_case_id

        if not section_id:
            raise TmsError(
                "add_case", f"no section to add '{scenario.name}' to"
            )
        logger.info("Adding case '%s' to section %s", scenario.name, section_id)
        payload = self.client.post(
            self._url(f"add_case/{section_id}"), "add_case", json=body
        )
        return _require_id(payload, "add_case")

    def delete_case(self, case_id: str) -> bool:
        logger.info("Deleting case %s", case_id)
        self.client.post(self._url(f"delete_case/{case_id}"), "delete_case")
        return True

    def reorder_cases(
        self,
        suite_id: str,
        section_id: str | None,
        ordered_case_ids: list[str],
    ) -> None:
        section = section_id or self.get_section_id(suite_id)
        if not section:
            raise TmsError(
                "move_cases_to_section", f"suite {suite_id} has no section"
            )
        logger.info(
            "Reordering %d case(s) in section %s", len(ordered_case_ids), section
        )
        self.client.post(
            self._url(f"move_cases_to_section/{section}"),
            "move_cases_to_section",
            json={
                "suite_id": _as_int(suite_id),
                "case_ids": ",".join(ordered_case_ids),
            },
        )

    # ------------------------------------------------------------------
    # Runs and results
    # ------------------------------------------------------------------

    def get_active_runs(self, suite_id: str) -> list[RemoteRun]:
        payload = self.client.get(
            self._url(
                f"get_runs/{self.project_id}&suite_id={suite_id}&is_completed=0"
            ),
            "get_runs",
        )
        return [
            RemoteRun(
                id=str(run["id"]),
                name=run.get("name", ""),
                is_completed=bool(run.get("is_completed", False)),
            )
            for run in _unwrap_list(payload, "runs")
            if not run.get("is_completed")
        ]

    def create_run(
        self, suite_id: str, name: str, case_ids: list[str]
    ) -> RemoteRun:
        logger.info("Creating run '%s' with %d case(s)", name, len(case_ids))
        payload = self.client.post(
            self._url(f"add_run/{self.project_id}"),
            "add_run",
            json={
                "suite_id": _as_int(suite_id),
                "name": name,
                "include_all": False,
                "case_ids": [_as_int(c) for c in case_ids],
            },
        )
        return RemoteRun(id=_require_id(payload, "add_run"), name=name)

    def close_run(self, run_id: str) -> None:
        logger.info("Closing run %s", run_id)
        self.client.post(self._url(f"close_run/{run_id}"), "close_run")

    def add_results(self, run_id: str, results: dict[str, CaseResult]) -> None:
        for case_id, result in results.items():
            body: dict[str, Any] = {
                "status_id": STATUS_PASSED if result.passed else STATUS_FAILED,
                "comment": result.comment(),
            }
            # TestRail rejects elapsed values under one second.
            seconds = result.elapsed_ms // 1000
            if seconds >= 1:
                body["elapsed"] = f"{seconds}s"
            self.client.post(
                self._url(f"add_result_for_case/{run_id}/{case_id}"),
                "add_result_for_case",
                json=body,
            )

    def upload_attachment(self, run_id: str, file_path: Path) -> None:
        file_path = Path(file_path)
        logger.info("Attaching %s to run %s", file_path.name, run_id)
        with open(file_path, "rb") as fh:
            self.client.post(
                self._url(f"add_attachment_to_run/{run_id}"),
                "add_attachment_to_run",
                files={"attachment": (file_path.name, fh)},
            )


def _case_payload(scenario: Scenario) -> dict[str, Any]:
    return {
        "title": scenario.name,
        "custom_preconds": scenario.description,
        "custom_steps_separated": [
            {"content": step.description, "expected": step.expected}
            for step in scenario.steps
        ],
    }


def _unwrap_list(payload: Any, key: str) -> list[dict]:
    """Return the item list of a bare-list or paginated response."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        return payload.get(key) or []
    return []


def _require_id(payload: Any, operation: str) -> str:
    if not isinstance(payload, dict) or payload.get("id") is None:
        raise TmsError(operation, "response carries no id")
    return str(payload["id"])


def _as_int(value: str) -> int | str:
    try:
        return int(value)
    except (TypeError, ValueError):
        return value
