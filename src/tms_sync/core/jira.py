"""Jira backend over ``rest/api/2``.

Jira has no native test model, so:

* a suite is an issue of the configured suite issue type;
* a case is a child issue of the configured case issue type;
* there are no sections and no ordering;
* there are no runs: a "run" is the suite issue itself, results are
  posted as comments on each case issue and attachments go to the suite.
"""

import logging
from pathlib import Path
from typing import Any

from ..config import Config
from ..sync.models import Scenario
from .adapter import CaseResult, RemoteRun, RemoteSuite, format_steps_text
from .errors import TmsError
from .http import RestClient

logger = logging.getLogger(__name__)


class JiraAdapter:
    def __init__(self, config: Config, client: RestClient | None = None):
        self.config = config
        self.project_key = config.project_id
        self.client = client or RestClient(config)
        self.api_url = f"{config.tms_url}/rest/api/2/"

    def _url(self, endpoint: str) -> str:
        return self.api_url + endpoint

    def browse_url(self, key: str) -> str:
        return f"{self.config.tms_url}/browse/{key}"

    def _create_issue(self, fields: dict[str, Any], operation: str) -> str:
        payload = self.client.post(
            self._url("issue"), operation, json={"fields": fields}
        )
        if not isinstance(payload, dict) or not payload.get("key"):
            raise TmsError(operation, "response carries no issue key")
        return str(payload["key"])

    # ------------------------------------------------------------------
    # Suites
    # ------------------------------------------------------------------

    def create_suite(self, name: str, description: str) -> RemoteSuite:
        logger.info(
            "Creating %s '%s' in project %s",
            self.config.suite_issue_type,
            name,
            self.project_key,
        )
        key = self._create_issue(
            {
                "project": {"key": self.project_key},
                "issuetype": {"name": self.config.suite_issue_type},
                "summary": name,
                "description": description,
            },
            "create_suite_issue",
        )
        return RemoteSuite(id=key, name=name, url=self.browse_url(key))

    def update_suite(self, suite_id: str, description: str) -> None:
        logger.info("Updating issue %s", suite_id)
        self.client.put(
            self._url(f"issue/{suite_id}"),
            "update_suite_issue",
            json={"fields": {"description": description}},
        )

    def add_section(self, suite_id: str, name: str) -> str:
        return suite_id

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
        description = _case_description(scenario)
        if existing_case_id:
            logger.info(
                "Updating issue %s '%s'", existing_case_id, scenario.name
            )
            self.client.put(
                self._url(f"issue/{existing_case_id}"),
                "update_case_issue",
                json={
                    "fields": {
                        "summary": scenario.name,
                        "description": description,
                    }
                },
            )
            return existing_case_id

        logger.info("Adding %s '%s'", self.config.case_issue_type, scenario.name)
        return self._create_issue(
            {
                "project": {"key": self.project_key},
                "issuetype": {"name": self.config.case_issue_type},
                "parent": {"key": suite_id},
                "summary": scenario.name,
                "description": description,
            },
            "create_case_issue",
        )

    def delete_case(self, case_id: str) -> bool:
        logger.info("Deleting issue %s", case_id)
        self.client.delete(self._url(f"issue/{case_id}"), "delete_case_issue")
        return True

    def reorder_cases(
        self,
        suite_id: str,
        section_id: str | None,
        ordered_case_ids: list[str],
    ) -> None:
        logger.info("Jira does not order child issues; skipping reorder of %s", suite_id)

    # ------------------------------------------------------------------
    # Runs and results
    # ------------------------------------------------------------------

    def get_active_runs(self, suite_id: str) -> list[RemoteRun]:
        return []

    def create_run(
        self, suite_id: str, name: str, case_ids: list[str]
    ) -> RemoteRun:
        return RemoteRun(id=suite_id, name=name)

    def close_run(self, run_id: str) -> None:
        logger.debug("Jira has no runs to close (%s)", run_id)

    def add_results(self, run_id: str, results: dict[str, CaseResult]) -> None:
        for case_id, result in results.items():
            status = "PASSED" if result.passed else "FAILED"
            self.client.post(
                self._url(f"issue/{case_id}/comment"),
                "add_result_comment",
                json={
                    "body": (
                        f"*Execution result: {status}*\n"
                        f"{result.comment()}\n"
                        f"Elapsed: {result.elapsed_ms} ms"
                    )
                },
            )

    def upload_attachment(self, run_id: str, file_path: Path) -> None:
        file_path = Path(file_path)
        logger.info("Attaching %s to issue %s", file_path.name, run_id)
        with open(file_path, "rb") as fh:
            self.client.post(
                self._url(f"issue/{run_id}/attachments"),
                "add_attachment",
                files={"file": (file_path.name, fh)},
                headers={"X-Atlassian-Token": "no-check"},
            )


def _case_description(scenario: Scenario) -> str:
    steps, expected = format_steps_text(scenario)
    parts = [scenario.description] if scenario.description else []
    if steps:
        parts.append(f"*Steps*\n{steps}")
    if expected:
        parts.append(f"*Expected*\n{expected}")
    return "\n\n".join(parts)
