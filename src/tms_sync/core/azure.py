"""Azure DevOps Test Plans backend.

Mapping onto the Azure model:

* a suite is a **test plan**, and the plan's root test suite is the section;
* a scenario is a ``Test Case`` work item, created with a JSON-patch
  document and then attached to the root suite;
* runs and results live under ``test/runs`` and close by moving to the
  ``Completed`` state.
"""

import base64
import logging
from pathlib import Path
from typing import Any
from xml.etree import ElementTree

from ..config import Config
from ..sync.models import Scenario
from .adapter import CaseResult, RemoteRun, RemoteSuite
from .errors import TmsError
from .http import RestClient

logger = logging.getLogger(__name__)

API_VERSION = "api-version=6.0"
API_PREVIEW_1 = "api-version=6.0-preview.1"
API_PREVIEW_2 = "api-version=6.0-preview.2"

JSON_PATCH = {"Content-Type": "application/json-patch+json"}

RUN_COMPLETED = "Completed"


class AzureDevOpsAdapter:
    def __init__(self, config: Config, client: RestClient | None = None):
        self.config = config
        self.project_id = config.project_id
        self.client = client or RestClient(config)
        self.project_url = f"{config.tms_url}/{config.project_id}"
        self.api_url = f"{self.project_url}/_apis/"

    def _url(self, endpoint: str, version: str = API_VERSION) -> str:
        separator = "&" if "?" in endpoint else "?"
        return f"{self.api_url}{endpoint}{separator}{version}"

    def plan_url(self, plan_id: str, root_suite_id: str | None) -> str:
        url = f"{self.project_url}/_testPlans/define?planId={plan_id}"
        if root_suite_id:
            url += f"&suiteId={root_suite_id}"
        return url

    # ------------------------------------------------------------------
    # Plans (suites) and root suites (sections)
    # ------------------------------------------------------------------

    def create_suite(self, name: str, description: str) -> RemoteSuite:
        logger.info("Creating test plan '%s' in project %s", name, self.project_id)
        payload = self.client.post(
            self._url("testplan/plans", API_PREVIEW_1),
            "create_plan",
            json={"name": name, "description": description},
        )
        if not isinstance(payload, dict) or payload.get("id") is None:
            raise TmsError("create_plan", "response carries no id")
        plan_id = str(payload["id"])
        root = (payload.get("rootSuite") or {}).get("id")
        return RemoteSuite(
            id=plan_id,
            name=payload.get("name", name),
            url=self.plan_url(plan_id, str(root) if root is not None else None),
        )

    def update_suite(self, suite_id: str, description: str) -> None:
        logger.info("Updating test plan %s", suite_id)
        self.client.patch(
            self._url(f"testplan/plans/{suite_id}", API_PREVIEW_1),
            "update_plan",
            json={"description": description},
        )

    def add_section(self, suite_id: str, name: str) -> str:
        """Return the plan's root suite, which Azure creates with the plan."""
        payload = self.client.get(
            self._url(f"testplan/plans/{suite_id}/suites", API_PREVIEW_1),
            "get_suites",
        )
        suites = (payload or {}).get("value") or []
        if not suites:
            raise TmsError("get_suites", f"plan {suite_id} has no root suite")
        return str(suites[0]["id"])

    # ------------------------------------------------------------------
    # Test case work items
    # ------------------------------------------------------------------

    def add_or_update_case(
        self,
        suite_id: str,
        section_id: str | None,
        scenario: Scenario,
        existing_case_id: str | None = None,
    ) -> str:
        document = _work_item_patch(scenario)
        if existing_case_id:
            logger.info(
                "Updating test case %s '%s'", existing_case_id, scenario.name
            )
            self.client.patch(
                self._url(f"wit/workitems/{existing_case_id}"),
                "update_test_case",
                json=document,
                headers=JSON_PATCH,
            )
            return existing_case_id

        if not section_id:
            raise TmsError(
                "add_test_case", f"no suite to add '{scenario.name}' to"
            )
        logger.info("Adding test case '%s'", scenario.name)
        payload = self.client.post(
            self._url("wit/workitems/$Test%20Case"),
            "create_test_case",
            json=document,
            headers=JSON_PATCH,
        )
        if not isinstance(payload, dict) or payload.get("id") is None:
            raise TmsError("create_test_case", "response carries no id")
        case_id = str(payload["id"])

        self.client.post(
            self._url(
                f"testplan/plans/{suite_id}/suites/{section_id}/TestCase",
                API_PREVIEW_2,
            ),
            "add_test_case",
            json=[{"workItem": {"id": int(case_id)}}],
        )
        return case_id

    def delete_case(self, case_id: str) -> bool:
        logger.info("Deleting test case %s", case_id)
        self.client.delete(
            self._url(f"test/testcases/{case_id}", API_PREVIEW_1),
            "delete_test_case",
        )
        return True

    def reorder_cases(
        self,
        suite_id: str,
        section_id: str | None,
        ordered_case_ids: list[str],
    ) -> None:
        if not section_id:
            section_id = self.add_section(suite_id, "")
        logger.info(
            "Reordering %d test case(s) in suite %s",
            len(ordered_case_ids),
            section_id,
        )
        self.client.patch(
            self._url(f"testplan/suiteentry/{section_id}", API_PREVIEW_1),
            "reorder_test_cases",
            json=[
                {
                    "id": int(case_id),
                    "sequenceNumber": index,
                    "suiteEntryType": "testCase",
                }
                for index, case_id in enumerate(ordered_case_ids)
            ],
        )

    # ------------------------------------------------------------------
    # Runs and results
    # ------------------------------------------------------------------

    def get_active_runs(self, suite_id: str) -> list[RemoteRun]:
        payload = self.client.get(
            self._url(f"test/runs?planId={suite_id}&includeRunDetails=true"),
            "get_runs",
        )
        runs = []
        for run in (payload or {}).get("value") or []:
            plan = run.get("plan") or {}
            if str(plan.get("id")) != str(suite_id):
                continue
            if run.get("state") == RUN_COMPLETED:
                continue
            runs.append(RemoteRun(id=str(run["id"]), name=run.get("name", "")))
        return runs

    def create_run(
        self, suite_id: str, name: str, case_ids: list[str]
    ) -> RemoteRun:
        """Start an automated run on plan *suite_id*.

        *case_ids* is not sent: the run is not bound to test points, so
        its scope is whatever results are later posted to it.
        """
        logger.info("Creating run '%s' for plan %s", name, suite_id)
        payload = self.client.post(
            self._url("test/runs"),
            "create_run",
            json={
                "name": name,
                "plan": {"id": str(suite_id)},
                "automated": True,
                "state": "InProgress",
            },
        )
        if not isinstance(payload, dict) or payload.get("id") is None:
            raise TmsError("create_run", "response carries no id")
        return RemoteRun(id=str(payload["id"]), name=name)

    def close_run(self, run_id: str) -> None:
        logger.info("Completing run %s", run_id)
        self.client.patch(
            self._url(f"test/runs/{run_id}"),
            "close_run",
            json={"state": RUN_COMPLETED},
        )

    def add_results(self, run_id: str, results: dict[str, CaseResult]) -> None:
        if not results:
            return
        body = [
            {
                "testCase": {"id": case_id},
                "testCaseTitle": result.scenario,
                "automatedTestName": result.scenario,
                "outcome": "Passed" if result.passed else "Failed",
                "state": RUN_COMPLETED,
                "durationInMs": result.elapsed_ms,
                "comment": result.comment(),
            }
            for case_id, result in results.items()
        ]
        self.client.post(
            self._url(f"test/runs/{run_id}/results"), "add_results", json=body
        )

    def upload_attachment(self, run_id: str, file_path: Path) -> None:
        file_path = Path(file_path)
        logger.info("Attaching %s to run %s", file_path.name, run_id)
        stream = base64.b64encode(file_path.read_bytes()).decode("ascii")
        self.client.post(
            self._url(f"test/runs/{run_id}/attachments", API_PREVIEW_1),
            "add_attachment",
            json={
                "stream": stream,
                "fileName": file_path.name,
                "comment": "Test execution output",
                "attachmentType": "GeneralAttachment",
            },
        )


def steps_xml(scenario: Scenario) -> str:
    """Serialise scenario steps to the TCM ``Microsoft.VSTS.TCM.Steps`` XML."""
    root = ElementTree.Element(
        "steps", {"id": "0", "last": str(len(scenario.steps) + 1)}
    )
    for index, step in enumerate(scenario.steps, start=2):
        node = ElementTree.SubElement(
            root, "step", {"id": str(index), "type": "ValidateStep"}
        )
        for text in (step.description, step.expected):
            ElementTree.SubElement(
                node, "parameterizedString", {"isformatted": "true"}
            ).text = text
        ElementTree.SubElement(node, "description")
    return ElementTree.tostring(root, encoding="unicode")


def _work_item_patch(scenario: Scenario) -> list[dict[str, Any]]:
    return [
        {"op": "add", "path": "/fields/System.Title", "value": scenario.name},
        {
            "op": "add",
            "path": "/fields/System.Description",
            "value": scenario.description,
        },
        {
            "op": "add",
            "path": "/fields/Microsoft.VSTS.TCM.Steps",
            "value": steps_xml(scenario),
        },
    ]
