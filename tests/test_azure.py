"""Wire-level tests for the Azure DevOps adapter."""

import base64
from unittest.mock import patch
from xml.etree import ElementTree

import pytest

from conftest import make_scenario

from tms_sync.config import Config
from tms_sync.core.adapter import CaseResult
from tms_sync.core.azure import AzureDevOpsAdapter, steps_xml
from tms_sync.core.errors import TmsError

API = "https://dev.azure.com/org/Web/_apis/"


@pytest.fixture
def adapter():
    config = Config(
        tms_url="https://dev.azure.com/org",
        username="",
        password="pat-token",
        project_id="Web",
        source="azure",
    )
    return AzureDevOpsAdapter(config)


def test_steps_xml_structure():
    scenario = make_scenario("Login", ("Open page", "Form shown"), ("Submit", ""))
    root = ElementTree.fromstring(steps_xml(scenario))

    assert root.tag == "steps"
    assert root.get("last") == "3"
    steps = root.findall("step")
    assert [s.get("id") for s in steps] == ["2", "3"]
    texts = [p.text for p in steps[0].findall("parameterizedString")]
    assert texts == ["Open page", "Form shown"]


@patch("tms_sync.core.http.requests.Session.request")
class TestPlansAndCases:
    def test_create_plan(self, mock_request, adapter, make_response):
        mock_request.return_value = make_response(
            body={"id": 31, "name": "login", "rootSuite": {"id": 32}}
        )

        suite = adapter.create_suite("login", "desc")

        assert suite.id == "31"
        assert suite.url == (
            "https://dev.azure.com/org/Web/_testPlans/define?planId=31&suiteId=32"
        )
        args, kwargs = mock_request.call_args
        assert args == ("POST", API + "testplan/plans?api-version=6.0-preview.1")
        assert kwargs["json"] == {"name": "login", "description": "desc"}

    def test_update_plan(self, mock_request, adapter, make_response):
        mock_request.return_value = make_response(body={"id": 31, "name": "login"})
        adapter.update_suite("31", "desc")
        args, kwargs = mock_request.call_args
        assert args == ("PATCH", API + "testplan/plans/31?api-version=6.0-preview.1")
        assert kwargs["json"] == {"description": "desc"}

    def test_section_is_root_suite(self, mock_request, adapter, make_response):
        mock_request.return_value = make_response(
            body={"count": 1, "value": [{"id": 32, "name": "login"}]}
        )
        assert adapter.add_section("31", "Scenarios") == "32"
        assert mock_request.call_args[0] == (
            "GET",
            API + "testplan/plans/31/suites?api-version=6.0-preview.1",
        )

    def test_plan_without_root_suite_raises(self, mock_request, adapter, make_response):
        mock_request.return_value = make_response(body={"count": 0, "value": []})
        with pytest.raises(TmsError):
            adapter.add_section("31", "Scenarios")

    def test_create_case_then_attach_to_suite(
        self, mock_request, adapter, make_response
    ):
        mock_request.side_effect = [
            make_response(body={"id": 501}),
            make_response(body={"count": 1, "value": []}),
        ]
        scenario = make_scenario("Login", ("Open page", "Form shown"))

        assert adapter.add_or_update_case("31", "32", scenario) == "501"

        create, attach = mock_request.call_args_list
        assert create[0] == ("POST", API + "wit/workitems/$Test%20Case?api-version=6.0")
        assert create[1]["headers"] == {"Content-Type": "application/json-patch+json"}
        paths = [op["path"] for op in create[1]["json"]]
        assert paths == [
            "/fields/System.Title",
            "/fields/System.Description",
            "/fields/Microsoft.VSTS.TCM.Steps",
        ]
        assert attach[0] == (
            "POST",
            API + "testplan/plans/31/suites/32/TestCase?api-version=6.0-preview.2",
        )
        assert attach[1]["json"] == [{"workItem": {"id": 501}}]

    def test_update_case_patches_work_item(self, mock_request, adapter, make_response):
        mock_request.return_value = make_response(body={"id": 501})
        scenario = make_scenario("Login", ("Open page", "Form shown"))

        assert adapter.add_or_update_case("31", "32", scenario, "501") == "501"
        assert mock_request.call_count == 1
        assert mock_request.call_args[0] == (
            "PATCH",
            API + "wit/workitems/501?api-version=6.0",
        )

    def test_delete_case(self, mock_request, adapter, make_response):
        mock_request.return_value = make_response(status_code=204)
        assert adapter.delete_case("501") is True
        assert mock_request.call_args[0] == (
            "DELETE",
            API + "test/testcases/501?api-version=6.0-preview.1",
        )

    def test_reorder_suite_entries(self, mock_request, adapter, make_response):
        mock_request.return_value = make_response(body={"value": []})
        adapter.reorder_cases("31", "32", ["502", "501"])
        args, kwargs = mock_request.call_args
        assert args == ("PATCH", API + "testplan/suiteentry/32?api-version=6.0-preview.1")
        assert kwargs["json"] == [
            {"id": 502, "sequenceNumber": 0, "suiteEntryType": "testCase"},
            {"id": 501, "sequenceNumber": 1, "suiteEntryType": "testCase"},
        ]


@patch("tms_sync.core.http.requests.Session.request")
class TestRunsAndResults:
    def test_active_runs_filtered_by_plan_and_state(
        self, mock_request, adapter, make_response
    ):
        mock_request.return_value = make_response(
            body={
                "value": [
                    {"id": 1, "name": "a", "state": "InProgress", "plan": {"id": "31"}},
                    {"id": 2, "name": "b", "state": "Completed", "plan": {"id": "31"}},
                    {"id": 3, "name": "c", "state": "InProgress", "plan": {"id": "40"}},
                    {"id": 4, "name": "d", "state": "NotStarted", "plan": {"id": 31}},
                ]
            }
        )
        assert [r.id for r in adapter.get_active_runs("31")] == ["1", "4"]

    def test_create_run_bound_to_plan_only(self, mock_request, adapter, make_response):
        mock_request.return_value = make_response(body={"id": 77, "name": "login"})
        run = adapter.create_run("31", "login", ["501"])
        assert run.id == "77"
        args, kwargs = mock_request.call_args
        assert args == ("POST", API + "test/runs?api-version=6.0")
        assert kwargs["json"] == {
            "name": "login",
            "plan": {"id": "31"},
            "automated": True,
            "state": "InProgress",
        }

    def test_close_run_completes(self, mock_request, adapter, make_response):
        mock_request.return_value = make_response(body={"id": 77})
        adapter.close_run("77")
        args, kwargs = mock_request.call_args
        assert args == ("PATCH", API + "test/runs/77?api-version=6.0")
        assert kwargs["json"] == {"state": "Completed"}

    def test_add_results(self, mock_request, adapter, make_response):
        mock_request.return_value = make_response(body={"count": 2, "value": []})
        adapter.add_results(
            "77",
            {
                "501": CaseResult("501", "Login", True, elapsed_ms=1500),
                "502": CaseResult("502", "Logout", False, fail_count=1),
            },
        )
        args, kwargs = mock_request.call_args
        assert args == ("POST", API + "test/runs/77/results?api-version=6.0")
        outcomes = [(r["testCase"]["id"], r["outcome"]) for r in kwargs["json"]]
        assert outcomes == [("501", "Passed"), ("502", "Failed")]
        assert kwargs["json"][0]["durationInMs"] == 1500

    def test_upload_attachment_base64(
        self, mock_request, adapter, make_response, tmp_path
    ):
        mock_request.return_value = make_response(body={"id": 1})
        out = tmp_path / "execution-output.html"
        out.write_bytes(b"<html></html>")

        adapter.upload_attachment("77", out)

        args, kwargs = mock_request.call_args
        assert args == (
            "POST",
            API + "test/runs/77/attachments?api-version=6.0-preview.1",
        )
        assert kwargs["json"]["fileName"] == "execution-output.html"
        assert base64.b64decode(kwargs["json"]["stream"]) == b"<html></html>"
