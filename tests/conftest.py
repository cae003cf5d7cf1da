"""Shared pytest fixtures for tms-sync tests."""

import json
from pathlib import Path

import pytest
import requests

from tms_sync.config import Config
from tms_sync.core.adapter import CaseResult, RemoteRun, RemoteSuite
from tms_sync.core.errors import TmsError
from tms_sync.sync.models import Scenario, ScenarioStep, TestArtifact


@pytest.fixture
def mock_config():
    """Create a TestRail Config instance for testing."""
    return Config(
        tms_url="https://tms.example.com",
        username="testuser",
        password="testpass",
        project_id="7",
        source="testrail",
        insecure=False,
    )


@pytest.fixture
def make_response():
    """Factory fixture for real ``requests.Response`` objects."""

    def _create_response(status_code=200, body=None, text=None, reason="OK"):
        response = requests.Response()
        response.status_code = status_code
        response.reason = reason
        response.encoding = "utf-8"
        if body is not None:
            response._content = json.dumps(body).encode("utf-8")
        elif text is not None:
            response._content = text.encode("utf-8")
        else:
            response._content = b""
        return response

    return _create_response


def make_scenario(name, *steps, description=""):
    """Build a Scenario from ``(description, expected)`` step tuples."""
    return Scenario(
        name=name,
        description=description,
        steps=[ScenarioStep(description=d, expected=e) for d, e in steps],
    )


def make_artifact(path="scripts/login.yml", scenarios=(), subplan=None):
    return TestArtifact(
        path=path,
        project_id="7",
        subplan=subplan,
        scenarios=list(scenarios),
    )


class FakeAdapter:
    """In-memory adapter recording every call as ``(method, args)``.

    Ids are handed out from counters. ``fail_on`` maps a method name to a
    predicate over its arguments; when the predicate is true the call
    raises ``TmsError``.
    """

    MUTATING = {"add_or_update_case", "delete_case"}

    def __init__(self):
        self.calls = []
        self.fail_on = {}
        self.active_runs = {}
        self._next_id = 100

    def _record(self, method, *args):
        self.calls.append((method, args))
        check = self.fail_on.get(method)
        if check is not None and check(*args):
            raise TmsError(method, "simulated failure", 500)

    def _new_id(self):
        self._next_id += 1
        return str(self._next_id)

    def calls_to(self, method):
        return [args for name, args in self.calls if name == method]

    def case_mutations(self):
        return [c for c in self.calls if c[0] in self.MUTATING]

    # Suites and cases

    def create_suite(self, name, description):
        self._record("create_suite", name, description)
        suite_id = self._new_id()
        return RemoteSuite(id=suite_id, name=name, url=f"https://tms/suites/{suite_id}")

    def update_suite(self, suite_id, description):
        self._record("update_suite", suite_id, description)

    def add_section(self, suite_id, name):
        self._record("add_section", suite_id, name)
        return self._new_id()

    def add_or_update_case(self, suite_id, section_id, scenario, existing_case_id=None):
        self._record("add_or_update_case", suite_id, section_id, scenario, existing_case_id)
        return existing_case_id or self._new_id()

    def delete_case(self, case_id):
        self._record("delete_case", case_id)
        return True

    def reorder_cases(self, suite_id, section_id, ordered_case_ids):
        self._record("reorder_cases", suite_id, section_id, list(ordered_case_ids))

    # Runs and results

    def get_active_runs(self, suite_id):
        self._record("get_active_runs", suite_id)
        return list(self.active_runs.get(suite_id, []))

    def create_run(self, suite_id, name, case_ids):
        self._record("create_run", suite_id, name, list(case_ids))
        return RemoteRun(id=self._new_id(), name=name)

    def close_run(self, run_id):
        self._record("close_run", run_id)

    def add_results(self, run_id, results: dict[str, CaseResult]):
        self._record("add_results", run_id, dict(results))

    def upload_attachment(self, run_id, file_path: Path):
        self._record("upload_attachment", run_id, Path(file_path))


@pytest.fixture
def fake_adapter():
    return FakeAdapter()
