"""Tests for adapter selection by TMS source."""

import dataclasses

import pytest

from tms_sync.core.adapter import TmsAdapter
from tms_sync.core.azure import AzureDevOpsAdapter
from tms_sync.core.factory import create_adapter
from tms_sync.core.jira import JiraAdapter
from tms_sync.core.testrail import TestRailAdapter


@pytest.mark.parametrize(
    "source, expected",
    [
        ("testrail", TestRailAdapter),
        ("azure", AzureDevOpsAdapter),
        ("jira", JiraAdapter),
    ],
)
def test_adapter_per_source(mock_config, source, expected):
    adapter = create_adapter(dataclasses.replace(mock_config, source=source))
    assert isinstance(adapter, expected)
    assert isinstance(adapter, TmsAdapter)


def test_unknown_source(mock_config):
    with pytest.raises(ValueError, match="Unsupported TMS source 'qtest'"):
        create_adapter(dataclasses.replace(mock_config, source="qtest"))
