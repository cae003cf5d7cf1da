import logging

from ..config import SOURCES, Config
from .adapter import TmsAdapter
from .azure import AzureDevOpsAdapter
from .jira import JiraAdapter
from .testrail import TestRailAdapter

logger = logging.getLogger(__name__)


def create_adapter(config: Config) -> TmsAdapter:
    """Return the adapter for ``config.source``.

    Raises:
        ValueError: If the source is not one of the supported backends.
    """
    logger.debug("Creating %s adapter for %s", config.source, config.tms_url)
    match config.source:
        case "testrail":
            return TestRailAdapter(config)
        case "azure":
            return AzureDevOpsAdapter(config)
        case "jira":
            return JiraAdapter(config)
        case _:
            raise ValueError(
                f"Unsupported TMS source '{config.source}': expected one of {', '.join(SOURCES)}"
            )
