"""Connection configuration for the Test Management System.

Reads TMS connection settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    TMS_URL: TMS instance URL (required)
    TMS_USERNAME: TMS username (required, except for Azure personal access tokens)
    TMS_PASSWORD: TMS password or API token (required)
    TMS_SOURCE: Backend kind: testrail, azure or jira (optional, default: testrail)
    TMS_PROJECT_ID: Remote project id or key (required)
    TMS_INSECURE: Skip SSL verification (optional, default: false)
    TMS_TIMEOUT: Read timeout in seconds (optional, default: 60)
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

SOURCES = ("testrail", "azure", "jira")


@dataclass
class Config:
    tms_url: str
    username: str
    password: str
    project_id: str
    source: str = "testrail"
    insecure: bool = False
    debug: bool = False
    timeout: float = 60.0
    connect_timeout: float = 10.0
    suite_issue_type: str = "Story"
    case_issue_type: str = "Sub-task"


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the URL is malformed, the source is unknown, or
            credentials or the project id are empty.
    """
    config.tms_url = config.tms_url.strip()

    if not config.tms_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid TMS URL '{config.tms_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.tms_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid TMS URL '{config.tms_url}': URL must include a hostname"
        )

    config.tms_url = config.tms_url.removesuffix("/")

    config.source = config.source.strip().lower()
    if config.source not in SOURCES:
        raise ValueError(
            f"Unsupported TMS source '{config.source}': expected one of {', '.join(SOURCES)}"
        )

    # Azure personal access tokens are sent with an empty user name.
    if config.source != "azure" and not config.username.strip():
        raise ValueError(
            "TMS username cannot be empty. Set TMS_USERNAME environment variable."
        )

    if not config.password.strip():
        raise ValueError(
            "TMS password cannot be empty. Set TMS_PASSWORD environment variable."
        )

    if not str(config.project_id).strip():
        raise ValueError(
            "TMS project id cannot be empty. Set TMS_PROJECT_ID environment variable."
        )

    if config.timeout <= 0:
        raise ValueError(
            f"Invalid timeout '{config.timeout}': must be greater than zero"
        )

    if config.insecure:
        logger.warning(
            "WARNING: SSL verification disabled (insecure=True). Use only for development."
        )


def load_config(
    url: str | None = None,
    username: str | None = None,
    password: str | None = None,
    source: str | None = None,
    project_id: str | None = None,
    insecure: bool = False,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        url: Override TMS URL.
        username: Override username.
        password: Override password or API token.
        source: Override backend kind.
        project_id: Override remote project id.
        insecure: Skip SSL verification (CLI flag).
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Dict of values from the YAML config file ``tms``
            section (plus the ``jira`` issue types). Used as fallback when
            CLI arg and env var are both unset.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If required config is missing after checking all
            sources, or a value is invalid.
    """
    fb = yaml_fallbacks or {}

    tms_url = url or os.getenv("TMS_URL") or fb.get("url")
    if not tms_url:
        raise ValueError(
            "TMS URL not found. Set TMS_URL environment variable, "
            "pass --url CLI argument, or add 'url' to config.yml."
        )

    tms_username = (
        username or os.getenv("TMS_USERNAME") or fb.get("username") or ""
    )

    tms_password = password or os.getenv("TMS_PASSWORD") or fb.get("password")
    if not tms_password:
        raise ValueError(
            "TMS password not found. Set TMS_PASSWORD environment variable, "
            "pass --password CLI argument, or add 'password' to config.yml."
        )

    tms_project = (
        project_id or os.getenv("TMS_PROJECT_ID") or fb.get("project_id")
    )
    if not tms_project:
        raise ValueError(
            "TMS project id not found. Set TMS_PROJECT_ID environment variable, "
            "pass --project-id CLI argument, or add 'project_id' to config.yml."
        )

    tms_source = source or os.getenv("TMS_SOURCE") or fb.get("source") or "testrail"

    def get_bool_env(key: str) -> bool | None:
        """Return True/False from env var, or None if unset."""
        val = os.getenv(key)
        if val is None:
            return None
        return val.lower() in ("true", "1", "yes", "on")

    if insecure:
        final_insecure = True
    else:
        env_insecure = get_bool_env("TMS_INSECURE")
        if env_insecure is not None:
            final_insecure = env_insecure
        else:
            final_insecure = bool(fb.get("insecure", False))

    if debug:
        final_debug = True
    else:
        env_debug = get_bool_env("TMS_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    timeout_raw = os.getenv("TMS_TIMEOUT")
    if timeout_raw is not None:
        try:
            final_timeout = float(timeout_raw)
        except ValueError:
            raise ValueError(
                f"Invalid TMS_TIMEOUT '{timeout_raw}': must be a number of seconds"
            ) from None
    elif "timeout" in fb:
        final_timeout = float(fb["timeout"])
    else:
        final_timeout = 60.0

    config = Config(
        tms_url=tms_url.strip(),
        username=tms_username.strip(),
        password=tms_password.strip(),
        project_id=str(tms_project).strip(),
        source=tms_source,
        insecure=final_insecure,
        debug=final_debug,
        timeout=final_timeout,
        suite_issue_type=fb.get("suite_issue_type") or "Story",
        case_issue_type=fb.get("case_issue_type") or "Sub-task",
    )

    validate_config(config)

    return config
