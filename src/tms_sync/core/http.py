import logging
from typing import Any

import requests

from ..config import Config
from .errors import TmsError

logger = logging.getLogger(__name__)


class RestClient:
    """JSON-over-HTTP transport shared by the backend adapters.

    Holds one ``requests.Session`` with basic auth attached, so credentials
    are set once per adapter instance. Every call goes through
    ``request()``, which converts transport failures, non-2xx responses and
    2xx bodies carrying an ``error`` field into ``TmsError``.
    """

    def __init__(self, config: Config):
        self.config = config
        self.session = self._create_session()

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.auth = (self.config.username, self.config.password)
        session.verify = not self.config.insecure
        session.headers.update({"Accept": "application/json"})
        return session

    def request(
        self,
        method: str,
        url: str,
        operation: str,
        **kwargs: Any,
    ) -> Any:
        """Issue a request and return the decoded JSON body.

        Args:
            method: HTTP method.
            url: Absolute URL.
            operation: Adapter operation name, carried by ``TmsError``.
            **kwargs: Passed through to ``requests.Session.request``
                (``json``, ``data``, ``files``, ``headers``).

        Returns:
            The decoded JSON body, or ``None`` for an empty body.

        Raises:
            TmsError: On any transport or protocol failure.
        """
        kwargs.setdefault(
            "timeout", (self.config.connect_timeout, self.config.timeout)
        )
        logger.debug("%s %s (%s)", method, url, operation)
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.RequestException as exc:
            raise TmsError(operation, str(exc)) from exc
        return decode_response(response, operation)

    def get(self, url: str, operation: str, **kwargs: Any) -> Any:
        return self.request("GET", url, operation, **kwargs)

    def post(self, url: str, operation: str, **kwargs: Any) -> Any:
        return self.request("POST", url, operation, **kwargs)

    def put(self, url: str, operation: str, **kwargs: Any) -> Any:
        return self.request("PUT", url, operation, **kwargs)

    def patch(self, url: str, operation: str, **kwargs: Any) -> Any:
        return self.request("PATCH", url, operation, **kwargs)

    def delete(self, url: str, operation: str, **kwargs: Any) -> Any:
        return self.request("DELETE", url, operation, **kwargs)


def decode_response(response: requests.Response, operation: str) -> Any:
    """Decode a response body, raising ``TmsError`` on failure.

    A non-2xx status, or a 2xx JSON object with a non-empty ``error``
    field, is an error. The remote message is taken from ``error``,
    ``message`` or ``errorMessages`` (Jira), falling back to the raw text
    and then the HTTP reason.
    """
    payload: Any = None
    if response.content:
        try:
            payload = response.json()
        except ValueError:
            payload = None

    if not response.ok:
        message = (
            _extract_message(payload)
            or response.text.strip()
            or response.reason
            or f"HTTP {response.status_code}"
        )
        raise TmsError(operation, message, response.status_code)

    if isinstance(payload, dict) and payload.get("error"):
        raise TmsError(
            operation,
            _extract_message(payload) or str(payload["error"]),
            response.status_code,
        )

    return payload


def _extract_message(payload: Any) -> str:
    match payload:
        case {"error": str(error)} if error:
            return error
        case {"error": {"message": str(message)}}:
            return message
        case {"message": str(message)} if message:
            return message
        case {"errorMessages": [str(first), *_]}:
            return first
        case {"errors": dict(errors)} if errors:
            return "; ".join(f"{k}: {v}" for k, v in errors.items())
        case _:
            return ""
