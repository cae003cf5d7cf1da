"""Typed errors raised at the Test Management System boundary."""

from __future__ import annotations


class TmsError(Exception):
    """A remote call failed.

    Raised for transport failures, non-2xx responses, and 2xx responses
    whose body carries an ``error`` field.

    Attributes:
        operation: Short name of the adapter operation (e.g. ``add_case``).
        remote_message: Message reported by the remote system, or the
            transport error text.
        status_code: HTTP status code when a response was received.
    """

    def __init__(
        self,
        operation: str,
        remote_message: str,
        status_code: int | None = None,
    ) -> None:
        self.operation = operation
        self.remote_message = remote_message
        self.status_code = status_code
        super().__init__(f"{operation} failed: {remote_message}")


class StateError(ValueError):
    """The persisted sync state document cannot be read."""


class ArtifactError(ValueError):
    """A local artifact or execution summary cannot be read."""
