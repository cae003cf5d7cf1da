"""Backend adapters and the HTTP transport they share."""

from .adapter import CaseResult, RemoteRun, RemoteSuite, TmsAdapter
from .errors import ArtifactError, StateError, TmsError
from .factory import create_adapter

__all__ = [
    "ArtifactError",
    "CaseResult",
    "RemoteRun",
    "RemoteSuite",
    "StateError",
    "TmsAdapter",
    "TmsError",
    "create_adapter",
]
