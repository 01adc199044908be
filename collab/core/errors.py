"""Exception types raised by the session link core."""


class CollabError(Exception):
    """Base class for all session link errors."""


class CodingError(CollabError):
    """A caller broke a contract (missing field, unconstrained query).

    Signals a programming error upstream; never caught inside the core.
    """


class RemoteSessionError(CollabError):
    """The conferencing service failed or answered with something unusable."""

    def __init__(self, message: str, session_id: str | None = None) -> None:
        super().__init__(message)
        self.session_id = session_id


class RemoteNotConfiguredError(RemoteSessionError):
    """No remote transport is configured."""


class AccessDenied(CollabError):
    """The actor lacks the capability needed for the operation."""
