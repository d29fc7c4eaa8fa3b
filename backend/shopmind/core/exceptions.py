"""
Exception hierarchy for session tracking.

Only MissingIdentityError is meant to reach callers; the rest are raised and
recovered inside the storage and sync layers.
"""


class ShopMindError(Exception):
    """Base class for all session service errors."""


class StorageCorruptionError(ShopMindError):
    """A stored record could not be parsed into its model."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Corrupt record at {path}: {reason}")


class RemoteSyncError(ShopMindError):
    """Base class for failures talking to the remote session service."""


class RemoteUnavailableError(RemoteSyncError):
    """Network/HTTP failure or a malformed payload from the remote service."""


class RemoteSessionNotFoundError(RemoteSyncError):
    """The remote service has no session with the requested id."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Remote session not found: {session_id}")


class MissingIdentityError(ShopMindError):
    """Analytics or export was requested without a known user."""

    def __init__(self, operation: str = "this operation"):
        self.operation = operation
        super().__init__(f"A user identity is required for {operation}")
