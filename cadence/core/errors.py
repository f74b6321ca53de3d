"""Domain exceptions for Cadence."""


class CadenceError(Exception):
    """Base class for all Cadence domain errors."""


class PermissionNotFoundError(CadenceError):
    """Raised when a permission request id does not exist."""

    def __init__(self, permission_id: str):
        self.permission_id = permission_id
        super().__init__(f"Permission request '{permission_id}' not found")


class PermissionAlreadyResolvedError(CadenceError):
    """Raised when resolving a permission request that is no longer pending."""

    def __init__(self, permission_id: str, status: str):
        self.permission_id = permission_id
        self.status = status
        super().__init__(f"Permission request '{permission_id}' already {status}")


class InvalidScheduleError(CadenceError):
    """Raised when a cron expression cannot be parsed."""

    def __init__(self, schedule: str, reason: str):
        self.schedule = schedule
        super().__init__(f"Invalid cron expression '{schedule}': {reason}")


class SessionNotFoundError(CadenceError):
    """Raised when a session id does not exist."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session '{session_id}' not found")


class NothingPendingError(CadenceError):
    """Raised when resuming a session that has no parked turn."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session '{session_id}' has no pending question to answer")


class WebhookVerificationError(CadenceError):
    """Raised when an inbound webhook fails signature verification."""
