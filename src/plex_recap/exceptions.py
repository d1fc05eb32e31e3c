class UpstreamError(RuntimeError):
    """Raised when an upstream service fails, reports an error state or returns an unreadable payload."""
    pass


class UserNotFoundError(UpstreamError):
    """Raised when the requesting user cannot be matched in the monitoring service."""
    pass
