from __future__ import annotations


class MarkpanelError(Exception):
    """Base class for errors surfaced to callers of the service layer."""


class ParseError(MarkpanelError):
    """Bookmark export markup could not be parsed."""


class ValidationError(MarkpanelError):
    """A request is missing a required field or has a malformed one."""


class NotFoundOrForbidden(MarkpanelError):
    # Absent and not-owned are reported identically.
    def __init__(self, message: str = "bookmark does not exist or access is denied"):
        super().__init__(message)


class PersistenceError(MarkpanelError):
    """A store operation failed. The message is generic; the cause is chained."""
