"""Service-level exceptions that routers map to specific HTTP statuses.

Services otherwise raise ``ValueError`` (400), ``LookupError`` (404) and
``PermissionError`` (403).
"""


class ConflictError(ValueError):
    """The resource already exists or was already consumed (409)."""


class CooldownError(ValueError):
    """The action is allowed again only after a waiting period (429)."""

    def __init__(self, message: str, retry_after_days: int) -> None:
        super().__init__(message)
        self.retry_after_days = retry_after_days
