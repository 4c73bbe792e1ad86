"""Error taxonomy shared by the engine services and the HTTP layer."""

from __future__ import annotations


class CompletionError(Exception):
    """Base engine error."""

    def __init__(self, message: str, code: str = "completion_error") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(CompletionError):
    """A unit, user or course does not exist."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "not_found")


class ValidationError(CompletionError):
    """Blocking issues that require the caller to correct the request.

    Never retried automatically.
    """

    def __init__(self, issues: list[str]) -> None:
        self.issues = list(issues)
        super().__init__("; ".join(self.issues) or "validation failed", "validation")


class PersistenceError(CompletionError):
    """A store read or write failed (including lock acquisition)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "persistence")


class IntegrityError(CompletionError):
    """State changed between validation and write (e.g. unit moved course)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "integrity")
