"""Custom exception hierarchy for tasklink.

All application-specific exceptions inherit from TaskLinkError,
which carries an error code that the CLI reports alongside the message.
"""

from __future__ import annotations


class TaskLinkError(Exception):
    """Base exception for all tasklink errors."""

    def __init__(self, message: str, *, code: str = "INTERNAL_ERROR") -> None:
        super().__init__(message)
        self.code = code


class RemoteFetchError(TaskLinkError):
    """A remote system request failed: transport error, non-2xx status or bad payload."""

    def __init__(
        self, message: str, *, system: str, status_code: int | None = None
    ) -> None:
        super().__init__(message, code="REMOTE_FETCH_ERROR")
        self.system = system
        self.status_code = status_code


class LinkError(TaskLinkError):
    """Errors while creating or completing a linked pair."""

    def __init__(self, message: str, *, code: str = "LINK_ERROR") -> None:
        super().__init__(message, code=code)


class LinkConflictError(LinkError):
    """One side of the requested link is already bound to another record."""

    def __init__(self, message: str = "Already linked") -> None:
        super().__init__(message, code="ALREADY_LINKED")


class LinkValidationError(LinkError):
    """A link request is missing one of its identifiers."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="INVALID_LINK")


class ProjectNotFoundError(TaskLinkError):
    """No project link exists for the requested id."""

    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project link not found: {project_id}", code="PROJECT_NOT_FOUND")
        self.project_id = project_id
