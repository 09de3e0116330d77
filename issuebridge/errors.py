from __future__ import annotations


class IngestionError(Exception):
    """Base class for failures surfaced to the user as a status line."""

    status = "❌ Something went wrong."

    def __init__(self, status: str | None = None) -> None:
        if status is not None:
            self.status = status
        super().__init__(self.status)


class NotAuthenticated(IngestionError):
    status = "❌ Username not found."


class InvalidLinkFormat(IngestionError):
    status = "❌ Invalid GitHub repo link."


class NotOwner(IngestionError):
    status = "❌ You can only add repositories you own."


class ForkNotAllowed(IngestionError):
    status = "❌ Forked repositories are not allowed."


class RemoteFetchFailed(IngestionError):
    status = "❌ Failed to fetch repository info."


class PersistFailed(IngestionError):
    status = "❌ Failed to save repository."


class IssueFetchFailed(IngestionError):
    status = "❌ Failed to fetch issues."


class RepositoryNotPersisted(IngestionError):
    status = "❌ Repository ID missing."


class IssueSaveFailed(IngestionError):
    def __init__(self, number: int, detail: str | None = None) -> None:
        self.number = number
        super().__init__(detail or f"❌ Failed to save issue #{number}.")
