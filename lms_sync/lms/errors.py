"""
Error types raised by the Canvas client, the catalog store and the sync service.

Remote errors abort a sync run and reach the caller unchanged. Store write
conflicts are absorbed by the sync service and never reach the caller.
"""

from __future__ import annotations


class LmsSyncError(Exception):
    """Base class for catalog sync failures."""


class RemoteUnavailableError(LmsSyncError):
    """The LMS could not be reached (timeout, DNS, connection reset)."""

    def __init__(self, endpoint: str, reason: str = "") -> None:
        self.endpoint = endpoint
        self.reason = reason
        message = f"Canvas unreachable at {endpoint}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class RemoteApiError(LmsSyncError):
    """The LMS answered with a non-success status."""

    def __init__(self, status: int, endpoint: str, detail: str = "") -> None:
        self.status = status
        self.endpoint = endpoint
        self.detail = detail
        message = f"Canvas API error {status} for {endpoint}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)

    @property
    def is_auth_error(self) -> bool:
        """401/403 mean the credential lapsed; re-verify instead of retrying."""
        return self.status in (401, 403)


class StoreWriteConflict(LmsSyncError):
    """A create hit the external-id uniqueness constraint."""

    def __init__(self, entity: str, external_id: str | None) -> None:
        self.entity = entity
        self.external_id = external_id
        super().__init__(f"{entity} with external id {external_id!r} already exists")


class MissingCredentialError(LmsSyncError):
    """No Canvas credential is stored for the user."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(f"No Canvas credential stored for user {user_id}")


class CatalogItemNotFound(LmsSyncError):
    """A local catalog record does not exist or belongs to another user."""

    def __init__(self, entity: str, item_id: str) -> None:
        self.entity = entity
        self.item_id = item_id
        super().__init__(f"{entity} {item_id!r} not found")
