"""Exception hierarchy raised by the WatchQuest document store."""

from __future__ import annotations


class WatchQuestError(Exception):
    """Base class for all errors raised by the store and its services."""


class ValidationFailed(WatchQuestError):
    """A request was rejected before any state was modified."""

    reason = "invalid"

    def __init__(self, message: str, *, reason: str | None = None) -> None:
        super().__init__(message)
        if reason is not None:
            self.reason = reason


class InvalidInputError(ValidationFailed):
    reason = "invalid_input"


class DuplicateHandleError(ValidationFailed):
    reason = "duplicate_handle"


class DuplicateEmailError(ValidationFailed):
    reason = "duplicate_email"


class SelfFollowError(ValidationFailed):
    reason = "self_follow"


class InvalidCredentialsError(ValidationFailed):
    reason = "invalid_credentials"


class BannedEmailError(ValidationFailed):
    """Registration attempted with an email present on the blacklist."""

    reason = "banned_email"

    def __init__(self, email: str, ban_reason: str) -> None:
        super().__init__(f"The email {email} is permanently banned: {ban_reason}")
        self.email = email
        self.ban_reason = ban_reason


class AccountBannedError(ValidationFailed):
    reason = "account_banned"

    def __init__(self, ban_reason: str | None) -> None:
        super().__init__(f"Account banned: {ban_reason or 'no reason given'}")
        self.ban_reason = ban_reason


class PermissionDenied(ValidationFailed):
    reason = "permission_denied"


class AuthenticationRequired(ValidationFailed):
    reason = "authentication_required"

    def __init__(self, message: str = "An active session is required") -> None:
        super().__init__(message)


class NotFoundError(WatchQuestError):
    """The referenced record does not exist in the document."""

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class StorageError(WatchQuestError):
    """Writing to durable storage failed."""


class StorageQuotaExceeded(StorageError):
    """The serialized document no longer fits in durable storage."""

    def __init__(self, size: int, quota: int) -> None:
        super().__init__(f"Storage full: {size} bytes exceeds quota of {quota} bytes")
        self.size = size
        self.quota = quota


class MigrationError(WatchQuestError):
    """The persisted document could not be parsed or upgraded."""


class ProviderUnavailable(WatchQuestError):
    """The external metadata provider could not be reached or answered badly."""
