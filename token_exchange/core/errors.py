"""Exceptions raised while exchanging an external identity for a token."""


class UnauthenticatedError(Exception):
    """Raised when the caller's identity headers are missing or empty."""


class DependencyError(Exception):
    """Raised when the user store or the token issuer fails."""


class StoreError(DependencyError):
    """Raised when the user mapping store cannot be read or written."""


class TokenIssuerError(DependencyError):
    """Raised when the communication identity service rejects a request."""


class MultipleRecordsError(Exception):
    """Raised when more than one mapping exists for a single external user."""

    def __init__(self, external_user_id: str, count: int) -> None:
        super().__init__(
            f"Found {count} user entries for a single external user id."
        )
        self.external_user_id = external_user_id
        self.count = count


__all__ = [
    "DependencyError",
    "MultipleRecordsError",
    "StoreError",
    "TokenIssuerError",
    "UnauthenticatedError",
]
