class DomainError(Exception):
    """Base class for all domain-level errors."""

    pass


class InvalidInput(DomainError, ValueError):
    """A required value is missing or malformed (programmer or caller error)."""

    pass


class InvalidOperation(DomainError):
    """Tried to change an entity in a way its current state does not allow."""

    pass


class AccountAlreadyExists(DomainError):
    """An account with the given phone number is already registered."""

    pass


class InvalidToken(DomainError):
    """Access token failed signature, expiry, issuer or audience checks."""

    pass


class PersistenceError(DomainError):
    """Storage backend failed (driver error, timeout, lost connection)."""

    pass
