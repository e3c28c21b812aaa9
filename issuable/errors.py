"""Exceptions raised by the issuable engine.

Store-level failures (``sqlalchemy.exc.SQLAlchemyError``) are never wrapped;
they reach the caller unchanged.
"""


class IssuableError(Exception):
    """Base class for engine errors."""

    pass


class ValidationError(IssuableError):
    """An attribute failed validation before it was persisted."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field} {message}")


class NotFoundError(IssuableError):
    """A referenced record does not resolve."""

    def __init__(self, kind: str, identifier):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} {identifier} not found")


class ConcurrencyConflict(IssuableError):
    """Two writers raced to create the same row.

    Only raised inside label find-or-create, where it is caught and the
    lookup retried.
    """

    pass
