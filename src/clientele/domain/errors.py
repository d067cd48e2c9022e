"""Error taxonomy for identity resolution.

``InvalidSignal`` and ``DuplicateIdentity`` are handled inside the domain;
``RemoteUnavailable`` is what callers of ``resolve`` see once retries are spent.
An ambiguous match is an outcome, not an error.
"""

from __future__ import annotations


class IdentityError(RuntimeError):
    """Base class for identity resolution failures."""


class InvalidSignal(IdentityError):  # noqa: N818
    """Raised when a signal carries no email, phone or external id."""


class RemoteUnavailable(IdentityError):  # noqa: N818
    """Raised when the customer platform cannot be reached or times out."""

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation


class DuplicateIdentity(IdentityError):  # noqa: N818
    """Raised by a platform when a write collides with its uniqueness constraints."""

    def __init__(self, message: str, *, field: str | None = None, value: str | None = None) -> None:
        super().__init__(message)
        self.field = field
        self.value = value
