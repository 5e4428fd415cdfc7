from __future__ import annotations


class StorageError(RuntimeError):
    """Local persistence failed; durability of the operation cannot be assumed."""


class ValidationError(ValueError):
    """Malformed note payload, rejected before any store write."""


class RemoteError(RuntimeError):
    pass


class RemoteUnavailable(RemoteError):
    pass


class NotFound(RemoteError):
    pass


# Everything a remote call may raise that leaves local state pending.
REMOTE_FAILURES: tuple[type[Exception], ...] = (RemoteError, ValidationError)
