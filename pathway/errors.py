# pathway/errors.py
from __future__ import annotations


class PathwayError(Exception):
    """Base class for everything the coaching engine raises on purpose."""


class TransientStorageError(PathwayError):
    """A read or write against the persistence log failed."""


class MalformedScriptReference(PathwayError):
    """A step or phase key is not part of the intake script."""

    def __init__(self, key: str):
        super().__init__(f"Unknown intake script reference: {key!r}")
        self.key = key


class ExternalServiceUnavailable(PathwayError):
    """The text-generation backend or the notification gateway is down."""


class StaleSessionError(PathwayError):
    """Another turn saved the session first (optimistic version check failed)."""

    def __init__(self, user_id: str, expected_version: int):
        super().__init__(
            f"Session for {user_id} changed underneath us (expected version {expected_version})"
        )
        self.user_id = user_id
        self.expected_version = expected_version
