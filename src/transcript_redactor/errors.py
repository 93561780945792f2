"""Exception taxonomy.

Detection misses are not exceptions; they surface as residue warnings
and the ``blocked`` flag of a RedactionReport.
"""

from __future__ import annotations


class RedactionError(Exception):
    """Base class for every error raised by the engine."""


class PatternLibraryError(RedactionError):
    """A builtin rule failed to compile or clashes with another rule.

    Raised while the library is being built.  This is a programming
    error and should abort start-up.
    """


class InvalidPatternError(RedactionError, ValueError):
    """A caller-supplied custom regex is invalid.

    Fails the whole call: a custom pattern changes the result for every
    session, so it is never skipped.
    """

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"invalid custom pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


class UnknownProfileError(RedactionError, KeyError):
    def __init__(self, profile_id: str) -> None:
        super().__init__(profile_id)
        self.profile_id = profile_id

    def __str__(self) -> str:
        return f"unknown profile: {self.profile_id!r}"


class PlaceholderCollisionError(RedactionError):
    """Two different raw values ended up on the same placeholder."""


class SessionInputError(RedactionError):
    """A single session could not be fetched or parsed."""

    def __init__(self, session_id: str, stage: str, message: str) -> None:
        super().__init__(f"{session_id} [{stage}]: {message}")
        self.session_id = session_id
        self.stage = stage
        self.message = message
