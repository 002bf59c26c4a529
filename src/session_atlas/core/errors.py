from __future__ import annotations


class SessionAtlasError(Exception):
    """Base class for errors surfaced by query entry points."""


class NotFoundError(SessionAtlasError):
    """A session file or project directory does not exist."""


class MalformedError(SessionAtlasError):
    """A whole file could not be read or decoded."""


class UnknownSourceError(SessionAtlasError, ValueError):
    """The provider tag does not name a supported session source."""

    def __init__(self, source: str, available: tuple[str, ...]):
        self.source = source
        self.available = available
        super().__init__(f"Unknown source: {source}. Available: {', '.join(available)}")
