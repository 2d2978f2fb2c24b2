"""Failure taxonomy shared by the research pipeline."""

from __future__ import annotations


class ResearchError(Exception):
    """Base class for every failure the pipeline raises on purpose."""


class ConfigError(ResearchError):
    """Configuration is missing or invalid; fatal at startup."""


class TransientFailure(ResearchError):
    """A model request failed in a way worth retrying (5xx, server-side error)."""


class ParseFailure(ResearchError):
    """The model service returned a body that is neither a completion nor an error."""

    def __init__(self, message: str, raw_body: str = ""):
        super().__init__(message)
        self.raw_body = raw_body


class RequestFailure(ResearchError):
    """A model request failed for good: retries exhausted or a non-retryable error."""


class FetchFailure(ResearchError):
    """Every step of the content acquisition chain failed for a URL."""

    def __init__(self, url: str, message: str, causes: tuple[BaseException, ...] = ()):
        super().__init__(message)
        self.url = url
        self.causes = causes
