"""Error taxonomy for the enrichment run.

Only FatalIngestionError is meant to escape a run. The others are raised
close to their cause and recovered by the caller:

- SourceUnavailable: an adapter's network call or parse failed; the
  selector treats it as "no candidate from this source".
- ConfigurationError: a setting is malformed (fatal at startup), or an
  optional source lacks its credential (that source is skipped).
"""
from __future__ import annotations

from typing import Optional


class EnrichmentError(Exception):
    """Base class for agenda_images errors."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class SourceUnavailable(EnrichmentError):
    """An image source could not be queried or its payload could not be read."""

    def __init__(self, source: str, message: str, original_error: Optional[Exception] = None):
        super().__init__(f"{source}: {message}", original_error=original_error)
        self.source = source

    @classmethod
    def from_error(cls, source: str, error: Exception) -> "SourceUnavailable":
        return cls(source, f"{type(error).__name__}: {error}", original_error=error)


class ConfigurationError(EnrichmentError):
    """A setting is missing or malformed."""


class FatalIngestionError(EnrichmentError):
    """The upstream event feed is unreachable or returned something unusable."""
