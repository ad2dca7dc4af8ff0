"""Exception hierarchy for the issue/project link report."""

from __future__ import annotations

from typing import Optional


class ReportError(Exception):
    """Base class for every error raised by the report workflow."""


class ConfigError(ReportError):
    """Required input is missing or invalid; raised before any network call."""


class TransportError(ReportError):
    """Network or API failure that retrying will not fix."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class ThrottlePrimary(TransportError):
    """Primary (quota) rate limit hit."""

    def __init__(self, message: str, retry_after: float = 0.0, status: Optional[int] = None) -> None:
        super().__init__(message, status)
        self.retry_after = retry_after


class ThrottleSecondary(TransportError):
    """Secondary (abuse detection) rate limit hit; never retried."""


class PaginationExhausted(ReportError):
    """A paginated query returned more pages than the configured ceiling."""

    def __init__(self, pages: int, max_pages: int) -> None:
        super().__init__(f"pagination exceeded {max_pages} pages (fetched {pages})")
        self.pages = pages
        self.max_pages = max_pages


class SchemaMismatch(ReportError):
    """A response did not have the shape the query asked for."""


class WriteError(ReportError):
    """The final report could not be persisted."""


__all__ = [
    "ReportError",
    "ConfigError",
    "TransportError",
    "ThrottlePrimary",
    "ThrottleSecondary",
    "PaginationExhausted",
    "SchemaMismatch",
    "WriteError",
]
