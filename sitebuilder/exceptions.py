"""Error types shared by the selector, sync and generator layers."""

from __future__ import annotations

from django.core.exceptions import ImproperlyConfigured


class SiteBuilderError(Exception):
    """Base class for all sitebuilder errors."""


class ConfigurationError(SiteBuilderError, ImproperlyConfigured):
    """Fatal setup problem such as an empty registry or missing credentials."""


class TransientIOError(SiteBuilderError):
    """A single remote query or write failed; callers may retry later."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BuildError(SiteBuilderError):
    """Raised (or recorded) when the injected build callback fails."""
