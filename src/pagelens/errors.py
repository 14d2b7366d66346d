"""
Exception taxonomy for pagelens.

Errors marked ``fatal`` abort the whole run. Everything else raised while an
audit executes is recovered by the audit runner and reported as an ``error``
audit result.
"""

from __future__ import annotations

from typing import Any, Optional


class PagelensError(Exception):
    """Base class for all pagelens errors."""

    fatal: bool = False

    def __init__(self, message: str, *, context: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ConfigurationError(PagelensError):
    """The run cannot be scored with the given configuration."""

    fatal = True


class ScoreRangeError(PagelensError):
    """An audit or category produced a score that is not null, a bool, or a number in [0, 1]."""

    fatal = True


class CacheClosedError(PagelensError):
    """A computed artifact was requested from a cache whose run has ended."""

    fatal = True


class MissingArtifactError(PagelensError):
    """A required artifact was not gathered, or its gatherer failed."""

    def __init__(self, artifact_name: str, audit_id: str, reason: Optional[str] = None) -> None:
        if reason is None:
            message = f"Required {artifact_name} gatherer did not run."
        else:
            message = f"Required {artifact_name} gatherer encountered an error: {reason}"
        super().__init__(message, context={"artifact": artifact_name, "audit": audit_id})
        self.artifact_name = artifact_name
        self.audit_id = audit_id


def is_fatal(error: BaseException) -> bool:
    """Return True if ``error`` must abort the run instead of becoming an error result."""
    return bool(getattr(error, "fatal", False))
