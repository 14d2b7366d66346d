"""Audit execution and run orchestration."""

from __future__ import annotations

from .audit_runner import AuditRunner, filter_by_gather_mode
from .runner import Runner

__all__ = ["AuditRunner", "Runner", "filter_by_gather_mode"]
