"""
Audit definitions. Importing this package registers the built-in audits.
"""

from __future__ import annotations

from .base import (
    AUDITS,
    AuditDefinition,
    AuditRegistry,
    audit,
    error_result,
    make_table_details,
    normalize_audit_result,
    normalize_score,
)
from .document_title import document_title
from .is_on_https import is_on_https
from .resource_summary import resource_summary_audit
from .total_byte_weight import total_byte_weight

__all__ = [
    "AUDITS",
    "AuditDefinition",
    "AuditRegistry",
    "audit",
    "document_title",
    "error_result",
    "is_on_https",
    "make_table_details",
    "normalize_audit_result",
    "normalize_score",
    "resource_summary_audit",
    "total_byte_weight",
]
