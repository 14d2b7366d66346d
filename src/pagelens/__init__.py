"""
pagelens - Web page auditing core: computed artifacts, audits and weighted scoring.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import Config
from .models import AuditResult, CategoryResult, ReportResult
from .runner import AuditRunner, Runner
from .scoring import compute_report_result

__all__ = [
    "__version__",
    "AuditResult",
    "AuditRunner",
    "CategoryResult",
    "Config",
    "ReportResult",
    "Runner",
    "compute_report_result",
]
