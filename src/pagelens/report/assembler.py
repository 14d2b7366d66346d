"""
Packages scores, audit results and run metadata into the final ReportResult.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from pagelens.models import ReportResult, Timing
from pagelens.protocols import GatherContext


def assemble_report(
    scored: ReportResult,
    gather_context: GatherContext,
    *,
    version: str,
    total_ms: float,
    audit_timings: Optional[Mapping[str, float]] = None,
    run_warnings: Optional[List[str]] = None,
    cache_stats: Optional[Mapping[str, int]] = None,
    settings: Optional[Mapping[str, Any]] = None,
) -> ReportResult:
    """Return a new ReportResult carrying ``scored``'s scores plus the run metadata."""
    timings: Dict[str, float] = {}
    for audit_id in scored.audits:
        if audit_timings and audit_id in audit_timings:
            timings[audit_id] = round(audit_timings[audit_id], 3)

    # Duplicate warnings are common when several audits hit the same condition.
    warnings = list(dict.fromkeys(run_warnings or []))

    return scored.model_copy(
        update={
            "version": version,
            "requested_url": gather_context.requested_url,
            "final_url": gather_context.final_url or gather_context.requested_url,
            "fetch_time": gather_context.fetch_time,
            "gather_mode": gather_context.gather_mode.value,
            "run_warnings": warnings,
            "timing": Timing(total=round(total_ms, 3), audits=timings),
            "computed_cache": dict(cache_stats or {}),
            "config_settings": dict(settings or {}),
        }
    )
