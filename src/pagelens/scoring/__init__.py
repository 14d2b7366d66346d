"""Score aggregation."""

from __future__ import annotations

from .aggregator import arithmetic_mean, compute_report_result, geometric_mean, score_category

__all__ = ["arithmetic_mean", "compute_report_result", "geometric_mean", "score_category"]
