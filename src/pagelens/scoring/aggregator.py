"""
Category and overall score aggregation.

Category scores are the weighted arithmetic mean of their audits' scores,
skipping audits without a score. The overall score is the weighted geometric
mean of the category scores, where a category without a score counts as 0.

Both means sum with ``math.fsum`` so the result does not depend on the order
of the items and repeated calls return bit-identical floats.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Mapping, Optional, Sequence, Tuple

import structlog

from pagelens.config.config import CategoryConfig
from pagelens.errors import ConfigurationError, ScoreRangeError
from pagelens.models import AuditRefResult, AuditResult, CategoryResult, ReportResult

logger = structlog.get_logger(__name__)

ScoreItem = Tuple[Optional[float], float]


def _check_weight(weight: float) -> float:
    if not math.isfinite(weight) or weight < 0:
        raise ConfigurationError(f"Weights must be finite and non-negative, got {weight!r}")
    return weight


def _check_score(score: Any) -> float:
    if isinstance(score, bool) or not isinstance(score, (int, float)) or not 0 <= score <= 1:
        raise ScoreRangeError(f"Scores must be null or a number in [0, 1], got {score!r}")
    return float(score)


def arithmetic_mean(items: Iterable[ScoreItem]) -> Optional[float]:
    """Weighted mean of the items that have a score. ``None`` when no weight remains."""
    products = []
    weights = []
    for score, weight in items:
        _check_weight(weight)
        if score is None:
            continue
        products.append(_check_score(score) * weight)
        weights.append(weight)

    total_weight = math.fsum(weights)
    if total_weight == 0:
        return None
    return math.fsum(products) / total_weight


def geometric_mean(items: Iterable[ScoreItem]) -> Optional[float]:
    """
    Weighted geometric mean. A ``None`` score counts as 0 but keeps its weight.

    Zero-weight items are skipped entirely, so ``0 ** 0`` never arises. Any
    weighted zero makes the result exactly 0.
    """
    log_terms = []
    weights = []
    has_zero = False
    for score, weight in items:
        _check_weight(weight)
        if weight == 0:
            continue
        value = 0.0 if score is None else _check_score(score)
        weights.append(weight)
        if value == 0:
            has_zero = True
        else:
            log_terms.append(weight * math.log(value))

    total_weight = math.fsum(weights)
    if total_weight == 0:
        return None
    if has_zero:
        return 0.0
    return math.exp(math.fsum(log_terms) / total_weight)


def score_category(
    category_id: str, category: CategoryConfig, results_by_id: Mapping[str, AuditResult]
) -> CategoryResult:
    """Score one category. Refs keep their configured order; unscored refs are reported with weight 0."""
    if not isinstance(category, CategoryConfig):
        category = CategoryConfig.model_validate(category)
    refs = []
    items = []
    for ref in category.audit_refs:
        result = results_by_id.get(ref.id)
        if result is None:
            logger.warning("category.missing_audit", category=category_id, audit=ref.id)
            refs.append(AuditRefResult(id=ref.id, weight=0.0, group=ref.group))
            continue
        weight = _check_weight(ref.weight) if result.score is not None else 0.0
        refs.append(AuditRefResult(id=ref.id, weight=weight, group=ref.group))
        items.append((result.score, weight))

    return CategoryResult(
        id=category_id,
        title=category.title,
        description=category.description,
        score=arithmetic_mean(items),
        weight=category.weight,
        audit_refs=refs,
    )


def compute_report_result(
    audit_results: Sequence[AuditResult], category_config: Mapping[str, CategoryConfig]
) -> ReportResult:
    """
    Aggregate audit results into category scores and one overall score.

    Pure: no I/O and no mutation of its inputs. Raises ConfigurationError
    when no categories are configured, since no overall score can exist, or
    when two results share an id.
    """
    if not category_config:
        raise ConfigurationError("At least one category must be configured to compute a score")

    results_by_id = {result.id: result for result in audit_results}
    if len(results_by_id) != len(audit_results):
        ids = [result.id for result in audit_results]
        raise ConfigurationError("Audit result ids must be unique", context={"audits": ids})
    categories = {
        category_id: score_category(category_id, category, results_by_id)
        for category_id, category in category_config.items()
    }
    overall = geometric_mean((category.score, category.weight) for category in categories.values())

    return ReportResult(score=overall, categories=categories, audits=results_by_id)
