"""
Audit definitions, the audit registry and result normalization.

An audit is a plain record of metadata plus a ``run(artifacts, context)``
function. Definitions are registered with the ``@audit`` decorator:

    @audit("document-title", title="Document has a <title> element", ...)
    def document_title(artifacts, context):
        return AuditProduct(score=bool(artifacts["Title"]))
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from pagelens.errors import ScoreRangeError
from pagelens.models import AuditResult
from pagelens.protocols import (
    ALL_GATHER_MODES,
    PASS_THRESHOLD,
    AuditFunction,
    AuditProduct,
    GatherMode,
    ScoreDisplayMode,
)

_UNSCORED_MODES = (
    ScoreDisplayMode.INFORMATIVE,
    ScoreDisplayMode.MANUAL,
    ScoreDisplayMode.NOT_APPLICABLE,
    ScoreDisplayMode.ERROR,
)


@dataclass(frozen=True)
class AuditDefinition:
    id: str
    title: str
    run: AuditFunction
    failure_title: Optional[str] = None
    description: str = ""
    required_artifacts: Tuple[str, ...] = ()
    score_display_mode: ScoreDisplayMode = ScoreDisplayMode.BINARY
    default_options: Mapping[str, Any] = field(default_factory=dict)
    supported_modes: Tuple[GatherMode, ...] = ALL_GATHER_MODES

    def supports(self, gather_mode: GatherMode) -> bool:
        return gather_mode in self.supported_modes

    def options(self, configured: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Default options overlaid with the configured ones."""
        merged = dict(self.default_options)
        merged.update(configured or {})
        return merged


class AuditRegistry(Mapping[str, AuditDefinition]):
    """Audit id -> AuditDefinition lookup. Ids are unique."""

    def __init__(self) -> None:
        self._audits: Dict[str, AuditDefinition] = {}

    def __getitem__(self, audit_id: str) -> AuditDefinition:
        return self._audits[audit_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._audits)

    def __len__(self) -> int:
        return len(self._audits)

    def register(self, definition: AuditDefinition) -> AuditDefinition:
        existing = self._audits.get(definition.id)
        if existing is not None and existing.run is not definition.run:
            raise ValueError(f"Audit '{definition.id}' is already registered")
        self._audits[definition.id] = definition
        return definition


AUDITS = AuditRegistry()


def audit(
    audit_id: str,
    *,
    title: str,
    failure_title: Optional[str] = None,
    description: str = "",
    required_artifacts: Sequence[str] = (),
    score_display_mode: ScoreDisplayMode = ScoreDisplayMode.BINARY,
    default_options: Optional[Mapping[str, Any]] = None,
    supported_modes: Sequence[GatherMode] = ALL_GATHER_MODES,
    registry: Optional[AuditRegistry] = AUDITS,
) -> Callable[[AuditFunction], AuditDefinition]:
    """Turn an audit function into a registered AuditDefinition. ``registry=None`` skips registration."""

    def decorator(run: AuditFunction) -> AuditDefinition:
        definition = AuditDefinition(
            id=audit_id,
            title=title,
            run=run,
            failure_title=failure_title,
            description=description,
            required_artifacts=tuple(required_artifacts),
            score_display_mode=score_display_mode,
            default_options=dict(default_options or {}),
            supported_modes=tuple(supported_modes),
        )
        if registry is None:
            return definition
        return registry.register(definition)

    return decorator


# --- Normalization ---


def normalize_score(audit_id: str, raw: Any) -> Optional[float]:
    """Coerce a raw score to ``None`` or a float in [0, 1]. Anything else is fatal."""
    if raw is None:
        return None
    if isinstance(raw, bool):
        return 1.0 if raw else 0.0
    if not isinstance(raw, (int, float)) or not math.isfinite(raw):
        raise ScoreRangeError(f"Invalid score for {audit_id}: {raw!r}", context={"audit": audit_id})
    if raw > 1:
        raise ScoreRangeError(f"Audit score for {audit_id} is > 1", context={"audit": audit_id, "score": raw})
    if raw < 0:
        raise ScoreRangeError(f"Audit score for {audit_id} is < 0", context={"audit": audit_id, "score": raw})
    return float(raw)


def normalize_audit_result(
    definition: AuditDefinition,
    product: Union[AuditProduct, Mapping[str, Any]],
    pass_threshold: float = PASS_THRESHOLD,
) -> AuditResult:
    """Turn an audit's raw product into a canonical AuditResult."""
    if isinstance(product, Mapping):
        product = AuditProduct.from_mapping(product)
    elif not isinstance(product, AuditProduct):
        raise TypeError(f"Audit {definition.id} returned {type(product).__name__}, expected AuditProduct or mapping")

    score = normalize_score(definition.id, product.score)
    mode = definition.score_display_mode

    if product.error_message is not None:
        mode, score = ScoreDisplayMode.ERROR, None
    elif product.not_applicable:
        mode, score = ScoreDisplayMode.NOT_APPLICABLE, None
    elif mode in _UNSCORED_MODES:
        score = None
    elif score is None:
        mode = ScoreDisplayMode.INFORMATIVE

    title = definition.title
    if mode.is_scored and score is not None and score < pass_threshold and definition.failure_title:
        title = definition.failure_title

    return AuditResult(
        id=definition.id,
        title=title,
        description=definition.description,
        score=score,
        score_display_mode=mode,
        numeric_value=product.numeric_value,
        numeric_unit=product.numeric_unit,
        display_value=product.display_value,
        details=product.details,
        error_message=product.error_message,
        warnings=list(product.warnings),
    )


def error_result(definition: AuditDefinition, message: str) -> AuditResult:
    return AuditResult(
        id=definition.id,
        title=definition.title,
        description=definition.description,
        score=None,
        score_display_mode=ScoreDisplayMode.ERROR,
        error_message=message,
    )


def make_table_details(
    headings: List[Dict[str, Any]], items: List[Dict[str, Any]], summary: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Build a ``table`` details payload. Empty tables carry no headings."""
    if not items:
        return {"type": "table", "headings": [], "items": [], "summary": summary or {}}
    return {"type": "table", "headings": headings, "items": items, "summary": summary or {}}
