"""
Immutable result records produced by a run.

Field names are snake_case in Python and camelCase on the wire
(``score_display_mode`` <-> ``scoreDisplayMode``).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from pagelens.protocols import ScoreDisplayMode


class _ResultModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class AuditResult(_ResultModel):
    """Normalized output of one audit."""

    id: str
    title: str
    description: str = ""
    score: Optional[float] = None
    score_display_mode: ScoreDisplayMode
    numeric_value: Optional[float] = None
    numeric_unit: Optional[str] = None
    display_value: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_score_matches_mode(self) -> AuditResult:
        if self.score_display_mode.is_scored:
            if self.score is None:
                raise ValueError(f"Audit '{self.id}' is {self.score_display_mode.value} but has no score")
            if not 0 <= self.score <= 1:
                raise ValueError(f"Audit '{self.id}' score {self.score} is outside [0, 1]")
        elif self.score is not None:
            raise ValueError(f"Audit '{self.id}' is {self.score_display_mode.value} and must not have a score")
        return self


class AuditRefResult(_ResultModel):
    id: str
    weight: float
    group: Optional[str] = None


class CategoryResult(_ResultModel):
    """Weighted arithmetic mean of a category's audits."""

    id: str
    title: str
    description: str = ""
    score: Optional[float] = None
    weight: float = 1.0
    audit_refs: List[AuditRefResult] = Field(default_factory=list)


class Timing(_ResultModel):
    """Wall-clock durations in milliseconds."""

    total: float = 0.0
    audits: Dict[str, float] = Field(default_factory=dict)


class ReportResult(_ResultModel):
    """Everything a run produced, assembled once and never mutated."""

    version: str = ""
    requested_url: str = ""
    final_url: str = ""
    fetch_time: str = ""
    gather_mode: str = "navigation"
    score: Optional[float] = None
    categories: Dict[str, CategoryResult] = Field(default_factory=dict)
    audits: Dict[str, AuditResult] = Field(default_factory=dict)
    run_warnings: List[str] = Field(default_factory=list)
    timing: Timing = Field(default_factory=Timing)
    computed_cache: Dict[str, int] = Field(default_factory=dict)
    config_settings: Dict[str, Any] = Field(default_factory=dict)
