"""
Configuration management for pagelens using Pydantic.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pagelens.config.default_config import DEFAULT_AUDITS, DEFAULT_CATEGORIES
from pagelens.protocols import PASS_THRESHOLD, GatherMode

# --- Setup Logging ---
log = logging.getLogger(__name__)

# --- Nested Configuration Models ---


class AuditRefConfig(BaseModel):
    """Reference from a category to an audit, with its weight in that category."""

    id: str
    weight: float = Field(default=0.0, ge=0, description="Weight of the audit within its category.")
    group: Optional[str] = Field(default=None, description="Display group inside the category.")


class CategoryConfig(BaseModel):
    """A category is a weighted, ordered list of audit references."""

    title: str
    description: str = ""
    weight: float = Field(default=1.0, ge=0, description="Weight of the category in the overall score.")
    audit_refs: List[AuditRefConfig] = Field(default_factory=list)


class AuditConfig(BaseModel):
    """An audit to run, with options merged over the audit's defaults."""

    id: str
    options: Dict[str, Any] = Field(default_factory=dict)


class SettingsConfig(BaseModel):
    """Run settings passed through to audits untouched."""

    model_config = ConfigDict(extra="allow")

    locale: str = Field(default="en-US", description="Locale for report strings.")
    form_factor: Literal["mobile", "desktop"] = Field(default="mobile")
    throttling_method: Literal["simulate", "devtools", "provided"] = Field(default="simulate")
    throttling: Dict[str, float] = Field(
        default_factory=lambda: {
            "rtt_ms": 150.0,
            "throughput_kbps": 1638.4,
            "cpu_slowdown_multiplier": 4.0,
        }
    )
    budgets: Optional[List[Dict[str, Any]]] = Field(default=None, description="Performance budgets.")


class ScoringConfig(BaseModel):
    """Configuration for result normalization."""

    pass_threshold: float = Field(
        default=PASS_THRESHOLD,
        ge=0,
        le=1,
        description="Scores below this threshold display the audit's failure title.",
    )


class MonitoringConfig(BaseModel):
    """Configuration for logging and metrics."""

    enabled: bool = True
    log_level: str = Field(default="INFO", description="Logging level (e.g., DEBUG, INFO, WARNING).")
    log_file: str | None = Field(
        default=None,
        description="Path to log file. If None, logs to console.",
    )
    prometheus_port: int | None = Field(
        default=None,
        description="Port for Prometheus metrics exporter. None to disable.",
    )

    @field_validator("log_file", mode="before")
    @classmethod
    def create_parent_dir(cls, v: str | Path | None) -> str | None:
        if v is None:
            return None
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)


# --- Main Configuration Class ---


class Config(BaseSettings):
    project_name: str = "pagelens"
    version: str = "0.1.0"
    gather_mode: GatherMode = GatherMode.NAVIGATION
    settings: SettingsConfig = Field(default_factory=SettingsConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    audits: List[AuditConfig] = Field(
        default_factory=lambda: [AuditConfig.model_validate(audit) for audit in DEFAULT_AUDITS]
    )
    categories: Dict[str, CategoryConfig] = Field(
        default_factory=lambda: {
            category_id: CategoryConfig.model_validate(category)
            for category_id, category in DEFAULT_CATEGORIES.items()
        }
    )

    model_config = SettingsConfigDict(env_prefix="PAGELENS_", env_nested_delimiter="__", case_sensitive=False)

    @model_validator(mode="after")
    def check_audit_refs(self) -> Config:
        """Every category must reference configured audits, and audit ids must be unique."""
        audit_ids = [audit.id for audit in self.audits]
        duplicates = sorted({audit_id for audit_id in audit_ids if audit_ids.count(audit_id) > 1})
        if duplicates:
            raise ValueError(f"Duplicate audit ids in configuration: {duplicates}")

        known = set(audit_ids)
        for category_id, category in self.categories.items():
            for ref in category.audit_refs:
                if ref.id not in known:
                    raise ValueError(f"Category '{category_id}' references unknown audit '{ref.id}'")
        return self

    def audit_options(self) -> Dict[str, Dict[str, Any]]:
        return {audit.id: dict(audit.options) for audit in self.audits}

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        log.debug("Loading configuration from YAML file: %s", path)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found or is not a file: {path}")
        with open(path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
        if not yaml_data:
            log.warning("Configuration file is empty: %s. Using default settings.", path)
            return cls.model_validate({})
        return cls.model_validate(yaml_data)


def find_config_file() -> Path | None:
    current_dir = Path.cwd()
    paths_to_check = [
        current_dir / "pagelens.yaml",
        current_dir / "pagelens.yml",
    ]
    for path in paths_to_check:
        if path.exists():
            return path
    return None
