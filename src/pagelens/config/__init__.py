"""Configuration for pagelens runs."""

from __future__ import annotations

from .config import (
    AuditConfig,
    AuditRefConfig,
    CategoryConfig,
    Config,
    MonitoringConfig,
    ScoringConfig,
    SettingsConfig,
    find_config_file,
)

__all__ = [
    "AuditConfig",
    "AuditRefConfig",
    "CategoryConfig",
    "Config",
    "MonitoringConfig",
    "ScoringConfig",
    "SettingsConfig",
    "find_config_file",
]
