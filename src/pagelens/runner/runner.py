"""
Orchestrates one auditing run: artifacts in, ReportResult out.
"""

from __future__ import annotations

import time
import uuid
from typing import Any, Dict, List, Mapping, Optional, Set

import structlog
from pydantic import ValidationError
from structlog.contextvars import bind_contextvars, unbind_contextvars

from pagelens import __version__
from pagelens.audits.base import AUDITS, AuditDefinition
from pagelens.computed.artifact import ComputedArtifact
from pagelens.computed.cache import ComputedCache
from pagelens.config.config import CategoryConfig, Config, SettingsConfig
from pagelens.errors import ConfigurationError
from pagelens.models import ReportResult
from pagelens.observability.metrics import increment
from pagelens.protocols import Artifacts, GatherContext, GatherMode
from pagelens.report.assembler import assemble_report
from pagelens.runner.audit_runner import AuditRunner, filter_by_gather_mode
from pagelens.scoring.aggregator import compute_report_result

# Settings that legitimately differ between gathering and auditing.
_IGNORED_SETTINGS = frozenset({"gather_mode", "audit_mode", "output", "channel"})


class Runner:
    """
    Runs the configured audits over gathered artifacts and assembles the report.

    Every call to ``run()`` uses a fresh ComputedCache, so a Runner can be reused
    and a failed run can simply be retried.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        audits: Mapping[str, AuditDefinition] = AUDITS,
        computed_registry: Optional[Mapping[str, ComputedArtifact]] = None,
    ) -> None:
        self.config = config or Config()
        self.audits = audits
        self.computed_registry = computed_registry
        self.logger = structlog.get_logger(self.__class__.__name__)

    def check_settings(self, gather_settings: Mapping[str, Any]) -> None:
        """
        Reject artifacts gathered under settings other than the configured ones.

        Declared settings are always compared. Extra keys are opaque and only
        compared when both sides carry them.
        """
        if not gather_settings:
            return
        try:
            gathered = SettingsConfig.model_validate(dict(gather_settings)).model_dump()
        except ValidationError as e:
            raise ConfigurationError(f"Invalid gather settings: {e}") from e
        configured = self.config.settings.model_dump()

        keys = (set(SettingsConfig.model_fields) | (set(gathered) & set(configured))) - _IGNORED_SETTINGS
        changed = sorted(key for key in keys if gathered.get(key) != configured.get(key))
        if changed:
            raise ConfigurationError(
                "Cannot change settings between gathering and auditing", context={"settings": changed}
            )

    def resolve_audits(self, gather_mode: GatherMode) -> List[AuditDefinition]:
        definitions = []
        for audit_config in self.config.audits:
            definition = self.audits.get(audit_config.id)
            if definition is None:
                raise ConfigurationError(
                    f"Configured audit '{audit_config.id}' is not registered", context={"audit": audit_config.id}
                )
            definitions.append(definition)

        supported = filter_by_gather_mode(definitions, gather_mode)
        skipped = [definition.id for definition in definitions if definition not in supported]
        if skipped:
            self.logger.info("Skipping audits not supported in gather mode", gather_mode=gather_mode.value, audits=skipped)
        return supported

    def categories_for(self, audit_ids: Set[str]) -> Dict[str, CategoryConfig]:
        """Configured categories restricted to ``audit_ids``. Categories left with no refs are dropped."""
        categories = {}
        for category_id, category in self.config.categories.items():
            refs = [ref for ref in category.audit_refs if ref.id in audit_ids]
            if refs or not category.audit_refs:
                categories[category_id] = category.model_copy(update={"audit_refs": refs})
        return categories

    async def run(
        self, artifacts: Mapping[str, Any], gather_context: Optional[GatherContext] = None
    ) -> ReportResult:
        gather_context = gather_context or GatherContext(gather_mode=self.config.gather_mode)
        if not isinstance(artifacts, Artifacts):
            artifacts = Artifacts(artifacts, gather_context.gather_mode)

        run_id = uuid.uuid4().hex[:12]
        bind_contextvars(run_id=run_id, gather_mode=gather_context.gather_mode.value)
        start = time.perf_counter()
        cache: Optional[ComputedCache] = None

        try:
            self.check_settings(gather_context.settings)
            definitions = self.resolve_audits(gather_context.gather_mode)
            categories = self.categories_for({definition.id for definition in definitions})
            if not categories:
                raise ConfigurationError("No categories to score for this run")

            settings = self.config.settings.model_dump()
            cache = ComputedCache(self.computed_registry, settings=settings)
            run_warnings = list(artifacts.get("RunWarnings") or []) if artifacts.failed("RunWarnings") is None else []

            audit_runner = AuditRunner(pass_threshold=self.config.scoring.pass_threshold)
            results = await audit_runner.run(
                definitions,
                artifacts,
                cache.context,
                options=self.config.audit_options(),
                run_warnings=run_warnings,
            )

            report = assemble_report(
                compute_report_result(results, categories),
                gather_context,
                version=__version__,
                total_ms=(time.perf_counter() - start) * 1000,
                audit_timings=audit_runner.timings,
                run_warnings=run_warnings,
                cache_stats=cache.stats(),
                settings=settings,
            )
        except Exception as e:
            increment("runs_total", status="aborted")
            self.logger.error("Run aborted", error=str(e), error_type=type(e).__name__)
            raise
        finally:
            if cache is not None:
                cache.close(cancel_pending=True)
            unbind_contextvars("run_id", "gather_mode")

        increment("runs_total", status="completed")
        self.logger.info("Run completed", score=report.score, audits=len(report.audits), duration_ms=report.timing.total)
        return report
