"""
Runs audits concurrently and isolates their failures.

Every audit starts at once in a TaskGroup. An audit that raises an ordinary
exception, or that requires an artifact that was not gathered, becomes an
``error`` result and the others carry on. A fatal error (see
``pagelens.errors``) cancels the remaining audits and propagates unwrapped.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence

import structlog

from pagelens.audits.base import AuditDefinition, error_result, normalize_audit_result
from pagelens.computed.artifact import ComputedContext
from pagelens.errors import ConfigurationError, MissingArtifactError, is_fatal
from pagelens.models import AuditResult
from pagelens.observability.metrics import increment, observe
from pagelens.protocols import (
    PASS_THRESHOLD,
    Artifacts,
    AuditContext,
    AuditState,
    GatherMode,
    ScoreDisplayMode,
)

_TERMINAL_STATES = {
    ScoreDisplayMode.NOT_APPLICABLE: AuditState.NOT_APPLICABLE,
    ScoreDisplayMode.ERROR: AuditState.ERROR,
}


def filter_by_gather_mode(
    definitions: Sequence[AuditDefinition], gather_mode: GatherMode
) -> List[AuditDefinition]:
    return [definition for definition in definitions if definition.supports(gather_mode)]


def _first_fatal(group: BaseExceptionGroup) -> Optional[BaseException]:
    for error in group.exceptions:
        if isinstance(error, BaseExceptionGroup):
            found = _first_fatal(error)
            if found is not None:
                return found
        elif is_fatal(error):
            return error
    return None


class AuditRunner:
    """
    Runs a list of audit definitions against one set of artifacts.

    Results come back in definition order whatever order the audits finish in.
    Each audit moves from ``pending`` to exactly one terminal state.
    """

    def __init__(self, pass_threshold: float = PASS_THRESHOLD) -> None:
        self.pass_threshold = pass_threshold
        self.states: Dict[str, AuditState] = {}
        self.timings: Dict[str, float] = {}
        self.logger = structlog.get_logger(self.__class__.__name__)

    def _transition(self, audit_id: str, state: AuditState) -> None:
        current = self.states.get(audit_id, AuditState.PENDING)
        if current.is_terminal:
            raise RuntimeError(f"Audit '{audit_id}' already finished as {current.value}")
        self.states[audit_id] = state

    async def run(
        self,
        definitions: Sequence[AuditDefinition],
        artifacts: Artifacts,
        computed: ComputedContext,
        *,
        options: Optional[Mapping[str, Mapping[str, Any]]] = None,
        run_warnings: Optional[List[str]] = None,
    ) -> List[AuditResult]:
        ids = [definition.id for definition in definitions]
        if len(set(ids)) != len(ids):
            raise ConfigurationError("Audit ids must be unique within a run", context={"audits": ids})

        options = options or {}
        run_warnings = run_warnings if run_warnings is not None else []
        for audit_id in ids:
            self.states[audit_id] = AuditState.PENDING

        self.logger.info("Running audits", count=len(definitions), gather_mode=artifacts.gather_mode.value)

        tasks: Dict[str, asyncio.Task[AuditResult]] = {}
        try:
            async with asyncio.TaskGroup() as tg:
                for definition in definitions:
                    tasks[definition.id] = tg.create_task(
                        self.run_audit(
                            definition,
                            artifacts,
                            computed,
                            options=options.get(definition.id),
                            run_warnings=run_warnings,
                        ),
                        name=f"audit:{definition.id}",
                    )
        except BaseExceptionGroup as eg:
            fatal = _first_fatal(eg)
            if fatal is None:
                raise
            self.logger.error("Run aborted by fatal audit error", error=str(fatal), error_type=type(fatal).__name__)
            raise fatal from None

        return [tasks[audit_id].result() for audit_id in ids]

    async def run_audit(
        self,
        definition: AuditDefinition,
        artifacts: Artifacts,
        computed: ComputedContext,
        *,
        options: Optional[Mapping[str, Any]] = None,
        run_warnings: Optional[List[str]] = None,
    ) -> AuditResult:
        """Run one audit and return its normalized result. Only fatal errors escape."""
        audit_id = definition.id
        log = self.logger.bind(audit=audit_id)
        self.states.setdefault(audit_id, AuditState.PENDING)
        start = time.perf_counter()

        try:
            for name in definition.required_artifacts:
                if name not in artifacts:
                    raise MissingArtifactError(name, audit_id)
                failure = artifacts.failed(name)
                if failure is not None:
                    raise MissingArtifactError(name, audit_id, reason=str(failure))

            context = AuditContext(
                options=definition.options(options),
                settings=computed.settings,
                computed=computed,
                run_warnings=run_warnings if run_warnings is not None else [],
            )
            product = definition.run(artifacts, context)
            if inspect.isawaitable(product):
                product = await product
            result = normalize_audit_result(definition, product, self.pass_threshold)
        except Exception as e:
            if is_fatal(e):
                log.error("audit.fatal", error=str(e), error_type=type(e).__name__)
                raise
            message = e.message if isinstance(e, MissingArtifactError) else f"Audit error: {e}"
            log.warning("audit.error", error=message, error_type=type(e).__name__)
            result = error_result(definition, message)
        finally:
            duration = time.perf_counter() - start
            self.timings[audit_id] = duration * 1000
            observe("audit_duration_seconds", duration, audit=audit_id)

        self._transition(audit_id, _TERMINAL_STATES.get(result.score_display_mode, AuditState.SCORED))
        increment("audits_total", mode=result.score_display_mode.value)
        log.info(
            "audit.finished",
            mode=result.score_display_mode.value,
            score=result.score,
            duration_ms=round(self.timings[audit_id], 2),
        )
        return result
