"""Unit tests for the audit runner: concurrency, failure isolation and lifecycle."""

from __future__ import annotations

import asyncio

import pytest

from pagelens.audits.base import audit
from pagelens.computed.artifact import ComputedRegistry, computed_artifact
from pagelens.computed.cache import ComputedCache
from pagelens.errors import ConfigurationError, PagelensError, ScoreRangeError
from pagelens.protocols import Artifacts, AuditProduct, AuditState, GatherMode, ScoreDisplayMode
from pagelens.runner.audit_runner import AuditRunner, filter_by_gather_mode
from tests.helpers import histogram_observes, metric_delta


@pytest.fixture
def computed():
    registry = ComputedRegistry()

    @computed_artifact("Exploding", registry=registry)
    def exploding(data, context):
        raise RuntimeError("derivation failed")

    @computed_artifact("Doubled", registry=registry)
    def doubled(data, context):
        return data * 2

    cache = ComputedCache(registry, settings={"locale": "en-US"})
    yield cache.context
    cache.close(cancel_pending=True)


def define(audit_id, run, **kwargs):
    kwargs.setdefault("title", audit_id)
    return audit(audit_id, registry=None, **kwargs)(run)


def scored(value):
    def run(artifacts, context):
        return AuditProduct(score=value)

    return run


class TestErrorIsolation:
    @pytest.mark.asyncio
    async def test_throwing_audit_becomes_error_result(self, computed):
        def boom(artifacts, context):
            raise RuntimeError("kaput")

        definitions = [define("ok", scored(1)), define("broken", boom), define("also-ok", scored(0.5))]
        results = await AuditRunner().run(definitions, Artifacts({}), computed)

        assert [result.id for result in results] == ["ok", "broken", "also-ok"]
        broken = results[1]
        assert broken.score is None
        assert broken.score_display_mode is ScoreDisplayMode.ERROR
        assert broken.error_message == "Audit error: kaput"
        assert results[0].score == 1.0
        assert results[2].score == 0.5

    @pytest.mark.asyncio
    async def test_computed_artifact_failure_becomes_error_result(self, computed):
        async def needs_exploding(artifacts, context):
            await context.computed.request("Exploding", 1)
            return AuditProduct(score=1)

        async def needs_doubled(artifacts, context):
            value = await context.computed.request("Doubled", 21)
            return AuditProduct(score=1, numeric_value=value)

        definitions = [define("a", needs_exploding), define("b", needs_exploding), define("c", needs_doubled)]
        results = await AuditRunner().run(definitions, Artifacts({}), computed)

        assert results[0].error_message == "Audit error: derivation failed"
        assert results[1].error_message == "Audit error: derivation failed"
        assert results[2].numeric_value == 42

    @pytest.mark.asyncio
    async def test_missing_required_artifact(self, computed):
        definitions = [define("needs-title", scored(1), required_artifacts=("Title",))]
        [result] = await AuditRunner().run(definitions, Artifacts({}), computed)

        assert result.score_display_mode is ScoreDisplayMode.ERROR
        assert result.error_message == "Required Title gatherer did not run."

    @pytest.mark.asyncio
    async def test_failed_required_artifact(self, computed):
        artifacts = Artifacts({"Title": RuntimeError("protocol timeout")})
        definitions = [define("needs-title", scored(1), required_artifacts=("Title",))]
        [result] = await AuditRunner().run(definitions, artifacts, computed)

        assert result.error_message == "Required Title gatherer encountered an error: protocol timeout"

    @pytest.mark.asyncio
    async def test_non_fatal_pagelens_errors_are_isolated(self, computed):
        def raises_domain_error(artifacts, context):
            raise PagelensError("not enough data")

        [result] = await AuditRunner().run([define("x", raises_domain_error)], Artifacts({}), computed)
        assert result.error_message == "Audit error: not enough data"


class TestFatalErrors:
    @pytest.mark.asyncio
    async def test_score_out_of_range_aborts_the_run(self, computed):
        cancelled = asyncio.Event()

        async def slow(artifacts, context):
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return AuditProduct(score=1)

        definitions = [define("slow", slow), define("too-high", scored(1.5))]
        with pytest.raises(ScoreRangeError, match="is > 1"):
            await AuditRunner().run(definitions, Artifacts({}), computed)

        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_fatal_error_is_not_wrapped_in_a_group(self, computed):
        def misconfigured(artifacts, context):
            raise ConfigurationError("bad options")

        with pytest.raises(ConfigurationError) as excinfo:
            await AuditRunner().run([define("x", misconfigured)], Artifacts({}), computed)
        assert not isinstance(excinfo.value, BaseExceptionGroup)

    @pytest.mark.asyncio
    async def test_duplicate_ids_are_rejected(self, computed):
        definitions = [define("same", scored(1)), define("same", scored(0))]
        with pytest.raises(ConfigurationError, match="unique"):
            await AuditRunner().run(definitions, Artifacts({}), computed)


class TestOrderingAndConcurrency:
    @pytest.mark.asyncio
    async def test_results_keep_definition_order(self, computed):
        finished = []

        def delayed(audit_id, delay):
            async def run(artifacts, context):
                await asyncio.sleep(delay)
                finished.append(audit_id)
                return AuditProduct(score=1)

            return run

        definitions = [define("slow", delayed("slow", 0.05)), define("fast", delayed("fast", 0))]
        results = await AuditRunner().run(definitions, Artifacts({}), computed)

        assert finished == ["fast", "slow"]
        assert [result.id for result in results] == ["slow", "fast"]

    @pytest.mark.asyncio
    async def test_audits_run_concurrently(self, computed):
        both_started = asyncio.Event()
        started = []

        def waiter(audit_id):
            async def run(artifacts, context):
                started.append(audit_id)
                if len(started) == 2:
                    both_started.set()
                await asyncio.wait_for(both_started.wait(), timeout=1)
                return AuditProduct(score=1)

            return run

        results = await AuditRunner().run([define("a", waiter("a")), define("b", waiter("b"))], Artifacts({}), computed)
        assert all(result.score == 1.0 for result in results)


class TestContext:
    @pytest.mark.asyncio
    async def test_options_settings_and_warnings(self, computed):
        seen = {}

        def inspect_context(artifacts, context):
            seen["options"] = context.options
            seen["settings"] = context.settings
            context.run_warnings.append("slow network")
            return AuditProduct(score=1)

        definitions = [define("inspect", inspect_context, default_options={"p10": 1, "median": 2})]
        warnings = []
        await AuditRunner().run(
            definitions, Artifacts({}), computed, options={"inspect": {"median": 3}}, run_warnings=warnings
        )

        assert seen["options"] == {"p10": 1, "median": 3}
        assert seen["settings"] == {"locale": "en-US"}
        assert warnings == ["slow network"]


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_each_audit_reaches_one_terminal_state(self, computed):
        def boom(artifacts, context):
            raise RuntimeError("kaput")

        definitions = [
            define("scored", scored(0.7)),
            define("na", lambda artifacts, context: AuditProduct(not_applicable=True)),
            define("err", boom),
        ]
        runner = AuditRunner()
        await runner.run(definitions, Artifacts({}), computed)

        assert runner.states == {
            "scored": AuditState.SCORED,
            "na": AuditState.NOT_APPLICABLE,
            "err": AuditState.ERROR,
        }
        assert set(runner.timings) == {"scored", "na", "err"}

    @pytest.mark.asyncio
    async def test_terminal_state_cannot_change(self, computed):
        runner = AuditRunner()
        definition = define("once", scored(1))
        await runner.run_audit(definition, Artifacts({}), computed)

        with pytest.raises(RuntimeError, match="already finished"):
            await runner.run_audit(definition, Artifacts({}), computed)


class TestGatherModes:
    def test_filter_by_gather_mode(self):
        navigation_only = define("nav", scored(1), supported_modes=(GatherMode.NAVIGATION,))
        everywhere = define("all", scored(1))

        assert filter_by_gather_mode([navigation_only, everywhere], GatherMode.SNAPSHOT) == [everywhere]
        assert filter_by_gather_mode([navigation_only, everywhere], GatherMode.NAVIGATION) == [
            navigation_only,
            everywhere,
        ]


class TestMetrics:
    @pytest.mark.asyncio
    async def test_audits_are_counted_by_mode(self, computed):
        def boom(artifacts, context):
            raise RuntimeError("kaput")

        with metric_delta("pagelens_audits_total", {"mode": "error"}), histogram_observes(
            "pagelens_audit_duration_seconds", {"audit": "metrics-boom"}
        ):
            await AuditRunner().run([define("metrics-boom", boom)], Artifacts({}), computed)
