"""
Shared test configuration for pagelens.

Provides sample artifacts, devtools logs, configurations and result builders
so that each test module can focus on the behavior it checks.
"""

import asyncio
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional

import pytest
import pytest_asyncio

from pagelens.audits.base import AuditRegistry
from pagelens.computed.cache import ComputedCache
from pagelens.config import Config
from pagelens.models import AuditResult
from pagelens.protocols import Artifacts, GatherContext, GatherMode, ScoreDisplayMode
from tests.helpers import network_records_to_devtools_log

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: End-to-end runs across modules")


@pytest_asyncio.fixture(autouse=True)
async def cleanup_tasks() -> AsyncGenerator[None, None]:
    """Cancel any task a test left behind so it cannot leak into the next one."""
    tasks_before = asyncio.all_tasks()
    yield
    new_tasks = asyncio.all_tasks() - tasks_before

    for task in new_tasks:
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                print(f"Unexpected error during task cleanup: {e}")


# ============================================================================
# Artifact Fixtures
# ============================================================================

PAGE_URL = "https://example.com/"


@pytest.fixture
def sample_requests() -> List[Dict[str, Any]]:
    return [
        {"url": PAGE_URL, "resourceType": "Document", "transferSize": 30_000, "resourceSize": 90_000},
        {"url": "https://example.com/app.js", "resourceType": "Script", "transferSize": 10_000},
        {"url": "https://cdn.example.com/lib.js", "resourceType": "Script", "transferSize": 50_000},
        {"url": "https://third-party.com/photo.jpg", "resourceType": "Image", "transferSize": 70_000},
    ]


@pytest.fixture
def devtools_log(sample_requests) -> List[Dict[str, Any]]:
    return network_records_to_devtools_log(sample_requests)


@pytest.fixture
def raw_artifacts(devtools_log) -> Dict[str, Any]:
    return {
        "DevtoolsLog": devtools_log,
        "URL": {"requestedUrl": PAGE_URL, "finalUrl": PAGE_URL},
        "Title": "Example Domain",
    }


@pytest.fixture
def artifacts(raw_artifacts) -> Artifacts:
    return Artifacts(raw_artifacts, GatherMode.NAVIGATION)


@pytest.fixture
def gather_context() -> GatherContext:
    return GatherContext(
        gather_mode=GatherMode.NAVIGATION,
        requested_url=PAGE_URL,
        final_url=PAGE_URL,
        fetch_time="2024-01-01T00:00:00Z",
    )


@pytest.fixture
def computed_cache() -> ComputedCache:
    cache = ComputedCache()
    yield cache
    cache.close(cancel_pending=True)


# ============================================================================
# Configuration and Result Builders
# ============================================================================


@pytest.fixture
def default_config() -> Config:
    return Config()


@pytest.fixture
def audit_registry() -> AuditRegistry:
    """An empty registry so tests can define audits without touching the built-in set."""
    return AuditRegistry()


@pytest.fixture
def make_result() -> Callable[..., AuditResult]:
    def _make(
        audit_id: str,
        score: Optional[float],
        mode: Optional[ScoreDisplayMode] = None,
    ) -> AuditResult:
        if mode is None:
            mode = ScoreDisplayMode.NUMERIC if score is not None else ScoreDisplayMode.NOT_APPLICABLE
        return AuditResult(id=audit_id, title=audit_id, score=score, score_display_mode=mode)

    return _make
