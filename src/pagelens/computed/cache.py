"""
Per-run memoization of computed artifacts.

Requests are keyed by the artifact name plus a content fingerprint of the
input, so two distinct objects carrying the same data share one entry. The
first request for a key starts the computation as a task and stores it before
anything is awaited; every other request for that key, concurrent or later,
awaits the same task. Failures are stored too and re-raised to every caller of
that key for the rest of the run.
"""

from __future__ import annotations

import asyncio
import dataclasses
import hashlib
import inspect
import json
import math
from collections.abc import Mapping
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import structlog
from pydantic import BaseModel

from pagelens.computed.artifact import REGISTRY, ComputedArtifact, ComputedContext
from pagelens.errors import CacheClosedError
from pagelens.observability.metrics import increment

logger = structlog.get_logger(__name__)

CacheKey = Tuple[str, str]


def _canonical(value: Any) -> Any:
    """Reduce ``value`` to JSON-compatible data that is equal exactly when the inputs are deeply equal."""
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value):
            return {"__float__": "nan"}
        if math.isinf(value):
            return {"__float__": "inf" if value > 0 else "-inf"}
        # 1 and 1.0 compare equal
        return int(value) if value.is_integer() else value
    if isinstance(value, Enum):
        return {"__enum__": type(value).__qualname__, "value": _canonical(value.value)}
    if isinstance(value, (bytes, bytearray)):
        return {"__bytes__": bytes(value).hex()}
    if isinstance(value, BaseModel):
        return {"__model__": type(value).__qualname__, "fields": _canonical(value.model_dump(mode="python"))}
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        fields = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
        return {"__dataclass__": type(value).__qualname__, "fields": _canonical(fields)}
    if isinstance(value, Mapping):
        items = [[_dumps(_canonical(k)), _canonical(v)] for k, v in value.items()]
        items.sort(key=lambda kv: kv[0])
        return {"__map__": items}
    if isinstance(value, (list, tuple)):
        return [_canonical(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return {"__set__": sorted(_dumps(_canonical(item)) for item in value)}
    raise TypeError(f"Cannot fingerprint computed artifact input of type {type(value).__name__}")


def _dumps(canonical: Any) -> str:
    return json.dumps(canonical, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def fingerprint(data: Any) -> str:
    """Stable SHA-256 fingerprint of ``data`` by deep value, not identity."""
    return hashlib.sha256(_dumps(_canonical(data)).encode("utf-8")).hexdigest()


class ComputedCache:
    """
    Memoizes computed artifacts for exactly one run.

    Safe under concurrent ``request()`` calls from tasks on the same event loop.
    Not reusable across runs: once ``close()`` is called every request fails
    with CacheClosedError, and a retry must build a fresh cache.
    """

    def __init__(
        self,
        registry: Optional[Mapping[str, ComputedArtifact]] = None,
        settings: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._registry = registry if registry is not None else REGISTRY
        self.context = ComputedContext(cache=self, settings=dict(settings or {}))
        self._tasks: Dict[CacheKey, asyncio.Future[Any]] = {}
        self._closed = False
        self._hits = 0
        self._misses = 0
        self._failures = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._tasks)

    def has(self, name: str, data: Any) -> bool:
        return (name, fingerprint(data)) in self._tasks

    async def request(self, name: str, data: Any) -> Any:
        """Return the computed artifact ``name`` for ``data``, computing it at most once per run."""
        if self._closed:
            raise CacheClosedError(f"Computed artifact '{name}' requested after the run ended")

        artifact = self._registry.get(name)
        if artifact is None:
            raise KeyError(f"No computed artifact registered as '{name}'")

        key = (name, fingerprint(data))
        task = self._tasks.get(key)
        if task is None:
            self._misses += 1
            increment("computed_requests_total", artifact=name, outcome="miss")
            logger.debug("computed.miss", artifact=name, key=key[1][:12])
            task = asyncio.ensure_future(self._compute(artifact, data))
            self._tasks[key] = task
        else:
            self._hits += 1
            increment("computed_requests_total", artifact=name, outcome="hit")
            logger.debug("computed.hit", artifact=name, key=key[1][:12], pending=not task.done())

        # A cancelled caller must not cancel the computation other callers share.
        return await asyncio.shield(task)

    async def _compute(self, artifact: ComputedArtifact, data: Any) -> Any:
        try:
            result = artifact.compute(data, self.context)
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as e:
            self._failures += 1
            increment("computed_requests_total", artifact=artifact.name, outcome="failure")
            logger.warning("computed.failed", artifact=artifact.name, error=str(e), error_type=type(e).__name__)
            raise

    def close(self, cancel_pending: bool = False) -> None:
        """End the run. Pending computations settle on their own unless ``cancel_pending``."""
        self._closed = True
        if cancel_pending:
            for task in self._tasks.values():
                if not task.done():
                    task.cancel()

    def stats(self) -> Dict[str, int]:
        return {
            "entries": len(self._tasks),
            "pending": sum(1 for task in self._tasks.values() if not task.done()),
            "hits": self._hits,
            "misses": self._misses,
            "failures": self._failures,
        }
