"""
Registry of computed artifacts.

A computed artifact is a named derivation over raw artifacts, other computed
artifacts and the run settings. Dependencies are not declared up front: a
derivation simply requests what it needs through the run's cache, which
memoizes every (name, input) pair. There is no topological sort and no cycle
detection, so a derivation that ends up requesting its own key waits on itself
forever.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict

from pagelens.protocols import ComputeFunction

if TYPE_CHECKING:
    from pagelens.computed.cache import ComputedCache


@dataclass(frozen=True)
class ComputedArtifact:
    """A registered derivation: its name plus the function that computes it."""

    name: str
    compute: ComputeFunction
    description: str = ""

    async def request(self, data: Any, context: ComputedContext) -> Any:
        return await context.request(self.name, data)


@dataclass
class ComputedContext:
    """Handle passed to derivations and audits for requesting computed artifacts."""

    cache: ComputedCache
    settings: Dict[str, Any] = field(default_factory=dict)

    async def request(self, name: str, data: Any) -> Any:
        return await self.cache.request(name, data)


class ComputedRegistry(Mapping[str, ComputedArtifact]):
    """Name -> ComputedArtifact lookup. Names are unique."""

    def __init__(self) -> None:
        self._artifacts: Dict[str, ComputedArtifact] = {}

    def __getitem__(self, name: str) -> ComputedArtifact:
        return self._artifacts[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._artifacts)

    def __len__(self) -> int:
        return len(self._artifacts)

    def register(self, artifact: ComputedArtifact) -> ComputedArtifact:
        existing = self._artifacts.get(artifact.name)
        if existing is not None and existing.compute is not artifact.compute:
            raise ValueError(f"Computed artifact '{artifact.name}' is already registered")
        self._artifacts[artifact.name] = artifact
        return artifact


REGISTRY = ComputedRegistry()


def computed_artifact(
    name: str, *, description: str = "", registry: ComputedRegistry = REGISTRY
) -> Callable[[ComputeFunction], ComputedArtifact]:
    """Register ``compute`` under ``name`` and return its ComputedArtifact record."""

    def decorator(compute: ComputeFunction) -> ComputedArtifact:
        doc = description or (getattr(compute, "__doc__", None) or "").strip().split("\n")[0]
        return registry.register(ComputedArtifact(name=name, compute=compute, description=doc))

    return decorator
