"""
Computed artifacts: memoized derivations over the raw artifacts of a run.

Importing this package registers the built-in artifacts.
"""

from __future__ import annotations

from .artifact import REGISTRY, ComputedArtifact, ComputedContext, ComputedRegistry, computed_artifact
from .cache import ComputedCache, fingerprint
from .main_resource import main_resource
from .network_records import NetworkRequest, build_network_records, network_records
from .resource_summary import ResourceEntry, resource_summary, summarize

__all__ = [
    "REGISTRY",
    "ComputedArtifact",
    "ComputedCache",
    "ComputedContext",
    "ComputedRegistry",
    "NetworkRequest",
    "ResourceEntry",
    "build_network_records",
    "computed_artifact",
    "fingerprint",
    "main_resource",
    "network_records",
    "resource_summary",
    "summarize",
]
