"""
ResourceSummary: request counts and byte sizes per resource type.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

from pagelens.computed.artifact import ComputedContext, computed_artifact
from pagelens.computed.main_resource import main_resource
from pagelens.computed.network_records import NetworkRequest, network_records
from pagelens.lib.url_utils import get_matching_budget, get_root_domain, host_matches, hostname_of

RESOURCE_TYPES = (
    "stylesheet",
    "image",
    "media",
    "font",
    "script",
    "document",
    "other",
    "total",
    "third-party",
)

_REQUEST_TO_RESOURCE_TYPE = {
    "Stylesheet": "stylesheet",
    "Image": "image",
    "Media": "media",
    "Font": "font",
    "Script": "script",
    "Document": "document",
}


@dataclass
class ResourceEntry:
    count: int = 0
    resource_size: int = 0
    transfer_size: int = 0

    def add(self, record: NetworkRequest) -> None:
        self.count += 1
        self.resource_size += record.resource_size
        self.transfer_size += record.transfer_size


def determine_resource_type(record: NetworkRequest) -> str:
    if not record.resource_type:
        return "other"
    return _REQUEST_TO_RESOURCE_TYPE.get(record.resource_type, "other")


def first_party_hosts(main_url: str, budgets: Optional[Sequence[Mapping[str, Any]]]) -> Sequence[str]:
    budget = get_matching_budget(budgets, main_url)
    hostnames = ((budget or {}).get("options") or {}).get("firstPartyHostnames")
    if hostnames:
        return list(hostnames)
    return [f"*.{get_root_domain(main_url)}"]


def summarize(
    records: Iterable[NetworkRequest],
    main_url: str,
    budgets: Optional[Sequence[Mapping[str, Any]]] = None,
) -> Dict[str, ResourceEntry]:
    """Summarize ``records`` by type. Favicons and non-network requests are ignored."""
    summary = {resource_type: ResourceEntry() for resource_type in RESOURCE_TYPES}
    hosts = first_party_hosts(main_url, budgets)

    for record in records:
        resource_type = determine_resource_type(record)
        # Headless browsers never fetch /favicon.ico; skip it so summaries stay comparable.
        if resource_type == "other" and record.url.endswith("/favicon.ico"):
            continue
        if record.is_non_network:
            continue

        summary[resource_type].add(record)
        summary["total"].add(record)
        if not host_matches(hostname_of(record.url), hosts):
            summary["third-party"].add(record)

    return summary


@computed_artifact("ResourceSummary")
async def resource_summary(data: Mapping[str, Any], context: ComputedContext) -> Dict[str, ResourceEntry]:
    """Request counts and byte sizes per resource type, plus total and third-party."""
    devtools_log = data["devtools_log"]
    records, main_record = await asyncio.gather(
        network_records.request(devtools_log, context),
        main_resource.request({"devtools_log": devtools_log, "url": data["url"]}, context),
    )
    return summarize(records, main_record.url, data.get("budgets"))
