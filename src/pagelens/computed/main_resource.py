"""
MainResource: the network record of the main document.
"""

from __future__ import annotations

from typing import Any, Mapping

from pagelens.computed.artifact import ComputedContext, computed_artifact
from pagelens.computed.network_records import NetworkRequest, network_records
from pagelens.lib.url_utils import equal_without_fragment


@computed_artifact("MainResource")
async def main_resource(data: Mapping[str, Any], context: ComputedContext) -> NetworkRequest:
    """Record whose URL is the final document URL, ignoring fragments."""
    url = data["url"]
    records = await network_records.request(data["devtools_log"], context)
    for record in records:
        if equal_without_fragment(record.url, url):
            return record
    raise ValueError(f"Unable to identify the main resource for {url}")
