"""
Flags pages whose total network payload is large.
"""

from __future__ import annotations

from typing import Any, Dict, List

from pagelens.audits.base import audit, make_table_details
from pagelens.computed.network_records import network_records
from pagelens.lib.statistics import get_log_normal_score
from pagelens.protocols import Artifacts, AuditContext, AuditProduct, GatherMode, ScoreDisplayMode

KIB = 1024


@audit(
    "total-byte-weight",
    title="Avoids enormous network payloads",
    failure_title="Avoid enormous network payloads",
    description="Large network payloads cost users real money and are highly correlated with long load times.",
    required_artifacts=("DevtoolsLog",),
    score_display_mode=ScoreDisplayMode.NUMERIC,
    default_options={"p10": 2667 * KIB, "median": 4000 * KIB},
    supported_modes=(GatherMode.NAVIGATION, GatherMode.TIMESPAN),
)
async def total_byte_weight(artifacts: Artifacts, context: AuditContext) -> AuditProduct:
    records = await network_records.request(artifacts["DevtoolsLog"], context.computed)

    total_bytes = 0
    results: List[Dict[str, Any]] = []
    for record in records:
        # data: URIs are counted in the resource that embeds them; unfinished requests have no size.
        if record.scheme == "data" or not record.finished:
            continue
        total_bytes += record.transfer_size
        results.append({"url": record.url, "totalBytes": record.transfer_size})

    results.sort(key=lambda item: item["totalBytes"], reverse=True)
    headings = [
        {"key": "url", "valueType": "url", "label": "URL"},
        {"key": "totalBytes", "valueType": "bytes", "label": "Transfer Size"},
    ]

    return AuditProduct(
        score=get_log_normal_score(context.options["p10"], context.options["median"], total_bytes),
        numeric_value=total_bytes,
        numeric_unit="byte",
        display_value=f"Total size was {round(total_bytes / KIB):,}\xa0KiB",
        details=make_table_details(headings, results[:10], summary={"totalCompletedRequests": len(results)}),
    )
