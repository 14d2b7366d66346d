"""
Summarizes requests and bytes by resource type.
"""

from __future__ import annotations

from pagelens.audits.base import audit, make_table_details
from pagelens.computed.resource_summary import resource_summary
from pagelens.protocols import Artifacts, AuditContext, AuditProduct, GatherMode, ScoreDisplayMode

LABELS = {
    "total": "Total",
    "document": "Document",
    "script": "Script",
    "stylesheet": "Stylesheet",
    "image": "Image",
    "media": "Media",
    "font": "Font",
    "other": "Other",
    "third-party": "Third-party",
}


@audit(
    "resource-summary",
    title="Keep request counts low and transfer sizes small",
    description="To set budgets for the quantity and size of page resources, add budgets to the settings.",
    required_artifacts=("DevtoolsLog", "URL"),
    score_display_mode=ScoreDisplayMode.INFORMATIVE,
    supported_modes=(GatherMode.NAVIGATION,),
)
async def resource_summary_audit(artifacts: Artifacts, context: AuditContext) -> AuditProduct:
    summary = await resource_summary.request(
        {
            "devtools_log": artifacts["DevtoolsLog"],
            "url": artifacts["URL"]["finalUrl"],
            "budgets": context.settings.get("budgets"),
        },
        context.computed,
    )

    items = [
        {
            "resourceType": resource_type,
            "label": LABELS[resource_type],
            "requestCount": entry.count,
            "transferSize": entry.transfer_size,
        }
        for resource_type, entry in summary.items()
    ]
    items.sort(key=lambda item: item["transferSize"], reverse=True)

    headings = [
        {"key": "label", "valueType": "text", "label": "Resource Type"},
        {"key": "requestCount", "valueType": "numeric", "label": "Requests"},
        {"key": "transferSize", "valueType": "bytes", "label": "Transfer Size"},
    ]
    total = summary["total"]
    requests = "1 request" if total.count == 1 else f"{total.count} requests"

    return AuditProduct(
        score=1,
        display_value=f"{requests} • {round(total.transfer_size / 1024):,}\xa0KiB",
        details=make_table_details(headings, items),
    )
