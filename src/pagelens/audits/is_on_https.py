"""
Checks that every request the page made used a secure scheme.
"""

from __future__ import annotations

from pagelens.audits.base import audit, make_table_details
from pagelens.computed.network_records import network_records
from pagelens.protocols import Artifacts, AuditContext, AuditProduct, GatherMode, ScoreDisplayMode


@audit(
    "is-on-https",
    title="Uses HTTPS",
    failure_title="Does not use HTTPS",
    description="All sites should be protected with HTTPS, even ones that don't handle sensitive data.",
    required_artifacts=("DevtoolsLog",),
    score_display_mode=ScoreDisplayMode.BINARY,
    supported_modes=(GatherMode.NAVIGATION, GatherMode.TIMESPAN),
)
async def is_on_https(artifacts: Artifacts, context: AuditContext) -> AuditProduct:
    records = await network_records.request(artifacts["DevtoolsLog"], context.computed)
    if not records:
        return AuditProduct(not_applicable=True)

    insecure_urls = []
    for record in records:
        if not record.is_secure and record.url not in insecure_urls:
            insecure_urls.append(record.url)

    display_value = None
    if insecure_urls:
        noun = "request" if len(insecure_urls) == 1 else "requests"
        display_value = f"{len(insecure_urls)} insecure {noun} found"

    headings = [{"key": "url", "valueType": "url", "label": "Insecure URL"}]
    return AuditProduct(
        score=not insecure_urls,
        display_value=display_value,
        details=make_table_details(headings, [{"url": url} for url in insecure_urls]),
    )
