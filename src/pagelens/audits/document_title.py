"""
Checks that the document has a non-empty <title>.
"""

from __future__ import annotations

from pagelens.audits.base import audit
from pagelens.protocols import Artifacts, AuditContext, AuditProduct, GatherMode, ScoreDisplayMode


@audit(
    "document-title",
    title="Document has a `<title>` element",
    failure_title="Document doesn't have a `<title>` element",
    description="The title gives screen reader users an overview of the page and is shown in search results.",
    required_artifacts=("Title",),
    score_display_mode=ScoreDisplayMode.BINARY,
    supported_modes=(GatherMode.NAVIGATION, GatherMode.SNAPSHOT),
)
def document_title(artifacts: Artifacts, context: AuditContext) -> AuditProduct:
    title = artifacts["Title"]
    return AuditProduct(score=bool(title and str(title).strip()))
