"""
Built-in audit and category configuration.

Kept as plain data so YAML configs can be written in exactly the same shape.
"""

from __future__ import annotations

from typing import Any, Dict, List

DEFAULT_AUDITS: List[Dict[str, Any]] = [
    {"id": "total-byte-weight"},
    {"id": "resource-summary"},
    {"id": "is-on-https"},
    {"id": "document-title"},
]

DEFAULT_CATEGORIES: Dict[str, Dict[str, Any]] = {
    "performance": {
        "title": "Performance",
        "weight": 1.0,
        "audit_refs": [
            {"id": "total-byte-weight", "weight": 1.0, "group": "diagnostics"},
            {"id": "resource-summary", "weight": 0.0, "group": "diagnostics"},
        ],
    },
    "best-practices": {
        "title": "Best Practices",
        "weight": 1.0,
        "audit_refs": [
            {"id": "is-on-https", "weight": 1.0, "group": "trust-and-safety"},
        ],
    },
    "seo": {
        "title": "SEO",
        "weight": 1.0,
        "audit_refs": [
            {"id": "document-title", "weight": 1.0, "group": "content"},
        ],
    },
}
