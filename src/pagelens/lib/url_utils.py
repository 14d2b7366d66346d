"""
URL helpers shared by computed artifacts and audits.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Sequence
from urllib.parse import urldefrag, urlsplit

SECURE_SCHEMES = frozenset(
    {"data", "https", "wss", "blob", "chrome", "chrome-extension", "about", "filesystem"}
)
SECURE_LOCALHOST_DOMAINS = frozenset({"localhost", "127.0.0.1"})
NON_NETWORK_SCHEMES = frozenset({"blob", "data", "intent", "file", "filesystem"})

# Most used second-level labels of two-part public suffixes (co.uk, com.au, ...).
SECOND_LEVEL_LABELS = frozenset(
    {
        "com", "co", "gov", "edu", "ac", "org", "go", "gob", "or", "net", "in", "ne", "nic",
        "gouv", "web", "spb", "blog", "jus", "kiev", "mil", "wi", "qc", "ca", "bel", "on",
    }
)


def scheme_of(url_or_protocol: str) -> str:
    """Scheme of a URL, a ``new URL().protocol``-style string or a bare protocol name."""
    if ":" in url_or_protocol:
        return url_or_protocol.split(":", 1)[0].lower()
    return url_or_protocol.lower()


def hostname_of(url: str) -> str:
    return (urlsplit(url).hostname or "").lower()


def is_non_network_protocol(url_or_protocol: str) -> bool:
    return scheme_of(url_or_protocol) in NON_NETWORK_SCHEMES


def is_secure_scheme(scheme: str) -> bool:
    return scheme in SECURE_SCHEMES


def is_like_localhost(hostname: str) -> bool:
    return hostname in SECURE_LOCALHOST_DOMAINS or hostname.endswith(".localhost")


def equal_without_fragment(url_a: str, url_b: str) -> bool:
    return urldefrag(url_a)[0] == urldefrag(url_b)[0]


def get_tld(hostname: str) -> str:
    labels = hostname.split(".")[-2:]
    if labels[0] not in SECOND_LEVEL_LABELS:
        return f".{labels[-1]}"
    return "." + ".".join(labels)


def get_root_domain(url: str) -> str:
    """Registrable domain of ``url``, e.g. www.example.co.uk -> example.co.uk."""
    hostname = hostname_of(url) if "://" in url else url.lower()
    tld_parts = get_tld(hostname).split(".")
    return ".".join(hostname.split(".")[-len(tld_parts):])


def host_matches(hostname: str, patterns: Iterable[str]) -> bool:
    """Match against exact hostnames or ``*.domain`` wildcards (which include the domain itself)."""
    for pattern in patterns:
        if pattern.startswith("*."):
            if hostname.endswith(pattern[2:]):
                return True
        elif hostname == pattern:
            return True
    return False


def get_matching_budget(
    budgets: Optional[Sequence[Mapping[str, Any]]], url: str
) -> Optional[Mapping[str, Any]]:
    """Return the last budget whose ``path`` prefixes the path of ``url``."""
    if not budgets:
        return None
    path = urlsplit(url).path or "/"
    for budget in reversed(budgets):
        budget_path = budget.get("path") or "/"
        if path.startswith(budget_path):
            return budget
    return None
