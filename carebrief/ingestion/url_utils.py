"""URL canonicalization and host matching helpers for ingestion/dedup."""

from __future__ import annotations

from typing import Iterable, Optional
from urllib.parse import parse_qs, parse_qsl, urlencode, urlparse, urlunparse


DEFAULT_STRIP_QUERY_PARAMS = {
    # misc common trackers (utm_* is stripped by prefix)
    "gclid",
    "fbclid",
    "mc_cid",
    "mc_eid",
}

# Aggregators that wrap the publisher URL in a query parameter.
REDIRECTOR_HOSTS = {
    "news.google.com": "url",
}


def _is_tracking_param(key: str, strip: set) -> bool:
    k = key.lower()
    return k.startswith("utm_") or k in strip


def resolve_redirector(url: str) -> str:
    """Return the publisher URL hidden behind a known redirector, if present."""
    if not url:
        return ""
    try:
        p = urlparse(url.strip())
    except ValueError:
        return url
    param = REDIRECTOR_HOSTS.get((p.hostname or "").lower())
    if not param:
        return url
    real = parse_qs(p.query).get(param)
    if real and real[0].startswith(("http://", "https://")):
        return real[0]
    return url


def canonicalize_url(url: str, *, strip_params: Optional[Iterable[str]] = None) -> str:
    """Canonicalize a URL for dedup.

    - Resolve known redirectors (Google News ``?url=``)
    - Lowercase scheme + hostname
    - Remove fragments
    - Strip ``utm_*`` and other tracking query parameters
    - Preserve order-stable remaining query params
    - Never leave a dangling ``?`` or ``&``
    """
    if not url or not url.strip():
        return ""
    strip = set(strip_params) if strip_params is not None else set(DEFAULT_STRIP_QUERY_PARAMS)
    raw = resolve_redirector(url.strip())
    try:
        p = urlparse(raw)
    except ValueError:
        return raw.split("#", 1)[0].rstrip("?&")
    if not p.netloc:
        return raw.split("#", 1)[0].rstrip("?&")
    scheme = (p.scheme or "https").lower()
    netloc = p.netloc.lower()
    path = p.path or "/"

    kept = []
    for k, v in parse_qsl(p.query, keep_blank_values=True):
        if _is_tracking_param(k, strip):
            continue
        kept.append((k, v))
    kept.sort(key=lambda kv: (kv[0].lower(), kv[1]))
    query = urlencode(kept, doseq=True)

    return urlunparse((scheme, netloc, path, p.params, query, ""))


def host_of(url: str) -> str:
    try:
        return (urlparse(url or "").hostname or "").lower()
    except ValueError:
        return ""


def is_absolute_url(value: object) -> bool:
    if not isinstance(value, str) or not value.strip() or value != value.strip():
        return False
    if any(ch.isspace() for ch in value):
        return False
    try:
        p = urlparse(value)
    except ValueError:
        return False
    return p.scheme in ("http", "https") and bool(p.hostname)


def host_matches(host: str, domain: str) -> bool:
    """Exact host or subdomain match (``www.nature.com`` matches ``nature.com``)."""
    host = (host or "").lower()
    domain = (domain or "").lower()
    if not host or not domain:
        return False
    return host == domain or host.endswith("." + domain)


def domain_in(domains: Iterable[str], url: str) -> bool:
    """Return True when ``url`` belongs to one of ``domains``.

    Entries may carry a path (``apnews.com/press-release``); those match on the
    host and a path prefix.
    """
    try:
        p = urlparse(url or "")
    except ValueError:
        return False
    host = (p.hostname or "").lower()
    path = p.path or "/"
    for entry in domains:
        dom, _, prefix = entry.partition("/")
        if not host_matches(host, dom):
            continue
        if not prefix or path.startswith("/" + prefix):
            return True
    return False
