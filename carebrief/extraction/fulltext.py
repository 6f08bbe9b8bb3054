"""Article fulltext fetch + extraction.

Policy:
- Text is only used as summarization context, trimmed to a fixed ceiling.
- Failures are results, not exceptions: ``ArticleExtractor.extract`` returns
  ``""`` whenever nothing could be extracted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import ipaddress
import logging
import re
from urllib.parse import urlparse

import requests
import trafilatura

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 8000


@dataclass(frozen=True)
class FulltextResult:
    text: Optional[str]
    status: str
    error: Optional[str] = None


_PRIVATE_NETS = [
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]


def _is_private_ip(hostname: str) -> Optional[bool]:
    """True/False for IP literals, None when ``hostname`` is not an IP."""
    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        return None
    return any(ip in net for net in _PRIVATE_NETS)


def _validate_fetch_url(url: str) -> Optional[str]:
    """Return error string if URL should not be fetched (SSRF/abuse protections)."""
    try:
        p = urlparse(url)
    except ValueError:
        return "invalid_url"
    if p.scheme not in ("http", "https"):
        return "bad_scheme"
    host = (p.hostname or "").strip().lower()
    if not host:
        return "missing_host"
    if host in ("localhost", "localhost.localdomain"):
        return "blocked_host"
    if _is_private_ip(host):
        return "blocked_private_ip"
    return None


def _tidy(text: str) -> str:
    return re.sub(r"[ \t]+\n", "\n", text).strip()


def fetch_and_extract(
    url: str,
    *,
    timeout: int = 25,
    max_bytes: int = 2_000_000,
    max_chars: int = DEFAULT_MAX_CHARS,
    session: Optional[requests.Session] = None,
) -> FulltextResult:
    if not url:
        return FulltextResult(text=None, status="error", error="empty_url")
    err = _validate_fetch_url(url)
    if err:
        return FulltextResult(text=None, status="blocked", error=err)
    http = session or requests
    try:
        resp = http.get(
            url,
            headers={"User-Agent": "CareBrief/1.0"},
            timeout=(5, timeout),
            allow_redirects=True,
            stream=True,
        )
        if resp.status_code >= 400:
            return FulltextResult(text=None, status=f"http_{resp.status_code}", error=f"http_{resp.status_code}")
        # Size guardrail: read up to max_bytes
        content = b""
        for chunk in resp.iter_content(chunk_size=64 * 1024):
            if not chunk:
                continue
            content += chunk
            if len(content) > max_bytes:
                return FulltextResult(text=None, status="too_large", error="too_large")
        html = content.decode(resp.encoding or "utf-8", errors="replace")
        if not html.strip():
            return FulltextResult(text=None, status="empty", error="empty_html")
        text = trafilatura.extract(html, url=url, include_comments=False, include_tables=False)
        if not text:
            return FulltextResult(text=None, status="no_extract", error="no_extract")
        return FulltextResult(text=_tidy(text)[:max_chars], status="ok")
    except (requests.RequestException, LookupError, ValueError) as e:
        return FulltextResult(text=None, status="error", error=str(e))


class ArticleExtractor:
    """``extract(url) -> str``; an empty string means "could not extract"."""

    def __init__(self, *, max_chars: int = DEFAULT_MAX_CHARS, timeout: int = 25):
        self.max_chars = max_chars
        self.timeout = timeout
        self._session = requests.Session()

    def extract(self, url: str) -> str:
        try:
            res = fetch_and_extract(url, timeout=self.timeout, max_chars=self.max_chars, session=self._session)
        except Exception as e:
            logger.warning(f"[fulltext] unexpected extractor failure for {url}: {e}")
            return ""
        if res.status != "ok":
            logger.warning(f"[fulltext] {url}: {res.status} {res.error or ''}".rstrip())
            return ""
        return res.text or ""
