from __future__ import annotations

from urllib.parse import parse_qs, urlparse


def is_valid_url(url: str) -> bool:
    """Basic URL validation."""
    try:
        result = urlparse(url)
        return all([result.scheme in ("http", "https"), result.netloc])
    except ValueError:
        return False


def extract_host(url: str) -> str:
    """Lower-cased host of ``url``; a bare host such as ``arxiv.org`` is accepted."""
    candidate = url.strip()
    if not candidate:
        return ""
    if "://" not in candidate and not candidate.startswith("//"):
        candidate = "//" + candidate
    try:
        return (urlparse(candidate).hostname or "").lower()
    except ValueError:
        return ""


def unwrap_redirect(href: str, param: str = "uddg") -> str:
    """Return the target of a search-engine redirect link, or ``href`` unchanged."""
    if href.startswith("//"):
        href = "https:" + href
    parsed = urlparse(href)
    targets = parse_qs(parsed.query).get(param)
    if targets and targets[0]:
        return targets[0]
    return href
