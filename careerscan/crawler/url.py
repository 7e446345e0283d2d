"""URL normalization and link extraction helpers."""

from __future__ import annotations

from urllib.parse import parse_qsl, quote, urlencode, urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup


SKIP_HREF_PREFIXES = ("javascript:", "mailto:", "tel:", "data:")


def host_from_url(url: str) -> str:
    """Extract lowercased host from URL (empty string when unparseable)."""

    try:
        parsed = urlsplit(url)
        return (parsed.hostname or "").strip().lower()
    except ValueError:
        return ""


def _has_default_port(scheme: str, port: int | None) -> bool:
    if port is None:
        return False
    return (scheme == "http" and port == 80) or (scheme == "https" and port == 443)


def _normalize_netloc(parsed_url) -> str:  # urllib.parse.SplitResult
    host = (parsed_url.hostname or "").lower()
    if not host:
        return parsed_url.netloc.lower()
    if ":" in host:
        host = f"[{host}]"

    userinfo = ""
    if parsed_url.username:
        userinfo = quote(parsed_url.username, safe="")
        if parsed_url.password:
            userinfo += ":" + quote(parsed_url.password, safe="")
        userinfo += "@"

    port = parsed_url.port
    if port is not None and not _has_default_port(parsed_url.scheme.lower(), port):
        return f"{userinfo}{host}:{port}"
    return f"{userinfo}{host}"


def _remove_dot_segments(path: str) -> str:
    # Empty segments are kept: /a//b and /a/b are different resources.
    segments = path.split("/")
    output: list[str] = []
    for segment in segments:
        if segment == ".":
            continue
        if segment == "..":
            if len(output) > 1:
                output.pop()
            continue
        output.append(segment)

    resolved = "/".join(output)
    if segments[-1] in {".", ".."}:
        resolved += "/"
    return resolved


def _normalize_path(path: str) -> str:
    if not path:
        return "/"

    normalized = _remove_dot_segments(path)
    if not normalized.startswith("/"):
        normalized = "/" + normalized

    if normalized != "/":
        normalized = normalized.rstrip("/")
    return normalized or "/"


def _normalize_query(query: str) -> str:
    if not query:
        return ""

    pairs = parse_qsl(query, keep_blank_values=True)
    # Stable sort: repeated keys keep their relative order.
    pairs.sort(key=lambda item: item[0])
    return urlencode(pairs)


def normalize_url(url: str) -> str:
    """Canonicalize a URL for identity comparison.

    Clears the fragment, sorts query parameters by key and drops a trailing
    slash (the root path `/` is kept). Input that does not parse as an absolute
    URL is returned unchanged; this function never raises.
    """

    if not url:
        return url

    try:
        parsed = urlsplit(url)
        if not parsed.scheme or not parsed.netloc:
            return url
        netloc = _normalize_netloc(parsed)
    except ValueError:
        return url

    return urlunsplit(
        (
            parsed.scheme.lower(),
            netloc,
            _normalize_path(parsed.path),
            _normalize_query(parsed.query),
            "",
        )
    )


def is_absolute_http_url(url: str) -> bool:
    try:
        parsed = urlsplit(url)
        parsed.port
    except ValueError:
        return False
    return parsed.scheme.lower() in {"http", "https"} and bool(parsed.hostname)


def resolve_url(base_url: str, href: str | None) -> str | None:
    """Resolve a possibly relative link against base URL."""

    if href is None:
        return None

    candidate = href.strip()
    if not candidate or candidate.startswith("#"):
        return None

    lowered = candidate.lower()
    if any(lowered.startswith(prefix) for prefix in SKIP_HREF_PREFIXES):
        return None

    try:
        absolute = urljoin(base_url, candidate)
    except ValueError:
        return None

    if not is_absolute_http_url(absolute):
        return None
    return absolute


def extract_links_from_html(html: str | bytes, *, base_url: str) -> list[str]:
    """Extract resolved anchor links in document order with duplicates removed."""

    if not html:
        return []

    soup = BeautifulSoup(html, "lxml")

    out: list[str] = []
    seen: set[str] = set()

    for element in soup.find_all(["a", "area"]):
        resolved = resolve_url(base_url, element.get("href"))
        if not resolved or resolved in seen:
            continue
        seen.add(resolved)
        out.append(resolved)

    return out


__all__ = [
    "SKIP_HREF_PREFIXES",
    "extract_links_from_html",
    "host_from_url",
    "is_absolute_http_url",
    "normalize_url",
    "resolve_url",
]
