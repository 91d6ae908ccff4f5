"""tapi exporter - render a request as a single-line cURL command."""

from tapi.models import DEFAULT_METHOD, Request
from tapi.urls import resolve_url


def shell_quote(s: str) -> str:
    """Single-quote s for a POSIX shell; ' becomes '\\''."""
    return "'" + s.replace("'", "'\\''") + "'"


def export_curl(request: Request, base_url: str = "") -> str:
    """Render request as `curl [-X M] 'URL' [-H 'K: V']... [-d 'BODY']`.

    Relative URLs are resolved against base_url. Headers are emitted in
    sorted key order so the same request always gives the same text. Basic
    auth, when present, is appended last as -u.
    """
    parts = ["curl"]

    method = request.method or DEFAULT_METHOD
    if method != DEFAULT_METHOD:
        parts.extend(["-X", method])

    parts.append(shell_quote(resolve_url(base_url, request.url)))

    for key in sorted(request.headers):
        parts.extend(["-H", shell_quote(f"{key}: {request.headers[key]}")])

    if request.body:
        parts.extend(["-d", shell_quote(request.body)])

    if request.auth is not None:
        parts.extend(["-u", shell_quote(f"{request.auth.username}:{request.auth.password}")])

    return " ".join(parts)
