"""tapi executor - HTTP request execution."""

import json
import logging
import time
from typing import Any

import requests

from tapi.errors import ResolutionError
from tapi.models import Request
from tapi.urls import resolve_url

logger = logging.getLogger(__name__)

MAX_BODY_SIZE = 10 * 1024 * 1024
MAX_REDIRECTS = 10
_CHUNK_SIZE = 64 * 1024


class RequestResult:
    """Result of an HTTP request."""

    def __init__(self):
        self.url: str = ""
        self.status_code: int = 0
        self.reason: str = ""
        self.headers: dict[str, str] = {}
        self.body: Any = None  # parsed JSON or raw text
        self.raw_text: str = ""
        self.elapsed_ms: float = 0
        self.size: int = 0
        self.truncated: bool = False
        self.error: str | None = None

    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def is_error(self) -> bool:
        return self.status_code >= 400

    def format_size(self) -> str:
        """Human-readable body size, e.g. "512 B", "1.5 KB"."""
        size = float(self.size)
        units = ["B", "KB", "MB", "GB"]
        unit = 0
        while size >= 1024 and unit < len(units) - 1:
            size /= 1024
            unit += 1
        if unit == 0:
            return f"{int(size)} {units[unit]}"
        return f"{size:.1f} {units[unit]}"


def _read_limited(resp: requests.Response) -> tuple[bytes, bool]:
    """Read at most MAX_BODY_SIZE bytes. Returns (body, truncated)."""
    chunks: list[bytes] = []
    total = 0
    for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
        if total + len(chunk) > MAX_BODY_SIZE:
            chunks.append(chunk[: MAX_BODY_SIZE - total])
            return b"".join(chunks), True
        chunks.append(chunk)
        total += len(chunk)
    return b"".join(chunks), False


def execute_request(
    request: Request,
    base_url: str = "",
    timeout: int = 30,
    default_headers: dict[str, str] | None = None,
) -> RequestResult:
    """Execute a request and return a structured result.

    - Resolves the request URL against base_url
    - Adds default_headers the request does not already set
    - Sends basic auth when the request carries credentials
    - Reads at most 10 MiB of body and flags truncation
    - Never raises - always returns RequestResult with error field set
    """
    result = RequestResult()

    try:
        url = resolve_url(base_url, request.url)
    except ResolutionError as e:
        result.error = str(e)
        return result
    result.url = url

    headers = dict(request.headers)
    present = {k.lower() for k in headers}
    for k, v in (default_headers or {}).items():
        if k.lower() not in present:
            headers[k] = v

    session = requests.Session()
    session.max_redirects = MAX_REDIRECTS
    try:
        kwargs: dict[str, Any] = {
            "method": request.method.upper(),
            "url": url,
            "headers": headers,
            "data": request.body.encode("utf-8") if request.body else None,
            "timeout": timeout,
            "allow_redirects": True,
            "stream": True,
        }
        if request.auth is not None:
            kwargs["auth"] = (request.auth.username, request.auth.password)

        start = time.monotonic()
        with session.request(**kwargs) as resp:
            content, truncated = _read_limited(resp)
            result.elapsed_ms = (time.monotonic() - start) * 1000

            result.status_code = resp.status_code
            result.reason = resp.reason or ""
            result.headers = dict(resp.headers)
            result.size = len(content)
            result.truncated = truncated
            result.raw_text = content.decode(resp.encoding or "utf-8", errors="replace")

        try:
            result.body = json.loads(result.raw_text)
        except (json.JSONDecodeError, ValueError):
            result.body = result.raw_text

    except requests.exceptions.Timeout:
        result.error = f"Request timed out after {timeout}s"
    except requests.exceptions.ConnectionError as e:
        result.error = f"Connection error: {e}"
    except requests.exceptions.RequestException as e:
        result.error = f"Request failed: {e}"
    finally:
        session.close()

    if result.error:
        logger.info("Request failed: %s %s: %s", request.method, url, result.error)
    else:
        logger.info(
            "Request completed: %s %s -> %d (%dms)",
            request.method,
            url,
            result.status_code,
            int(result.elapsed_ms),
        )
    return result
