"""tapi urls - base URL resolution."""

from urllib.parse import urljoin, urlsplit

from tapi.errors import ResolutionError

ABSOLUTE_PREFIXES = ("http://", "https://")


def is_absolute(url: str) -> bool:
    return url.startswith(ABSOLUTE_PREFIXES)


def resolve_url(base_url: str, ref: str) -> str:
    """Combine a collection base URL with a request URL.

    Absolute request URLs win outright. The base is treated as a directory
    (a trailing slash is forced) so "http://api.com/v1" + "users" gives
    "http://api.com/v1/users" instead of replacing "v1". A ref starting
    with "/" is an absolute-path reference and replaces the base path.
    """
    if is_absolute(ref):
        return ref
    if not base_url:
        return ref

    if not base_url.endswith("/"):
        base_url += "/"

    try:
        urlsplit(base_url)
    except ValueError as e:
        raise ResolutionError(f"invalid base URL: {e}") from e
    try:
        urlsplit(ref)
    except ValueError as e:
        raise ResolutionError(f"invalid relative URL: {e}") from e

    return urljoin(base_url, ref)
