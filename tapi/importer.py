"""tapi importer - Postman v2.1, Insomnia v4 and cURL into collections.

Every parser is a pure function of its input. Anything malformed raises a
TapiError subclass and the whole import is abandoned; nothing is returned
half-parsed.
"""

import enum
import json
import logging
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from tapi.errors import FormatError, ImportFileError, ParseError, SchemaError
from tapi.models import DEFAULT_METHOD, BasicAuth, Collection, Request
from tapi.params import encode_query

logger = logging.getLogger(__name__)

CURL_COLLECTION_NAME = "Imported from cURL"
DEFAULT_REQUEST_NAME = "Imported Request"
INSOMNIA_DEFAULT_NAME = "Imported Collection"

UNSUPPORTED = (
    "unsupported format: expected a Postman v2.1 collection, "
    "an Insomnia v4 export or a cURL command"
)


class Format(enum.Enum):
    CURL = "curl"
    POSTMAN = "postman"
    INSOMNIA = "insomnia"
    UNKNOWN = "unknown"


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _name_from_url(url: str, default: str = DEFAULT_REQUEST_NAME) -> str:
    """Last non-empty path segment of url, query stripped."""
    try:
        path = urlsplit(url).path
    except ValueError:
        return default
    segments = [s for s in path.split("/") if s]
    return segments[-1] if segments else default


# ── Detection ────────────────────────────────────────────────────────────


def _is_curl(text: str) -> bool:
    return text.startswith("curl") and len(text) > 4 and text[4].isspace()


def _sniff(text: str) -> tuple[Format, Any]:
    """Classify text and return the decoded JSON document when there is one."""
    stripped = text.strip()
    if _is_curl(stripped):
        return Format.CURL, None

    try:
        doc = json.loads(stripped)
    except (ValueError, RecursionError):
        return Format.UNKNOWN, None

    if isinstance(doc, dict):
        if "info" in doc and "item" in doc:
            return Format.POSTMAN, doc
        if "_type" in doc and "resources" in doc:
            return Format.INSOMNIA, doc
    return Format.UNKNOWN, doc


def detect_format(data: bytes | str) -> Format:
    """Tell which importer would handle data, without parsing it further."""
    try:
        text = _decode(data)
    except FormatError:
        return Format.UNKNOWN
    return _sniff(text)[0]


# ── cURL ─────────────────────────────────────────────────────────────────

_METHOD_OPTS = {"-X", "--request"}
_HEADER_OPTS = {"-H", "--header"}
_DATA_OPTS = {"-d", "--data", "--data-raw", "--data-binary", "--data-ascii"}
_JSON_OPTS = {"--json"}
_USER_OPTS = {"-u", "--user"}
_URL_OPTS = {"--url"}
_HEAD_OPTS = {"-I", "--head"}

# Options whose value becomes a header.
_HEADER_VALUE_OPTS = {
    "-A": "User-Agent",
    "--user-agent": "User-Agent",
    "-b": "Cookie",
    "--cookie": "Cookie",
    "-e": "Referer",
    "--referer": "Referer",
}

# Options that take a value we have no use for.
_IGNORED_VALUE_OPTS = {
    "-o", "--output",
    "-m", "--max-time",
    "--connect-timeout",
    "-x", "--proxy",
    "-w", "--write-out",
    "-c", "--cookie-jar",
    "-T", "--upload-file",
    "-F", "--form",
    "--data-urlencode",
    "-K", "--config",
    "-E", "--cert",
    "--cacert",
    "--key",
    "--resolve",
    "--retry",
    "--limit-rate",
}

_VALUE_OPTS = (
    _METHOD_OPTS
    | _HEADER_OPTS
    | _DATA_OPTS
    | _JSON_OPTS
    | _USER_OPTS
    | _URL_OPTS
    | set(_HEADER_VALUE_OPTS)
    | _IGNORED_VALUE_OPTS
)


def tokenize_curl(command: str) -> list[str]:
    """Split a shell command line into words.

    Single quotes are literal. Inside double quotes a backslash escapes the
    next character. Outside quotes a backslash also escapes the next
    character, so the '\\'' sequence produced by shell_quote reads back
    as a single quote. Backslash-newline continuations separate words. An
    unterminated quote runs to the end of the input.
    """
    command = command.replace("\\\r\n", " ").replace("\\\n", " ")

    tokens: list[str] = []
    current: list[str] = []
    in_token = False
    quote: str | None = None

    i = 0
    n = len(command)
    while i < n:
        ch = command[i]
        if quote == "'":
            if ch == "'":
                quote = None
            else:
                current.append(ch)
        elif quote == '"':
            if ch == '"':
                quote = None
            elif ch == "\\" and i + 1 < n:
                i += 1
                current.append(command[i])
            else:
                current.append(ch)
        elif ch in ("'", '"'):
            quote = ch
            in_token = True
        elif ch == "\\" and i + 1 < n:
            i += 1
            current.append(command[i])
            in_token = True
        elif ch.isspace():
            if in_token:
                tokens.append("".join(current))
                current = []
                in_token = False
        else:
            current.append(ch)
            in_token = True
        i += 1

    if in_token:
        tokens.append("".join(current))
    return tokens


def _split_option(token: str) -> tuple[str, str | None]:
    """Separate an inline value: --request=PUT or -XPUT."""
    if token.startswith("--"):
        if "=" in token:
            opt, value = token.split("=", 1)
            if opt in _VALUE_OPTS:
                return opt, value
        return token, None
    if len(token) > 2 and token[:2] in _VALUE_OPTS:
        return token[:2], token[2:]
    return token, None


def _parse_header(line: str) -> tuple[str, str] | None:
    if ":" not in line:
        return None
    key, value = line.split(":", 1)
    key = key.strip()
    if not key:
        return None
    return key, value.strip()


def parse_curl(command: str) -> Request:
    """Parse a single cURL command into a Request.

    Recognises -X, -H, -d and friends, --json, -u, -A, -b, -e, --url and
    -I. The first bare http(s) argument is the URL. A body turns a GET,
    explicit or default, into POST.
    """
    command = command.strip()
    if not _is_curl(command):
        raise ParseError("not a valid cURL command")

    tokens = tokenize_curl(command)[1:]

    method = DEFAULT_METHOD
    url = ""
    headers: dict[str, str] = {}
    body = ""
    auth: BasicAuth | None = None

    i = 0
    while i < len(tokens):
        token = tokens[i]
        i += 1

        if not token.startswith("-") or token == "-":
            if not url and token.startswith(("http://", "https://")):
                url = token
            continue

        opt, value = _split_option(token)
        if opt in _HEAD_OPTS:
            method = "HEAD"
            continue
        if opt not in _VALUE_OPTS:
            continue
        if value is None:
            if i >= len(tokens):
                break
            value = tokens[i]
            i += 1

        if opt in _METHOD_OPTS:
            method = value.upper()
        elif opt in _HEADER_OPTS:
            header = _parse_header(value)
            if header:
                headers[header[0]] = header[1]
        elif opt in _DATA_OPTS or opt in _JSON_OPTS:
            body = value
            if opt in _JSON_OPTS:
                headers.setdefault("Content-Type", "application/json")
                headers.setdefault("Accept", "application/json")
            if method == DEFAULT_METHOD:
                method = "POST"
        elif opt in _USER_OPTS:
            username, _, password = value.partition(":")
            auth = BasicAuth(username=username, password=password)
        elif opt in _URL_OPTS:
            if not url:
                url = value
        elif opt in _HEADER_VALUE_OPTS:
            headers[_HEADER_VALUE_OPTS[opt]] = value

    if not url:
        raise ParseError("no URL found in cURL command")

    return Request(
        name=_name_from_url(url),
        method=method,
        url=url,
        headers=headers,
        body=body,
        auth=auth,
    )


# ── Postman v2.1 ─────────────────────────────────────────────────────────


def _postman_url(value: Any) -> str:
    """A Postman url is either a plain string or an object with "raw"."""
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and isinstance(value.get("raw"), str):
        return value["raw"]
    return ""


def _postman_auth(auth: Any) -> BasicAuth | None:
    if not isinstance(auth, dict) or auth.get("type") != "basic":
        return None
    basic = auth.get("basic")
    # v2.1 stores a key/value list, v2.0 a plain object.
    if isinstance(basic, list):
        fields = {
            _text(kv.get("key")): _text(kv.get("value"))
            for kv in basic
            if isinstance(kv, dict)
        }
    elif isinstance(basic, dict):
        fields = {k: _text(v) for k, v in basic.items()}
    else:
        return None
    return BasicAuth(
        username=fields.get("username", ""),
        password=fields.get("password", ""),
    )


def _postman_request(name: Any, request: Any) -> Request:
    if isinstance(request, str):
        return Request(name=_text(name) or _name_from_url(request), url=request)
    if not isinstance(request, dict):
        raise SchemaError(
            f"Postman item {_text(name)!r} has an invalid request",
            source="postman",
        )

    url = _postman_url(request.get("url"))
    req = Request(
        name=_text(name) or _name_from_url(url),
        method=_text(request.get("method")).upper() or DEFAULT_METHOD,
        url=url,
        auth=_postman_auth(request.get("auth")),
    )

    header_list = request.get("header")
    if isinstance(header_list, list):
        for h in header_list:
            if not isinstance(h, dict) or h.get("disabled") is True:
                continue
            key = _text(h.get("key"))
            if key:
                req.headers[key] = _text(h.get("value"))

    body = request.get("body")
    if isinstance(body, dict):
        raw = body.get("raw")
        if isinstance(raw, str) and body.get("mode", "raw") == "raw":
            req.body = raw

    return req


def _flatten_postman_items(items: list) -> list[Request]:
    """Depth-first walk; folders contribute only their leaf requests."""
    requests: list[Request] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        request = item.get("request")
        children = item.get("item")
        if request is None:
            if isinstance(children, list):
                requests.extend(_flatten_postman_items(children))
            continue
        requests.append(_postman_request(item.get("name"), request))
    return requests


def parse_postman(doc: dict) -> Collection:
    """Build a collection from a decoded Postman v2.1 document."""
    info = doc.get("info")
    name = info.get("name") if isinstance(info, dict) else None
    if not isinstance(name, str) or not name:
        raise SchemaError("Postman collection has no name", source="postman")

    items = doc.get("item")
    if not isinstance(items, list):
        raise SchemaError("Postman collection 'item' must be a list", source="postman")

    try:
        requests = _flatten_postman_items(items)
    except RecursionError as e:
        raise SchemaError("Postman folders are nested too deeply", source="postman") from e

    return Collection(name=name, requests=requests)


# ── Insomnia v4 ──────────────────────────────────────────────────────────


def _enabled_pairs(entries: Any) -> list[tuple[str, str]]:
    """(name, value) pairs from an Insomnia list, skipping disabled ones."""
    if not isinstance(entries, list):
        return []
    pairs = []
    for entry in entries:
        if not isinstance(entry, dict) or entry.get("disabled") is True:
            continue
        name = _text(entry.get("name"))
        if name:
            pairs.append((name, _text(entry.get("value"))))
    return pairs


def _insomnia_request(resource: dict) -> Request:
    url = _text(resource.get("url"))
    params = _enabled_pairs(resource.get("parameters"))
    if params:
        url += ("&" if "?" in url else "?") + encode_query(params)

    req = Request(
        name=_text(resource.get("name")) or _name_from_url(url),
        method=_text(resource.get("method")).upper() or DEFAULT_METHOD,
        url=url,
        headers=dict(_enabled_pairs(resource.get("headers"))),
    )

    body = resource.get("body")
    if isinstance(body, dict) and isinstance(body.get("text"), str):
        req.body = body["text"]

    authentication = resource.get("authentication")
    if (
        isinstance(authentication, dict)
        and authentication.get("type") == "basic"
        and authentication.get("disabled") is not True
    ):
        req.auth = BasicAuth(
            username=_text(authentication.get("username")),
            password=_text(authentication.get("password")),
        )

    return req


def parse_insomnia(doc: dict) -> Collection:
    """Build a collection from a decoded Insomnia v4 export.

    The first workspace names the collection. Request groups,
    environments and other resource types are ignored.
    """
    resources = doc.get("resources")
    if not isinstance(resources, list):
        raise SchemaError("Insomnia export 'resources' must be a list", source="insomnia")

    name: str | None = None
    requests: list[Request] = []
    for resource in resources:
        if not isinstance(resource, dict):
            continue
        rtype = resource.get("_type")
        if rtype == "workspace" and name is None:
            name = _text(resource.get("name"))
        elif rtype == "request":
            requests.append(_insomnia_request(resource))

    if not requests:
        raise SchemaError("no requests found in Insomnia export", source="insomnia")

    return Collection(name=name or INSOMNIA_DEFAULT_NAME, requests=requests)


# ── Entry points ─────────────────────────────────────────────────────────


def _decode(data: bytes | str) -> str:
    if isinstance(data, bytes):
        try:
            return data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise FormatError(f"{UNSUPPORTED} (input is not UTF-8 text)") from e
    return data.removeprefix("\ufeff")


def import_bytes(data: bytes | str) -> list[Collection]:
    """Detect the format of data and import it.

    Returns a list with one collection. Raises ParseError, SchemaError or
    FormatError; a failing parser aborts the whole import.
    """
    text = _decode(data)
    fmt, doc = _sniff(text)

    if fmt is Format.CURL:
        try:
            request = parse_curl(text)
        except ParseError as e:
            raise ParseError(f"cURL import failed: {e.message}") from e
        collection = Collection(name=CURL_COLLECTION_NAME, requests=[request])
    elif fmt is Format.POSTMAN:
        collection = parse_postman(doc)
    elif fmt is Format.INSOMNIA:
        collection = parse_insomnia(doc)
    else:
        raise FormatError(UNSUPPORTED)

    logger.info(
        "Imported collection %r (%s, %d requests)",
        collection.name,
        fmt.value,
        len(collection.requests),
    )
    return [collection]


def import_file(path: str | Path) -> list[Collection]:
    """Read path and import it with import_bytes."""
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise ImportFileError(f"failed to read file: {e}") from e
    return import_bytes(data)
