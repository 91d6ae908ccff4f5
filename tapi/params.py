"""tapi params - keeps a raw URL and its path/query parameter rows in sync.

The URL text is the single source of truth. Rows are derived from it when
the text is edited, and the text is recomposed from the query rows when a
row is edited. Neither direction ever triggers the other.
"""

import re
from dataclasses import dataclass
from urllib.parse import parse_qsl, quote_plus

# {{var}} spans are copied verbatim when re-encoding, spaces included, so
# they still resolve against the environment later.
_TOKEN_SPLIT_RE = re.compile(r"(\{\{.*?\}\})")


def _encode_part(text: str) -> str:
    return "".join(
        piece if _TOKEN_SPLIT_RE.fullmatch(piece) else quote_plus(piece)
        for piece in _TOKEN_SPLIT_RE.split(text)
    )


def encode_query(pairs: list[tuple[str, str]]) -> str:
    """Form-encode (key, value) pairs, leaving {{var}} tokens untouched."""
    return "&".join(f"{_encode_part(k)}={_encode_part(v)}" for k, v in pairs)


@dataclass
class Param:
    key: str = ""
    value: str = ""


def _split(text: str) -> tuple[str, str | None, str]:
    """Split URL text into (path, query or None, fragment suffix)."""
    base, hash_sign, fragment = text.partition("#")
    path, question, query = base.partition("?")
    return path, (query if question else None), hash_sign + fragment


def _path_param_names(path: str) -> list[str]:
    return [seg[1:] for seg in path.split("/") if seg.startswith(":") and len(seg) > 1]


def derive_path_params(text: str, previous: list[Param] | None = None) -> list[Param]:
    """Path parameter rows for every `:name` segment, in URL order.

    A name that already had a row in `previous` keeps its value; new names
    start empty and names no longer in the URL are dropped.
    """
    known: dict[str, str] = {}
    for p in previous or []:
        known.setdefault(p.key, p.value)

    path, _, _ = _split(text)
    return [Param(name, known.get(name, "")) for name in _path_param_names(path)]


def derive_query_params(text: str) -> list[Param]:
    """Decode the query string into ordered rows, one per value."""
    _, query, _ = _split(text)
    if query is None:
        return []
    return [Param(k, v) for k, v in parse_qsl(query, keep_blank_values=True)]


def recompose_url(text: str, query_params: list[Param]) -> str:
    """Rebuild URL text from its path portion and the query rows.

    `:name` tokens in the path are left as they are. Rows with an empty key
    are skipped, and the `?` only appears when at least one row remains.
    """
    path, _, fragment = _split(text)
    pairs = [(p.key, p.value) for p in query_params if p.key]
    if pairs:
        path += "?" + encode_query(pairs)
    return path + fragment


def build_target_url(text: str, path_params: list[Param]) -> str:
    """Substitute `:name` segments with their non-empty row values.

    Used only for the URL actually sent; the stored text keeps its tokens.
    """
    values: dict[str, str] = {}
    for p in path_params:
        if p.value:
            values.setdefault(p.key, p.value)
    if not values:
        return text

    path, _, _ = _split(text)
    segments = []
    for seg in path.split("/"):
        if seg.startswith(":") and seg[1:] in values:
            seg = values[seg[1:]]
        segments.append(seg)
    return "/".join(segments) + text[len(path):]


class URLParams:
    """Edit-session state for one request URL.

    set_text() is the URL-edit boundary and only derives. The query row
    setters are the row-edit boundary and only recompose. Path values never
    touch the text at all.
    """

    def __init__(self, text: str = "", path_values: dict[str, str] | None = None):
        self.text = ""
        self.path_params: list[Param] = []
        self.query_params: list[Param] = []
        self.set_text(text)
        for name, value in (path_values or {}).items():
            self.set_path_value(name, value)

    def set_text(self, text: str) -> None:
        self.text = text
        self.path_params = derive_path_params(text, self.path_params)
        self.query_params = derive_query_params(text)

    def _recompose(self) -> None:
        self.text = recompose_url(self.text, self.query_params)

    def set_query_param(
        self,
        index: int,
        key: str | None = None,
        value: str | None = None,
    ) -> None:
        row = self.query_params[index]
        if key is not None:
            row.key = key
        if value is not None:
            row.value = value
        self._recompose()

    def add_query_param(self, key: str = "", value: str = "") -> None:
        self.query_params.append(Param(key, value))
        self._recompose()

    def remove_query_param(self, index: int) -> None:
        del self.query_params[index]
        self._recompose()

    def set_path_value(self, name: str, value: str) -> bool:
        """Set the value of every path row called name. False if none exist."""
        found = False
        for p in self.path_params:
            if p.key == name:
                p.value = value
                found = True
        return found

    def path_values(self) -> dict[str, str]:
        return {p.key: p.value for p in self.path_params}

    def target_url(self) -> str:
        return build_target_url(self.text, self.path_params)
