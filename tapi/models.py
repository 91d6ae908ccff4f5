"""tapi models - Request, Collection and Environment records."""

import copy
from dataclasses import dataclass, field
from typing import Any

DEFAULT_METHOD = "GET"


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _string_map(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {_text(k): _text(v) for k, v in value.items()}


@dataclass
class BasicAuth:
    username: str = ""
    password: str = ""

    def to_dict(self) -> dict:
        return {"username": self.username, "password": self.password}

    @classmethod
    def from_dict(cls, data: Any) -> "BasicAuth | None":
        if not isinstance(data, dict):
            return None
        return cls(
            username=_text(data.get("username")),
            password=_text(data.get("password")),
        )


@dataclass
class Request:
    """A single HTTP call definition.

    `url` may hold `:name` path-parameter tokens and a query string. The
    stored form always keeps those tokens; substitution only ever happens
    on a copy built for execution.
    """

    name: str = ""
    method: str = DEFAULT_METHOD
    url: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""
    auth: BasicAuth | None = None

    def copy(self) -> "Request":
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        """Record form. Empty headers, body and auth are omitted."""
        data: dict[str, Any] = {
            "name": self.name,
            "method": self.method,
            "url": self.url,
        }
        if self.headers:
            data["headers"] = dict(self.headers)
        if self.body:
            data["body"] = self.body
        if self.auth is not None:
            data["auth"] = self.auth.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "Request":
        if not isinstance(data, dict):
            data = {}
        return cls(
            name=_text(data.get("name")),
            method=_text(data.get("method")).upper() or DEFAULT_METHOD,
            url=_text(data.get("url")),
            headers=_string_map(data.get("headers")),
            body=_text(data.get("body")),
            auth=BasicAuth.from_dict(data.get("auth")),
        )


@dataclass
class Collection:
    name: str = ""
    base_url: str = ""
    requests: list[Request] = field(default_factory=list)

    def find_request(self, name: str) -> Request | None:
        """Return the first request called `name` (case-insensitive)."""
        lower = name.lower()
        for req in self.requests:
            if req.name.lower() == lower:
                return req
        return None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "base_url": self.base_url,
            "requests": [r.to_dict() for r in self.requests],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Collection":
        if not isinstance(data, dict):
            data = {}
        raw_requests = data.get("requests")
        if not isinstance(raw_requests, list):
            raw_requests = []
        return cls(
            name=_text(data.get("name")),
            base_url=_text(data.get("base_url")),
            requests=[Request.from_dict(r) for r in raw_requests],
        )


@dataclass
class Environment:
    name: str = ""
    variables: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"name": self.name, "variables": dict(self.variables)}

    @classmethod
    def from_dict(cls, data: Any) -> "Environment":
        if not isinstance(data, dict):
            data = {}
        return cls(
            name=_text(data.get("name")),
            variables=_string_map(data.get("variables")),
        )
