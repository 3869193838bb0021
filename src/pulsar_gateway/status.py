"""Per-operation classification of HTTP status codes into outcome kinds."""
from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from importlib import resources
from types import MappingProxyType
from typing import Mapping, Optional

import yaml

from .http import TOO_MANY_REDIRECTS

BODY_PLACEHOLDER = "@body"


class StatusKind(str, Enum):
    OK = "OK"
    CREATED = "Created"
    ACCEPTED = "Accepted"
    NO_CONTENT = "NoContent"
    TEMPORARY_REDIRECT = "TemporaryRedirect"
    BAD_REQUEST = "BadRequest"
    UNAUTHORIZED = "Unauthorized"
    FORBIDDEN = "Forbidden"
    NOT_FOUND = "NotFound"
    METHOD_NOT_ALLOWED = "MethodNotAllowed"
    REQUEST_TIMEOUT = "RequestTimeout"
    CONFLICT = "Conflict"
    PRECONDITION_FAILED = "PreconditionFailed"
    INTERNAL_SERVER_ERROR = "InternalServerError"
    NOT_IMPLEMENTED = "NotImplemented"
    SERVICE_UNAVAILABLE = "ServiceUnavailable"
    TOO_MANY_REDIRECTS = "TooManyRedirects"
    UNCLASSIFIED = "Unclassified"


_SUCCESS_KINDS = frozenset(
    {StatusKind.OK, StatusKind.CREATED, StatusKind.ACCEPTED, StatusKind.NO_CONTENT}
)


@dataclass(frozen=True, slots=True)
class HttpStatusCode:
    """Outcome of an admin call as shown to the user."""

    kind: StatusKind
    description: str = ""
    status: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.kind in _SUCCESS_KINDS

    @property
    def classified(self) -> bool:
        return self.kind is not StatusKind.UNCLASSIFIED

    def as_dict(self) -> dict[str, object]:
        return {"kind": self.kind.value, "description": self.description, "status": self.status}


@dataclass(frozen=True, slots=True)
class _Rule:
    kind: StatusKind
    description: str
    fallback: str = ""


@lru_cache(maxsize=1)
def _tables() -> Mapping[str, Mapping[int, _Rule]]:
    raw = resources.files("pulsar_gateway").joinpath("data/status_codes.yaml").read_text(encoding="utf-8")
    data = yaml.safe_load(raw) or {}
    tables: dict[str, Mapping[int, _Rule]] = {}
    for operation, codes in data.items():
        rules = {
            int(code): _Rule(
                kind=StatusKind[entry["kind"]],
                description=str(entry.get("description", "")),
                fallback=str(entry.get("fallback", "")),
            )
            for code, entry in (codes or {}).items()
        }
        tables[str(operation)] = MappingProxyType(rules)
    return MappingProxyType(tables)


def _body_text(body: bytes | str) -> str:
    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    text = text.strip()
    if not text:
        return ""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return text
    # broker errors come back as {"reason": "..."}
    if isinstance(payload, dict):
        for key in ("reason", "message", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return text


def operations() -> list[str]:
    return sorted(_tables())


def table(operation: str) -> Mapping[int, tuple[StatusKind, str]]:
    rules = _tables().get(operation, {})
    return MappingProxyType({code: (rule.kind, rule.description) for code, rule in rules.items()})


def classify(operation: str, status: int, body: bytes | str = b"") -> HttpStatusCode:
    """Map ``status`` to the outcome documented for ``operation``.

    Codes the operation does not document (including transport failures, status 0)
    come back as UNCLASSIFIED with an empty description.
    """
    if status == TOO_MANY_REDIRECTS:
        return HttpStatusCode(StatusKind.TOO_MANY_REDIRECTS, "Too many redirects.", status)
    rule = _tables().get(operation, {}).get(status)
    if rule is None:
        return HttpStatusCode(StatusKind.UNCLASSIFIED, "", status)
    description = rule.description
    if description == BODY_PLACEHOLDER:
        description = _body_text(body) or rule.fallback
    return HttpStatusCode(rule.kind, description, status)
