"""REST path templates keyed by operation name."""
from __future__ import annotations

import re
from functools import lru_cache
from importlib import resources
from typing import Mapping, Optional
from urllib.parse import quote

import yaml

_PLACEHOLDER = re.compile(r"%(\d+)")


class UnknownOperationError(LookupError):
    """Raised when no path template is registered for an operation key."""

    def __init__(self, key: str) -> None:
        super().__init__(f"No path template registered for operation '{key}'")
        self.key = key


@lru_cache(maxsize=1)
def default_templates() -> Mapping[str, str]:
    raw = resources.files("pulsar_gateway").joinpath("data/paths.yaml").read_text(encoding="utf-8")
    data = yaml.safe_load(raw) or {}
    return {str(key): str(value) for key, value in data.items()}


def partition_name(name: str, partition: int) -> str:
    """Name of one partition of a partitioned topic; the plain name when ``partition`` is negative."""
    if partition >= 0:
        return f"{name}-partition-{partition}"
    return name


class PathTemplates:
    """Lookup and positional substitution of ``%1 … %n`` path placeholders."""

    def __init__(self, overrides: Optional[Mapping[str, str]] = None) -> None:
        self._templates = dict(default_templates())
        if overrides:
            self._templates.update({str(key): str(value) for key, value in overrides.items()})

    def __contains__(self, key: object) -> bool:
        return key in self._templates

    def keys(self) -> list[str]:
        return sorted(self._templates)

    def template(self, key: str) -> str:
        try:
            return self._templates[key]
        except KeyError:
            raise UnknownOperationError(key) from None

    def resolve(self, key: str, *segments: object) -> str:
        template = self.template(key)

        def _substitute(match: re.Match[str]) -> str:
            index = int(match.group(1))
            if 1 <= index <= len(segments):
                return quote(str(segments[index - 1]), safe="/")
            return match.group(0)

        return _PLACEHOLDER.sub(_substitute, template)
