"""Shared request/classify/parse plumbing for the per-resource services."""
from __future__ import annotations

import json
import logging
from typing import Any

from .http import Body, HttpClient, HttpResult, load_json
from .models import Topic
from .paths import PathTemplates, partition_name
from .status import HttpStatusCode, classify

logger = logging.getLogger(__name__)


class AdminService:
    """Resolve a path template, invoke the transport, classify the status, parse the body."""

    def __init__(self, client: HttpClient, templates: PathTemplates) -> None:
        self._client = client
        self._templates = templates

    # Resolve -----------------------------------------------------------

    def _url(self, base_url: str, key: str, *segments: object) -> str:
        return base_url.rstrip("/") + self._templates.resolve(key, *segments)

    def _topic_url(self, key: str, topic: Topic, *extras: object, partition: int = -1) -> str:
        namespace = topic.namespace
        return self._url(
            topic.cluster.admin_url,
            key,
            namespace.tenant.name,
            namespace.name,
            partition_name(topic.name, partition),
            *extras,
            topic.domain.value,
        )

    # Invoke ------------------------------------------------------------

    def _get(self, url: str) -> HttpResult:
        logger.debug("GET %s", url)
        result = self._client.get(url)
        logger.debug("GET %s -> %s", url, result.status_code)
        return result

    def _read(self, url: str, default: Any, expected: type | tuple[type, ...] | None = None) -> Any:
        """GET ``url`` and parse its JSON body, degrading to ``default`` on any failure."""
        result = self._get(url)
        if not result.ok:
            logger.warning("GET %s returned status %s", url, result.status_code)
            return default
        return load_json(result, default, expected)

    def _call(
        self,
        operation: str,
        method: str,
        url: str,
        body: Body = b"",
        content_type: str = "application/json",
    ) -> tuple[HttpStatusCode, HttpResult]:
        logger.debug("%s %s (%s)", method, url, operation)
        if method == "GET":
            result = self._client.get(url)
        elif method == "POST":
            result = self._client.post(url, body, content_type)
        elif method == "PUT":
            result = self._client.put(url, body, content_type)
        elif method == "DELETE":
            result = self._client.delete(url)
        else:
            raise ValueError(f"Unsupported HTTP method '{method}'")
        outcome = classify(operation, result.status_code, result.body)
        logger.debug("%s %s -> %s", method, url, result.status_code)
        if not outcome.succeeded:
            logger.info(
                "%s failed with status %s (%s): %s",
                operation,
                result.status_code,
                outcome.kind.value,
                outcome.description or "<no description>",
            )
        return outcome, result

    def _command(
        self,
        operation: str,
        method: str,
        url: str,
        body: Body = b"",
        content_type: str = "application/json",
    ) -> HttpStatusCode:
        outcome, _ = self._call(operation, method, url, body, content_type)
        return outcome

    @staticmethod
    def _json_body(payload: Any) -> bytes:
        return json.dumps(payload).encode("utf-8")


def as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def as_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def as_list(value: Any) -> list:
    return value if isinstance(value, list) else []
