from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Optional

import pytest
from requests.structures import CaseInsensitiveDict

from pulsar_gateway.http import HttpResult
from pulsar_gateway.models import Cluster, Namespace, Tenant
from pulsar_gateway.paths import PathTemplates

ADMIN_URL = "http://pulsar.local:8080"
FUNCTION_URL = "http://functions.local:6750"
PRESTO_URL = "http://presto.local:8081"


@dataclass
class RecordedCall:
    method: str
    url: str
    body: Any = b""
    content_type: Optional[str] = None


class FakeClient:
    """Stands in for HttpClient: answers from a route table and records every call."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[HttpResult]] = {}
        self.calls: list[RecordedCall] = []

    def route(self, method: str, url: str, *results: HttpResult) -> None:
        self.routes.setdefault((method, url), []).extend(results)

    def _respond(self, method: str, url: str, body: Any = b"", content_type: Optional[str] = None) -> HttpResult:
        self.calls.append(RecordedCall(method, url, body, content_type))
        queue = self.routes.get((method, url))
        if not queue:
            return HttpResult(body=b"", status_code=404, url=url)
        # the last queued result keeps answering once the others are used up
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def get(self, url: str) -> HttpResult:
        return self._respond("GET", url)

    def post(self, url: str, body: Any = b"", content_type: str = "application/json") -> HttpResult:
        return self._respond("POST", url, body, content_type)

    def put(self, url: str, body: Any = b"", content_type: str = "application/json") -> HttpResult:
        return self._respond("PUT", url, body, content_type)

    def delete(self, url: str) -> HttpResult:
        return self._respond("DELETE", url)

    def urls(self, method: Optional[str] = None) -> list[str]:
        return [call.url for call in self.calls if method is None or call.method == method]


def _json_result(payload: Any, status: int = 200, headers: Optional[dict[str, str]] = None) -> HttpResult:
    return HttpResult(
        body=json.dumps(payload).encode("utf-8"),
        status_code=status,
        headers=CaseInsensitiveDict(headers or {}),
    )


def _raw_result(body: bytes = b"", status: int = 204, headers: Optional[dict[str, str]] = None) -> HttpResult:
    return HttpResult(body=body, status_code=status, headers=CaseInsensitiveDict(headers or {}))


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def templates() -> PathTemplates:
    return PathTemplates()


@pytest.fixture
def json_result() -> Callable[..., HttpResult]:
    return _json_result


@pytest.fixture
def raw_result() -> Callable[..., HttpResult]:
    return _raw_result


@pytest.fixture
def cluster() -> Cluster:
    return Cluster(name="standalone", admin_url=ADMIN_URL, function_url=FUNCTION_URL, presto_url=PRESTO_URL)


@pytest.fixture
def tenant(cluster: Cluster) -> Tenant:
    return Tenant(name="public", cluster=cluster)


@pytest.fixture
def namespace(tenant: Tenant) -> Namespace:
    return Namespace(name="default", tenant=tenant)
