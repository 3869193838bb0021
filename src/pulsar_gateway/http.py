"""Blocking HTTP transport and JSON helpers for the Pulsar admin REST API."""
from __future__ import annotations

import json
import logging
import mimetypes
import ssl
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Union
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter
from requests.structures import CaseInsensitiveDict

logger = logging.getLogger(__name__)

TRANSPORT_ERROR = 0
TOO_MANY_REDIRECTS = -1
TEMPORARY_REDIRECT = 307

DEFAULT_MAX_REDIRECTS = 5
DEFAULT_CONTENT_TYPE = "application/json"
DEFAULT_PRESTO_USER = "test-user"

# mimetypes does not know the archive formats Pulsar IO ships with
_ARCHIVE_TYPES = {
    ".jar": "application/java-archive",
    ".nar": "application/octet-stream",
    ".zip": "application/zip",
    ".py": "text/x-python",
    ".go": "application/octet-stream",
}
_ZIP_MAGIC = b"PK\x03\x04"


@dataclass(slots=True)
class UnexpectedResponseError(RuntimeError):
    """Raised when an HTTP response payload is not the expected JSON."""

    status_code: int
    url: str
    body_preview: str

    def __str__(self) -> str:  # noqa: D401 - simple representation
        return (
            f"Unexpected response while calling {self.url} (status {self.status_code}): "
            f"{self.body_preview}"
        )


@dataclass(frozen=True, slots=True)
class HttpResult:
    """Raw outcome of one admin call: body bytes plus the numeric status."""

    body: bytes
    status_code: int
    headers: Mapping[str, str] = field(default_factory=CaseInsensitiveDict)
    url: str = ""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass(frozen=True, slots=True)
class MultipartField:
    """One part of a multipart/form-data upload."""

    name: str
    content: bytes
    content_type: str = "application/octet-stream"
    filename: Optional[str] = None

    def as_request_file(self) -> tuple[str, tuple[Optional[str], bytes, str]]:
        return self.name, (self.filename, self.content, self.content_type)


Body = Union[bytes, str, Sequence[MultipartField], None]


def guess_content_type(filename: str, content: bytes = b"") -> str:
    """Sniff a content type from the file extension, then from its leading bytes."""
    suffix = Path(filename).suffix.lower()
    if suffix in _ARCHIVE_TYPES:
        return _ARCHIVE_TYPES[suffix]
    guessed, _ = mimetypes.guess_type(filename)
    if guessed:
        return guessed
    if content.startswith(_ZIP_MAGIC):
        return "application/zip"
    return "application/octet-stream"


def file_field(path: str | Path, name: str = "data") -> MultipartField:
    """Build the binary upload part for a function/source/sink package."""
    file_path = Path(path).expanduser()
    content = file_path.read_bytes()
    return MultipartField(
        name=name,
        content=content,
        content_type=guess_content_type(file_path.name, content),
        filename=file_path.name,
    )


def parse_json(result: HttpResult) -> Any:
    """Return JSON content or raise UnexpectedResponseError with helpful context."""

    if not result.body:
        raise UnexpectedResponseError(
            status_code=result.status_code,
            url=result.url or "<unknown>",
            body_preview="<empty body>",
        )
    try:
        return json.loads(result.body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        preview = result.text[:500].replace("\n", " ").strip()
        raise UnexpectedResponseError(
            status_code=result.status_code,
            url=result.url or "<unknown>",
            body_preview=preview or "<no text>",
        ) from exc


def load_json(result: HttpResult, default: Any, expected: type | tuple[type, ...] | None = None) -> Any:
    """Like parse_json, but payload problems degrade to ``default`` instead of raising."""
    try:
        payload = parse_json(result)
    except UnexpectedResponseError as exc:
        logger.warning("%s", exc)
        return default
    if expected is not None and not isinstance(payload, expected):
        logger.warning(
            "Unexpected JSON shape from %s (status %s): got %s",
            result.url or "<unknown>",
            result.status_code,
            type(payload).__name__,
        )
        return default
    return payload


def build_ssl_context(tls_version: str, verify: bool) -> ssl.SSLContext:
    """Return a client context pinned to exactly one TLS protocol version."""
    try:
        version = ssl.TLSVersion[tls_version]
    except KeyError as exc:
        raise ValueError(f"Unsupported TLS version '{tls_version}'") from exc
    context = ssl.create_default_context()
    if not verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    context.minimum_version = version
    context.maximum_version = version
    return context


class _PinnedTlsAdapter(HTTPAdapter):
    def __init__(self, ssl_context: ssl.SSLContext, **kwargs: Any) -> None:
        # HTTPAdapter.__init__ builds the pool manager, so the context must exist first
        self._ssl_context = ssl_context
        super().__init__(**kwargs)

    def init_poolmanager(self, *args: Any, **kwargs: Any) -> None:
        kwargs["ssl_context"] = self._ssl_context
        super().init_poolmanager(*args, **kwargs)

    def proxy_manager_for(self, proxy: str, **proxy_kwargs: Any) -> Any:
        proxy_kwargs["ssl_context"] = self._ssl_context
        return super().proxy_manager_for(proxy, **proxy_kwargs)


class HttpClient:
    """Synchronous REST client: one blocking exchange per call, never raises on transport errors."""

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        verify_tls: bool = False,
        tls_version: str = "TLSv1_3",
        timeout: float = 30.0,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        presto_user: str = DEFAULT_PRESTO_USER,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._token = token
        self._verify = verify_tls
        self._timeout = timeout
        self._max_redirects = max(max_redirects, 0)
        self._presto_user = presto_user
        self._session = session or requests.Session()
        self._session.mount("https://", _PinnedTlsAdapter(build_ssl_context(tls_version, verify_tls)))
        if not verify_tls:
            logger.debug("TLS certificate verification disabled for admin endpoints")

    @property
    def token(self) -> Optional[str]:
        return self._token

    def get(self, url: str) -> HttpResult:
        return self._send("GET", url)

    def post(self, url: str, body: Body = b"", content_type: str = DEFAULT_CONTENT_TYPE) -> HttpResult:
        return self._send("POST", url, body, content_type)

    def put(self, url: str, body: Body = b"", content_type: str = DEFAULT_CONTENT_TYPE) -> HttpResult:
        return self._send("PUT", url, body, content_type)

    def delete(self, url: str) -> HttpResult:
        return self._send("DELETE", url)

    def close(self) -> None:
        self._session.close()

    # Internals ---------------------------------------------------------

    def _send(self, method: str, url: str, body: Body = b"", content_type: str = DEFAULT_CONTENT_TYPE) -> HttpResult:
        target = url
        for _ in range(self._max_redirects + 1):
            result = self._exchange(method, target, body, content_type)
            if result.status_code != TEMPORARY_REDIRECT:
                return result
            location = result.headers.get("Location")
            if not location:
                logger.warning("%s %s answered 307 without a Location header", method, target)
                return result
            try:
                target = urljoin(target, location)
            except ValueError as exc:
                logger.warning("%s %s answered 307 with an unusable Location %r: %s", method, target, location, exc)
                return result
            logger.debug("Following temporary redirect for %s %s to %s", method, url, target)
        logger.warning("Giving up on %s %s after %s redirects", method, url, self._max_redirects)
        return HttpResult(body=b"", status_code=TOO_MANY_REDIRECTS, url=target)

    def _exchange(self, method: str, url: str, body: Body, content_type: str) -> HttpResult:
        headers = self._headers()
        kwargs: dict[str, Any] = {}
        if body is None or isinstance(body, (bytes, bytearray, str)):
            payload = body.encode("utf-8") if isinstance(body, str) else bytes(body or b"")
            if payload:
                headers["Content-Type"] = content_type
                headers["X-Presto-User"] = self._presto_user
                kwargs["data"] = payload
        else:
            kwargs["files"] = [part.as_request_file() for part in body]

        try:
            response = self._session.request(
                method,
                url,
                headers=headers,
                timeout=self._timeout,
                verify=self._verify,
                allow_redirects=False,
                **kwargs,
            )
        except requests.RequestException as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            return HttpResult(body=b"", status_code=TRANSPORT_ERROR, url=url)

        return HttpResult(
            body=response.content or b"",
            status_code=response.status_code,
            headers=CaseInsensitiveDict(response.headers),
            url=url,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers
