"""JSON file-backed registry of known clusters and issued tokens."""
from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from threading import Lock
from typing import Any, Callable, TypeVar

from .models import Cluster, Token

logger = logging.getLogger(__name__)

CLUSTERS_FILE = "clusters.json"
TOKENS_FILE = "tokens.json"

T = TypeVar("T")


def _json_to_cluster(data: dict) -> Cluster:
    return Cluster(
        name=data["name"],
        admin_url=data["admin_url"],
        function_url=data.get("function_url", ""),
        presto_url=data.get("presto_url", ""),
    )


def _json_to_token(data: dict) -> Token:
    return Token(name=data["name"], token=data["token"])


class Registry:
    """Two flat JSON arrays, one record per element, rewritten whole on every change."""

    def __init__(self, root_path: str | Path):
        self._root = Path(root_path).expanduser().resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()

    @property
    def root(self) -> Path:
        return self._root

    # Clusters ----------------------------------------------------------

    def clusters(self) -> list[Cluster]:
        return self._load(CLUSTERS_FILE, _json_to_cluster)

    def cluster_exists(self, name: str) -> bool:
        return any(cluster.name == name for cluster in self.clusters())

    def save_cluster(self, cluster: Cluster) -> None:
        with self._lock:
            clusters = [existing for existing in self.clusters() if existing.name != cluster.name]
            clusters.append(cluster)
            self._write(CLUSTERS_FILE, [asdict(item) for item in clusters])

    def remove_cluster(self, name: str) -> bool:
        with self._lock:
            clusters = self.clusters()
            remaining = [cluster for cluster in clusters if cluster.name != name]
            if len(remaining) == len(clusters):
                return False
            self._write(CLUSTERS_FILE, [asdict(item) for item in remaining])
            return True

    # Tokens ------------------------------------------------------------

    def tokens(self) -> list[Token]:
        return self._load(TOKENS_FILE, _json_to_token)

    def token_names(self) -> list[str]:
        return [token.name for token in self.tokens()]

    def save_token(self, token: Token) -> None:
        with self._lock:
            tokens = [existing for existing in self.tokens() if existing.name != token.name]
            tokens.append(token)
            self._write(TOKENS_FILE, [asdict(item) for item in tokens])

    def remove_token(self, name: str) -> bool:
        with self._lock:
            tokens = self.tokens()
            remaining = [token for token in tokens if token.name != name]
            if len(remaining) == len(tokens):
                return False
            self._write(TOKENS_FILE, [asdict(item) for item in remaining])
            return True

    # Storage -----------------------------------------------------------

    def _load(self, filename: str, convert: Callable[[dict], T]) -> list[T]:
        path = self._root / filename
        if not path.exists():
            return []
        try:
            data: Any = json.loads(path.read_text(encoding="utf-8"))
        except (ValueError, OSError) as exc:
            logger.warning("Ignoring unreadable or malformed registry file %s: %s", path, exc)
            return []
        if not isinstance(data, list):
            logger.warning("Ignoring registry file %s: expected a JSON array", path)
            return []
        records: list[T] = []
        for item in data:
            try:
                records.append(convert(item))
            except (KeyError, TypeError) as exc:
                logger.warning("Skipping malformed record in %s: %s", path, exc)
        return records

    def _write(self, filename: str, payload: list[dict]) -> None:
        path = self._root / filename
        path.write_text(json.dumps(payload, indent=2, sort_keys=True))
