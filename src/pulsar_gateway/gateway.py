"""Wires one transport client and path table into every resource service."""
from __future__ import annotations

import logging
from typing import Optional

import requests

from .clusters import ClusterService
from .config import GatewayConfig
from .cursors import CursorService
from .functions import FunctionService
from .http import HttpClient
from .models import Cluster
from .namespaces import NamespaceService
from .paths import PathTemplates
from .permissions import PermissionService
from .presto import PrestoQueryService
from .registry import Registry
from .sinks import SinkService
from .sources import SourceService
from .tenants import TenantService
from .topics import TopicService

logger = logging.getLogger(__name__)


class Gateway:
    """Entry point used by front ends: one blocking client shared by all services."""

    def __init__(self, config: GatewayConfig, session: Optional[requests.Session] = None) -> None:
        self._config = config
        transport = config.transport
        self.client = HttpClient(
            transport.token,
            verify_tls=transport.verify_tls,
            tls_version=transport.tls_version,
            timeout=transport.timeout,
            max_redirects=transport.max_redirects,
            presto_user=transport.presto_user,
            session=session,
        )
        self.templates = PathTemplates(config.paths)
        self._clusters: dict[str, Cluster] = {entry.name: entry.to_cluster() for entry in config.clusters}
        if config.registry_path is not None:
            # configured clusters win over registry entries of the same name
            for cluster in Registry(config.registry_path).clusters():
                self._clusters.setdefault(cluster.name, cluster)

        self.clusters = ClusterService(self.client, self.templates)
        self.tenants = TenantService(self.client, self.templates)
        self.namespaces = NamespaceService(self.client, self.templates)
        self.topics = TopicService(self.client, self.templates)
        self.cursors = CursorService(self.client, self.templates)
        self.functions = FunctionService(self.client, self.templates)
        self.sources = SourceService(self.client, self.templates)
        self.sinks = SinkService(self.client, self.templates)
        self.permissions = PermissionService(self.client, self.templates)
        self.queries = PrestoQueryService(self.client, self.templates)
        logger.debug("Gateway ready for clusters: %s", ", ".join(self._clusters) or "<none>")

    @property
    def config(self) -> GatewayConfig:
        return self._config

    def cluster(self, name: str) -> Cluster:
        try:
            return self._clusters[name]
        except KeyError:
            raise KeyError(f"Unknown cluster '{name}'; configured: {sorted(self._clusters)}") from None

    def cluster_names(self) -> list[str]:
        return list(self._clusters)

    def add_cluster(self, cluster: Cluster) -> None:
        self._clusters[cluster.name] = cluster

    def close(self) -> None:
        self.client.close()
