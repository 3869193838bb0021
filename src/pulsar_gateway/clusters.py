"""Cluster discovery against the admin API."""
from __future__ import annotations

import logging

from .base import AdminService, as_dict, as_list
from .models import Cluster

logger = logging.getLogger(__name__)


class ClusterService(AdminService):
    def clusters(self, cluster: Cluster) -> list[str]:
        """Names of the clusters known to the broker behind ``cluster``."""
        names = self._read(self._url(cluster.admin_url, "clusters"), [], list)
        return [str(name) for name in as_list(names)]

    def broker_service_url(self, cluster: Cluster, name: str) -> str:
        data = self._read(self._url(cluster.admin_url, "cluster", name), {}, dict)
        url = as_dict(data).get("brokerServiceUrl") or ""
        if not url:
            logger.debug("Cluster %s reported no broker service URL", name)
        return str(url)
