"""Tenant listing and lifecycle."""
from __future__ import annotations

from typing import Iterable, Optional

from .base import AdminService
from .models import Cluster, Tenant
from .status import HttpStatusCode


class TenantService(AdminService):
    def tenants(self, cluster: Cluster) -> list[Tenant]:
        names = self._read(self._url(cluster.admin_url, "tenants"), [], list)
        return [Tenant(name=str(name), cluster=cluster) for name in names]

    def create_tenant(
        self,
        tenant: Tenant,
        admin_roles: Iterable[str] = (),
        allowed_clusters: Optional[Iterable[str]] = None,
    ) -> HttpStatusCode:
        clusters = list(allowed_clusters) if allowed_clusters is not None else [tenant.cluster.name]
        body = self._json_body({"adminRoles": list(admin_roles), "allowedClusters": clusters})
        url = self._url(tenant.cluster.admin_url, "create_tenant", tenant.name)
        return self._command("create_tenant", "PUT", url, body)

    def delete_tenant(self, tenant: Tenant) -> HttpStatusCode:
        url = self._url(tenant.cluster.admin_url, "delete_tenant", tenant.name)
        return self._command("delete_tenant", "DELETE", url)
