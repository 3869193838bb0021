"""Namespace listing and lifecycle."""
from __future__ import annotations

from typing import Any, Mapping, Optional

from .base import AdminService
from .models import Namespace, Tenant
from .status import HttpStatusCode


class NamespaceService(AdminService):
    def namespaces(self, tenant: Tenant) -> list[Namespace]:
        """Namespaces of ``tenant``; the server answers with ``tenant/namespace`` strings."""
        entries = self._read(self._url(tenant.cluster.admin_url, "namespaces", tenant.name), [], list)
        return [Namespace(name=str(entry).rsplit("/", 1)[-1], tenant=tenant) for entry in entries]

    def create_namespace(
        self, namespace: Namespace, policies: Optional[Mapping[str, Any]] = None
    ) -> HttpStatusCode:
        url = self._url(
            namespace.cluster.admin_url, "create_namespace", namespace.tenant.name, namespace.name
        )
        return self._command("create_namespace", "PUT", url, self._json_body(dict(policies or {})))

    def delete_namespace(self, namespace: Namespace) -> HttpStatusCode:
        url = self._url(
            namespace.cluster.admin_url, "delete_namespace", namespace.tenant.name, namespace.name
        )
        return self._command("delete_namespace", "DELETE", url)
