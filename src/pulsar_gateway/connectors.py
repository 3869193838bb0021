"""Shared lifecycle for units deployed on the function worker (functions, sources, sinks)."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from .base import AdminService, as_dict, as_int, as_list
from .http import MultipartField, file_field
from .models import ConnectorInfo, InstanceStatus, Namespace
from .status import HttpStatusCode

logger = logging.getLogger(__name__)

Archive = Union[str, Path, MultipartField, None]


class ConnectorService(AdminService):
    """Operation keys are derived from ``kind``: ``functions``, ``function_status``, ``create_function`` …"""

    kind = "function"
    info_type: type[ConnectorInfo] = ConnectorInfo
    received_field = "numReceived"
    written_field = "numSuccessfullyProcessed"
    errors_field = "numUserExceptions"

    # Reads -------------------------------------------------------------

    def names(self, namespace: Namespace) -> list[str]:
        url = self._namespace_url(f"{self.kind}s", namespace)
        return [str(name) for name in self._read(url, [], list)]

    def list(self, namespace: Namespace) -> list[ConnectorInfo]:
        """Names first, then one information and one status call per name, in listing order."""
        infos = []
        for name in self.names(namespace):
            status = self.status(namespace, name)
            infos.append(
                self.info_type(
                    name=name,
                    namespace=namespace,
                    config=self.information(namespace, name),
                    instances=self._instances_from(status),
                    num_instances=as_int(status.get("numInstances")),
                    num_running=as_int(status.get("numRunning")),
                )
            )
        return infos

    def information(self, namespace: Namespace, name: str) -> dict[str, Any]:
        return self._read(self._namespace_url(self.kind, namespace, name), {}, dict)

    def status(self, namespace: Namespace, name: str) -> dict[str, Any]:
        return self._read(self._namespace_url(f"{self.kind}_status", namespace, name), {}, dict)

    def instances(self, info: ConnectorInfo) -> list[InstanceStatus]:
        return self._instances_from(self.status(info.namespace, info.name))

    def _instances_from(self, status: Mapping[str, Any]) -> list[InstanceStatus]:
        instances = []
        for item in as_list(status.get("instances")):
            entry = as_dict(item)
            counters = as_dict(entry.get("status"))
            instances.append(
                InstanceStatus(
                    instance_id=as_int(entry.get("instanceId")),
                    running=bool(counters.get("running", False)),
                    received=as_int(counters.get(self.received_field)),
                    written=as_int(counters.get(self.written_field)),
                    errors=as_int(counters.get(self.errors_field)),
                    worker_id=str(counters.get("workerId", "")),
                )
            )
        return instances

    # Commands ----------------------------------------------------------

    def create(self, info: ConnectorInfo, archive: Archive = None) -> HttpStatusCode:
        operation = f"create_{self.kind}"
        url = self._namespace_url(operation, info.namespace, info.name)
        return self._command(operation, "POST", url, self._multipart(info, archive))

    def update(self, info: ConnectorInfo, archive: Archive = None) -> HttpStatusCode:
        operation = f"update_{self.kind}"
        url = self._namespace_url(operation, info.namespace, info.name)
        return self._command(operation, "PUT", url, self._multipart(info, archive))

    def delete(self, info: ConnectorInfo) -> HttpStatusCode:
        return self._lifecycle("delete", "DELETE", info)

    def start(self, info: ConnectorInfo) -> HttpStatusCode:
        return self._lifecycle("start", "POST", info)

    def stop(self, info: ConnectorInfo) -> HttpStatusCode:
        return self._lifecycle("stop", "POST", info)

    def _lifecycle(self, action: str, method: str, info: ConnectorInfo) -> HttpStatusCode:
        operation = f"{action}_{self.kind}"
        url = self._namespace_url(operation, info.namespace, info.name)
        return self._command(operation, method, url)

    # Helpers -----------------------------------------------------------

    def _namespace_url(self, key: str, namespace: Namespace, *segments: object) -> str:
        return self._url(
            namespace.cluster.functions_base, key, namespace.tenant.name, namespace.name, *segments
        )

    def _multipart(self, info: ConnectorInfo, archive: Archive) -> list[MultipartField]:
        parts = [
            MultipartField(
                name=f"{self.kind}Config",
                content=json.dumps(info.to_config()).encode("utf-8"),
                content_type="application/json",
            )
        ]
        if isinstance(archive, MultipartField):
            parts.append(archive)
        elif archive is not None:
            parts.append(file_field(archive))
            logger.debug("Attaching %s package %s", self.kind, archive)
        return parts

    def new_info(self, namespace: Namespace, name: str, config: Optional[Mapping[str, Any]] = None) -> ConnectorInfo:
        return self.info_type(name=name, namespace=namespace, config=dict(config or {}))
