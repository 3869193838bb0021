"""Namespace-level role permissions."""
from __future__ import annotations

import logging

from .base import AdminService, as_list
from .http import load_json
from .models import Namespace, PermissionAction, Role
from .status import HttpStatusCode, StatusKind

logger = logging.getLogger(__name__)


def _actions(values: object) -> frozenset[PermissionAction]:
    actions = set()
    for value in as_list(values):
        try:
            actions.add(PermissionAction(str(value)))
        except ValueError:
            logger.warning("Ignoring unknown permission action '%s'", value)
    return frozenset(actions)


class PermissionService(AdminService):
    @staticmethod
    def actions() -> list[str]:
        return [action.value for action in PermissionAction]

    def roles(self, namespace: Namespace) -> tuple[list[Role], HttpStatusCode]:
        url = self._url(
            namespace.cluster.admin_url, "permissions", namespace.tenant.name, namespace.name
        )
        outcome, result = self._call("list_permissions", "GET", url)
        if not outcome.succeeded:
            return [], outcome
        payload = load_json(result, {}, dict)
        roles = [
            Role(name=str(name), namespace=namespace, actions=_actions(values))
            for name, values in payload.items()
        ]
        return roles, outcome

    def exists(self, role: Role) -> bool:
        roles, outcome = self.roles(role.namespace)
        return outcome.succeeded and any(existing.name == role.name for existing in roles)

    def grant(self, role: Role) -> HttpStatusCode:
        if self.exists(role):
            return HttpStatusCode(StatusKind.CONFLICT, "Permission already exists.")
        namespace = role.namespace
        url = self._url(
            namespace.cluster.admin_url, "grant_permission", namespace.tenant.name, namespace.name, role.name
        )
        return self._command("grant_permission", "POST", url, self._json_body(role.action_names()))

    def revoke(self, role: Role) -> HttpStatusCode:
        namespace = role.namespace
        url = self._url(
            namespace.cluster.admin_url, "revoke_permission", namespace.tenant.name, namespace.name, role.name
        )
        return self._command("revoke_permission", "DELETE", url)
