"""CLI entrypoint for the Pulsar admin gateway."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional

import typer
import yaml
from dotenv import load_dotenv

from .config import load_config
from .connectors import ConnectorService
from .gateway import Gateway
from .models import (
    Cluster,
    Message,
    Namespace,
    PermissionAction,
    Role,
    Tenant,
    Topic,
    TopicDomain,
)
from .registry import Registry
from .status import HttpStatusCode
from .tokens import create_token, generate_secret_key, load_secret_key

LOG_LEVEL_ENV_VAR = "PULSAR_GATEWAY_LOG_LEVEL"


def _configure_logging() -> None:
    env_level = os.getenv(LOG_LEVEL_ENV_VAR, "WARNING").upper()
    level = getattr(logging, env_level, None)
    if not isinstance(level, int):
        level = logging.WARNING
        logging.warning(
            "Unrecognized %s '%s'; defaulting to WARNING",
            LOG_LEVEL_ENV_VAR,
            env_level,
        )
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s - %(message)s")


_configure_logging()

app = typer.Typer(help="Administer Apache Pulsar clusters over the admin REST API")
tenants_app = typer.Typer(help="Tenants of a cluster")
namespaces_app = typer.Typer(help="Namespaces of a tenant")
topics_app = typer.Typer(help="Topics of a namespace")
subscriptions_app = typer.Typer(help="Subscriptions on a topic")
functions_app = typer.Typer(help="Pulsar Functions")
sources_app = typer.Typer(help="Pulsar IO sources")
sinks_app = typer.Typer(help="Pulsar IO sinks")
permissions_app = typer.Typer(help="Namespace role permissions")
tokens_app = typer.Typer(help="HS256 access tokens")

app.add_typer(tenants_app, name="tenants")
app.add_typer(namespaces_app, name="namespaces")
app.add_typer(topics_app, name="topics")
app.add_typer(subscriptions_app, name="subscriptions")
app.add_typer(functions_app, name="functions")
app.add_typer(sources_app, name="sources")
app.add_typer(sinks_app, name="sinks")
app.add_typer(permissions_app, name="permissions")
app.add_typer(tokens_app, name="tokens")

CONFIG_OPTION = typer.Option(..., "--config", exists=True, readable=True, help="Path to gateway config YAML")
CLUSTER_OPTION = typer.Option(None, "--cluster", help="Configured cluster name (defaults to the first one)")
TENANT_OPTION = typer.Option(..., "--tenant", help="Tenant name")
NAMESPACE_OPTION = typer.Option(..., "--namespace", help="Namespace name")
DOMAIN_OPTION = typer.Option(TopicDomain.PERSISTENT.value, "--domain", help="persistent or non-persistent")
PARTITION_OPTION = typer.Option(-1, "--partition", help="Partition index, -1 for the whole topic")


@app.callback()
def main() -> None:
    """Load a local .env file before any command runs."""
    load_dotenv(Path.cwd() / ".env", override=False)


# Helpers --------------------------------------------------------------


def _fail(message: str, code: int = 1) -> typer.Exit:
    typer.secho(message, fg=typer.colors.RED, err=True)
    return typer.Exit(code=code)


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (frozenset, set)):
        return sorted(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Path):
        return str(value)
    if is_dataclass(value):
        return asdict(value)
    return str(value)


def _echo(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, default=_json_default))


def _gateway(config_path: Path) -> Gateway:
    try:
        return Gateway(load_config(config_path))
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise _fail(f"Invalid configuration: {exc}") from exc


def _cluster(gateway: Gateway, name: Optional[str]) -> Cluster:
    if name is None:
        names = gateway.cluster_names()
        if not names:
            raise _fail("No clusters configured")
        name = names[0]
    try:
        return gateway.cluster(name)
    except KeyError as exc:
        raise _fail(str(exc.args[0])) from exc


def _namespace(gateway: Gateway, cluster: Optional[str], tenant: str, namespace: str) -> Namespace:
    return Namespace(name=namespace, tenant=Tenant(name=tenant, cluster=_cluster(gateway, cluster)))


def _topic(namespace: Namespace, name: str, domain: str, partitions: int = 0) -> Topic:
    try:
        topic_domain = TopicDomain(domain)
    except ValueError as exc:
        raise _fail(f"Unknown topic domain '{domain}'") from exc
    return Topic(name=name, namespace=namespace, domain=topic_domain, partitions=partitions)


def _report(outcome: HttpStatusCode, **context: Any) -> None:
    _echo({**context, **outcome.as_dict()})
    if not outcome.succeeded:
        raise typer.Exit(code=1)


def _topic_summary(topic: Topic) -> dict[str, Any]:
    return {
        "name": topic.name,
        "full_name": topic.full_name,
        "domain": topic.domain.value,
        "partitioned": topic.partitioned.value,
        "partitions": topic.partitions,
        "producers": topic.stats.producers,
        "subscriptions": topic.stats.subscriptions,
    }


def _message_summary(message: Message) -> dict[str, Any]:
    return {
        "ledger_id": message.ledger_id,
        "entry_id": message.entry_id,
        "key": message.key,
        "properties": dict(message.properties),
        "payload": message.text,
    }


def _read_unit_config(path: Optional[Path]) -> dict[str, Any]:
    if path is None:
        return {}
    data = yaml.safe_load(path.read_text())
    if not isinstance(data, dict):
        raise _fail(f"{path} must contain a mapping")
    return data


# Clusters -------------------------------------------------------------


@app.command("clusters")
def list_clusters(
    config: Path = CONFIG_OPTION,
    cluster: Optional[str] = CLUSTER_OPTION,
) -> None:
    """List the clusters known to the broker."""

    gateway = _gateway(config)
    target = _cluster(gateway, cluster)
    names = gateway.clusters.clusters(target)
    _echo(
        {
            "cluster": target.name,
            "clusters": [
                {"name": name, "broker_service_url": gateway.clusters.broker_service_url(target, name)}
                for name in names
            ],
        }
    )


# Tenants --------------------------------------------------------------


@tenants_app.command("list")
def list_tenants(config: Path = CONFIG_OPTION, cluster: Optional[str] = CLUSTER_OPTION) -> None:
    gateway = _gateway(config)
    tenants = gateway.tenants.tenants(_cluster(gateway, cluster))
    _echo([tenant.name for tenant in tenants])


@tenants_app.command("create")
def create_tenant(
    name: str,
    config: Path = CONFIG_OPTION,
    cluster: Optional[str] = CLUSTER_OPTION,
    admin_role: List[str] = typer.Option([], "--admin-role", help="Admin role, repeatable"),
) -> None:
    gateway = _gateway(config)
    tenant = Tenant(name=name, cluster=_cluster(gateway, cluster))
    _report(gateway.tenants.create_tenant(tenant, admin_roles=admin_role), tenant=name)


@tenants_app.command("delete")
def delete_tenant(name: str, config: Path = CONFIG_OPTION, cluster: Optional[str] = CLUSTER_OPTION) -> None:
    gateway = _gateway(config)
    tenant = Tenant(name=name, cluster=_cluster(gateway, cluster))
    _report(gateway.tenants.delete_tenant(tenant), tenant=name)


# Namespaces -----------------------------------------------------------


@namespaces_app.command("list")
def list_namespaces(
    config: Path = CONFIG_OPTION,
    cluster: Optional[str] = CLUSTER_OPTION,
    tenant: str = TENANT_OPTION,
) -> None:
    gateway = _gateway(config)
    owner = Tenant(name=tenant, cluster=_cluster(gateway, cluster))
    _echo([namespace.name for namespace in gateway.namespaces.namespaces(owner)])


@namespaces_app.command("create")
def create_namespace(
    name: str,
    config: Path = CONFIG_OPTION,
    cluster: Optional[str] = CLUSTER_OPTION,
    tenant: str = TENANT_OPTION,
) -> None:
    gateway = _gateway(config)
    namespace = _namespace(gateway, cluster, tenant, name)
    _report(gateway.namespaces.create_namespace(namespace), namespace=namespace.path)


@namespaces_app.command("delete")
def delete_namespace(
    name: str,
    config: Path = CONFIG_OPTION,
    cluster: Optional[str] = CLUSTER_OPTION,
    tenant: str = TENANT_OPTION,
) -> None:
    gateway = _gateway(config)
    namespace = _namespace(gateway, cluster, tenant, name)
    _report(gateway.namespaces.delete_namespace(namespace), namespace=namespace.path)


# Topics ---------------------------------------------------------------


@topics_app.command("list")
def list_topics(
    config: Path = CONFIG_OPTION,
    cluster: Optional[str] = CLUSTER_OPTION,
    tenant: str = TENANT_OPTION,
    namespace: str = NAMESPACE_OPTION,
) -> None:
    gateway = _gateway(config)
    topics = gateway.topics.topics(_namespace(gateway, cluster, tenant, namespace))
    _echo([_topic_summary(topic) for topic in topics])


@topics_app.command("create")
def create_topic(
    name: str,
    config: Path = CONFIG_OPTION,
    cluster: Optional[str] = CLUSTER_OPTION,
    tenant: str = TENANT_OPTION,
    namespace: str = NAMESPACE_OPTION,
    domain: str = DOMAIN_OPTION,
    partitions: int = typer.Option(0, "--partitions", min=0, help="Partition count, 0 for a plain topic"),
) -> None:
    gateway = _gateway(config)
    topic = _topic(_namespace(gateway, cluster, tenant, namespace), name, domain, partitions)
    _report(gateway.topics.create_topic(topic), topic=topic.full_name)


@topics_app.command("delete")
def delete_topic(
    name: str,
    config: Path = CONFIG_OPTION,
    cluster: Optional[str] = CLUSTER_OPTION,
    tenant: str = TENANT_OPTION,
    namespace: str = NAMESPACE_OPTION,
    domain: str = DOMAIN_OPTION,
) -> None:
    """Delete a topic, looking up its partition count first."""

    gateway = _gateway(config)
    topic = _topic(_namespace(gateway, cluster, tenant, namespace), name, domain)
    topic = _topic(topic.namespace, name, domain, gateway.topics.partitions(topic))
    _report(gateway.topics.delete_topic(topic), topic=topic.full_name)


@topics_app.command("storage")
def topic_storage(
    name: str,
    config: Path = CONFIG_OPTION,
    cluster: Optional[str] = CLUSTER_OPTION,
    tenant: str = TENANT_OPTION,
    namespace: str = NAMESPACE_OPTION,
    domain: str = DOMAIN_OPTION,
    partition: int = PARTITION_OPTION,
) -> None:
    gateway = _gateway(config)
    topic = _topic(_namespace(gateway, cluster, tenant, namespace), name, domain)
    storage = gateway.topics.storage(topic, partition)
    _echo(
        {
            "topic": topic.full_name,
            "size": storage.size,
            "entries": storage.entries,
            "segment_count": storage.segment_count,
            "segments": [asdict(segment) for segment in storage.segments],
        }
    )


@topics_app.command("overview")
def topic_overview(
    name: str,
    config: Path = CONFIG_OPTION,
    cluster: Optional[str] = CLUSTER_OPTION,
    tenant: str = TENANT_OPTION,
    namespace: str = NAMESPACE_OPTION,
    domain: str = DOMAIN_OPTION,
    partition: int = PARTITION_OPTION,
) -> None:
    gateway = _gateway(config)
    topic = _topic(_namespace(gateway, cluster, tenant, namespace), name, domain)
    overview = gateway.topics.overview(topic, partition)
    _echo({"topic": topic.full_name, **asdict(overview)})


@topics_app.command("messages")
def topic_messages(
    name: str,
    config: Path = CONFIG_OPTION,
    cluster: Optional[str] = CLUSTER_OPTION,
    tenant: str = TENANT_OPTION,
    namespace: str = NAMESPACE_OPTION,
    partition: int = PARTITION_OPTION,
    num: int = typer.Option(10, "--num", min=1, help="How many entries to fetch"),
) -> None:
    """Fetch the most recent entries of the topic's last ledger."""

    gateway = _gateway(config)
    topic = _topic(_namespace(gateway, cluster, tenant, namespace), name, TopicDomain.PERSISTENT.value)
    last = gateway.topics.last_message_id(topic, partition)
    if last is None:
        raise _fail(f"Could not read the last message id of {topic.full_name}")
    messages = gateway.topics.messages(topic, partition, last.ledger_id, last.entry_id, num)
    _echo([_message_summary(message) for message in messages])


@topics_app.command("peek")
def topic_peek(
    name: str,
    subscription: str = typer.Option(..., "--subscription", help="Subscription to peek"),
    config: Path = CONFIG_OPTION,
    cluster: Optional[str] = CLUSTER_OPTION,
    tenant: str = TENANT_OPTION,
    namespace: str = NAMESPACE_OPTION,
    domain: str = DOMAIN_OPTION,
    partition: int = PARTITION_OPTION,
    num: int = typer.Option(1, "--num", min=1, help="How many positions to peek"),
) -> None:
    gateway = _gateway(config)
    topic = _topic(_namespace(gateway, cluster, tenant, namespace), name, domain)
    messages = gateway.topics.peek_messages(topic, partition, subscription, num)
    _echo([_message_summary(message) for message in messages])


# Subscriptions --------------------------------------------------------


@subscriptions_app.command("create")
def create_subscription(
    topic_name: str,
    name: str,
    config: Path = CONFIG_OPTION,
    cluster: Optional[str] = CLUSTER_OPTION,
    tenant: str = TENANT_OPTION,
    namespace: str = NAMESPACE_OPTION,
    domain: str = DOMAIN_OPTION,
) -> None:
    gateway = _gateway(config)
    topic = _topic(_namespace(gateway, cluster, tenant, namespace), topic_name, domain)
    _report(gateway.topics.create_subscription(topic, name), topic=topic.full_name, subscription=name)


@subscriptions_app.command("delete")
def delete_subscription(
    topic_name: str,
    name: str,
    config: Path = CONFIG_OPTION,
    cluster: Optional[str] = CLUSTER_OPTION,
    tenant: str = TENANT_OPTION,
    namespace: str = NAMESPACE_OPTION,
    domain: str = DOMAIN_OPTION,
) -> None:
    gateway = _gateway(config)
    topic = _topic(_namespace(gateway, cluster, tenant, namespace), topic_name, domain)
    _report(gateway.topics.delete_subscription(topic, name), topic=topic.full_name, subscription=name)


# Functions, sources, sinks --------------------------------------------


def _register_connector_commands(group: typer.Typer, attribute: str) -> None:
    """Attach list/create/start/stop/delete to ``group`` for the service at ``Gateway.<attribute>``."""

    def _service(gateway: Gateway) -> ConnectorService:
        return getattr(gateway, attribute)

    @group.command("list")
    def list_units(
        config: Path = CONFIG_OPTION,
        cluster: Optional[str] = CLUSTER_OPTION,
        tenant: str = TENANT_OPTION,
        namespace: str = NAMESPACE_OPTION,
    ) -> None:
        gateway = _gateway(config)
        infos = _service(gateway).list(_namespace(gateway, cluster, tenant, namespace))
        _echo(
            [
                {
                    "name": info.name,
                    "num_instances": info.num_instances,
                    "num_running": info.num_running,
                    "instances": [asdict(instance) for instance in info.instances],
                    "config": info.config,
                }
                for info in infos
            ]
        )

    @group.command("create")
    def create_unit(
        name: str,
        archive: Optional[Path] = typer.Option(None, "--archive", exists=True, readable=True, help="Package to upload"),
        unit_config: Optional[Path] = typer.Option(
            None, "--unit-config", exists=True, readable=True, help="YAML/JSON config merged into the upload"
        ),
        config: Path = CONFIG_OPTION,
        cluster: Optional[str] = CLUSTER_OPTION,
        tenant: str = TENANT_OPTION,
        namespace: str = NAMESPACE_OPTION,
    ) -> None:
        gateway = _gateway(config)
        service = _service(gateway)
        info = service.new_info(_namespace(gateway, cluster, tenant, namespace), name, _read_unit_config(unit_config))
        _report(service.create(info, archive), name=name)

    def _lifecycle(action: str) -> None:
        @group.command(action)
        def command(
            name: str,
            config: Path = CONFIG_OPTION,
            cluster: Optional[str] = CLUSTER_OPTION,
            tenant: str = TENANT_OPTION,
            namespace: str = NAMESPACE_OPTION,
        ) -> None:
            gateway = _gateway(config)
            service = _service(gateway)
            info = service.new_info(_namespace(gateway, cluster, tenant, namespace), name)
            _report(getattr(service, action)(info), name=name, action=action)

    for action in ("start", "stop", "delete"):
        _lifecycle(action)


_register_connector_commands(functions_app, "functions")
_register_connector_commands(sources_app, "sources")
_register_connector_commands(sinks_app, "sinks")


# Permissions ----------------------------------------------------------


@permissions_app.command("list")
def list_permissions(
    config: Path = CONFIG_OPTION,
    cluster: Optional[str] = CLUSTER_OPTION,
    tenant: str = TENANT_OPTION,
    namespace: str = NAMESPACE_OPTION,
) -> None:
    gateway = _gateway(config)
    roles, outcome = gateway.permissions.roles(_namespace(gateway, cluster, tenant, namespace))
    if not outcome.succeeded:
        _report(outcome, namespace=f"{tenant}/{namespace}")
    _echo({role.name: role.action_names() for role in roles})


@permissions_app.command("grant")
def grant_permission(
    role: str,
    action: List[str] = typer.Option(..., "--action", help="produce, consume or functions; repeatable"),
    config: Path = CONFIG_OPTION,
    cluster: Optional[str] = CLUSTER_OPTION,
    tenant: str = TENANT_OPTION,
    namespace: str = NAMESPACE_OPTION,
) -> None:
    gateway = _gateway(config)
    try:
        actions = frozenset(PermissionAction(value) for value in action)
    except ValueError as exc:
        raise _fail(f"Unknown action; expected one of {gateway.permissions.actions()}") from exc
    target = Role(name=role, namespace=_namespace(gateway, cluster, tenant, namespace), actions=actions)
    _report(gateway.permissions.grant(target), role=role, actions=target.action_names())


@permissions_app.command("revoke")
def revoke_permission(
    role: str,
    config: Path = CONFIG_OPTION,
    cluster: Optional[str] = CLUSTER_OPTION,
    tenant: str = TENANT_OPTION,
    namespace: str = NAMESPACE_OPTION,
) -> None:
    gateway = _gateway(config)
    target = Role(name=role, namespace=_namespace(gateway, cluster, tenant, namespace))
    _report(gateway.permissions.revoke(target), role=role)


# Queries --------------------------------------------------------------


@app.command("query")
def query_topic(
    topic_name: str,
    where: str = typer.Option("", "--where", help="Optional predicate appended as a where clause"),
    max_polls: int = typer.Option(1000, "--max-polls", min=1, help="Give up after this many result pages"),
    config: Path = CONFIG_OPTION,
    cluster: Optional[str] = CLUSTER_OPTION,
    tenant: str = TENANT_OPTION,
    namespace: str = NAMESPACE_OPTION,
) -> None:
    """Run a SQL query over a topic through the Presto worker."""

    gateway = _gateway(config)
    topic = _topic(_namespace(gateway, cluster, tenant, namespace), topic_name, TopicDomain.PERSISTENT.value)
    statement = gateway.queries.run(topic, where, max_polls)
    _echo(
        {
            "id": statement.id,
            "state": statement.state.value,
            "error": statement.error,
            "elapsed_millis": statement.elapsed_millis,
            "processed_rows": statement.processed_rows,
            "columns": [asdict(column) for column in statement.columns],
            "rows": statement.rows,
        }
    )
    if statement.error:
        raise typer.Exit(code=1)


# Tokens ---------------------------------------------------------------


@tokens_app.command("generate-key")
def generate_key(output: Path = typer.Argument(..., help="File to write the 32-byte secret key to")) -> None:
    generate_secret_key(output)
    _echo({"secret_key_file": str(output)})


@tokens_app.command("create")
def create_access_token(
    subject: str,
    secret_key: Path = typer.Option(..., "--secret-key", exists=True, readable=True, help="Secret key file"),
    registry: Optional[Path] = typer.Option(None, "--registry", help="Registry directory to record the token in"),
) -> None:
    token = create_token(load_secret_key(secret_key), subject)
    if registry is not None:
        Registry(registry).save_token(token)
    _echo({"name": token.name, "token": token.token})


@tokens_app.command("list")
def list_tokens(registry: Path = typer.Option(..., "--registry", help="Registry directory")) -> None:
    _echo([{"name": token.name, "token": token.token} for token in Registry(registry).tokens()])


if __name__ == "__main__":
    app()
