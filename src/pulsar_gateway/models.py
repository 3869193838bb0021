"""Domain records exchanged with the Pulsar admin gateway."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


# Ownership chain ------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Cluster:
    """Root of the hierarchy; carries the base URLs every call is built from."""

    name: str
    admin_url: str
    function_url: str = ""
    presto_url: str = ""

    @property
    def functions_base(self) -> str:
        return self.function_url or self.admin_url


@dataclass(frozen=True, slots=True)
class Tenant:
    name: str
    cluster: Cluster


@dataclass(frozen=True, slots=True)
class Namespace:
    name: str
    tenant: Tenant

    @property
    def cluster(self) -> Cluster:
        return self.tenant.cluster

    @property
    def path(self) -> str:
        return f"{self.tenant.name}/{self.name}"


# Topics ---------------------------------------------------------------


class TopicDomain(str, Enum):
    PERSISTENT = "persistent"
    NON_PERSISTENT = "non-persistent"


class Partitioned(str, Enum):
    PARTITIONED = "Partitioned"
    NON_PARTITIONED = "NonPartitioned"


@dataclass(frozen=True, slots=True)
class TopicStats:
    partitions: int = 0
    producers: int = 0
    subscriptions: int = 0


@dataclass(frozen=True, slots=True)
class Topic:
    name: str
    namespace: Namespace
    domain: TopicDomain = TopicDomain.PERSISTENT
    partitions: int = 0
    partitioned: Partitioned = Partitioned.NON_PARTITIONED
    stats: TopicStats = field(default_factory=TopicStats)

    @property
    def full_name(self) -> str:
        return f"{self.domain.value}://{self.namespace.path}/{self.name}"

    @property
    def tenant(self) -> Tenant:
        return self.namespace.tenant

    @property
    def cluster(self) -> Cluster:
        return self.namespace.cluster

    def with_stats(self, stats: TopicStats) -> "Topic":
        return replace(self, stats=stats)


class SegmentStatus(str, Enum):
    OPEN = "Open"
    CLOSE = "Close"


@dataclass(frozen=True, slots=True)
class TopicSegment:
    ledger_id: int
    entries: int
    size: int
    offloaded: bool = False
    status: SegmentStatus = SegmentStatus.CLOSE


@dataclass(frozen=True, slots=True)
class TopicStorage:
    """Persisted log of a topic; only the last segment may be Open."""

    size: int = 0
    entries: int = 0
    segments: Tuple[TopicSegment, ...] = ()

    @property
    def segment_count(self) -> int:
        return len(self.segments)

    @property
    def open_segment(self) -> Optional[TopicSegment]:
        if self.segments and self.segments[-1].status is SegmentStatus.OPEN:
            return self.segments[-1]
        return None


@dataclass(frozen=True, slots=True)
class Producer:
    name: str
    address: str = ""
    msg_rate_in: float = 0.0
    msg_throughput_in: float = 0.0
    connected_since: str = ""


@dataclass(frozen=True, slots=True)
class Subscription:
    name: str
    type: str = ""
    msg_backlog: int = 0
    msg_rate_out: float = 0.0
    consumers: int = 0


@dataclass(frozen=True, slots=True)
class TopicOverview:
    producers: Tuple[Producer, ...] = ()
    subscriptions: Tuple[Subscription, ...] = ()


@dataclass(frozen=True, slots=True)
class MessageId:
    ledger_id: int
    entry_id: int


@dataclass(frozen=True, slots=True)
class Message:
    ledger_id: int
    entry_id: int
    payload: bytes = b""
    properties: Mapping[str, str] = field(default_factory=dict)
    key: str = ""

    @property
    def text(self) -> str:
        return self.payload.decode("utf-8", errors="replace")


@dataclass(frozen=True, slots=True)
class Cursor:
    name: str
    mark_delete_position: str = ""
    read_position: str = ""
    waiting_read_op: bool = False
    pending_read_ops: int = 0
    messages_consumed_counter: int = 0
    state: str = ""
    properties: Mapping[str, Any] = field(default_factory=dict)


# Functions, sources, sinks --------------------------------------------


@dataclass(frozen=True, slots=True)
class InstanceStatus:
    instance_id: int
    running: bool = False
    received: int = 0
    written: int = 0
    errors: int = 0
    worker_id: str = ""


@dataclass(slots=True)
class ConnectorInfo:
    """Editable record behind the create/update form of a deployed unit."""

    kind = "connector"

    name: str
    namespace: Namespace
    config: Dict[str, Any] = field(default_factory=dict)
    instances: List[InstanceStatus] = field(default_factory=list)
    num_instances: int = 0
    num_running: int = 0

    def to_config(self) -> Dict[str, Any]:
        payload = dict(self.config)
        payload.update(
            {
                "tenant": self.namespace.tenant.name,
                "namespace": self.namespace.name,
                "name": self.name,
            }
        )
        return payload


@dataclass(slots=True)
class FunctionInfo(ConnectorInfo):
    kind = "function"


@dataclass(slots=True)
class SourceInfo(ConnectorInfo):
    kind = "source"


@dataclass(slots=True)
class SinkInfo(ConnectorInfo):
    kind = "sink"


# Permissions and tokens -----------------------------------------------


class PermissionAction(str, Enum):
    PRODUCE = "produce"
    CONSUME = "consume"
    FUNCTIONS = "functions"


@dataclass(frozen=True, slots=True)
class Role:
    name: str
    namespace: Namespace
    actions: frozenset[PermissionAction] = frozenset()

    def action_names(self) -> list[str]:
        return sorted(action.value for action in self.actions)


@dataclass(frozen=True, slots=True)
class Token:
    name: str
    token: str


# Query sessions -------------------------------------------------------


class QueryState(str, Enum):
    QUEUED = "QUEUED"
    PLANNING = "PLANNING"
    STARTING = "STARTING"
    RUNNING = "RUNNING"
    FINISHING = "FINISHING"
    FINISHED = "FINISHED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Any) -> "QueryState":
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.UNKNOWN


_TERMINAL_STATES = frozenset({QueryState.FINISHED, QueryState.FAILED, QueryState.CANCELLED})


@dataclass(frozen=True, slots=True)
class Column:
    name: str
    type: str = ""


@dataclass(slots=True)
class Statement:
    """A submitted query with its polling and cancellation handles."""

    topic: Topic
    predicate: str = ""
    id: str = ""
    next_uri: str = ""
    cancel_uri: str = ""
    state: QueryState = QueryState.UNKNOWN
    elapsed_millis: int = 0
    processed_rows: int = 0
    processed_bytes: int = 0
    columns: List[Column] = field(default_factory=list)
    rows: List[str] = field(default_factory=list)
    error: str = ""

    @property
    def terminal(self) -> bool:
        return self.state in _TERMINAL_STATES
