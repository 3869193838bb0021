"""Topic listing, statistics, storage, messages and subscriptions."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional
from urllib.parse import urlparse

from .base import AdminService, as_dict, as_float, as_int, as_list
from .http import HttpResult
from .models import (
    Message,
    MessageId,
    Namespace,
    Partitioned,
    Producer,
    SegmentStatus,
    Subscription,
    Topic,
    TopicDomain,
    TopicOverview,
    TopicSegment,
    TopicStats,
    TopicStorage,
)
from .status import HttpStatusCode

logger = logging.getLogger(__name__)

PARTITION_MARKER = "-partition-"
PROPERTY_HEADER_PREFIX = "X-Pulsar-PROPERTY-"
PARTITION_KEY_HEADER = "X-Pulsar-partition-key"

_DOMAINS = (TopicDomain.PERSISTENT, TopicDomain.NON_PERSISTENT)


def split_topic_name(full_name: str) -> tuple[Optional[TopicDomain], str]:
    """Split ``persistent://tenant/ns/name`` into its domain and local name."""
    parsed = urlparse(full_name)
    local = parsed.path.rsplit("/", 1)[-1] if parsed.path else full_name.rsplit("/", 1)[-1]
    try:
        domain: Optional[TopicDomain] = TopicDomain(parsed.scheme)
    except ValueError:
        domain = None
    return domain, local


def message_from_result(result: HttpResult, ledger_id: int, entry_id: int) -> Message:
    properties: dict[str, str] = {}
    key = ""
    prefix = PROPERTY_HEADER_PREFIX.lower()
    for header, value in result.headers.items():
        lowered = header.lower()
        if lowered.startswith(prefix):
            properties[header[len(PROPERTY_HEADER_PREFIX):]] = value
        elif lowered == PARTITION_KEY_HEADER.lower():
            key = value
    payload = result.body if result.ok else b""
    return Message(ledger_id=ledger_id, entry_id=entry_id, payload=payload, properties=properties, key=key)


def build_storage(internal_stats: Mapping[str, Any]) -> TopicStorage:
    """Reconstruct the segment list from a topic's internal stats.

    The last ledger is the one being written: its own ``entries``/``size`` are
    stale, so the counts come from ``currentLedgerEntries``/``currentLedgerSize``.
    """
    ledgers = [as_dict(ledger) for ledger in as_list(internal_stats.get("ledgers"))]
    last = len(ledgers) - 1
    segments = []
    for index, ledger in enumerate(ledgers):
        is_open = index == last
        segments.append(
            TopicSegment(
                ledger_id=as_int(ledger.get("ledgerId")),
                entries=as_int(internal_stats.get("currentLedgerEntries") if is_open else ledger.get("entries")),
                size=as_int(internal_stats.get("currentLedgerSize") if is_open else ledger.get("size")),
                offloaded=bool(ledger.get("offloaded", False)),
                status=SegmentStatus.OPEN if is_open else SegmentStatus.CLOSE,
            )
        )
    return TopicStorage(
        size=as_int(internal_stats.get("totalSize")),
        entries=as_int(internal_stats.get("numberOfEntries")),
        segments=tuple(segments),
    )


def _producer(payload: Mapping[str, Any]) -> Producer:
    return Producer(
        name=str(payload.get("producerName", "")),
        address=str(payload.get("address", "")),
        msg_rate_in=as_float(payload.get("msgRateIn")),
        msg_throughput_in=as_float(payload.get("msgThroughputIn")),
        connected_since=str(payload.get("connectedSince", "")),
    )


def _subscription(name: str, payload: Mapping[str, Any]) -> Subscription:
    return Subscription(
        name=name,
        type=str(payload.get("type", "")),
        msg_backlog=as_int(payload.get("msgBacklog")),
        msg_rate_out=as_float(payload.get("msgRateOut")),
        consumers=len(as_list(payload.get("consumers"))),
    )


class TopicService(AdminService):
    # Listing -----------------------------------------------------------

    def topics(self, namespace: Namespace) -> list[Topic]:
        """Non-partitioned topics first, then partitioned ones, each over both domains."""
        return self.non_partitioned_topics(namespace) + self.partitioned_topics(namespace)

    def non_partitioned_topics(self, namespace: Namespace) -> list[Topic]:
        topics = []
        for topic in self._list(namespace, "topics"):
            topics.append(topic.with_stats(self.stats(topic)))
        return topics

    def partitioned_topics(self, namespace: Namespace) -> list[Topic]:
        topics = []
        for listed in self._list(namespace, "partitioned_topics"):
            partitions = self.partitions(listed)
            topic = Topic(
                name=listed.name,
                namespace=namespace,
                domain=listed.domain,
                partitions=partitions,
                partitioned=Partitioned.PARTITIONED,
            )
            topics.append(topic.with_stats(self.stats(topic)))
        return topics

    def _list(self, namespace: Namespace, key: str) -> Iterable[Topic]:
        for domain in _DOMAINS:
            url = self._url(
                namespace.cluster.admin_url, key, namespace.tenant.name, namespace.name, domain.value
            )
            for entry in self._read(url, [], list):
                reported_domain, name = split_topic_name(str(entry))
                if not name or PARTITION_MARKER in name:
                    continue
                yield Topic(name=name, namespace=namespace, domain=reported_domain or domain)

    # Metadata ----------------------------------------------------------

    def partitions(self, topic: Topic) -> int:
        metadata = self._read(self._topic_url("partitioned_metadata", topic), {}, dict)
        return as_int(metadata.get("partitions"))

    def stats(self, topic: Topic) -> TopicStats:
        """Producer and subscription counts; partitioned topics are sampled on partition 0."""
        partition = 0 if topic.partitions > 0 else -1
        data = self._read(self._topic_url("topic_stats", topic, partition=partition), {}, dict)
        return TopicStats(
            partitions=topic.partitions,
            producers=len(as_list(data.get("publishers"))),
            subscriptions=len(as_dict(data.get("subscriptions"))),
        )

    def overview(self, topic: Topic, partition: int = -1) -> TopicOverview:
        data = self._read(self._topic_url("topic_stats", topic, partition=partition), {}, dict)
        producers = tuple(_producer(as_dict(item)) for item in as_list(data.get("publishers")))
        subscriptions = tuple(
            _subscription(str(name), as_dict(payload))
            for name, payload in as_dict(data.get("subscriptions")).items()
        )
        return TopicOverview(producers=producers, subscriptions=subscriptions)

    def storage(self, topic: Topic, partition: int = -1) -> TopicStorage:
        data = self._read(self._topic_url("internal_stats", topic, partition=partition), {}, dict)
        return build_storage(data)

    # Lifecycle ---------------------------------------------------------

    def create_topic(self, topic: Topic) -> HttpStatusCode:
        if topic.partitions > 0:
            url = self._topic_url("create_partitioned_topic", topic)
            return self._command("create_topic", "PUT", url, str(topic.partitions))
        return self._command("create_topic", "PUT", self._topic_url("create_topic", topic))

    def delete_topic(self, topic: Topic) -> HttpStatusCode:
        key = "delete_partitioned_topic" if topic.partitions > 0 else "delete_topic"
        return self._command("delete_topic", "DELETE", self._topic_url(key, topic))

    def create_subscription(self, topic: Topic, name: str) -> HttpStatusCode:
        url = self._topic_url("create_subscription", topic, name)
        return self._command("create_subscription", "PUT", url)

    def delete_subscription(self, topic: Topic, name: str) -> HttpStatusCode:
        url = self._topic_url("delete_subscription", topic, name)
        return self._command("delete_subscription", "DELETE", url)

    # Messages ----------------------------------------------------------

    def last_message_id(self, topic: Topic, partition: int = -1) -> Optional[MessageId]:
        data = self._read(self._topic_url("last_message_id", topic, partition=partition), None, dict)
        if data is None:
            return None
        return MessageId(ledger_id=as_int(data.get("ledgerId"), -1), entry_id=as_int(data.get("entryId"), -1))

    def messages(self, topic: Topic, partition: int, ledger_id: int, entry_id: int, num: int) -> list[Message]:
        """Fetch up to ``num`` entries of ``ledger_id`` walking toward ``entry_id``.

        The counter ``i`` starts at ``min(entry_id, num - 1)`` and counts down to 0;
        each step fetches entry ``entry_id - i`` and labels the message with ``i``.
        """
        if ledger_id < 0:
            return []
        messages = []
        i = min(entry_id, num - 1)
        while i >= 0:
            url = self._topic_url("message_by_id", topic, ledger_id, entry_id - i, partition=partition)
            result = self._get(url)
            if not result.ok:
                logger.warning("Fetching %s returned status %s", url, result.status_code)
            messages.append(message_from_result(result, ledger_id, i))
            i -= 1
        return messages

    def peek_messages(self, topic: Topic, partition: int, subscription: str, num: int) -> list[Message]:
        """Peek positions ``num`` down to 1 of a subscription, labelling each with its position."""
        messages = []
        for position in range(num, 0, -1):
            url = self._topic_url("peek_message", topic, subscription, position, partition=partition)
            result = self._get(url)
            if not result.ok:
                logger.warning("Peeking %s returned status %s", url, result.status_code)
            messages.append(message_from_result(result, -1, position))
        return messages
