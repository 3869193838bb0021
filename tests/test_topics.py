from __future__ import annotations

from pulsar_gateway.cursors import CursorService
from pulsar_gateway.models import (
    MessageId,
    Partitioned,
    SegmentStatus,
    Topic,
    TopicDomain,
)
from pulsar_gateway.status import StatusKind
from pulsar_gateway.topics import TopicService, build_storage, split_topic_name


def _base(namespace) -> str:
    return f"{namespace.cluster.admin_url}/admin/v2"


def test_listing_issues_four_calls_and_skips_partitions(client, templates, namespace, json_result) -> None:
    base = _base(namespace)
    client.route("GET", f"{base}/persistent/public/default", json_result(
        ["persistent://public/default/orders", "persistent://public/default/events-partition-0"]
    ))
    client.route("GET", f"{base}/non-persistent/public/default", json_result(
        ["non-persistent://public/default/metrics"]
    ))
    client.route("GET", f"{base}/persistent/public/default/partitioned", json_result(
        ["persistent://public/default/events"]
    ))
    client.route("GET", f"{base}/non-persistent/public/default/partitioned", json_result([]))
    client.route("GET", f"{base}/persistent/public/default/orders/stats", json_result(
        {"publishers": [{"producerName": "p1"}], "subscriptions": {"s1": {}, "s2": {}}}
    ))
    client.route("GET", f"{base}/non-persistent/public/default/metrics/stats", json_result(
        {"publishers": [], "subscriptions": {}}
    ))
    client.route("GET", f"{base}/persistent/public/default/events/partitions", json_result({"partitions": 4}))
    client.route("GET", f"{base}/persistent/public/default/events-partition-0/stats", json_result(
        {"publishers": [{}, {}], "subscriptions": {"a": {}}}
    ))
    service = TopicService(client, templates)

    topics = service.topics(namespace)

    assert [topic.name for topic in topics] == ["orders", "metrics", "events"]
    orders, metrics, events = topics
    assert orders.partitioned is Partitioned.NON_PARTITIONED
    assert (orders.stats.producers, orders.stats.subscriptions) == (1, 2)
    assert metrics.domain is TopicDomain.NON_PERSISTENT
    assert events.partitioned is Partitioned.PARTITIONED
    assert events.partitions == 4
    assert (events.stats.partitions, events.stats.producers, events.stats.subscriptions) == (4, 2, 1)

    listing_urls = [url for url in client.urls("GET") if url.endswith("default") or url.endswith("partitioned")]
    assert listing_urls == [
        f"{base}/persistent/public/default",
        f"{base}/non-persistent/public/default",
        f"{base}/persistent/public/default/partitioned",
        f"{base}/non-persistent/public/default/partitioned",
    ]


def test_listing_survives_malformed_payloads(client, templates, namespace, raw_result) -> None:
    base = _base(namespace)
    client.route("GET", f"{base}/persistent/public/default", raw_result(b"<html>oops</html>", status=200))
    service = TopicService(client, templates)

    assert service.topics(namespace) == []
    assert len(client.calls) == 4


def test_listing_is_repeatable(client, templates, namespace, json_result) -> None:
    base = _base(namespace)
    client.route("GET", f"{base}/persistent/public/default", json_result(["persistent://public/default/orders"]))
    client.route("GET", f"{base}/persistent/public/default/orders/stats", json_result({"publishers": []}))
    service = TopicService(client, templates)

    assert service.topics(namespace) == service.topics(namespace)


def test_split_topic_name() -> None:
    assert split_topic_name("persistent://public/default/orders") == (TopicDomain.PERSISTENT, "orders")
    assert split_topic_name("non-persistent://public/default/m") == (TopicDomain.NON_PERSISTENT, "m")


def test_storage_takes_open_ledger_counts_from_parent() -> None:
    storage = build_storage(
        {
            "totalSize": 4096,
            "numberOfEntries": 157,
            "currentLedgerEntries": 7,
            "currentLedgerSize": 512,
            "ledgers": [
                {"ledgerId": 10, "entries": 50, "size": 1500, "offloaded": True},
                {"ledgerId": 11, "entries": 100, "size": 2000},
                {"ledgerId": 12, "entries": 100, "size": 9999},
            ],
        }
    )

    assert storage.segment_count == 3
    first, second, last = storage.segments
    assert (first.entries, first.size, first.status, first.offloaded) == (50, 1500, SegmentStatus.CLOSE, True)
    assert (second.entries, second.size, second.status) == (100, 2000, SegmentStatus.CLOSE)
    assert (last.ledger_id, last.entries, last.size, last.status) == (12, 7, 512, SegmentStatus.OPEN)
    assert storage.open_segment == last
    assert (storage.size, storage.entries) == (4096, 157)


def test_storage_of_empty_topic() -> None:
    storage = build_storage({})

    assert storage.segments == ()
    assert storage.open_segment is None


def test_storage_uses_partition_name(client, templates, namespace, json_result) -> None:
    topic = Topic(name="orders", namespace=namespace)
    url = f"{_base(namespace)}/persistent/public/default/orders-partition-3/internalStats"
    client.route("GET", url, json_result({"ledgers": [{"ledgerId": 1, "entries": 3}], "currentLedgerEntries": 9}))
    service = TopicService(client, templates)

    storage = service.storage(topic, 3)

    assert client.urls() == [url]
    assert storage.segments[0].entries == 9


def test_message_range_below_window(client, templates, namespace, raw_result) -> None:
    topic = Topic(name="orders", namespace=namespace)
    service = TopicService(client, templates)

    messages = service.messages(topic, -1, 7, 5, 10)

    assert [message.entry_id for message in messages] == [5, 4, 3, 2, 1, 0]
    fetched = [int(url.rsplit("/", 1)[-1]) for url in client.urls()]
    assert fetched == [0, 1, 2, 3, 4, 5]
    assert all("/ledger/7/entry/" in url for url in client.urls())


def test_message_range_is_capped_by_num(client, templates, namespace) -> None:
    topic = Topic(name="orders", namespace=namespace)
    service = TopicService(client, templates)

    messages = service.messages(topic, 2, 7, 12, 10)

    assert [message.entry_id for message in messages] == [9, 8, 7, 6, 5, 4, 3, 2, 1, 0]
    fetched = [int(url.rsplit("/", 1)[-1]) for url in client.urls()]
    assert fetched == list(range(3, 13))
    assert all("orders-partition-2" in url for url in client.urls())


def test_negative_ledger_fetches_nothing(client, templates, namespace) -> None:
    service = TopicService(client, templates)

    assert service.messages(Topic(name="orders", namespace=namespace), -1, -1, 5, 10) == []
    assert client.calls == []


def test_message_headers_become_properties_and_key(client, templates, namespace, raw_result) -> None:
    topic = Topic(name="orders", namespace=namespace)
    url = f"{_base(namespace)}/persistent/public/default/orders/ledger/7/entry/0"
    client.route("GET", url, raw_result(
        b"hello",
        status=200,
        headers={"X-Pulsar-PROPERTY-region": "eu", "X-Pulsar-partition-key": "customer-1"},
    ))
    service = TopicService(client, templates)

    (message,) = service.messages(topic, -1, 7, 0, 10)

    assert message.text == "hello"
    assert message.key == "customer-1"
    assert message.properties == {"region": "eu"}
    assert message.ledger_id == 7


def test_peek_walks_positions_down_to_one(client, templates, namespace) -> None:
    topic = Topic(name="orders", namespace=namespace)
    service = TopicService(client, templates)

    messages = service.peek_messages(topic, -1, "audit", 3)

    assert [message.entry_id for message in messages] == [3, 2, 1]
    assert client.urls()[0] == f"{_base(namespace)}/persistent/public/default/orders/subscription/audit/position/3"


def test_last_message_id(client, templates, namespace, json_result) -> None:
    topic = Topic(name="orders", namespace=namespace)
    client.route("GET", f"{_base(namespace)}/persistent/public/default/orders/lastMessageId",
                 json_result({"ledgerId": 7, "entryId": 41, "partitionIndex": -1}))
    service = TopicService(client, templates)

    assert service.last_message_id(topic) == MessageId(ledger_id=7, entry_id=41)


def test_last_message_id_missing(client, templates, namespace) -> None:
    service = TopicService(client, templates)

    assert service.last_message_id(Topic(name="orders", namespace=namespace)) is None


def test_create_partitioned_topic_sends_partition_count(client, templates, namespace, raw_result) -> None:
    topic = Topic(name="orders", namespace=namespace, partitions=4)
    url = f"{_base(namespace)}/persistent/public/default/orders/partitions"
    client.route("PUT", url, raw_result(status=204))
    service = TopicService(client, templates)

    outcome = service.create_topic(topic)

    assert outcome.kind is StatusKind.NO_CONTENT
    assert client.calls[0].body == "4"


def test_create_plain_topic_sends_empty_body(client, templates, namespace, raw_result) -> None:
    topic = Topic(name="orders", namespace=namespace, domain=TopicDomain.NON_PERSISTENT)
    url = f"{_base(namespace)}/non-persistent/public/default/orders"
    client.route("PUT", url, raw_result(status=409))
    service = TopicService(client, templates)

    outcome = service.create_topic(topic)

    assert client.calls[0].url == url
    assert client.calls[0].body == b""
    assert outcome.kind is StatusKind.CONFLICT


def test_delete_topic_picks_template_by_partitions(client, templates, namespace) -> None:
    service = TopicService(client, templates)

    service.delete_topic(Topic(name="orders", namespace=namespace, partitions=2))
    service.delete_topic(Topic(name="plain", namespace=namespace))

    assert client.urls("DELETE") == [
        f"{_base(namespace)}/persistent/public/default/orders/partitions",
        f"{_base(namespace)}/persistent/public/default/plain",
    ]


def test_create_subscription_conflict_uses_body(client, templates, namespace, raw_result) -> None:
    topic = Topic(name="orders", namespace=namespace)
    url = f"{_base(namespace)}/persistent/public/default/orders/subscription/audit"
    client.route("PUT", url, raw_result(b'{"reason":"Subscription already exists for topic"}', status=409))
    service = TopicService(client, templates)

    outcome = service.create_subscription(topic, "audit")

    assert outcome.kind is StatusKind.CONFLICT
    assert outcome.description == "Subscription already exists for topic"


def test_delete_subscription_with_consumers(client, templates, namespace, raw_result) -> None:
    topic = Topic(name="orders", namespace=namespace)
    url = f"{_base(namespace)}/persistent/public/default/orders/subscription/audit"
    client.route("DELETE", url, raw_result(status=412))
    service = TopicService(client, templates)

    outcome = service.delete_subscription(topic, "audit")

    assert outcome.kind is StatusKind.PRECONDITION_FAILED
    assert outcome.description == "Subscription has active consumers."


def test_overview_lists_producers_and_subscriptions(client, templates, namespace, json_result) -> None:
    topic = Topic(name="orders", namespace=namespace)
    client.route("GET", f"{_base(namespace)}/persistent/public/default/orders/stats", json_result(
        {
            "publishers": [{"producerName": "p1", "address": "/10.0.0.1:5000", "msgRateIn": 1.5}],
            "subscriptions": {"audit": {"type": "Shared", "msgBacklog": 12, "consumers": [{}, {}]}},
        }
    ))
    service = TopicService(client, templates)

    overview = service.overview(topic)

    assert overview.producers[0].name == "p1"
    assert overview.producers[0].msg_rate_in == 1.5
    assert overview.subscriptions[0].name == "audit"
    assert (overview.subscriptions[0].msg_backlog, overview.subscriptions[0].consumers) == (12, 2)


def test_cursor_lookup(client, templates, namespace, json_result) -> None:
    topic = Topic(name="orders", namespace=namespace)
    client.route("GET", f"{_base(namespace)}/persistent/public/default/orders/internalStats", json_result(
        {
            "cursors": {
                "audit": {
                    "markDeletePosition": "7:40",
                    "readPosition": "7:41",
                    "waitingReadOp": True,
                    "pendingReadOps": 0,
                    "messagesConsumedCounter": 41,
                    "state": "Open",
                }
            }
        }
    ))
    service = CursorService(client, templates)

    cursor = service.find(topic, -1, "audit")

    assert cursor is not None
    assert (cursor.mark_delete_position, cursor.read_position) == ("7:40", "7:41")
    assert cursor.waiting_read_op is True
    assert cursor.messages_consumed_counter == 41
    assert service.find(topic, -1, "missing") is None
