from __future__ import annotations

import pytest

from pulsar_gateway.http import TOO_MANY_REDIRECTS, TRANSPORT_ERROR
from pulsar_gateway.status import (
    BODY_PLACEHOLDER,
    HttpStatusCode,
    StatusKind,
    classify,
    operations,
    table,
)

ALL_PAIRS = [(operation, code) for operation in operations() for code in table(operation)]


@pytest.mark.parametrize("operation,code", ALL_PAIRS)
def test_documented_codes_map_to_their_kind(operation: str, code: int) -> None:
    expected_kind, _ = table(operation)[code]

    outcome = classify(operation, code, b"server said no")

    assert outcome.kind is expected_kind
    assert outcome.description
    assert outcome.status == code


@pytest.mark.parametrize("operation", operations())
def test_undocumented_codes_are_unclassified(operation: str) -> None:
    for code in (TRANSPORT_ERROR, 418, 599):
        outcome = classify(operation, code)

        assert outcome.kind is StatusKind.UNCLASSIFIED
        assert outcome.description == ""
        assert not outcome.classified
        assert not outcome.succeeded


def test_same_code_means_different_things_per_operation() -> None:
    assert classify("create_tenant", 409).description == "Tenant already exists."
    assert classify("delete_tenant", 409).description == "The tenant still has active namespaces."


def test_body_description_uses_response_text() -> None:
    outcome = classify("create_function", 400, b"Function config is not valid")

    assert outcome.kind is StatusKind.BAD_REQUEST
    assert outcome.description == "Function config is not valid"


def test_body_description_extracts_broker_reason() -> None:
    outcome = classify("create_subscription", 409, b'{"reason": "Subscription sub already exists"}')

    assert outcome.kind is StatusKind.CONFLICT
    assert outcome.description == "Subscription sub already exists"


def test_body_description_falls_back_when_body_empty() -> None:
    outcome = classify("update_sink", 400, b"")

    assert outcome.description == "Invalid request."
    assert outcome.description != BODY_PLACEHOLDER


def test_too_many_redirects_has_its_own_kind() -> None:
    outcome = classify("delete_topic", TOO_MANY_REDIRECTS)

    assert outcome.kind is StatusKind.TOO_MANY_REDIRECTS
    assert outcome.classified
    assert not outcome.succeeded


def test_unknown_operation_is_unclassified() -> None:
    assert classify("no_such_operation", 204).kind is StatusKind.UNCLASSIFIED


def test_success_kinds() -> None:
    assert HttpStatusCode(StatusKind.NO_CONTENT).succeeded
    assert HttpStatusCode(StatusKind.OK).succeeded
    assert not HttpStatusCode(StatusKind.CONFLICT).succeeded


def test_classification_is_deterministic() -> None:
    assert classify("grant_permission", 501) == classify("grant_permission", 501)
    assert classify("grant_permission", 501).description == "Authorization is not enabled."


def test_tables_cover_every_mutating_operation() -> None:
    expected = {
        "create_tenant", "delete_tenant", "create_namespace", "delete_namespace",
        "create_topic", "delete_topic", "create_subscription", "delete_subscription",
        "list_permissions", "grant_permission", "revoke_permission",
        "submit_query", "advance_query", "cancel_query",
    }
    for kind in ("function", "source", "sink"):
        expected.update(f"{action}_{kind}" for action in ("create", "update", "delete", "start", "stop"))

    assert expected <= set(operations())
