"""Polling query sessions against the Pulsar SQL (Presto) worker."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from .base import AdminService, as_dict, as_int, as_list
from .http import load_json
from .models import Column, QueryState, Statement, Topic
from .status import HttpStatusCode, StatusKind

logger = logging.getLogger(__name__)

CELL_SEPARATOR = "\t"
DEFAULT_MAX_POLLS = 1000


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def query_text(topic: Topic, predicate: str = "") -> str:
    namespace = topic.namespace
    names = (namespace.tenant.name, namespace.name, topic.name)
    query = "select * from pulsar." + ".".join(_quote_identifier(name) for name in names)
    if predicate:
        query += f" where {predicate}"
    return query


def format_cell(value: Any) -> str:
    """Render one result cell the way the console shows it."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if value is None:
        return ""
    return "undefined"


def format_row(cells: Any) -> str:
    return CELL_SEPARATOR.join(format_cell(cell) for cell in as_list(cells))


class PrestoQueryService(AdminService):
    def submit(self, topic: Topic, predicate: str = "") -> Statement:
        statement = Statement(topic=topic, predicate=predicate)
        presto_url = topic.cluster.presto_url
        if not presto_url:
            logger.info("Cluster %s has no query endpoint configured", topic.cluster.name)
            return statement
        url = self._url(presto_url, "query_statement")
        outcome, result = self._call("submit_query", "POST", url, query_text(topic, predicate), "text/plain")
        if outcome.succeeded:
            self._apply(statement, load_json(result, {}, dict))
        return statement

    def advance(self, statement: Statement) -> Optional[HttpStatusCode]:
        """Fetch the next page of ``statement`` and merge it in place; None when there is nothing to fetch."""
        if statement.terminal or not statement.next_uri:
            return None
        outcome, result = self._call("advance_query", "GET", statement.next_uri)
        if outcome.succeeded:
            payload = load_json(result, {}, dict)
            self._apply(statement, payload)
            statement.cancel_uri = str(payload.get("partialCancelUri") or "")
            if not statement.columns:
                statement.columns = [
                    Column(name=str(column.get("name", "")), type=str(column.get("type", "")))
                    for column in map(as_dict, as_list(payload.get("columns")))
                ]
            statement.rows.extend(format_row(row) for row in as_list(payload.get("data")))
        return outcome

    def cancel(self, statement: Statement) -> Optional[HttpStatusCode]:
        if not statement.cancel_uri:
            return None
        outcome = self._command("cancel_query", "DELETE", statement.cancel_uri)
        # the statement stays pollable unless the server confirms the query is gone
        if outcome.succeeded or outcome.kind is StatusKind.NOT_FOUND:
            statement.state = QueryState.CANCELLED
            statement.next_uri = ""
        return outcome

    def run(self, topic: Topic, predicate: str = "", max_polls: int = DEFAULT_MAX_POLLS) -> Statement:
        """Submit and keep advancing until the statement is terminal or stops advancing."""
        statement = self.submit(topic, predicate)
        polls = 0
        while not statement.terminal and statement.next_uri and polls < max_polls:
            outcome = self.advance(statement)
            polls += 1
            if outcome is None or not outcome.succeeded:
                break
        if not statement.terminal:
            logger.info("Query %s left in state %s after %s polls", statement.id, statement.state.value, polls)
        return statement

    @staticmethod
    def _apply(statement: Statement, payload: Mapping[str, Any]) -> None:
        stats = as_dict(payload.get("stats"))
        statement.id = str(payload.get("id") or statement.id)
        statement.next_uri = str(payload.get("nextUri") or "")
        statement.state = QueryState.parse(stats.get("state"))
        statement.elapsed_millis = as_int(stats.get("elapsedTimeMillis"))
        statement.processed_rows = as_int(stats.get("processedRows"))
        statement.processed_bytes = as_int(stats.get("processedBytes"))
        if statement.state is QueryState.FAILED:
            statement.error = str(as_dict(payload.get("error")).get("message", ""))
            logger.debug("Query %s failed: %s", statement.id, statement.error)
