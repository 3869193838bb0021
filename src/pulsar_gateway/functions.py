"""Pulsar Functions management."""
from __future__ import annotations

from .connectors import ConnectorService
from .models import FunctionInfo


class FunctionService(ConnectorService):
    kind = "function"
    info_type = FunctionInfo
    received_field = "numReceived"
    written_field = "numSuccessfullyProcessed"
    errors_field = "numUserExceptions"
