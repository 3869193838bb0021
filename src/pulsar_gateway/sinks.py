"""Pulsar IO sink connector management."""
from __future__ import annotations

from .connectors import ConnectorService
from .models import SinkInfo


class SinkService(ConnectorService):
    kind = "sink"
    info_type = SinkInfo
    # the sink status payload reuses the source counter names
    received_field = "numReceivedFromSource"
    written_field = "numWritten"
    errors_field = "numSourceExceptions"
