"""Pulsar IO source connector management."""
from __future__ import annotations

from .connectors import ConnectorService
from .models import SourceInfo


class SourceService(ConnectorService):
    kind = "source"
    info_type = SourceInfo
    received_field = "numReceivedFromSource"
    written_field = "numWritten"
    errors_field = "numSourceExceptions"
