"""Subscription cursor lookup from a topic's internal stats."""
from __future__ import annotations

import logging
from typing import Optional

from .base import AdminService, as_dict, as_int
from .models import Cursor, Topic

logger = logging.getLogger(__name__)


class CursorService(AdminService):
    def find(self, topic: Topic, partition: int, name: str) -> Optional[Cursor]:
        data = self._read(self._topic_url("internal_stats", topic, partition=partition), {}, dict)
        cursors = as_dict(data.get("cursors"))
        if name not in cursors:
            logger.debug("No cursor named %s on %s", name, topic.full_name)
            return None
        payload = as_dict(cursors[name])
        return Cursor(
            name=name,
            mark_delete_position=str(payload.get("markDeletePosition", "")),
            read_position=str(payload.get("readPosition", "")),
            waiting_read_op=bool(payload.get("waitingReadOp", False)),
            pending_read_ops=as_int(payload.get("pendingReadOps")),
            messages_consumed_counter=as_int(payload.get("messagesConsumedCounter")),
            state=str(payload.get("state", "")),
            properties=as_dict(payload.get("properties")),
        )
