"""Change notification for connected clients.

Events are invalidation signals: they carry identifiers only, and
subscribers re-read the repository instead of trusting the payload.
Delivery is best-effort and at most once per event per handler.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional

from ..logging import get_logger

logger = get_logger(__name__)


class ChangeKind(Enum):
    """What changed."""

    ASSEMBLY_UPDATED = "assembly_updated"
    ASSEMBLY_STATUS_CHANGED = "assembly_status_changed"
    ASSEMBLY_DELETED = "assembly_deleted"
    ITEM_CREATED = "item_created"
    ITEM_UPDATED = "item_updated"
    ITEM_DELETED = "item_deleted"
    ITEM_STATUS_CHANGED = "item_status_changed"
    BALLOT_CAST = "ballot_cast"


@dataclass
class ChangeEvent:
    """Something changed in an assembly; re-fetch to find out what."""
    kind: ChangeKind
    assembly_id: str
    agenda_item_id: Optional[str] = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def channel(self) -> str:
        """Channel name the event is published on."""
        return f"assembly:{self.assembly_id}"

    def to_dict(self) -> dict:
        """Serialize for the realtime channel."""
        return {
            "kind": self.kind.value,
            "assembly_id": self.assembly_id,
            "agenda_item_id": self.agenda_item_id,
            "occurred_at": self.occurred_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChangeEvent":
        """Parse an event received from the realtime channel."""
        occurred_at = data.get("occurred_at")
        return cls(
            kind=ChangeKind(data["kind"]),
            assembly_id=data["assembly_id"],
            agenda_item_id=data.get("agenda_item_id"),
            occurred_at=(
                datetime.fromisoformat(occurred_at) if occurred_at
                else datetime.now(timezone.utc)
            ),
        )


ChangeHandler = Callable[[ChangeEvent], None]


class ChangeNotifier:
    """Fan-out of change events to subscribers keyed by assembly id.

    Example:
        notifier = ChangeNotifier()

        def refresh(event: ChangeEvent):
            reload_assembly(event.assembly_id)

        notifier.subscribe(assembly_id, refresh)
    """

    def __init__(self):
        self._handlers: Dict[str, List[ChangeHandler]] = {}
        self._global_handlers: List[ChangeHandler] = []
        self._lock = threading.Lock()

    def subscribe(self, assembly_id: str, handler: ChangeHandler) -> ChangeHandler:
        """Receive events for one assembly.

        Returns:
            The handler, for later unsubscribe()
        """
        with self._lock:
            self._handlers.setdefault(assembly_id, []).append(handler)
        return handler

    def subscribe_all(self, handler: ChangeHandler) -> ChangeHandler:
        """Receive events for every assembly."""
        with self._lock:
            self._global_handlers.append(handler)
        return handler

    def unsubscribe(self, handler: ChangeHandler, assembly_id: str = None) -> None:
        """Stop delivering to a handler (for one assembly, or everywhere)."""
        with self._lock:
            if assembly_id is None:
                if handler in self._global_handlers:
                    self._global_handlers.remove(handler)
                keys = list(self._handlers)
            else:
                keys = [assembly_id]
            for key in keys:
                handlers = self._handlers.get(key, [])
                if handler in handlers:
                    handlers.remove(handler)
                if not handlers:
                    self._handlers.pop(key, None)

    def subscriber_count(self, assembly_id: str = None) -> int:
        """Number of handlers that would receive an event for assembly_id."""
        with self._lock:
            count = len(self._global_handlers)
            if assembly_id is not None:
                count += len(self._handlers.get(assembly_id, []))
            return count

    def publish(self, event: ChangeEvent) -> int:
        """Deliver an event to its subscribers.

        A failing handler is logged and skipped; the others still run.

        Returns:
            Number of handlers that completed without error
        """
        with self._lock:
            handlers = list(self._handlers.get(event.assembly_id, []))
            handlers.extend(self._global_handlers)

        delivered = 0
        for handler in handlers:
            try:
                handler(event)
                delivered += 1
            except Exception as e:
                logger.error(f"Change handler error for {event.kind.value}: {e}")
        logger.debug(f"Published {event.kind.value} for {event.assembly_id} to {delivered} handler(s)")
        return delivered
