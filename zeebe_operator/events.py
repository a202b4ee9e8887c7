"""
Synthetic event bridge.

A process-wide channel for "something changed outside the record" signals
(webhooks, manual triggers). Events are held per record key until the
record's relay timer takes them and reconciles the key, so every injected
event leads to at least one later reconcile. Events injected while a
reconcile runs collapse into the next one. No ordering against watch events
is implied.
"""

import logging
import threading
from typing import Dict, List, Optional

from zeebe_operator.models import RecordKey, SyntheticEvent

logger = logging.getLogger("zeebe-operator.events")


class EventBridge:
    def __init__(self):
        self._lock = threading.Lock()
        self._pending: Dict[RecordKey, List[SyntheticEvent]] = {}

    def inject(self, key: RecordKey, reason: str = "", source: str = "manual") -> SyntheticEvent:
        event = SyntheticEvent(namespace=key.namespace, name=key.name, reason=reason, source=source)
        with self._lock:
            self._pending.setdefault(key, []).append(event)
        logger.info(f"Synthetic event for {key} from {source}: {reason or 'no reason given'}")
        return event

    def take(self, key: RecordKey) -> List[SyntheticEvent]:
        """Remove and return every pending event for key."""
        with self._lock:
            return self._pending.pop(key, [])

    def discard(self, key: RecordKey) -> int:
        """Drop pending events for a record that is gone."""
        dropped = len(self.take(key))
        if dropped:
            logger.debug(f"Dropped {dropped} pending event(s) for {key}")
        return dropped

    def pending(self, key: Optional[RecordKey] = None) -> int:
        with self._lock:
            if key is not None:
                return len(self._pending.get(key, []))
            return sum(len(events) for events in self._pending.values())
