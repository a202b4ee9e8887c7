"""
Status pollers — one per tracked cluster id, ticked by the record's kopf daemon.

The reconciler registers a poller for a cluster id; the daemon kopf runs for
the record calls tick(key) on a fixed interval. Each tick fetches the cluster status from Camunda Cloud and writes it into the
record's status subresource only when it differs from the last persisted
snapshot, so identical ticks never touch the record.

A poller ends when its stop event is set (record deletion), when the daemon's
stopped flag is raised (record gone, operator shutdown), or when the record it
reports into no longer points at its cluster id.
"""

import logging
import threading
from enum import Enum
from typing import Dict, List, Optional

from zeebe_operator import metrics
from zeebe_operator.activity import publish_event
from zeebe_operator.errors import CloudClientError, ConflictError, RecordStoreError
from zeebe_operator.models import RecordKey

logger = logging.getLogger("zeebe-operator.poller")


class TickResult(str, Enum):
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FETCH_FAILED = "fetch_failed"
    CONFLICT = "conflict"
    STOPPED = "stopped"


class StatusPoller:
    def __init__(self, cluster_id: str, key: RecordKey, store, cloud):
        self.cluster_id = cluster_id
        self.key = key
        self.store = store
        self.cloud = cloud
        self.stop_event = threading.Event()

    def tick(self) -> TickResult:
        """Run one poll cycle."""
        if self.stop_event.is_set():
            return TickResult.STOPPED

        try:
            status = self.cloud.get_cluster_status(self.cluster_id)
        except CloudClientError as e:
            logger.warning(f"Poller {self.cluster_id}: fetching cluster status failed: {e}")
            return TickResult.FETCH_FAILED

        try:
            record = self.store.get(self.key)
        except RecordStoreError as e:
            logger.warning(f"Poller {self.cluster_id}: reading record {self.key} failed: {e}")
            return TickResult.FETCH_FAILED

        if record is None or record.deletion_requested or record.spec.clusterId != self.cluster_id:
            logger.info(f"Poller {self.cluster_id}: record {self.key} no longer tracks this cluster")
            self.stop_event.set()
            return TickResult.STOPPED

        previous = record.status.clusterStatus
        if previous == status:
            logger.debug(f"Poller {self.cluster_id}: status unchanged (ready={status.ready})")
            return TickResult.UNCHANGED

        before = previous.ready if previous else ""
        record.status.clusterStatus = status
        try:
            self.store.update_status(record)
        except ConflictError as e:
            logger.warning(f"Poller {self.cluster_id}: status write conflicted, retrying next tick: {e}")
            return TickResult.CONFLICT
        except RecordStoreError as e:
            logger.warning(f"Poller {self.cluster_id}: status write failed: {e}")
            return TickResult.FETCH_FAILED

        logger.info(
            f"Cluster {record.name} ({self.cluster_id}) status changed: "
            f"ready '{before}' -> '{status.ready}'"
        )
        metrics.STATUS_UPDATES.inc()
        publish_event(record.name, "STATUS_CHANGED",
                      f"ready '{before}' -> '{status.ready}'", status.ready)
        return TickResult.UPDATED


class PollerRegistry:
    """Registry of pollers, keyed by cluster id.

    ensure() is an atomic check-and-insert, so at most one poller exists per
    cluster id no matter how many reconciles ask for it.
    """

    def __init__(self, store, cloud, interval: float = 10.0):
        self.store = store
        self.cloud = cloud
        self.interval = interval
        self._lock = threading.Lock()
        self._pollers: Dict[str, StatusPoller] = {}

    def ensure(self, cluster_id: str, key: RecordKey) -> bool:
        """Register a poller for cluster_id unless one exists. Returns True if registered."""
        with self._lock:
            if cluster_id in self._pollers:
                return False
            self._pollers[cluster_id] = StatusPoller(cluster_id, key, self.store, self.cloud)
            metrics.ACTIVE_POLLERS.set(len(self._pollers))
        logger.info(f"Registered status poller for cluster {cluster_id} ({key})")
        return True

    def tick(self, key: RecordKey) -> Optional[TickResult]:
        """Run one poll cycle for the poller reporting into key, if any."""
        poller = self.for_key(key)
        if poller is None:
            return None
        try:
            result = poller.tick()
        except Exception as e:
            logger.error(f"Poller {poller.cluster_id}: unexpected error: {e}", exc_info=True)
            return None
        if result == TickResult.STOPPED:
            self._deregister(poller)
        return result

    def _deregister(self, poller: StatusPoller) -> None:
        with self._lock:
            # A replacement may already be registered under the same id
            if self._pollers.get(poller.cluster_id) is poller:
                del self._pollers[poller.cluster_id]
                metrics.ACTIVE_POLLERS.set(len(self._pollers))
                logger.info(f"Status poller for cluster {poller.cluster_id} ended")

    def release(self, key: RecordKey) -> None:
        """Drop every poller reporting into key (its daemon has exited)."""
        with self._lock:
            for cluster_id in [c for c, p in self._pollers.items() if p.key == key]:
                self._pollers.pop(cluster_id).stop_event.set()
            metrics.ACTIVE_POLLERS.set(len(self._pollers))

    def stop(self, cluster_id: str) -> bool:
        """Cancel and deregister the poller for cluster_id. Returns True if one existed."""
        with self._lock:
            poller = self._pollers.pop(cluster_id, None)
            metrics.ACTIVE_POLLERS.set(len(self._pollers))
        if poller is None:
            return False
        poller.stop_event.set()
        logger.info(f"Stopped status poller for cluster {cluster_id}")
        return True

    def stop_all(self) -> None:
        for cluster_id in self.active_ids():
            self.stop(cluster_id)

    def is_running(self, cluster_id: str) -> bool:
        with self._lock:
            return cluster_id in self._pollers

    def active_ids(self) -> List[str]:
        with self._lock:
            return list(self._pollers)

    def for_key(self, key: RecordKey) -> Optional[StatusPoller]:
        with self._lock:
            return next((p for p in self._pollers.values() if p.key == key), None)

    def key_for(self, cluster_id: str) -> Optional[RecordKey]:
        with self._lock:
            poller = self._pollers.get(cluster_id)
            return poller.key if poller else None
