"""
Reconciler — drives one ZeebeCluster record towards its Camunda Cloud cluster.

Reconcile loop (one invocation per record key, never concurrent per key):
  1. Fetch the record      (gone → no-op)
  2. Deletion requested    → delete remote cluster, drop finalizer, stop
  3. Ensure finalizer      (persist, keep going)
  4. Create remote cluster (empty clusterId, not externally owned)
  5. Drift sync            (console is the source of truth for plan/channel/
                            generation/region once the cluster exists)
  6. Ensure status poller  (at most one per cluster id)

Phases are implied by finalizers, deletionTimestamp and spec.clusterId;
there is no stored phase field. Every failure is raised to the kopf handler,
which turns it into a TemporaryError with backoff. The reconciler never
writes status.
"""

import logging
import threading
from typing import Dict

from zeebe_operator import metrics
from zeebe_operator.activity import publish_event
from zeebe_operator.config import settings
from zeebe_operator.models import (
    CLUSTER_NOT_FOUND,
    DRIFT_FIELDS,
    RecordKey,
    ReconcileOutcome,
    ZeebeCluster,
)

logger = logging.getLogger("zeebe-operator.reconciler")


class Reconciler:
    def __init__(self, store, cloud, pollers,
                 finalizer: str = settings.FINALIZER,
                 external_owner: str = settings.EXTERNAL_OWNER):
        self.store = store
        self.cloud = cloud
        self.pollers = pollers
        self.finalizer = finalizer
        self.external_owner = external_owner
        # kopf serializes change handlers per object, but timers run beside them
        self._locks: Dict[RecordKey, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, key: RecordKey) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(key, threading.Lock())

    def reconcile(self, key: RecordKey) -> ReconcileOutcome:
        """
        Reconcile one record. Idempotent: safe to call any number of times;
        repeated calls with no outside change converge to SYNCED without
        further writes or remote mutations.
        """
        with self._lock_for(key):
            outcome = self._reconcile(key)
        if outcome in (ReconcileOutcome.NOT_FOUND, ReconcileOutcome.FINALIZED):
            with self._locks_guard:
                self._locks.pop(key, None)
        metrics.RECONCILE_TOTAL.labels(outcome=outcome.value).inc()
        return outcome

    def _reconcile(self, key: RecordKey) -> ReconcileOutcome:
        record = self.store.get(key)
        if record is None:
            logger.info(f"[{key}] record not found, nothing to reconcile")
            return ReconcileOutcome.NOT_FOUND

        if record.deletion_requested:
            return self._finalize(record)

        if not record.has_finalizer(self.finalizer):
            logger.info(f"[{key}] adding finalizer {self.finalizer}")
            record.metadata.finalizers.append(self.finalizer)
            record = self.store.update(record)

        if not record.spec.clusterId:
            if record.spec.owner == self.external_owner:
                logger.info(f"[{key}] owned by '{record.spec.owner}' and has no clusterId, not creating")
                return ReconcileOutcome.UNMANAGED
            record = self._create(record)

        record = self._sync_drift(record)

        cluster_id = record.spec.clusterId
        logger.info(f"[{key}] ensuring status poller for {cluster_id} (track={record.spec.track})")
        self.pollers.ensure(cluster_id, key)
        return ReconcileOutcome.SYNCED

    # ------------------------------------------------------------------
    # phases
    # ------------------------------------------------------------------

    def _finalize(self, record: ZeebeCluster) -> ReconcileOutcome:
        """Delete the remote cluster, then release the record."""
        key = record.key
        if not record.has_finalizer(self.finalizer):
            logger.debug(f"[{key}] being deleted, finalizer already removed")
            return ReconcileOutcome.DELETING

        cluster_id = record.spec.clusterId
        if cluster_id:
            self.pollers.stop(cluster_id)

        if not cluster_id:
            logger.info(f"[{key}] no remote cluster was ever created, nothing to delete")
        elif record.ready == CLUSTER_NOT_FOUND:
            logger.info(f"[{key}] cluster {cluster_id} in '{CLUSTER_NOT_FOUND}' state, nothing to delete remotely")
        else:
            logger.info(f"[{key}] deleting cluster {cluster_id} in Camunda Cloud")
            if self.cloud.delete_cluster(cluster_id):
                publish_event(record.name, "CLUSTER_DELETED", f"Cluster {cluster_id} deleted")
            else:
                logger.info(f"[{key}] cluster {cluster_id} was already gone")

        record.metadata.finalizers = [f for f in record.metadata.finalizers if f != self.finalizer]
        self.store.update(record)
        logger.info(f"[{key}] finalizer removed, record can be erased")
        return ReconcileOutcome.FINALIZED

    def _create(self, record: ZeebeCluster) -> ZeebeCluster:
        key = record.key
        spec = record.spec
        logger.info(
            f"[{key}] creating cluster (plan={spec.planName}, channel={spec.channelName}, "
            f"generation={spec.generationName}, region={spec.region})"
        )
        cluster_id = self.cloud.create_cluster(
            record.name, spec.planName, spec.channelName, spec.generationName, spec.region
        )
        publish_event(record.name, "CLUSTER_CREATED", f"Cluster {cluster_id} created")

        record.spec.clusterId = cluster_id
        record = self.store.update(record)
        logger.info(f"[{key}] clusterId set to {cluster_id}")
        return record

    def _sync_drift(self, record: ZeebeCluster) -> ZeebeCluster:
        key = record.key
        remote = self.cloud.get_cluster_by_name(record.name, cluster_id=record.spec.clusterId)
        if remote.clusterId and remote.clusterId != record.spec.clusterId:
            # Console names are global; this one belongs to another record
            logger.warning(
                f"[{key}] cluster named {record.name} has id {remote.clusterId}, "
                f"record tracks {record.spec.clusterId}; drift sync skipped"
            )
            return record

        drift = []
        for field in DRIFT_FIELDS:
            local_value = getattr(record.spec, field)
            remote_value = getattr(remote, field)
            if local_value != remote_value:
                setattr(record.spec, field, remote_value)
                drift.append(f"{field}: '{local_value}' -> '{remote_value}'")

        if not drift:
            return record

        logger.info(f"[{key}] drift corrected from Camunda Cloud: {'; '.join(drift)}")
        record = self.store.update(record)
        publish_event(record.name, "DRIFT_CORRECTED", "; ".join(drift))
        return record
