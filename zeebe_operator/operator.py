"""
Zeebe Operator — kopf handlers for ZeebeCluster resources.

Architecture:
  ZeebeCluster CRD → kopf (per-object serialization, retries) → Reconciler
    1. Finalizer attach
    2. Create cluster in Camunda Cloud (unless owner is the external tag)
    3. Drift sync from Camunda Cloud into spec
    4. Register the status poller for the cluster id

  Handlers:
    - on.resume / on.create / on.update → reconcile (status-only changes
      are not in kopf's diff, so poller writes never re-trigger it)
    - on.delete  → reconcile: delete cluster in Camunda Cloud → drop finalizer
    - timer      → periodic resync
    - timer      → relay synthetic events (HTTP API, console webhook)
    - daemon     → status poller ticks → status.clusterStatus

kopf's finalizer is the operator's own token, so the record stays blocked
until the reconciler has deleted the remote cluster. Every failure becomes a
kopf.TemporaryError whose delay doubles per retry up to RETRY_MAX_DELAY.
"""

import asyncio
import logging

import kopf

from zeebe_operator import metrics
from zeebe_operator.config import settings as _settings
from zeebe_operator.errors import RetryableError
from zeebe_operator.events import EventBridge
from zeebe_operator.models import RecordKey
from zeebe_operator.poller import PollerRegistry
from zeebe_operator.reconciler import Reconciler
from zeebe_operator.services.camunda_cloud import CamundaCloudClient
from zeebe_operator.services.record_store import KubernetesRecordStore

logger = logging.getLogger("zeebe-operator")

CRD = (_settings.CRD_GROUP, _settings.CRD_VERSION, _settings.CRD_PLURAL)


def retry_delay(retry: int) -> float:
    """Capped exponential delay for the given kopf retry number (0 on the first failure)."""
    return min(_settings.RETRY_BASE_DELAY * (2 ** retry), _settings.RETRY_MAX_DELAY)


def run_reconcile(reconciler: Reconciler, key: RecordKey, retry: int = 0, trigger: str = "change"):
    """Reconcile key and hand every failure to kopf as a TemporaryError."""
    try:
        outcome = reconciler.reconcile(key)
    except RetryableError as e:
        delay = retry_delay(retry)
        metrics.RECONCILE_ERRORS.labels(error=type(e).__name__).inc()
        logger.warning(f"[{key}] reconcile ({trigger}) failed, retrying in {delay:.0f}s: {e}")
        raise kopf.TemporaryError(f"{type(e).__name__}: {e}", delay=delay) from e
    except Exception as e:
        delay = retry_delay(retry)
        metrics.RECONCILE_ERRORS.labels(error=type(e).__name__).inc()
        logger.error(f"[{key}] reconcile ({trigger}) crashed, retrying in {delay:.0f}s: {e}", exc_info=True)
        raise kopf.TemporaryError(f"Unexpected {type(e).__name__}: {e}", delay=delay) from e
    logger.info(f"[{key}] reconciled ({trigger}): {outcome.value}")
    return outcome


# ---------------------------------------------------------------------------
# Kopf operator settings
# ---------------------------------------------------------------------------

@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, memo: kopf.Memo, **kwargs):
    settings.posting.enabled = True
    settings.persistence.finalizer = _settings.FINALIZER
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(
        prefix=_settings.PROGRESS_PREFIX
    )
    settings.execution.max_workers = _settings.MAX_CONCURRENT_RECONCILES

    store = KubernetesRecordStore()
    cloud = CamundaCloudClient(
        _settings.CLOUD_API_URL,
        token=_settings.CLOUD_API_TOKEN,
        timeout=_settings.REMOTE_TIMEOUT,
    )
    pollers = PollerRegistry(store, cloud, interval=_settings.POLL_INTERVAL)
    bridge = EventBridge()

    memo.cloud = cloud
    memo.pollers = pollers
    memo.bridge = bridge
    memo.reconciler = Reconciler(
        store, cloud, pollers,
        finalizer=_settings.FINALIZER,
        external_owner=_settings.EXTERNAL_OWNER,
    )
    memo.api_server = None
    if _settings.API_ENABLED:
        from zeebe_operator.api.main import create_app, serve_in_background
        memo.api_server = serve_in_background(create_app(store, bridge, pollers))

    logger.info(
        f"Zeebe Operator started (max_workers={_settings.MAX_CONCURRENT_RECONCILES}, "
        f"poll_interval={_settings.POLL_INTERVAL}s, cloud={_settings.CLOUD_API_URL})"
    )


# ---------------------------------------------------------------------------
# CREATE / RESUME / UPDATE — the reconciliation loop
# ---------------------------------------------------------------------------

@kopf.on.resume(*CRD)
@kopf.on.create(*CRD)
@kopf.on.update(*CRD)
def reconcile_cluster(namespace, name, retry, memo: kopf.Memo, reason=None, **kwargs):
    run_reconcile(memo.reconciler, RecordKey(namespace, name), retry, trigger=str(reason or "change"))


# ---------------------------------------------------------------------------
# DELETE — remote cleanup before the finalizer goes
# ---------------------------------------------------------------------------

@kopf.on.delete(*CRD)
def finalize_cluster(namespace, name, retry, memo: kopf.Memo, **kwargs):
    key = RecordKey(namespace, name)
    run_reconcile(memo.reconciler, key, retry, trigger="delete")
    memo.bridge.discard(key)


# ---------------------------------------------------------------------------
# Timers — periodic re-check and synthetic events
# ---------------------------------------------------------------------------

@kopf.timer(*CRD, interval=_settings.RESYNC_INTERVAL, initial_delay=_settings.RESYNC_INTERVAL)
def resync_cluster(namespace, name, retry, memo: kopf.Memo, **kwargs):
    run_reconcile(memo.reconciler, RecordKey(namespace, name), retry, trigger="resync")


@kopf.timer(*CRD, interval=_settings.EVENT_RELAY_INTERVAL)
def relay_synthetic_events(namespace, name, retry, memo: kopf.Memo, **kwargs):
    """Reconcile once for every batch of events injected since the last run."""
    key = RecordKey(namespace, name)
    events = memo.bridge.take(key)
    if not events and not retry:
        return
    if events:
        reasons = ", ".join(f"{e.source}: {e.reason or '-'}" for e in events)
        logger.info(f"[{key}] {len(events)} synthetic event(s) ({reasons})")
    run_reconcile(memo.reconciler, key, retry, trigger="synthetic")


# ---------------------------------------------------------------------------
# Daemon — status poller, stopped by kopf on deletion or shutdown
# ---------------------------------------------------------------------------

@kopf.daemon(*CRD, cancellation_timeout=_settings.REMOTE_TIMEOUT * 2)
async def poll_cluster_status(namespace, name, stopped, memo: kopf.Memo, **kwargs):
    key = RecordKey(namespace, name)
    pollers: PollerRegistry = memo.pollers
    try:
        while not await stopped.wait(pollers.interval):
            await asyncio.to_thread(pollers.tick, key)
    finally:
        pollers.release(key)


@kopf.on.cleanup()
def shutdown(memo: kopf.Memo, **kwargs):
    logger.info("Zeebe Operator shutting down...")
    memo.pollers.stop_all()
    if memo.api_server is not None:
        memo.api_server.should_exit = True
    memo.cloud.close()
