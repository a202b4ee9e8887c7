"""
Record store — ZeebeCluster custom resources through the Kubernetes API.

Design principles:
  - Optimistic concurrency: every write carries the resourceVersion it read
  - Spec/finalizer writes and status writes go to separate endpoints
    (main resource vs. /status subresource)
  - Clean error handling: translates K8s API exceptions to domain errors
"""

import logging
from typing import Optional

from kubernetes import client, config
from kubernetes.client import ApiException

from zeebe_operator.config import settings
from zeebe_operator.errors import ConflictError, RecordGoneError, RecordStoreError
from zeebe_operator.models import RecordKey, ZeebeCluster

logger = logging.getLogger("zeebe-operator.store")

_k8s_loaded = False


def _ensure_k8s():
    """Load Kubernetes config exactly once."""
    global _k8s_loaded
    if _k8s_loaded:
        return
    if settings.IN_CLUSTER:
        config.load_incluster_config()
    else:
        config.load_kube_config(config_file=settings.KUBECONFIG or None)
    _k8s_loaded = True


def _translate(e: ApiException, action: str, key: RecordKey) -> RecordStoreError:
    if e.status == 409:
        return ConflictError(f"{action} {key}: conflict ({e.reason})")
    if e.status == 404:
        return RecordGoneError(f"{action} {key}: record no longer exists")
    return RecordStoreError(f"{action} {key} failed (HTTP {e.status}): {e.reason}")


class KubernetesRecordStore:
    def __init__(
        self,
        api: Optional[client.CustomObjectsApi] = None,
        group: str = settings.CRD_GROUP,
        version: str = settings.CRD_VERSION,
        plural: str = settings.CRD_PLURAL,
        namespace: str = settings.WATCH_NAMESPACE,
    ):
        if api is None:
            _ensure_k8s()
            api = client.CustomObjectsApi()
        self.api = api
        self.group = group
        self.version = version
        self.plural = plural
        self.namespace = namespace

    def get(self, key: RecordKey) -> Optional[ZeebeCluster]:
        """Fetch one record; None if it does not exist."""
        try:
            obj = self.api.get_namespaced_custom_object(
                self.group, self.version, key.namespace, self.plural, key.name
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise _translate(e, "get", key) from e
        return ZeebeCluster.from_object(obj)

    def list(self) -> list[ZeebeCluster]:
        try:
            if self.namespace:
                result = self.api.list_namespaced_custom_object(
                    self.group, self.version, self.namespace, self.plural
                )
            else:
                result = self.api.list_cluster_custom_object(
                    self.group, self.version, self.plural
                )
        except ApiException as e:
            raise RecordStoreError(f"list {self.plural} failed (HTTP {e.status}): {e.reason}") from e
        return [ZeebeCluster.from_object(item) for item in result.get("items", [])]

    def update(self, record: ZeebeCluster) -> ZeebeCluster:
        """Persist spec and finalizers. Status in the body is ignored by the API server."""
        key = record.key
        try:
            obj = self.api.replace_namespaced_custom_object(
                self.group, self.version, key.namespace, self.plural, key.name,
                record.to_object(),
            )
        except ApiException as e:
            raise _translate(e, "update", key) from e
        logger.debug(f"Record {key} updated (resourceVersion={obj['metadata'].get('resourceVersion')})")
        return ZeebeCluster.from_object(obj)

    def update_status(self, record: ZeebeCluster) -> ZeebeCluster:
        """Persist the status subresource only."""
        key = record.key
        try:
            obj = self.api.replace_namespaced_custom_object_status(
                self.group, self.version, key.namespace, self.plural, key.name,
                record.to_object(),
            )
        except ApiException as e:
            raise _translate(e, "update status of", key) from e
        return ZeebeCluster.from_object(obj)
