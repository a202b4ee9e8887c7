"""
Shared fakes and fixtures.

FakeRecordStore behaves like the API server for the parts the operator relies
on: resourceVersion checks, spec vs. status endpoints, and erasure of a record
once it is being deleted and has no finalizers left.
"""
import copy
import threading

import pytest

from zeebe_operator.errors import (
    CloudClientError,
    ClusterNotFoundError,
    ConflictError,
    RecordGoneError,
)
from zeebe_operator.models import (
    CLUSTER_NOT_FOUND,
    ClusterDefinition,
    ClusterStatus,
    RecordKey,
    ZeebeCluster,
)
from zeebe_operator.poller import PollerRegistry

FINALIZER = "cleanup"


class FakeRecordStore:
    def __init__(self):
        self._objects = {}
        self._lock = threading.Lock()
        self.spec_writes = 0
        self.status_writes = 0
        self.erased = []
        self.conflict_next_update = False

    def add(self, name, namespace="default", spec=None, finalizers=None,
            deletion_timestamp=None, cluster_status=None):
        metadata = {
            "name": name,
            "namespace": namespace,
            "resourceVersion": "1",
            "generation": 1,
            "finalizers": list(finalizers or []),
        }
        if deletion_timestamp:
            metadata["deletionTimestamp"] = deletion_timestamp
        status = {}
        if cluster_status is not None:
            status["clusterStatus"] = cluster_status.model_dump()
        obj = {
            "apiVersion": "zeebe.io.zeebe/v1",
            "kind": "ZeebeCluster",
            "metadata": metadata,
            "spec": dict(spec or {}),
            "status": status,
        }
        key = RecordKey(namespace, name)
        self._objects[key] = obj
        return key

    def get(self, key):
        with self._lock:
            obj = self._objects.get(key)
            return ZeebeCluster.from_object(copy.deepcopy(obj)) if obj else None

    def list(self):
        with self._lock:
            return [ZeebeCluster.from_object(copy.deepcopy(o)) for o in self._objects.values()]

    def _check(self, record):
        current = self._objects.get(record.key)
        if current is None:
            raise RecordGoneError(f"{record.key} gone")
        if current["metadata"]["resourceVersion"] != record.metadata.resourceVersion:
            raise ConflictError(f"{record.key} stale resourceVersion")
        return current

    @staticmethod
    def _bump(obj):
        obj["metadata"]["resourceVersion"] = str(int(obj["metadata"]["resourceVersion"]) + 1)

    def update(self, record):
        with self._lock:
            if self.conflict_next_update:
                self.conflict_next_update = False
                raise ConflictError(f"{record.key} conflict")
            current = self._check(record)
            body = record.to_object()
            if body["spec"] != current["spec"]:
                current["metadata"]["generation"] += 1
            current["spec"] = body["spec"]
            current["metadata"]["finalizers"] = list(record.metadata.finalizers)
            self._bump(current)
            self.spec_writes += 1
            if current["metadata"].get("deletionTimestamp") and not current["metadata"]["finalizers"]:
                del self._objects[record.key]
                self.erased.append(record.key)
            return ZeebeCluster.from_object(copy.deepcopy(current))

    def update_status(self, record):
        with self._lock:
            current = self._check(record)
            current["status"] = record.to_object().get("status", {})
            self._bump(current)
            self.status_writes += 1
            return ZeebeCluster.from_object(copy.deepcopy(current))

    def touch(self, key):
        """Simulate an outside writer bumping the resourceVersion."""
        self._bump(self._objects[key])


class FakeCloudClient:
    def __init__(self):
        self.clusters = {}
        self.statuses = {}
        self.create_calls = []
        self.delete_calls = []
        self.status_calls = 0
        self.create_error = None
        self.delete_error = None
        self.status_error = None
        self.lookup_error = None
        self.status_sequence = []
        self._ids = iter(["abc-123", "def-456", "ghi-789"])

    def add_cluster(self, cluster_id, name, plan="p1", channel="stable",
                    generation="8.5", region="europe-west1", ready="Healthy"):
        self.clusters[cluster_id] = ClusterDefinition(
            clusterId=cluster_id, name=name, planName=plan, channelName=channel,
            generationName=generation, region=region,
        )
        self.statuses[cluster_id] = ClusterStatus(
            ready=ready, planName=plan, channelName=channel,
            generationName=generation, region=region,
        )

    def create_cluster(self, name, plan_name, channel_name, generation_name, region):
        self.create_calls.append((name, plan_name, channel_name, generation_name, region))
        if self.create_error:
            raise self.create_error
        cluster_id = next(self._ids)
        self.add_cluster(cluster_id, name, plan_name, channel_name, generation_name, region,
                         ready="Creating")
        return cluster_id

    def get_cluster_status(self, cluster_id):
        self.status_calls += 1
        if self.status_error:
            raise self.status_error
        if self.status_sequence:
            return self.status_sequence.pop(0)
        return self.statuses.get(cluster_id, ClusterStatus(ready=CLUSTER_NOT_FOUND))

    def find_cluster_by_name(self, name, cluster_id=""):
        if self.lookup_error:
            raise self.lookup_error
        matches = [d for d in self.clusters.values() if d.name == name]
        for definition in matches:
            if definition.clusterId == cluster_id:
                return definition
        return matches[0] if matches else None

    def get_cluster_by_name(self, name, cluster_id=""):
        definition = self.find_cluster_by_name(name, cluster_id)
        if definition is None:
            raise ClusterNotFoundError(name)
        return definition

    def delete_cluster(self, cluster_id):
        self.delete_calls.append(cluster_id)
        if self.delete_error:
            raise self.delete_error
        existed = self.clusters.pop(cluster_id, None) is not None
        self.statuses.pop(cluster_id, None)
        return existed


@pytest.fixture
def store():
    return FakeRecordStore()


@pytest.fixture
def cloud():
    return FakeCloudClient()


@pytest.fixture
def pollers(store, cloud):
    registry = PollerRegistry(store, cloud, interval=3600)
    yield registry
    registry.stop_all()


@pytest.fixture
def network_error():
    return CloudClientError("connection reset by peer")
