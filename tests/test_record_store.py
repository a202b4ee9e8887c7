from unittest.mock import MagicMock

import pytest
from kubernetes.client import ApiException

from zeebe_operator.errors import ConflictError, RecordGoneError, RecordStoreError
from zeebe_operator.models import ClusterStatus, RecordKey
from zeebe_operator.services.record_store import KubernetesRecordStore

KEY = RecordKey("team-a", "c1")


def raw_cluster(resource_version="7", **spec):
    return {
        "apiVersion": "zeebe.io.zeebe/v1",
        "kind": "ZeebeCluster",
        "metadata": {
            "name": "c1", "namespace": "team-a", "resourceVersion": resource_version,
            "generation": 3, "finalizers": ["zeebecluster.cloud.camunda.com"],
            "uid": "0b1c", "creationTimestamp": "2026-10-01T00:00:00Z",
        },
        "spec": {"owner": "", "planName": "Development", "clusterId": "abc-123", **spec},
        "status": {"clusterStatus": {"ready": "Healthy"}},
    }


@pytest.fixture
def api():
    return MagicMock()


@pytest.fixture
def store(api):
    return KubernetesRecordStore(api=api, group="zeebe.io.zeebe", version="v1",
                                 plural="zeebeclusters", namespace="")


def test_get_parses_record(store, api):
    api.get_namespaced_custom_object.return_value = raw_cluster()

    record = store.get(KEY)

    api.get_namespaced_custom_object.assert_called_once_with(
        "zeebe.io.zeebe", "v1", "team-a", "zeebeclusters", "c1"
    )
    assert record.key == KEY
    assert record.spec.clusterId == "abc-123"
    assert record.ready == "Healthy"
    assert not record.deletion_requested


def test_get_missing_returns_none(store, api):
    api.get_namespaced_custom_object.side_effect = ApiException(status=404, reason="Not Found")

    assert store.get(KEY) is None


def test_get_other_error_raises(store, api):
    api.get_namespaced_custom_object.side_effect = ApiException(status=500, reason="boom")

    with pytest.raises(RecordStoreError):
        store.get(KEY)


def test_update_sends_resource_version_and_keeps_unknown_metadata(store, api):
    api.get_namespaced_custom_object.return_value = raw_cluster()
    api.replace_namespaced_custom_object.return_value = raw_cluster(resource_version="8")
    record = store.get(KEY)
    record.spec.planName = "Production S"

    updated = store.update(record)

    args = api.replace_namespaced_custom_object.call_args.args
    body = args[5]
    assert args[:5] == ("zeebe.io.zeebe", "v1", "team-a", "zeebeclusters", "c1")
    assert body["metadata"]["resourceVersion"] == "7"
    assert body["metadata"]["uid"] == "0b1c"
    assert body["spec"]["planName"] == "Production S"
    assert "deletionTimestamp" not in body["metadata"]
    assert updated.metadata.resourceVersion == "8"


def test_update_conflict(store, api):
    api.get_namespaced_custom_object.return_value = raw_cluster()
    api.replace_namespaced_custom_object.side_effect = ApiException(status=409, reason="Conflict")

    with pytest.raises(ConflictError):
        store.update(store.get(KEY))


def test_update_of_vanished_record(store, api):
    api.get_namespaced_custom_object.return_value = raw_cluster()
    api.replace_namespaced_custom_object.side_effect = ApiException(status=404, reason="Not Found")

    with pytest.raises(RecordGoneError):
        store.update(store.get(KEY))


def test_update_status_goes_to_status_subresource(store, api):
    api.get_namespaced_custom_object.return_value = raw_cluster()
    api.replace_namespaced_custom_object_status.return_value = raw_cluster()
    record = store.get(KEY)
    record.status.clusterStatus = ClusterStatus(ready="Unhealthy")

    store.update_status(record)

    body = api.replace_namespaced_custom_object_status.call_args.args[5]
    assert body["status"]["clusterStatus"]["ready"] == "Unhealthy"
    api.replace_namespaced_custom_object.assert_not_called()


def test_list_cluster_wide(store, api):
    api.list_cluster_custom_object.return_value = {"items": [raw_cluster(), raw_cluster()]}

    assert len(store.list()) == 2
    api.list_cluster_custom_object.assert_called_once_with("zeebe.io.zeebe", "v1", "zeebeclusters")


def test_list_single_namespace(api):
    api.list_namespaced_custom_object.return_value = {"items": [raw_cluster()]}
    store = KubernetesRecordStore(api=api, namespace="team-a")

    assert [r.key for r in store.list()] == [KEY]
