import pytest
from fastapi.testclient import TestClient

from tests.conftest import FINALIZER
from zeebe_operator.api.main import create_app
from zeebe_operator.api.routers.clusters import limiter
from zeebe_operator.errors import RecordStoreError
from zeebe_operator.events import EventBridge
from zeebe_operator.models import ClusterStatus, RecordKey


@pytest.fixture(autouse=True)
def no_rate_limit():
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture
def bridge():
    return EventBridge()


@pytest.fixture
def api(store, bridge, pollers):
    return TestClient(create_app(store, bridge, pollers))


@pytest.fixture
def tracked(store, pollers):
    key = store.add("c1", finalizers=[FINALIZER],
                    spec={"clusterId": "abc-123", "planName": "p1", "region": "europe-west1"},
                    cluster_status=ClusterStatus(ready="Healthy", planName="p1"))
    pollers.ensure("abc-123", key)
    return key


def test_health(api, tracked, bridge):
    bridge.inject(tracked)

    data = api.get("/health").json()

    assert data["status"] == "healthy"
    assert data["pollers"] == 1
    assert data["pendingEvents"] == 1


def test_metrics_are_exposed(api):
    response = api.get("/metrics")

    assert response.status_code == 200
    assert "zeebe_operator_reconcile_total" in response.text


def test_list_clusters(api, store, tracked):
    store.add("c2", namespace="team-b")

    data = api.get("/api/clusters").json()

    assert data["total"] == 2
    by_name = {c["name"]: c for c in data["clusters"]}
    assert by_name["c1"]["clusterId"] == "abc-123"
    assert by_name["c1"]["ready"] == "Healthy"
    assert by_name["c2"]["namespace"] == "team-b"
    assert by_name["c2"]["clusterId"] == ""


def test_get_cluster(api, tracked):
    data = api.get("/api/clusters/default/c1").json()

    assert data["planName"] == "p1"
    assert data["clusterStatus"]["ready"] == "Healthy"
    assert data["deleting"] is False


def test_get_missing_cluster_is_404(api):
    assert api.get("/api/clusters/default/nope").status_code == 404


def test_store_outage_is_503(api, store, monkeypatch):
    def down():
        raise RecordStoreError("apiserver unreachable")

    monkeypatch.setattr(store, "list", down)

    assert api.get("/api/clusters").status_code == 503


def test_reconcile_request_injects_synthetic_event(api, store, bridge):
    key = store.add("c9", namespace="team-a")

    response = api.post("/api/clusters/team-a/c9/reconcile", json={"reason": "operator asked"})

    assert response.status_code == 202
    assert response.json()["status"] == "accepted"
    [event] = bridge.take(key)
    assert event.key == RecordKey("team-a", "c9")
    assert event.reason == "operator asked"
    assert event.source == "api"


def test_reconcile_request_without_body(api, bridge, tracked):
    assert api.post("/api/clusters/default/c1/reconcile").status_code == 202
    assert bridge.pending(tracked) == 1


def test_reconcile_request_for_missing_record_is_404(api, bridge):
    response = api.post("/api/clusters/team-a/nope/reconcile")

    assert response.status_code == 404
    assert bridge.pending() == 0


def test_reconcile_request_during_store_outage_is_503(api, store, bridge, monkeypatch):
    def down(key):
        raise RecordStoreError("apiserver unreachable")

    monkeypatch.setattr(store, "get", down)

    assert api.post("/api/clusters/default/c1/reconcile").status_code == 503
    assert bridge.pending() == 0


def test_webhook_for_tracked_cluster(api, bridge, tracked):
    response = api.post("/api/webhooks/cloud", json={"clusterId": "abc-123", "event": "updated"})

    assert response.status_code == 202
    assert response.json()["name"] == "c1"
    [event] = bridge.take(tracked)
    assert event.key == tracked
    assert event.source == "webhook"
    assert "abc-123" in event.reason


def test_webhook_for_untracked_cluster_is_404(api, bridge):
    response = api.post("/api/webhooks/cloud", json={"clusterId": "zzz"})

    assert response.status_code == 404
    assert bridge.pending() == 0


def test_webhook_requires_cluster_id(api):
    assert api.post("/api/webhooks/cloud", json={"clusterId": ""}).status_code == 422
