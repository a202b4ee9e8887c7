"""
Cluster API routes — read access to ZeebeCluster records plus the two
synthetic-event producers:

  - POST /clusters/{namespace}/{name}/reconcile   manual re-check of one record
  - POST /webhooks/cloud                          console pushes a cluster id

Neither mutates a record; both only guarantee a later reconcile.
"""

import logging

from fastapi import APIRouter, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from zeebe_operator.config import settings
from zeebe_operator.errors import RecordStoreError
from zeebe_operator.models import (
    CloudWebhookEvent,
    ClusterListResponse,
    ClusterRecordResponse,
    ErrorResponse,
    ReconcileAccepted,
    ReconcileRequest,
    RecordKey,
)

logger = logging.getLogger("zeebe-operator.api")

router = APIRouter(tags=["clusters"])
limiter = Limiter(key_func=get_remote_address)


def _store(request: Request):
    return request.app.state.store


@router.get("/clusters", response_model=ClusterListResponse,
            responses={503: {"model": ErrorResponse}})
@limiter.limit(settings.RATE_LIMIT)
async def list_clusters_endpoint(request: Request):
    """List all ZeebeCluster records with their last known status."""
    try:
        records = _store(request).list()
    except RecordStoreError as e:
        raise HTTPException(status_code=503, detail=str(e))
    clusters = [ClusterRecordResponse.from_record(r) for r in records]
    return ClusterListResponse(clusters=clusters, total=len(clusters))


@router.get("/clusters/{namespace}/{name}", response_model=ClusterRecordResponse,
            responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}})
@limiter.limit(settings.RATE_LIMIT)
async def get_cluster_endpoint(namespace: str, name: str, request: Request):
    key = RecordKey(namespace, name)
    try:
        record = _store(request).get(key)
    except RecordStoreError as e:
        raise HTTPException(status_code=503, detail=str(e))
    if record is None:
        raise HTTPException(status_code=404, detail=f"ZeebeCluster '{key}' not found")
    return ClusterRecordResponse.from_record(record)


@router.post("/clusters/{namespace}/{name}/reconcile", response_model=ReconcileAccepted,
             status_code=202,
             responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}})
@limiter.limit(settings.RATE_LIMIT)
async def reconcile_cluster_endpoint(namespace: str, name: str, request: Request,
                                     body: ReconcileRequest = ReconcileRequest()):
    """Request a reconcile of one record. Returns 202 Accepted (async)."""
    key = RecordKey(namespace, name)
    try:
        record = _store(request).get(key)
    except RecordStoreError as e:
        raise HTTPException(status_code=503, detail=str(e))
    if record is None:
        raise HTTPException(status_code=404, detail=f"ZeebeCluster '{key}' not found")
    event = request.app.state.bridge.inject(key, reason=body.reason, source="api")
    return ReconcileAccepted(namespace=namespace, name=name, reason=event.reason)


@router.post("/webhooks/cloud", response_model=ReconcileAccepted, status_code=202,
             responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.RATE_LIMIT)
async def cloud_webhook_endpoint(event: CloudWebhookEvent, request: Request):
    """Console notification for a cluster id; routed to the record tracking it."""
    key = request.app.state.pollers.key_for(event.clusterId)
    if key is None:
        logger.info(f"Webhook for untracked cluster {event.clusterId} ignored")
        raise HTTPException(status_code=404, detail=f"Cluster '{event.clusterId}' is not tracked")
    reason = f"webhook: {event.event} ({event.clusterId})"
    request.app.state.bridge.inject(key, reason=reason, source="webhook")
    return ReconcileAccepted(namespace=key.namespace, name=key.name, reason=reason)
