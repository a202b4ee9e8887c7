"""
Camunda Cloud console API client — the remote side of every ZeebeCluster.

Design principles:
  - Synchronous: calls block the reconcile worker, bounded by a timeout
  - Every transport/HTTP failure becomes a CloudClientError (retryable)
  - 404 is meaningful: unknown id → "Not Found" status, delete → already gone
  - Names in the record (plan, channel, generation, region) are resolved to
    console ids through /clusters/parameters on create
"""

import logging
from typing import Optional

import httpx

from zeebe_operator import metrics
from zeebe_operator.errors import (
    CloudClientError,
    CloudTimeoutError,
    ClusterNotFoundError,
    InvalidClusterParametersError,
)
from zeebe_operator.models import CLUSTER_NOT_FOUND, ClusterDefinition, ClusterStatus

logger = logging.getLogger("zeebe-operator.cloud")

_HTTP_NOT_FOUND = 404


def _ident(item: dict) -> str:
    return item.get("uuid") or item.get("id") or ""


def _name_of(item: Optional[dict]) -> str:
    return (item or {}).get("name", "")


def _named(items: list, name: str, kind: str) -> dict:
    for item in items:
        if item.get("name") == name:
            return item
    known = ", ".join(sorted(i.get("name", "?") for i in items))
    raise InvalidClusterParametersError(f"Unknown {kind} '{name}' (known: {known})")


def _definition(item: dict) -> ClusterDefinition:
    region = item.get("k8sContext") or item.get("region")
    return ClusterDefinition(
        clusterId=_ident(item),
        name=item.get("name", ""),
        planName=_name_of(item.get("planType")),
        generationName=_name_of(item.get("generation")),
        channelName=_name_of(item.get("channel")),
        region=_name_of(region),
    )


def _status(item: dict) -> ClusterStatus:
    definition = _definition(item)
    raw = item.get("status") or {}
    return ClusterStatus(
        ready=raw.get("ready", ""),
        zeebeStatus=raw.get("zeebeStatus", ""),
        operateStatus=raw.get("operateStatus", ""),
        tasklistStatus=raw.get("tasklistStatus", ""),
        planName=definition.planName,
        region=definition.region,
        channelName=definition.channelName,
        generationName=definition.generationName,
    )


class CamundaCloudClient:
    """Thin wrapper over the console REST API.

    Authentication is out of scope: an already-issued bearer token may be
    passed in and is sent as-is.
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        self._timeout = timeout

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "CamundaCloudClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # transport
    # ------------------------------------------------------------------

    def _request(self, operation: str, method: str, path: str,
                 allow_not_found: bool = False, **kwargs) -> Optional[httpx.Response]:
        """Send one request. Returns None for a tolerated 404."""
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            metrics.REMOTE_CALLS.labels(operation=operation, result="timeout").inc()
            raise CloudTimeoutError(
                f"{operation} timed out after {self._timeout}s: {e}"
            ) from e
        except httpx.HTTPError as e:
            metrics.REMOTE_CALLS.labels(operation=operation, result="error").inc()
            raise CloudClientError(f"{operation} failed: {e}") from e

        if allow_not_found and response.status_code == _HTTP_NOT_FOUND:
            metrics.REMOTE_CALLS.labels(operation=operation, result="not_found").inc()
            return None
        if response.is_error:
            metrics.REMOTE_CALLS.labels(operation=operation, result="error").inc()
            raise CloudClientError(
                f"{operation} failed (HTTP {response.status_code}): {response.text[:300]}"
            )
        metrics.REMOTE_CALLS.labels(operation=operation, result="ok").inc()
        return response

    @staticmethod
    def _json(operation: str, response: httpx.Response):
        try:
            return response.json()
        except ValueError as e:
            raise CloudClientError(f"{operation} returned invalid JSON: {e}") from e

    # ------------------------------------------------------------------
    # operations
    # ------------------------------------------------------------------

    def _resolve_parameters(self, plan_name: str, channel_name: str,
                            generation_name: str, region: str) -> dict:
        response = self._request("parameters", "GET", "/clusters/parameters")
        params = self._json("parameters", response)

        channels = params.get("channels", [])
        if channel_name:
            channel = _named(channels, channel_name, "channel")
        else:
            channel = next((c for c in channels if c.get("isDefault")), None)
            if channel is None:
                raise InvalidClusterParametersError("No channel given and no default channel")

        if generation_name:
            generation = _named(channel.get("allowedGenerations", []), generation_name,
                                f"generation for channel '{_name_of(channel)}'")
        else:
            generation = channel.get("defaultGeneration") or {}
            if not _ident(generation):
                raise InvalidClusterParametersError(
                    f"Channel '{_name_of(channel)}' has no default generation"
                )

        if not plan_name:
            raise InvalidClusterParametersError("planName is required to create a cluster")
        plan = _named(params.get("clusterPlanTypes", []), plan_name, "plan")

        regions = params.get("regions", [])
        if region:
            region_item = _named(regions, region, "region")
        elif regions:
            region_item = regions[0]
        else:
            raise InvalidClusterParametersError("No region given and none offered")

        return {
            "planTypeId": _ident(plan),
            "channelId": _ident(channel),
            "generationId": _ident(generation),
            "regionId": _ident(region_item),
        }

    def create_cluster(self, name: str, plan_name: str, channel_name: str,
                       generation_name: str, region: str) -> str:
        """Create a remote cluster and return its id."""
        body = {"name": name}
        body.update(self._resolve_parameters(plan_name, channel_name, generation_name, region))
        response = self._request("create", "POST", "/clusters", json=body)
        data = self._json("create", response)
        cluster_id = data.get("clusterId") or _ident(data)
        if not cluster_id:
            raise CloudClientError(f"create returned no cluster id: {data}")
        logger.info(f"Cluster {name} created in Camunda Cloud (clusterId={cluster_id})")
        return cluster_id

    def get_cluster_status(self, cluster_id: str) -> ClusterStatus:
        """Current status of a cluster; an unknown id reports ready="Not Found"."""
        response = self._request("get", "GET", f"/clusters/{cluster_id}", allow_not_found=True)
        if response is None:
            return ClusterStatus(ready=CLUSTER_NOT_FOUND)
        return _status(self._json("get", response))

    def find_cluster_by_name(self, name: str, cluster_id: str = "") -> Optional[ClusterDefinition]:
        """Look a cluster up by name. Among same-named clusters, cluster_id wins."""
        response = self._request("list", "GET", "/clusters")
        items = self._json("list", response)
        if isinstance(items, dict):
            items = items.get("items", [])
        matches = [_definition(item) for item in items if item.get("name") == name]
        for definition in matches:
            if cluster_id and definition.clusterId == cluster_id:
                return definition
        return matches[0] if matches else None

    def get_cluster_by_name(self, name: str, cluster_id: str = "") -> ClusterDefinition:
        definition = self.find_cluster_by_name(name, cluster_id)
        if definition is None:
            raise ClusterNotFoundError(f"No cluster named '{name}' in Camunda Cloud")
        return definition

    def delete_cluster(self, cluster_id: str) -> bool:
        """Delete a cluster. Returns False if it was already gone."""
        response = self._request("delete", "DELETE", f"/clusters/{cluster_id}",
                                 allow_not_found=True)
        if response is None:
            logger.info(f"Cluster {cluster_id} already gone from Camunda Cloud")
            return False
        logger.info(f"Cluster {cluster_id} deleted from Camunda Cloud")
        return True
