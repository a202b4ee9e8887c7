"""
Pydantic models for ZeebeCluster records, remote cluster state and API payloads.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field

# Readiness reported for a cluster id the console no longer knows about
CLUSTER_NOT_FOUND = "Not Found"

# Spec fields owned by the console once a remote cluster exists
DRIFT_FIELDS = ("planName", "generationName", "channelName", "region")


def now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class RecordKey(NamedTuple):
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class ReconcileOutcome(str, Enum):
    NOT_FOUND = "NotFound"
    FINALIZED = "Finalized"
    DELETING = "Deleting"
    UNMANAGED = "Unmanaged"
    SYNCED = "Synced"


class ClusterStatus(BaseModel):
    """Snapshot of a remote cluster as reported by the console API."""
    ready: str = ""
    zeebeStatus: str = ""
    operateStatus: str = ""
    tasklistStatus: str = ""
    planName: str = ""
    region: str = ""
    channelName: str = ""
    generationName: str = ""


class ClusterDefinition(BaseModel):
    """Authoritative configuration of a remote cluster, looked up by name."""
    clusterId: str
    name: str
    planName: str = ""
    generationName: str = ""
    channelName: str = ""
    region: str = ""


class ObjectMeta(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    namespace: str = "default"
    resourceVersion: str = ""
    generation: int = 0
    finalizers: List[str] = []
    deletionTimestamp: Optional[str] = None
    labels: Dict[str, str] = {}
    annotations: Dict[str, str] = {}


class ZeebeClusterSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    owner: str = ""
    track: bool = False
    clusterId: str = ""
    region: str = ""
    channelName: str = ""
    generationName: str = ""
    planName: str = ""


class ZeebeClusterStatus(BaseModel):
    model_config = ConfigDict(extra="allow")

    clusterStatus: Optional[ClusterStatus] = None


class ZeebeCluster(BaseModel):
    """A ZeebeCluster custom resource: the desired-state record."""
    apiVersion: str = "zeebe.io.zeebe/v1"
    kind: str = "ZeebeCluster"
    metadata: ObjectMeta
    spec: ZeebeClusterSpec = Field(default_factory=ZeebeClusterSpec)
    status: ZeebeClusterStatus = Field(default_factory=ZeebeClusterStatus)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def key(self) -> RecordKey:
        return RecordKey(self.metadata.namespace, self.metadata.name)

    @property
    def deletion_requested(self) -> bool:
        return self.metadata.deletionTimestamp is not None

    @property
    def ready(self) -> str:
        cs = self.status.clusterStatus
        return cs.ready if cs else ""

    def has_finalizer(self, token: str) -> bool:
        return token in self.metadata.finalizers

    @classmethod
    def from_object(cls, obj: dict) -> "ZeebeCluster":
        """Build a record from a raw Kubernetes object dict."""
        return cls.model_validate({
            "apiVersion": obj.get("apiVersion", "zeebe.io.zeebe/v1"),
            "kind": obj.get("kind", "ZeebeCluster"),
            "metadata": obj.get("metadata") or {},
            "spec": obj.get("spec") or {},
            "status": obj.get("status") or {},
        })

    def to_object(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class SyntheticEvent(BaseModel):
    """An out-of-band request to reconcile a record."""
    namespace: str
    name: str
    reason: str = ""
    source: str = "manual"
    createdAt: str = Field(default_factory=now)

    @property
    def key(self) -> RecordKey:
        return RecordKey(self.namespace, self.name)


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------

class ClusterRecordResponse(BaseModel):
    """Record summary returned to dashboards and CLIs."""
    name: str
    namespace: str
    owner: str = ""
    clusterId: str = ""
    planName: str = ""
    channelName: str = ""
    generationName: str = ""
    region: str = ""
    track: bool = False
    ready: str = ""
    deleting: bool = False
    clusterStatus: Optional[ClusterStatus] = None

    @classmethod
    def from_record(cls, record: ZeebeCluster) -> "ClusterRecordResponse":
        spec = record.spec
        return cls(
            name=record.name,
            namespace=record.metadata.namespace,
            owner=spec.owner,
            clusterId=spec.clusterId,
            planName=spec.planName,
            channelName=spec.channelName,
            generationName=spec.generationName,
            region=spec.region,
            track=spec.track,
            ready=record.ready,
            deleting=record.deletion_requested,
            clusterStatus=record.status.clusterStatus,
        )


class ClusterListResponse(BaseModel):
    clusters: List[ClusterRecordResponse]
    total: int


class ReconcileRequest(BaseModel):
    reason: str = Field(default="", max_length=200)


class ReconcileAccepted(BaseModel):
    namespace: str
    name: str
    reason: str = ""
    status: str = "accepted"


class CloudWebhookEvent(BaseModel):
    """Change notification pushed by the console for a cluster id."""
    clusterId: str = Field(..., min_length=1)
    event: str = "changed"


class ErrorResponse(BaseModel):
    detail: str
