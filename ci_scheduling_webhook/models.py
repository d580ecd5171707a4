"""
Minimal models for Kubernetes AdmissionReview, Pod and Node used by this webhook.
We intentionally parse only the fields we need and ignore unknowns so that
new Kubernetes fields don't break this app.

References:
- AdmissionReview request/response shape:
  https://kubernetes.io/docs/reference/access-authn-authz/extensible-admission-controllers/#request-and-response
- Pod (core/v1) API reference:
  https://kubernetes.io/docs/reference/generated/kubernetes-api/latest/#pod-v1-core
- Node (core/v1) API reference:
  https://kubernetes.io/docs/reference/generated/kubernetes-api/latest/#node-v1-core
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .errors import MalformedRequestError, ObjectDecodeError
from .resources import cpu_millis


class PodClass(str, Enum):
    NONE = ""
    BUILDS = "builds"
    TESTS = "tests"
    LONG_TESTS = "longtests"
    PROW_JOBS = "prowjobs"


class AvoidanceState(str, Enum):
    OFF = "Off"
    PREFER_NO_SCHEDULE = "PreferNoSchedule"
    NO_SCHEDULE = "NoSchedule"


def _get(d: dict[str, Any], key: str, default):
    # Safe nested getter for dicts
    v = d.get(key)
    return v if isinstance(v, type(default)) else default


def _string_map(d: dict[str, Any], key: str, kind: str) -> dict[str, str] | None:
    # None when the field is absent, so callers can tell absent from empty
    v = d.get(key)
    if v is None:
        return None
    if not isinstance(v, dict):
        raise ObjectDecodeError(f"{kind} {key} must be an object")
    for k, val in v.items():
        if not isinstance(val, str):
            raise ObjectDecodeError(
                f"{kind} {key} value for {k!r} must be a string, got: {type(val).__name__}"
            )
    return dict(v)


@dataclass(frozen=True)
class GroupVersionResource:
    group: str
    version: str
    resource: str

    @staticmethod
    def from_dict(d: Any) -> Optional["GroupVersionResource"]:
        if not isinstance(d, dict):
            return None
        return GroupVersionResource(
            group=str(d.get("group", "") or ""),
            version=str(d.get("version", "") or ""),
            resource=str(d.get("resource", "") or ""),
        )

    def __str__(self) -> str:
        return f"{self.group}/{self.version}, Resource={self.resource}"


POD_RESOURCE = GroupVersionResource(group="", version="v1", resource="pods")
NODE_RESOURCE = GroupVersionResource(group="", version="v1", resource="nodes")


@dataclass
class ContainerModel:
    name: str
    requests: dict[str, Any]
    cpu_millis: int | None = None

    @staticmethod
    def from_dict(d: Any) -> "ContainerModel":
        if not isinstance(d, dict):
            raise ObjectDecodeError("container must be an object")
        resources = d.get("resources") or {}
        if not isinstance(resources, dict):
            raise ObjectDecodeError("container resources must be an object")
        requests = resources.get("requests") or {}
        if not isinstance(requests, dict):
            raise ObjectDecodeError("container resource requests must be an object")

        millis = None
        if "cpu" in requests:
            try:
                millis = cpu_millis(requests["cpu"])
            except ValueError as e:
                raise ObjectDecodeError(
                    f"invalid cpu request {requests['cpu']!r}: {e}"
                ) from e

        return ContainerModel(
            name=str(d.get("name", "") or ""),
            requests=dict(requests),
            cpu_millis=millis,
        )


def _containers(spec: dict[str, Any], key: str) -> list[ContainerModel]:
    raw = spec.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ObjectDecodeError(f"pod spec {key} must be a list")
    return [ContainerModel.from_dict(c) for c in raw]


@dataclass
class PodModel:
    name: str
    namespace: str
    labels: dict[str, str] | None
    annotations: dict[str, str] | None
    init_containers: list[ContainerModel] = field(default_factory=list)
    containers: list[ContainerModel] = field(default_factory=list)

    @staticmethod
    def from_dict(d: Any) -> "PodModel":
        if not isinstance(d, dict):
            raise ObjectDecodeError("pod must be an object")
        meta = _get(d, "metadata", {})
        spec = _get(d, "spec", {})
        return PodModel(
            name=str(meta.get("name", "") or ""),
            namespace=str(meta.get("namespace", "") or ""),
            labels=_string_map(meta, "labels", "pod"),
            annotations=_string_map(meta, "annotations", "pod"),
            init_containers=_containers(spec, "initContainers"),
            containers=_containers(spec, "containers"),
        )


@dataclass
class NodeModel:
    name: str
    labels: dict[str, str] | None
    taints: list[dict[str, Any]]

    @staticmethod
    def from_dict(d: Any) -> "NodeModel":
        if not isinstance(d, dict):
            raise ObjectDecodeError("node must be an object")
        meta = _get(d, "metadata", {})
        spec = _get(d, "spec", {})
        raw_taints = spec.get("taints")
        if raw_taints is None:
            raw_taints = []
        if not isinstance(raw_taints, list) or not all(
            isinstance(t, dict) for t in raw_taints
        ):
            raise ObjectDecodeError("node spec taints must be a list of objects")
        return NodeModel(
            name=str(meta.get("name", "") or ""),
            labels=_string_map(meta, "labels", "node"),
            taints=[dict(t) for t in raw_taints],
        )


@dataclass
class AdmissionRequestModel:
    uid: str
    name: str
    namespace: str
    resource: GroupVersionResource | None
    obj: Any

    @staticmethod
    def from_dict(d: dict[str, Any]) -> Optional["AdmissionRequestModel"]:
        if not isinstance(d, dict):
            return None
        return AdmissionRequestModel(
            uid=str(d.get("uid", "") or ""),
            name=str(d.get("name", "") or ""),
            namespace=str(d.get("namespace", "") or ""),
            resource=GroupVersionResource.from_dict(d.get("resource")),
            obj=d.get("object"),
        )


@dataclass
class AdmissionReviewModel:
    api_version: str
    kind: str
    request: AdmissionRequestModel

    @staticmethod
    def from_dict(d: Any) -> "AdmissionReviewModel":
        if not isinstance(d, dict):
            raise MalformedRequestError("admission review must be a JSON object")
        req = AdmissionRequestModel.from_dict(d.get("request"))
        if req is None:
            raise MalformedRequestError("admission review carries no request")
        return AdmissionReviewModel(
            api_version=str(d.get("apiVersion") or "admission.k8s.io/v1"),
            kind=str(d.get("kind") or "AdmissionReview"),
            request=req,
        )


def extract_workload_class(node: NodeModel, workload_label: str) -> str | None:
    return (node.labels or {}).get(workload_label) or None
