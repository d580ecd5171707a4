import logging
from typing import Any, Iterable

from .classify import classify_pod, needs_safe_to_evict
from .config import (
    CI_WORKLOAD_LABEL,
    CI_WORKLOAD_NAMESPACE_LABEL,
    KUBERNETES_HOSTNAME_LABEL,
    RUNTIME_CLASS_PREFIX,
    SAFE_TO_EVICT_ANNOTATION,
    Settings,
)
from .errors import PatchSerializationError
from .helpers import JsonPatch, Profiler, make_admission_response
from .models import AdmissionReviewModel, PodClass, PodModel
from .prioritization import Prioritization
from .resources import reduce_cpu_requests

log = logging.getLogger("ci-scheduling-webhook")

TEST_CLASSES = (PodClass.TESTS, PodClass.LONG_TESTS)


def cpu_factor(settings: Settings, pod_class: PodClass) -> float:
    if pod_class in TEST_CLASSES:
        return settings.shrink_test_cpu
    return settings.shrink_build_cpu


def runtime_class_name(pod_class: PodClass) -> str:
    return RUNTIME_CLASS_PREFIX + pod_class.value


def hostname_exclusion_affinity(hostnames: Iterable[Any]) -> dict[str, Any]:
    """
    Build a node affinity that keeps the pod off the given hosts. MatchExpressions
    are used since MatchFields only allows one value in its values list.
    """
    values = []
    for h in hostnames:
        if not isinstance(h, str):
            raise PatchSerializationError(
                f"error converting affinity: hostname {h!r} is not a string"
            )
        values.append(h)

    return {
        "nodeAffinity": {
            "requiredDuringSchedulingIgnoredDuringExecution": {
                "nodeSelectorTerms": [
                    {
                        "matchExpressions": [
                            {
                                "key": KUBERNETES_HOSTNAME_LABEL,
                                "operator": "NotIn",
                                "values": sorted(values),
                            }
                        ]
                    }
                ]
            }
        }
    }


def precluded_hostnames(prioritization: Prioritization, pod_class: PodClass) -> set[str]:
    try:
        return prioritization.find_hostnames_to_preclude(pod_class)
    except Exception as e:
        log.error("No node affinity will be set in pod due to error: %s", e)
        return set()


def build_pod_patch(
    pod: PodModel,
    namespace: str,
    pod_name: str,
    settings: Settings,
    prioritization: Prioritization,
    profile: Profiler | None = None,
) -> tuple[PodClass, JsonPatch]:
    """Classify the pod and return its class with the patch steering it to its node pool."""
    patch = JsonPatch()

    if needs_safe_to_evict(namespace, pod_name):
        annotations = dict(pod.annotations or {})
        annotations[SAFE_TO_EVICT_ANNOTATION] = "true"
        patch.add("/metadata/annotations", annotations)

    pod_class = classify_pod(pod, namespace, pod_name)
    if pod_class == PodClass.NONE:
        return pod_class, patch

    if profile is not None:
        profile("classified request")

    labels = dict(pod.labels or {})
    labels[CI_WORKLOAD_LABEL] = pod_class.value
    labels[CI_WORKLOAD_NAMESPACE_LABEL] = namespace

    factor = cpu_factor(settings, pod_class)
    reduced = reduce_cpu_requests(patch, "initContainers", pod.init_containers, factor)
    reduced += reduce_cpu_requests(patch, "containers", pod.containers, factor)
    log.debug(
        "Reduced cpu requests of %d containers by %s in -n %s pod/%s",
        reduced,
        factor,
        namespace,
        pod_name,
    )

    # The RuntimeClass carries the tolerations that let the pod land on its machineset
    patch.add("/spec/runtimeClassName", runtime_class_name(pod_class))
    patch.add("/spec/nodeSelector", {CI_WORKLOAD_LABEL: pod_class.value})

    hostnames = precluded_hostnames(prioritization, pod_class)
    if hostnames:
        patch.add("/spec/affinity", hostname_exclusion_affinity(hostnames))

    patch.add("/metadata/labels", labels)
    return pod_class, patch


def mutate_pod(
    admission: AdmissionReviewModel,
    pod: PodModel,
    settings: Settings,
    prioritization: Prioritization,
    profile: Profiler | None = None,
) -> dict[str, Any]:
    req = admission.request
    namespace = req.namespace or pod.namespace
    pod_name = req.name or pod.name

    pod_class, patch = build_pod_patch(
        pod, namespace, pod_name, settings, prioritization, profile
    )

    review = make_admission_response(
        req.uid, True, patch, api_version=admission.api_version, kind=admission.kind
    )
    if patch:
        log.info(
            "Incoming pod to be modified podClass=%s pod=-n %s pod/%s",
            pod_class.value,
            namespace,
            pod_name,
        )
    else:
        log.info(
            "Incoming pod to be ignored podClass=%s pod=-n %s pod/%s",
            pod_class.value,
            namespace,
            pod_name,
        )
    return review
