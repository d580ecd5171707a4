"""
Hard coded rules deciding which CI node pool a pod belongs to.

Rules are evaluated in order and the first one that applies wins:

  1. Pods created by Prow in the "ci" namespace are the prowjob pods themselves.
  2. Pods in ci-op-*/ci-ln-* namespaces are builds when they carry a build name
     label, tests otherwise. Pods requesting a specialized resource (GPUs and
     the like) are left alone since the build/test node pools can't run them.
  3. Tests whose name marks a known long running job are refined to longtests.
"""

import logging

from .config import (
    CI_BUILD_NAME_LABEL,
    CI_CREATED_BY_PROW_LABEL,
    CI_JOB_NAMESPACE_PREFIXES,
    CI_NAMESPACE,
    LONG_TEST_NAME_INFIXES,
    LONG_TEST_NAME_PREFIXES,
    SAFE_TO_EVICT_NAME_INFIX,
    SAFE_TO_EVICT_NAMESPACE_PREFIX,
    SAFE_TO_EVICT_NAMESPACES,
    STANDARD_RESOURCES,
)
from .models import ContainerModel, PodClass, PodModel

log = logging.getLogger("ci-scheduling-webhook")


def requests_special_resources(containers: list[ContainerModel]) -> bool:
    for c in containers:
        for key in c.requests:
            if key not in STANDARD_RESOURCES:
                log.debug("container %s requests special resource %s", c.name, key)
                return True
    return False


def is_long_test(pod_name: str) -> bool:
    return pod_name.startswith(LONG_TEST_NAME_PREFIXES) or any(
        infix in pod_name for infix in LONG_TEST_NAME_INFIXES
    )


def classify_pod(pod: PodModel, namespace: str, pod_name: str) -> PodClass:
    """Return the workload class for the pod, or PodClass.NONE when no rule applies."""
    labels = pod.labels or {}

    if namespace == CI_NAMESPACE:
        if CI_CREATED_BY_PROW_LABEL in labels:
            return PodClass.PROW_JOBS
        return PodClass.NONE

    if not namespace.startswith(CI_JOB_NAMESPACE_PREFIXES):
        return PodClass.NONE

    if requests_special_resources(pod.init_containers) or requests_special_resources(
        pod.containers
    ):
        return PodClass.NONE

    if CI_BUILD_NAME_LABEL in labels:
        return PodClass.BUILDS

    if is_long_test(pod_name):
        return PodClass.LONG_TESTS
    return PodClass.TESTS


def needs_safe_to_evict(namespace: str, pod_name: str) -> bool:
    """
    OSD has many operator related pods which aren't using replicasets and would
    otherwise stop the autoscaler from removing their node. Operator catalogs are
    unevictable too, wherever they run.
    """
    return (
        namespace.startswith(SAFE_TO_EVICT_NAMESPACE_PREFIX)
        or SAFE_TO_EVICT_NAME_INFIX in pod_name
        or namespace in SAFE_TO_EVICT_NAMESPACES
    )
