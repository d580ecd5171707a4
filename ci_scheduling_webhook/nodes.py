import logging
from typing import Any

from .config import (
    CI_TAINT_KEY_MARKER,
    CI_WORKLOAD_AVOIDANCE_TAINT,
    CI_WORKLOAD_LABEL,
    NODE_DISABLE_SCALE_DOWN_LABEL,
)
from .helpers import JsonPatch, Profiler, escape_path_segment, make_admission_response
from .models import AdmissionReviewModel, AvoidanceState, NodeModel, extract_workload_class
from .prioritization import Prioritization

log = logging.getLogger("ci-scheduling-webhook")

NO_SCHEDULE = "NoSchedule"
PREFER_NO_SCHEDULE = "PreferNoSchedule"

_DESIRED_EFFECT = {
    AvoidanceState.OFF: None,
    AvoidanceState.PREFER_NO_SCHEDULE: PREFER_NO_SCHEDULE,
    AvoidanceState.NO_SCHEDULE: NO_SCHEDULE,
}


def desired_effect(state: AvoidanceState) -> str | None:
    """Taint effect wanted for an avoidance state; None means no taint."""
    return _DESIRED_EFFECT[state]


def is_foreign_no_schedule(taint: dict[str, Any]) -> bool:
    return (
        taint.get("effect") == NO_SCHEDULE
        and CI_TAINT_KEY_MARKER not in str(taint.get("key", ""))
    )


def reconcile_taints(
    taints: list[dict[str, Any]], workload_class: str, state: AvoidanceState
) -> tuple[list[dict[str, Any]], bool]:
    """
    Return (taints, changed) with the avoidance taint matching state.

    A node cordoned by someone else (a NoSchedule taint we don't own) is left
    exactly as it is. The input list is never modified.
    """
    for taint in taints:
        if is_foreign_no_schedule(taint):
            log.info(
                "will not attempt to mutate node - it is tainted with %s:%s=%s",
                taint.get("key"),
                taint.get("value"),
                taint.get("effect"),
            )
            return list(taints), False

    effect = desired_effect(state)
    reconciled = [dict(t) for t in taints]
    found = next(
        (
            i
            for i, t in enumerate(reconciled)
            if t.get("key") == CI_WORKLOAD_AVOIDANCE_TAINT
        ),
        -1,
    )

    if found == -1:
        if effect is None:
            return reconciled, False
        reconciled.append(
            {
                "key": CI_WORKLOAD_AVOIDANCE_TAINT,
                "value": workload_class,
                "effect": effect,
            }
        )
        return reconciled, True

    if effect is None:
        del reconciled[found]
        return reconciled, True

    if reconciled[found].get("effect") != effect:
        reconciled[found]["effect"] = effect
        return reconciled, True

    return reconciled, False


def avoidance_state(prioritization: Prioritization, node: NodeModel) -> AvoidanceState | None:
    try:
        return prioritization.get_node_avoidance_state(node)
    except Exception as e:
        log.error("Leaving taints of node %s unchanged due to error: %s", node.name, e)
        return None


def build_node_patch(
    node: NodeModel,
    prioritization: Prioritization,
    profile: Profiler | None = None,
) -> tuple[str | None, AvoidanceState | None, JsonPatch]:
    """Return the node's workload class, its avoidance state and the patch reconciling its taints."""
    patch = JsonPatch()

    workload_class = extract_workload_class(node, CI_WORKLOAD_LABEL)
    if workload_class is None:
        return None, None, patch

    if profile is not None:
        profile("classified request")

    state = avoidance_state(prioritization, node)
    if state is None:
        return workload_class, None, patch

    taints, changed = reconcile_taints(node.taints, workload_class, state)
    if not changed:
        return workload_class, state, patch

    patch.add("/spec/taints", taints)

    # While this webhook drains a node, keep the cluster autoscaler from
    # scaling down the same node at the same time.
    # https://github.com/kubernetes/autoscaler/blob/master/cluster-autoscaler/FAQ.md#how-can-i-prevent-cluster-autoscaler-from-scaling-down-a-particular-node
    prepare_scale_down = desired_effect(state) == NO_SCHEDULE
    patch.add(
        "/metadata/labels/" + escape_path_segment(NODE_DISABLE_SCALE_DOWN_LABEL),
        "true" if prepare_scale_down else "false",
    )
    return workload_class, state, patch


def mutate_node(
    admission: AdmissionReviewModel,
    node: NodeModel,
    prioritization: Prioritization,
    profile: Profiler | None = None,
) -> dict[str, Any]:
    req = admission.request
    node_name = req.name or node.name

    workload_class, state, patch = build_node_patch(node, prioritization, profile)

    review = make_admission_response(
        req.uid, True, patch, api_version=admission.api_version, kind=admission.kind
    )
    log.info(
        "Incoming node to be %s podClass=%s node=%s avoidanceState=%s",
        "modified" if patch else "ignored",
        workload_class or "",
        node_name,
        state.value if state is not None else "",
    )
    return review
