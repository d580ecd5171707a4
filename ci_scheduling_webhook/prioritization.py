"""
Client side of the prioritization subsystem.

The prioritizer runs outside this webhook. It decides which hostnames pods of a
class should stay away from and how strongly each node should be avoided, and
publishes those verdicts. The webhook only reads them, on every request.
"""

import logging
from typing import Any, Iterable, Mapping

from .models import AvoidanceState, NodeModel, PodClass
from .store.interface import KeyValueStore

log = logging.getLogger("ci-scheduling-webhook")


class PrioritizationError(Exception):
    """The prioritization state could not be read or makes no sense."""


class Prioritization:
    def find_hostnames_to_preclude(self, pod_class: PodClass) -> set[str]:
        """
        Return hostnames pods of pod_class must not be scheduled on.
        Raises PrioritizationError if the state is unavailable.
        """
        raise NotImplementedError

    def get_node_avoidance_state(self, node: NodeModel) -> AvoidanceState | None:
        """
        Return how strongly workloads should avoid node, or None if no verdict
        has been published for it. Raises PrioritizationError if the state is
        unavailable.
        """
        raise NotImplementedError


class StaticPrioritization(Prioritization):
    """In-memory verdicts; used in test environments."""

    def __init__(
        self,
        precluded: Mapping[PodClass, Iterable[str]] | None = None,
        avoidance: Mapping[str, AvoidanceState] | None = None,
    ) -> None:
        self._precluded = {k: set(v) for k, v in (precluded or {}).items()}
        self._avoidance = dict(avoidance or {})

    def find_hostnames_to_preclude(self, pod_class: PodClass) -> set[str]:
        return set(self._precluded.get(pod_class, ()))

    def get_node_avoidance_state(self, node: NodeModel) -> AvoidanceState | None:
        return self._avoidance.get(node.name)


class StorePrioritization(Prioritization):
    """
    Reads verdicts the prioritizer publishes into a key/value store:

      <prefix>:preclude:<class>  -> JSON list of hostnames
      <prefix>:avoidance:<node>  -> JSON string, one of AvoidanceState
    """

    def __init__(self, datastore: KeyValueStore, key_prefix: str = "ci-scheduling") -> None:
        self._datastore = datastore
        self._key_prefix = key_prefix

    def _get(self, key: str) -> Any | None:
        try:
            return self._datastore.get(f"{self._key_prefix}:{key}")
        except Exception as e:
            raise PrioritizationError(f"unable to read {key}: {e}") from e

    def find_hostnames_to_preclude(self, pod_class: PodClass) -> set[str]:
        value = self._get(f"preclude:{pod_class.value}")
        if value is None:
            return set()
        if not isinstance(value, list) or not all(isinstance(h, str) for h in value):
            raise PrioritizationError(
                f"precluded hostnames for {pod_class.value} must be a list of strings, got: {value!r}"
            )
        return set(value)

    def get_node_avoidance_state(self, node: NodeModel) -> AvoidanceState | None:
        value = self._get(f"avoidance:{node.name}")
        if value is None:
            log.debug("No avoidance state published for node %s", node.name)
            return None
        try:
            return AvoidanceState(value)
        except ValueError as e:
            raise PrioritizationError(
                f"unknown avoidance state for node {node.name}: {value!r}"
            ) from e
