import copy
import importlib
from typing import Any, Dict

import jsonpatch
import pytest


def import_pods():
	return importlib.import_module("ci_scheduling_webhook.pods")


def import_models():
	return importlib.import_module("ci_scheduling_webhook.models")


def settings():
	config = importlib.import_module("ci_scheduling_webhook.config")
	return config.Settings(app_env="test", shrink_build_cpu=0.5, shrink_test_cpu=0.25)


def static_prioritization(precluded=None):
	prioritization = importlib.import_module("ci_scheduling_webhook.prioritization")
	return prioritization.StaticPrioritization(precluded=precluded)


class FailingPrioritization:
	def find_hostnames_to_preclude(self, pod_class):
		raise ConnectionError("prioritizer unavailable")


def pod_dict(name="p1", ns="ci-op-12345", labels=None, annotations=None, cpu="500m") -> Dict[str, Any]:
	metadata: Dict[str, Any] = {"name": name, "namespace": ns}
	if labels is not None:
		metadata["labels"] = labels
	if annotations is not None:
		metadata["annotations"] = annotations
	return {
		"metadata": metadata,
		"spec": {
			"initContainers": [
				{"name": "init", "resources": {"requests": {"cpu": "100m"}}},
			],
			"containers": [
				{
					"name": "main",
					"resources": {
						"requests": {"cpu": cpu, "memory": "1Gi"},
						"limits": {"cpu": "2", "memory": "2Gi"},
					},
				},
			],
		},
	}


def build(d, prioritization=None):
	pods = import_pods()
	p = import_models().PodModel.from_dict(d)
	return pods.build_pod_patch(
		p, p.namespace, p.name, settings(), prioritization or static_prioritization()
	)


def by_path(patch):
	return {e["path"]: e["value"] for e in patch.entries}


def test_build_pod_scenario():
	PodClass = import_models().PodClass
	pod_class, patch = build(pod_dict(labels={"openshift.io/build.name": "foo"}))
	assert pod_class == PodClass.BUILDS
	entries = by_path(patch)
	assert entries["/spec/runtimeClassName"] == "ci-scheduler-runtime-builds"
	assert entries["/spec/nodeSelector"] == {"ci-workload": "builds"}
	assert entries["/spec/containers/0/resources/requests"] == {"cpu": "251m", "memory": "1Gi"}
	assert entries["/spec/initContainers/0/resources/requests"] == {"cpu": "51m"}
	assert entries["/metadata/labels"] == {
		"openshift.io/build.name": "foo",
		"ci-workload": "builds",
		"ci-workload-namespace": "ci-op-12345",
	}
	assert "/spec/affinity" not in entries
	assert "/metadata/annotations" not in entries
	assert all(e["op"] == "add" for e in patch.entries)
	# labels are written once, last
	assert patch.entries[-1]["path"] == "/metadata/labels"


def test_tests_use_test_factor_and_materialize_labels():
	PodClass = import_models().PodClass
	pod_class, patch = build(pod_dict(cpu="1"))
	assert pod_class == PodClass.TESTS
	entries = by_path(patch)
	assert entries["/spec/containers/0/resources/requests"]["cpu"] == "251m"
	assert entries["/metadata/labels"] == {"ci-workload": "tests", "ci-workload-namespace": "ci-op-12345"}


def test_long_tests_use_test_factor():
	pod_class, patch = build(pod_dict(name="e2e-aws-upgrade-foo", cpu="1"))
	assert pod_class.value == "longtests"
	entries = by_path(patch)
	assert entries["/spec/runtimeClassName"] == "ci-scheduler-runtime-longtests"
	assert entries["/spec/containers/0/resources/requests"]["cpu"] == "251m"


def test_prowjobs_use_build_factor():
	pod_class, patch = build(pod_dict(ns="ci", labels={"created-by-prow": "true"}, cpu="1"))
	assert pod_class.value == "prowjobs"
	assert by_path(patch)["/spec/containers/0/resources/requests"]["cpu"] == "501m"


def test_safe_to_evict_only():
	pod_class, patch = build(pod_dict(ns="openshift-monitoring", annotations={"a": "b"}))
	assert pod_class.value == ""
	assert patch.entries == [
		{
			"op": "add",
			"path": "/metadata/annotations",
			"value": {"a": "b", "cluster-autoscaler.kubernetes.io/safe-to-evict": "true"},
		}
	]


def test_unrelated_pod_yields_empty_patch():
	_, patch = build(pod_dict(ns="default"))
	assert len(patch) == 0


def test_precluded_hostnames_set_affinity():
	PodClass = import_models().PodClass
	_, patch = build(pod_dict(), static_prioritization({PodClass.TESTS: {"node-b", "node-a"}}))
	affinity = by_path(patch)["/spec/affinity"]
	terms = affinity["nodeAffinity"]["requiredDuringSchedulingIgnoredDuringExecution"]["nodeSelectorTerms"]
	assert terms == [
		{
			"matchExpressions": [
				{
					"key": "kubernetes.io/hostname",
					"operator": "NotIn",
					"values": ["node-a", "node-b"],
				}
			]
		}
	]


def test_prioritization_failure_means_no_exclusion():
	_, patch = build(pod_dict(), FailingPrioritization())
	entries = by_path(patch)
	assert "/spec/affinity" not in entries
	assert entries["/spec/nodeSelector"] == {"ci-workload": "tests"}


def test_unserializable_hostname_is_fatal():
	errors = importlib.import_module("ci_scheduling_webhook.errors")
	with pytest.raises(errors.PatchSerializationError):
		import_pods().hostname_exclusion_affinity(["node-a", 42])


def test_reinvocation_is_idempotent():
	PodClass = import_models().PodClass
	prioritization = static_prioritization({PodClass.BUILDS: {"node-a"}})
	original = pod_dict(labels={"openshift.io/build.name": "foo"})

	_, first = build(original, prioritization)
	once = jsonpatch.apply_patch(copy.deepcopy(original), first.entries)
	assert once["spec"]["containers"][0]["resources"]["requests"] == {"cpu": "251m", "memory": "1Gi"}
	assert once["spec"]["containers"][0]["resources"]["limits"] == {"cpu": "2", "memory": "2Gi"}

	_, second = build(once, prioritization)
	assert not any(e["path"].endswith("/resources/requests") for e in second.entries)
	twice = jsonpatch.apply_patch(copy.deepcopy(once), second.entries)
	assert twice == once
