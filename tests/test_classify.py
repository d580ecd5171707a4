import importlib

import pytest


def import_classify():
	return importlib.import_module("ci_scheduling_webhook.classify")


def import_models():
	return importlib.import_module("ci_scheduling_webhook.models")


def pod(name="p1", ns="ci-op-12345", labels=None, containers=None, init_containers=None):
	return import_models().PodModel.from_dict(
		{
			"metadata": {"name": name, "namespace": ns, "labels": labels},
			"spec": {
				"containers": containers or [],
				"initContainers": init_containers or [],
			},
		}
	)


def classify(p):
	return import_classify().classify_pod(p, p.namespace, p.name)


def requesting(requests):
	return {"name": "c", "resources": {"requests": requests}}


@pytest.mark.parametrize("ns", ["ci-op-12345", "ci-ln-abcde"])
def test_ci_namespaces_are_tests(ns):
	PodClass = import_models().PodClass
	assert classify(pod(ns=ns, containers=[requesting({"cpu": "1", "memory": "1Gi"})])) == PodClass.TESTS


@pytest.mark.parametrize("ns", ["ci-op-12345", "ci-ln-abcde"])
def test_build_name_label_makes_builds(ns):
	PodClass = import_models().PodClass
	p = pod(ns=ns, labels={"openshift.io/build.name": "foo"})
	assert classify(p) == PodClass.BUILDS


@pytest.mark.parametrize(
	"containers,init_containers",
	[
		([requesting({"cpu": "1", "nvidia.com/gpu": "1"})], []),
		([], [requesting({"devices.kubevirt.io/kvm": "1"})]),
	],
)
def test_special_resources_are_not_classified(containers, init_containers):
	PodClass = import_models().PodClass
	p = pod(
		labels={"openshift.io/build.name": "foo"},
		containers=containers,
		init_containers=init_containers,
	)
	assert classify(p) == PodClass.NONE


def test_ephemeral_storage_is_standard():
	PodClass = import_models().PodClass
	p = pod(containers=[requesting({"ephemeral-storage": "10Gi"})])
	assert classify(p) == PodClass.TESTS


def test_prow_pods_in_ci_namespace():
	PodClass = import_models().PodClass
	assert classify(pod(ns="ci", labels={"created-by-prow": "true"})) == PodClass.PROW_JOBS
	assert classify(pod(ns="ci")) == PodClass.NONE


def test_other_namespaces_are_not_classified():
	PodClass = import_models().PodClass
	assert classify(pod(ns="default")) == PodClass.NONE
	assert classify(pod(ns="openshift-monitoring")) == PodClass.NONE
	# the prefix must match at the start
	assert classify(pod(ns="my-ci-op-1")) == PodClass.NONE


@pytest.mark.parametrize(
	"name",
	[
		"release-images-initial",
		"release-analysis-aggregator-x",
		"e2e-aws-upgrade-abc",
		"rpm-repo",
		"osde2e-stage-1",
		"e2e-aws-cnv",
		"e2e-gcp-ovn-upgrade-ipi-install",
		"e2e-ovn-upgrade-ovn-foo",
		"x-ovn-upgrade-openshift-e2e-test-y",
	],
)
def test_long_tests(name):
	PodClass = import_models().PodClass
	assert classify(pod(name=name)) == PodClass.LONG_TESTS


def test_long_test_names_do_not_refine_builds():
	PodClass = import_models().PodClass
	p = pod(name="release-images-initial", labels={"openshift.io/build.name": "foo"})
	assert classify(p) == PodClass.BUILDS


def test_long_test_prefix_must_lead():
	PodClass = import_models().PodClass
	assert classify(pod(name="unit-release-images-x")) == PodClass.TESTS


@pytest.mark.parametrize(
	"ns,name,expected",
	[
		("openshift-monitoring", "prometheus-0", True),
		("default", "redhat-operators-catalog-abc", True),
		("rh-corp-logging", "fluentd", True),
		("ocp", "x", True),
		("cert-manager", "x", True),
		("ci-op-12345", "unit", False),
		("openshift", "x", False),
		("default", "catalog", False),
	],
)
def test_needs_safe_to_evict(ns, name, expected):
	assert import_classify().needs_safe_to_evict(ns, name) is expected
