import os
from dataclasses import dataclass

# Namespaces and labels used to recognize CI workloads
CI_NAMESPACE = "ci"
CI_JOB_NAMESPACE_PREFIXES = ("ci-op-", "ci-ln-")
CI_CREATED_BY_PROW_LABEL = "created-by-prow"
CI_BUILD_NAME_LABEL = "openshift.io/build.name"

# Keys written by this webhook
CI_WORKLOAD_LABEL = "ci-workload"
CI_WORKLOAD_NAMESPACE_LABEL = "ci-workload-namespace"
CI_WORKLOAD_AVOIDANCE_TAINT = "ci-workload-avoid"
RUNTIME_CLASS_PREFIX = "ci-scheduler-runtime-"
KUBERNETES_HOSTNAME_LABEL = "kubernetes.io/hostname"
SAFE_TO_EVICT_ANNOTATION = "cluster-autoscaler.kubernetes.io/safe-to-evict"
NODE_DISABLE_SCALE_DOWN_LABEL = "cluster-autoscaler.kubernetes.io/scale-down-disabled"

# Taint keys containing this marker are considered ours by the node safety scan
CI_TAINT_KEY_MARKER = "ci-"

# Requests a pod may carry and still be placed on the build/test node pools
STANDARD_RESOURCES = frozenset({"cpu", "memory", "ephemeral-storage"})

# Non "openshift-*" namespaces that need safe-to-evict
SAFE_TO_EVICT_NAMESPACE_PREFIX = "openshift-"
SAFE_TO_EVICT_NAME_INFIX = "-catalog-"
SAFE_TO_EVICT_NAMESPACES = frozenset({"rh-corp-logging", "ocp", "cert-manager"})

# Long running jobs get their own node set so normal test nodes scale down faster
LONG_TEST_NAME_PREFIXES = (
    "release-images-",
    "release-analysis-aggregator-",
    "e2e-aws-upgrade",
    "rpm-repo",
    "osde2e-stage",
    "e2e-aws-cnv",
)
LONG_TEST_NAME_INFIXES = (
    "ovn-upgrade-ipi",
    "ovn-upgrade-ovn",
    "ovn-upgrade-openshift-e2e-test",
)


def _get_env(name: str, default: str) -> str:
    val = os.getenv(name)
    return val if val is not None and val != "" else default


def _parse_int(name: str, default: int) -> int:
    val = _get_env(name, str(default))
    try:
        return int(val)
    except Exception:
        return default


def _parse_factor(name: str, default: float) -> float:
    val = _get_env(name, str(default))
    try:
        factor = float(val)
    except Exception:
        return default
    return factor if factor > 0.0 else default


@dataclass(frozen=True)
class Settings:
    # Behavior
    app_env: str = "production"
    shrink_build_cpu: float = 1.0
    shrink_test_cpu: float = 1.0

    # Prioritization state published by the external prioritizer
    redis_url: str = ""
    prioritization_key_prefix: str = "ci-scheduling"
    prioritization_timeout_seconds: int = 2

    # Server
    port: int = 8443
    tls_cert_file: str = "tls/tls.crt"
    tls_key_file: str = "tls/tls.key"


def load() -> Settings:
    return Settings(
        app_env=_get_env("APP_ENV", "production"),
        shrink_build_cpu=_parse_factor("SHRINK_BUILD_CPU", 1.0),
        shrink_test_cpu=_parse_factor("SHRINK_TEST_CPU", 1.0),
        redis_url=_get_env("REDIS_URL", ""),
        prioritization_key_prefix=_get_env(
            "PRIORITIZATION_KEY_PREFIX", "ci-scheduling"
        ),
        prioritization_timeout_seconds=_parse_int(
            "PRIORITIZATION_TIMEOUT_SECONDS", 2
        ),
        port=_parse_int("PORT", 8443),
        tls_cert_file=_get_env("TLS_CERT_FILE", "tls/tls.crt"),
        tls_key_file=_get_env("TLS_KEY_FILE", "tls/tls.key"),
    )


# Singleton settings for app usage (optional in tests)
settings: Settings = load()
