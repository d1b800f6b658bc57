"""Harness configuration.

Settings are read from an optional YAML file (``EFKCHECK_CONFIG`` or an
explicit path) and then overridden by ``EFKCHECK_*`` environment variables.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from efkcheck.eventually import RetryPolicy

# Environment variable -> config field
ENV_OVERRIDES = {
    "EFKCHECK_NAMESPACE": "namespace",
    "EFKCHECK_TARGET_NAMESPACES": "target_namespaces",
    "EFKCHECK_KUBECTL": "kubectl",
    "EFKCHECK_HELM": "helm",
    "EFKCHECK_KUBECONFIG": "kubeconfig",
    "EFKCHECK_HELM_TIMEOUT": "helm_timeout",
    "EFKCHECK_RETRY_FREQUENCY": "retry_frequency",
    "EFKCHECK_HTTP_TIMEOUT": "http_timeout",
    "EFKCHECK_OPERATOR_CHART": "operator_chart",
    "EFKCHECK_WORKLOAD_CHART": "workload_chart",
    "EFKCHECK_CLIENT_IMAGE": "client_image",
    "EFKCHECK_LOG_DIR": "log_dir",
}


class HarnessConfig(BaseModel):
    """Cluster, chart and timing settings for an EFK validation run"""

    namespace: str = Field(default="efkcheck", min_length=1)
    target_namespaces: List[str] = Field(default_factory=list)

    kubectl: str = "kubectl"
    helm: str = "helm"
    kubeconfig: Optional[str] = None

    helm_timeout: int = Field(default=300, gt=0)
    retry_frequency: int = Field(default=10, gt=0)
    # Unset: min(5s, half the retry frequency)
    http_timeout: Optional[float] = Field(default=None, gt=0)
    command_timeout: float = Field(default=120.0, gt=0)

    operator_release_prefix: str = "efk"
    workload_release_prefix: str = "efk-coh"
    operator_chart: str = "coherence/coherence-operator"
    operator_values_file: str = "values/helm-values-efk.yaml"
    workload_chart: str = "coherence/coherence"
    default_set_values: Dict[str, str] = Field(default_factory=dict)

    operator_selector: str = "release={release},app=coherence-operator"
    dashboard_selector: str = "release={release},component=kibana"
    search_selector: str = "release={release},component=elasticsearch"
    workload_selector: str = "release={release},component=coherencePod"

    operator_container: str = "coherence-k8s-operator"
    workload_container: str = "coherence"
    collector_container: str = "fluentd"
    namespace_configmap: str = "coherence-internal-config"

    search_port: int = 9200
    dashboard_port: int = 5601

    readiness_index_fragment: str = "coherence"
    cluster_index_fragment: str = "coherence-cluster-"
    application_index_fragment: str = "cloud"
    host_field: str = "host"
    application_host_field: str = "member"

    index_pattern_ids: List[str] = Field(
        default_factory=lambda: [
            "6abb1220-3feb-11e9-a9a3-4b1c09db6e6a",
            "42520a20-4151-11e9-b896-8f011e97d2d5",
        ]
    )

    client_image: str = "efkcheck/cloud-client:latest"
    log_dir: str = "logs"

    @field_validator("target_namespaces", mode="before")
    @classmethod
    def split_namespaces(cls, v):
        if isinstance(v, str):
            return [ns.strip() for ns in v.split(",") if ns.strip()]
        return v

    @model_validator(mode="after")
    def probe_timeout_below_retry(self):
        if self.http_timeout is None:
            self.http_timeout = min(5.0, self.retry_frequency / 2)
        if self.http_timeout >= self.retry_frequency:
            raise ValueError(
                f"http_timeout ({self.http_timeout}s) must be shorter than "
                f"retry_frequency ({self.retry_frequency}s)"
            )
        return self

    @property
    def namespaces(self) -> List[str]:
        """Namespaces that receive workload releases."""
        return self.target_namespaces or [self.namespace]

    @property
    def all_namespaces(self) -> List[str]:
        """Harness namespace followed by any distinct target namespaces."""
        return list(dict.fromkeys([self.namespace] + self.namespaces))

    def selector(self, template: str, release: str) -> str:
        return template.format(release=release)

    def set_values(self, *overrides: str) -> List[str]:
        """Default ``--set`` overlay followed by the given ``key=value`` pairs."""
        return [f"{k}={v}" for k, v in self.default_set_values.items()] + list(
            overrides
        )

    def policy(
        self,
        initial_delay: float = 0.0,
        timeout: Optional[float] = None,
        retry_interval: Optional[float] = None,
    ) -> RetryPolicy:
        """Retry policy using the Helm timeout and the retry frequency."""
        interval = retry_interval or self.retry_frequency
        return RetryPolicy(
            initial_delay=initial_delay,
            retry_interval=interval,
            max_retry_interval=interval,
            timeout=timeout or self.helm_timeout,
        )


def _env_overrides(environ) -> Dict[str, Any]:
    return {
        field: environ[var] for var, field in ENV_OVERRIDES.items() if environ.get(var)
    }


def load_config(
    path: Optional[Union[str, Path]] = None, environ=None
) -> HarnessConfig:
    """
    Load harness configuration.

    Args:
        path: YAML file (default: ``EFKCHECK_CONFIG`` if set)
        environ: Environment mapping (default: ``os.environ``)

    Returns:
        Validated HarnessConfig

    Raises:
        yaml.YAMLError: If the YAML file is malformed
        pydantic.ValidationError: If a setting is invalid
    """
    environ = os.environ if environ is None else environ
    path = path or environ.get("EFKCHECK_CONFIG")

    data: Dict[str, Any] = {}
    if path:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

    data.update(_env_overrides(environ))
    return HarnessConfig(**data)
