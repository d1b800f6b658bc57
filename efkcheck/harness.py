"""
EFK Harness - scenario lifecycle for logging pipeline validation.

Holds the cluster, release and pod handles for one test run and exposes the
steps the integration tests are built from:
- deploy the logging stack and wait for it (``setup``)
- install workload releases and clients
- verify log records in the search index and dashboard index patterns
- capture pod logs and clean everything up (``teardown``)
"""

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import yaml

from efkcheck.cluster import ClusterError, Helm, Kubectl, PortForward, release_name
from efkcheck.config import HarnessConfig
from efkcheck.eventually import (
    RetryPolicy,
    assert_eventually,
    contains_all,
    contains_any,
    is_true,
    not_none,
)
from efkcheck.logging_config import (
    StructuredLogContext,
    configure_module_logging,
    write_pod_log,
)
from efkcheck.probes import (
    collector_ready,
    deployment_ready_probe,
    index_pattern_probe,
    index_pattern_with_id,
    log_records_probe,
    namespace_ready_probe,
    pod_log_probe,
    pods_ready_probe,
    records_matching,
)
from efkcheck.search import (
    DashboardClient,
    DashboardError,
    IndexPattern,
    LogRecord,
    SearchClient,
)

logger = configure_module_logging("harness")

Keywords = Union[str, Sequence[str]]

# Wait for the application index created by the sidecar collector
APPLICATION_INDEX_TIMEOUT = 180


def _keywords(keywords: Keywords) -> List[str]:
    if isinstance(keywords, str):
        keywords = [keywords]
    keywords = list(keywords)
    if not keywords:
        raise ValueError("at least one keyword is required")
    return keywords


class EFKHarness:
    """Deploys the logging stack and verifies log propagation through it."""

    def __init__(
        self,
        config: HarnessConfig,
        kubectl: Optional[Kubectl] = None,
        helm: Optional[Helm] = None,
        search: Optional[SearchClient] = None,
        dashboard: Optional[DashboardClient] = None,
    ):
        self.config = config
        self.kubectl = kubectl or Kubectl.from_config(config)
        self.helm = helm or Helm.from_config(config)
        self.search = search
        self.dashboard = dashboard

        self.operator_release: Optional[str] = None
        self.search_pod: Optional[str] = None
        self.dashboard_pod: Optional[str] = None
        self.releases: List[Tuple[str, str]] = []  # (namespace, release)
        self.clients: List[Tuple[str, str]] = []  # (namespace, pod)

        self._port_forwards: List[PortForward] = []
        self._indices: Dict[str, str] = {}

    # ----- lifecycle -----------------------------------------------------

    def setup(self) -> "EFKHarness":
        """Install the operator chart and wait until the logging stack is usable."""
        cfg = self.config

        for namespace in cfg.all_namespaces:
            self.kubectl.ensure_namespace(namespace)

        logger.info(f"Deploying {cfg.operator_chart} with {cfg.operator_values_file}")
        self.operator_release = self.helm.install(
            release_name(cfg.operator_release_prefix),
            cfg.operator_chart,
            cfg.namespace,
            values_file=cfg.operator_values_file,
            set_values=cfg.set_values(),
        )

        for template in (cfg.operator_selector, cfg.dashboard_selector, cfg.search_selector):
            self.assert_deployment_ready(
                cfg.namespace, cfg.selector(template, self.operator_release)
            )

        self.search_pod = self._single_pod(cfg.search_selector)
        self.dashboard_pod = self._single_pod(cfg.dashboard_selector)

        if self.search is None:
            tunnel = self._forward(self.search_pod, cfg.search_port)
            self.search = SearchClient(tunnel.url, timeout=cfg.http_timeout)
        if self.dashboard is None:
            tunnel = self._forward(self.dashboard_pod, cfg.dashboard_port)
            self.dashboard = DashboardClient(tunnel.url, timeout=cfg.http_timeout)

        assert_eventually(
            collector_ready(self.search, cfg.readiness_index_fragment),
            is_true(),
            cfg.policy(initial_delay=10),
            description="Log collector never created its index",
        )

        for namespace in cfg.namespaces:
            assert_eventually(
                namespace_ready_probe(self.kubectl, namespace, cfg.namespace_configmap),
                is_true(),
                cfg.policy(initial_delay=2),
                description=f"Namespace {namespace} not configured by operator",
            )

        logger.info(f"Logging stack ready (release {self.operator_release})")
        return self

    def teardown(self):
        """Capture logs and remove everything the harness created.

        Failures are logged so that cleanup always runs to completion.
        """
        cfg = self.config
        self.delete_clients()
        self.uninstall_workloads()

        if self.operator_release:
            selector = cfg.selector(cfg.operator_selector, self.operator_release)
            self.capture_pod_logs(selector, cfg.operator_container)
            self.capture_pod_logs(selector, cfg.collector_container)
            try:
                self.helm.uninstall(self.operator_release, cfg.namespace)
            except ClusterError as e:
                logger.error(f"Error cleaning up release {self.operator_release}: {e}")
            self.operator_release = None

        for tunnel in self._port_forwards:
            tunnel.close()
        self._port_forwards = []

        for client in (self.search, self.dashboard):
            if client is not None:
                client.close()

        for namespace in reversed(cfg.all_namespaces):
            try:
                self.kubectl.delete_namespace(namespace)
            except ClusterError as e:
                logger.error(f"Error deleting namespace {namespace}: {e}")

    def __enter__(self):
        try:
            return self.setup()
        except BaseException:
            self.teardown()
            raise

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.teardown()

    def _single_pod(self, template: str) -> str:
        selector = self.config.selector(template, self.operator_release)
        pods = self.kubectl.get_pods(self.config.namespace, selector)
        if len(pods) != 1:
            raise AssertionError(f"Expected one pod for {selector}, found {pods}")
        return pods[0]

    def _forward(self, pod: str, port: int) -> PortForward:
        tunnel = self.kubectl.port_forward(self.config.namespace, pod, port).start()
        self._port_forwards.append(tunnel)
        return tunnel

    # ----- workloads -----------------------------------------------------

    def assert_deployment_ready(self, namespace: str, selector: str):
        assert_eventually(
            deployment_ready_probe(self.kubectl, namespace, selector),
            is_true(),
            self.config.policy(),
            description=f"Deployment {selector} in {namespace} not ready",
        )

    def install_workload(self, namespace: str, values_file: str, *set_values: str) -> str:
        """Install a workload release; ``set_values`` are ``key=value`` pairs."""
        cfg = self.config
        release = self.helm.install(
            release_name(cfg.workload_release_prefix),
            cfg.workload_chart,
            namespace,
            values_file=values_file,
            set_values=cfg.set_values(*set_values),
        )
        self.releases.append((namespace, release))
        return release

    def workload_selector(self, release: str) -> str:
        return self.config.selector(self.config.workload_selector, release)

    def workload_pods(self, namespace: str, release: str) -> List[str]:
        return self.kubectl.get_pods(namespace, self.workload_selector(release))

    def assert_workload_ready(self, namespace: str, release: str):
        assert_eventually(
            pods_ready_probe(self.kubectl, namespace, self.workload_selector(release)),
            is_true(),
            self.config.policy(),
            description=f"Pods of release {release} in {namespace} not ready",
        )

    def wait_for_pod_log(
        self,
        namespace: str,
        pod: str,
        keywords: Keywords,
        container: Optional[str] = None,
        policy: Optional[RetryPolicy] = None,
    ) -> List[str]:
        """Wait until the pod log contains any of ``keywords``."""
        return assert_eventually(
            pod_log_probe(self.kubectl, namespace, pod, container),
            contains_any(*_keywords(keywords)),
            policy or self.config.policy(),
            description=f"Log of pod {pod} ({container or 'default'} container)",
        )

    def uninstall_workloads(self):
        for namespace, release in reversed(self.releases):
            try:
                self.helm.uninstall(release, namespace)
            except ClusterError as e:
                logger.error(f"Error cleaning up release {release}: {e}")
        self.releases = []

    def pod_uids(self, namespace: str, release: str) -> List[str]:
        return self.kubectl.get_pod_uids(namespace, self.workload_selector(release))

    # ----- clients -------------------------------------------------------

    def client_manifest(self, name: str, release: str, cluster: str) -> str:
        """Pod manifest for a workload client joining ``cluster``."""
        pod = {
            "apiVersion": "v1",
            "kind": "Pod",
            "metadata": {"name": name, "labels": {"app": "efkcheck-client"}},
            "spec": {
                "restartPolicy": "Never",
                "containers": [
                    {
                        "name": "client",
                        "image": self.config.client_image,
                        "env": [
                            {"name": "CLUSTER_NAME", "value": cluster},
                            {
                                "name": "CLUSTER_WKA",
                                "value": f"{release}-{self.config.workload_container}-headless",
                            },
                        ],
                    }
                ],
            },
        }
        return yaml.safe_dump(pod, sort_keys=False)

    def install_client(self, name: str, namespace: str, release: str, cluster: str):
        self.kubectl.apply(self.client_manifest(name, release, cluster), namespace)
        self.clients.append((namespace, name))

    def wait_for_client_state(
        self, namespace: str, pod: str, *keywords: str, timeout: Optional[float] = None
    ) -> List[str]:
        """Wait until every keyword appears in the client pod log."""
        return assert_eventually(
            pod_log_probe(self.kubectl, namespace, pod),
            contains_all(*keywords),
            self.config.policy(timeout=timeout),
            description=f"Client {pod} never reached required state",
        )

    def delete_clients(self):
        for namespace, name in self.clients:
            try:
                self.kubectl.delete("pod", name, namespace)
            except ClusterError as e:
                logger.error(f"Error deleting client {name}: {e}")
        self.clients = []

    # ----- search index --------------------------------------------------

    def _resolve_index(self, fragment: str) -> str:
        if fragment not in self._indices:
            name = self.search.find_index(fragment)
            if name is None:
                raise AssertionError(f"No index matching {fragment!r}")
            logger.info(f"Resolved index {name} for {fragment!r}")
            self._indices[fragment] = name
        return self._indices[fragment]

    def cluster_index(self) -> str:
        return self._resolve_index(self.config.cluster_index_fragment)

    def application_index(self) -> str:
        return self._resolve_index(self.config.application_index_fragment)

    def wait_for_application_index(self) -> str:
        return assert_eventually(
            self.application_index,
            not_none(),
            self.config.policy(timeout=APPLICATION_INDEX_TIMEOUT),
            description=f"{self.config.application_index_fragment}-* index is not null",
        )

    def _host(self, release: str) -> str:
        return f"{release}-{self.config.workload_container}"

    def _records_probe(self, release, field, keywords, application):
        cfg = self.config
        if application:
            resolve, host_field = self.application_index, cfg.application_host_field
        else:
            resolve, host_field = self.cluster_index, cfg.host_field
        return log_records_probe(
            self.search, resolve, field, keywords, host_field, self._host(release)
        )

    def verify_log_record(
        self, release: str, field: str, keywords: Keywords, application: bool = False
    ) -> bool:
        """One-shot check that a record from ``release`` has ``field`` matching any keyword."""
        keywords = _keywords(keywords)
        records = self._records_probe(release, field, keywords, application)()
        result = records_matching(self._host(release), keywords)(records)
        logger.info(
            f"Verify {StructuredLogContext(release=release, field=field, keywords=keywords)}: {result}"
        )
        return result

    def verify_application_record(self, release: str, field: str, keywords: Keywords) -> bool:
        return self.verify_log_record(release, field, keywords, application=True)

    def assert_log_record(
        self, release: str, field: str, keywords: Keywords, application: bool = False
    ) -> List[LogRecord]:
        """Wait until a matching record from ``release`` is searchable."""
        keywords = _keywords(keywords)
        return assert_eventually(
            self._records_probe(release, field, keywords, application),
            records_matching(self._host(release), keywords),
            self.config.policy(),
            description=f"No {field} record for release {release}",
        )

    # ----- dashboard -----------------------------------------------------

    def validate_index_pattern(self, pattern_id: str) -> IndexPattern:
        pattern = self.dashboard.get_index_pattern(pattern_id)
        if not index_pattern_with_id(pattern_id)(pattern):
            raise AssertionError(f"Index pattern {pattern_id} not found, got {pattern!r}")
        return pattern

    def assert_index_pattern(self, pattern_id: str) -> IndexPattern:
        return assert_eventually(
            index_pattern_probe(self.dashboard, pattern_id),
            index_pattern_with_id(pattern_id),
            self.config.policy(),
            description=f"Index pattern {pattern_id} not provisioned",
        )

    def create_application_index_pattern(
        self, pattern_file: Union[str, Path], pattern_id: Optional[str] = None
    ) -> dict:
        """Create the application index pattern from a saved-object JSON file."""
        pattern_id = pattern_id or f"{self.config.application_index_fragment}-*"
        try:
            return self.dashboard.create_index_pattern(pattern_id, Path(pattern_file))
        except DashboardError:
            self.dump_pod_log(self.config.namespace, self.dashboard_pod)
            raise

    # ----- pod logs ------------------------------------------------------

    def dump_pod_log(
        self, namespace: str, pod: str, container: Optional[str] = None
    ) -> Optional[Path]:
        try:
            lines = self.kubectl.get_pod_log(namespace, pod, container)
        except ClusterError as e:
            logger.warning(f"Could not read log of {pod}: {e}")
            return None

        path = write_pod_log(pod, lines, container, Path(self.config.log_dir) / "pods")
        logger.info(f"Captured {len(lines)} log lines of {pod} to {path}")
        return path

    def capture_pod_logs(
        self, selector: str, container: Optional[str] = None, namespace: Optional[str] = None
    ) -> List[Path]:
        namespace = namespace or self.config.namespace
        try:
            pods = self.kubectl.get_pods(namespace, selector)
        except ClusterError as e:
            logger.warning(f"Could not list pods for {selector}: {e}")
            return []

        paths = [self.dump_pod_log(namespace, pod, container) for pod in pods]
        return [p for p in paths if p is not None]
