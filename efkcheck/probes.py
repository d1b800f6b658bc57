"""Probe factories for the EFK pipeline.

Each factory captures its collaborators and arguments in a zero-argument
closure suitable for ``assert_eventually``. Probes only read; any
exception they raise is a transient observation unless it is fatal.
"""

from typing import Callable, List, Optional, Sequence

from efkcheck.cluster import Kubectl
from efkcheck.eventually import Condition
from efkcheck.search import DashboardClient, IndexPattern, LogRecord, SearchClient


def collector_ready(search: SearchClient, fragment: str) -> Callable[[], bool]:
    """True once an index containing ``fragment`` exists.

    The log collector creates its index on the first shipped record.
    """

    def probe() -> bool:
        return any(fragment in line for line in search.cat_indices())

    return probe


def deployment_ready_probe(
    kubectl: Kubectl, namespace: str, selector: str
) -> Callable[[], bool]:
    return lambda: kubectl.is_deployment_ready(namespace, selector)


def pods_ready_probe(
    kubectl: Kubectl, namespace: str, selector: str
) -> Callable[[], bool]:
    return lambda: kubectl.are_pods_ready(namespace, selector)


def namespace_ready_probe(
    kubectl: Kubectl, namespace: str, configmap: str
) -> Callable[[], bool]:
    """True once the operator has written its config map to ``namespace``."""
    return lambda: kubectl.resource_exists("configmap", configmap, namespace)


def pod_log_probe(
    kubectl: Kubectl, namespace: str, pod: str, container: Optional[str] = None
) -> Callable[[], List[str]]:
    return lambda: kubectl.get_pod_log(namespace, pod, container)


def log_records_probe(
    search: SearchClient,
    resolve_index: Callable[[], str],
    field: str,
    keywords: Sequence[str],
    host_field: str,
    host: str,
) -> Callable[[], List[LogRecord]]:
    """Records for ``field``/``keywords`` on ``host``.

    The index is resolved on every call so that a not-yet-created index is
    just another failed attempt.
    """

    def probe() -> List[LogRecord]:
        return search.query_records(resolve_index(), field, keywords, host_field, host)

    return probe


def index_pattern_probe(
    dashboard: DashboardClient, pattern_id: str
) -> Callable[[], Optional[IndexPattern]]:
    return lambda: dashboard.get_index_pattern(pattern_id)


def records_matching(host: str, keywords: Sequence[str]) -> Condition:
    """Any record from ``host`` whose value contains any of ``keywords``."""
    if not keywords:
        raise ValueError("records_matching requires at least one keyword")

    def _check(records) -> bool:
        return any(
            host in record.host and any(k in record.value for k in keywords)
            for record in records or []
        )

    return Condition(_check, f"record from {host} containing any of {list(keywords)!r}")


def index_pattern_with_id(pattern_id: str) -> Condition:
    return Condition(
        lambda pattern: pattern is not None and pattern.id == pattern_id,
        f"index pattern {pattern_id!r}",
    )
