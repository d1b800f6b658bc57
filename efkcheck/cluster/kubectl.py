"""kubectl collaborator: pod enumeration, logs, readiness and port-forwards."""

import json
import socket
import subprocess
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from efkcheck.eventually import RetryPolicy, assert_eventually, is_true
from efkcheck.logging_config import configure_module_logging
from .command import CommandResult, run_command
from .exceptions import KubectlError, PortForwardError

logger = configure_module_logging("kubectl")

# Polling used while a port-forward tunnel comes up
PORT_FORWARD_POLICY = RetryPolicy(retry_interval=0.5, timeout=30)


def free_port() -> int:
    """Ask the OS for an unused local TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class PortForward:
    """``kubectl port-forward`` subprocess exposing a pod port on localhost."""

    def __init__(
        self,
        argv: Sequence[str],
        local_port: int,
        policy: Optional[RetryPolicy] = None,
        popen: Callable = subprocess.Popen,
        connect: Callable = socket.create_connection,
    ):
        self.argv = list(argv)
        self.local_port = local_port
        self.policy = policy or PORT_FORWARD_POLICY
        self._popen = popen
        self._connect = connect
        self._process = None

    @property
    def url(self) -> str:
        return f"http://127.0.0.1:{self.local_port}"

    def _tunnel_open(self) -> bool:
        if self._process.poll() is not None:
            stderr = self._process.stderr.read() if self._process.stderr else ""
            raise PortForwardError(
                f"port-forward exited with {self._process.returncode}: {stderr}"
            )
        with self._connect(("127.0.0.1", self.local_port), timeout=1):
            return True

    def start(self) -> "PortForward":
        logger.debug(f"Starting: {' '.join(self.argv)}")
        self._process = self._popen(
            self.argv,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            text=True,
        )
        try:
            assert_eventually(
                self._tunnel_open,
                is_true(),
                self.policy,
                description=f"port-forward to {self.url}",
            )
        except Exception:
            self.close()
            raise
        logger.info(f"Port-forward ready at {self.url}")
        return self

    def close(self):
        if self._process is None:
            return
        if self._process.poll() is None:
            self._process.terminate()
            try:
                self._process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self._process.kill()
        self._process = None

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class Kubectl:
    """Thin kubectl CLI client"""

    def __init__(
        self,
        binary: str = "kubectl",
        kubeconfig: Optional[str] = None,
        timeout: float = 120.0,
        runner: Callable[..., CommandResult] = run_command,
    ):
        self.binary = binary
        self.kubeconfig = kubeconfig
        self.timeout = timeout
        self._runner = runner

    @classmethod
    def from_config(cls, config) -> "Kubectl":
        return cls(
            binary=config.kubectl,
            kubeconfig=config.kubeconfig,
            timeout=config.command_timeout,
        )

    def _argv(self, args: Sequence[str], namespace: Optional[str]) -> List[str]:
        argv = [self.binary]
        if self.kubeconfig:
            argv += ["--kubeconfig", self.kubeconfig]
        if namespace and namespace.strip():
            argv += ["--namespace", namespace]
        return argv + list(args)

    def run(
        self,
        *args: str,
        namespace: Optional[str] = None,
        check: bool = False,
        input: Optional[str] = None,
    ) -> CommandResult:
        """
        Execute a kubectl command.

        Args:
            args: kubectl arguments (e.g., "get", "pods")
            namespace: Namespace passed as --namespace
            check: Raise KubectlError if the command fails
            input: Text passed on stdin

        Returns:
            CommandResult with stdout, stderr, and returncode
        """
        argv = self._argv(args, namespace)
        result = self._runner(argv, timeout=self.timeout, input=input)
        if check and not result.ok:
            raise KubectlError(
                f"kubectl {' '.join(args)} failed: {result.stderr.strip()}",
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return result

    def get_pods(self, namespace: str, selector: str) -> List[str]:
        """Names of the pods matching a label selector."""
        result = self.run(
            "get", "pods", "-l", selector,
            "-o", "jsonpath={.items[*].metadata.name}",
            namespace=namespace, check=True,
        )
        return result.stdout.split()

    def get_pod_uids(self, namespace: str, selector: str) -> List[str]:
        """UIDs of the pods matching a label selector."""
        result = self.run(
            "get", "pods", "-l", selector,
            "-o", "jsonpath={.items[*].metadata.uid}",
            namespace=namespace, check=True,
        )
        return result.stdout.strip().strip('"').split()

    def get_pod_log(
        self, namespace: str, pod: str, container: Optional[str] = None
    ) -> List[str]:
        """Log lines of a pod, optionally scoped to one container."""
        args = ["logs", pod]
        if container:
            args += ["-c", container]
        return self.run(*args, namespace=namespace, check=True).lines

    def is_deployment_ready(self, namespace: str, selector: str) -> bool:
        """True if at least one deployment matches and all are fully available."""
        result = self.run(
            "get", "deployments", "-l", selector, "-o", "json", namespace=namespace
        )
        if not result.ok:
            return False

        items = json.loads(result.stdout).get("items", [])
        if not items:
            return False

        for deployment in items:
            wanted = deployment.get("spec", {}).get("replicas", 1)
            ready = deployment.get("status", {}).get("readyReplicas", 0)
            if ready < wanted:
                logger.debug(
                    f"Deployment {deployment.get('metadata', {}).get('name')}: {ready}/{wanted} ready"
                )
                return False
        return True

    def are_pods_ready(self, namespace: str, selector: str) -> bool:
        """True if at least one pod matches and every match has Ready=True."""
        result = self.run("get", "pods", "-l", selector, "-o", "json", namespace=namespace)
        if not result.ok:
            return False

        items = json.loads(result.stdout).get("items", [])
        if not items:
            return False

        for pod in items:
            conditions = pod.get("status", {}).get("conditions", [])
            if not any(
                c.get("type") == "Ready" and c.get("status") == "True"
                for c in conditions
            ):
                return False
        return True

    def resource_exists(
        self, kind: str, name: str, namespace: Optional[str] = None
    ) -> bool:
        return self.run("get", kind, name, namespace=namespace).ok

    def ensure_namespace(self, namespace: str):
        if not self.resource_exists("namespace", namespace):
            logger.info(f"Creating namespace {namespace}")
            self.run("create", "namespace", namespace, check=True)

    def delete_namespace(self, namespace: str):
        self.run("delete", "namespace", namespace, "--ignore-not-found", check=True)

    def apply(self, manifest, namespace: Optional[str] = None) -> CommandResult:
        """Apply a manifest file (Path) or manifest text (str)."""
        if isinstance(manifest, Path):
            return self.run("apply", "-f", str(manifest), namespace=namespace, check=True)
        return self.run("apply", "-f", "-", namespace=namespace, check=True, input=manifest)

    def delete(
        self, kind: str, name: str, namespace: Optional[str] = None
    ) -> CommandResult:
        return self.run("delete", kind, name, "--ignore-not-found", namespace=namespace)

    def port_forward(
        self,
        namespace: str,
        pod: str,
        remote_port: int,
        local_port: Optional[int] = None,
        policy: Optional[RetryPolicy] = None,
    ) -> PortForward:
        """Build (not start) a port-forward to ``pod:remote_port``."""
        local_port = local_port or free_port()
        argv = self._argv(
            ["port-forward", f"pod/{pod}", f"{local_port}:{remote_port}"], namespace
        )
        return PortForward(argv, local_port, policy=policy)
