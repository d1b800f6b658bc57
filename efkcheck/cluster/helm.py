"""Helm collaborator: install and uninstall releases."""

import secrets
from typing import Callable, Iterable, List, Optional

from efkcheck.logging_config import configure_module_logging
from .command import CommandResult, run_command
from .exceptions import HelmError

logger = configure_module_logging("helm")


def release_name(prefix: str) -> str:
    """Unique release name such as ``efk-3fa9c1``."""
    return f"{prefix}-{secrets.token_hex(3)}"


class Helm:
    """Thin helm CLI client"""

    def __init__(
        self,
        binary: str = "helm",
        kubeconfig: Optional[str] = None,
        timeout: int = 300,
        runner: Callable[..., CommandResult] = run_command,
    ):
        self.binary = binary
        self.kubeconfig = kubeconfig
        self.timeout = timeout
        self._runner = runner

    @classmethod
    def from_config(cls, config) -> "Helm":
        return cls(
            binary=config.helm,
            kubeconfig=config.kubeconfig,
            timeout=config.helm_timeout,
        )

    def _run(self, *args: str) -> CommandResult:
        argv = [self.binary]
        if self.kubeconfig:
            argv += ["--kubeconfig", self.kubeconfig]
        # Leave helm's own --timeout room to fire first
        return self._runner(argv + list(args), timeout=self.timeout + 60)

    def install(
        self,
        release: str,
        chart: str,
        namespace: str,
        values_file: Optional[str] = None,
        set_values: Iterable[str] = (),
        wait: bool = False,
    ) -> str:
        """
        Install a chart as a named release.

        Args:
            release: Release name
            chart: Chart reference (repo/name, path or URL)
            namespace: Target namespace
            values_file: Values file passed with -f
            set_values: ``key=value`` overrides passed with --set
            wait: Pass --wait to helm

        Returns:
            The release name

        Raises:
            HelmError: If helm exits non-zero
        """
        args = [
            "install", release, chart,
            "--namespace", namespace,
            "--timeout", f"{self.timeout}s",
        ]
        if values_file:
            args += ["-f", values_file]
        for value in set_values:
            args += ["--set", value]
        if wait:
            args.append("--wait")

        logger.info(f"Installing {chart} as {release} in {namespace}")
        result = self._run(*args)
        if not result.ok:
            raise HelmError(f"helm install {release} failed: {result.stderr.strip()}")
        return release

    def uninstall(self, release: str, namespace: str):
        logger.info(f"Uninstalling {release} from {namespace}")
        result = self._run("uninstall", release, "--namespace", namespace)
        if not result.ok:
            raise HelmError(f"helm uninstall {release} failed: {result.stderr.strip()}")

    def list_releases(self, namespace: str) -> List[str]:
        result = self._run("list", "--namespace", namespace, "-q")
        if not result.ok:
            raise HelmError(f"helm list failed: {result.stderr.strip()}")
        return result.stdout.split()
