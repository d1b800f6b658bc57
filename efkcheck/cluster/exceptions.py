"""
Cluster-related exceptions

Failures that a polling loop can retry (a kubectl call that exited non-zero
while resources are still starting) derive from ClusterError only; setup
failures that make retrying pointless are also FatalProbeError.
"""

from efkcheck.eventually import FatalProbeError


class ClusterError(Exception):
    """Base exception for cluster operations"""

    pass


class KubectlError(ClusterError):
    """CLI command exited with a non-zero status or timed out"""

    def __init__(self, message: str, returncode: int = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class CommandNotFoundError(ClusterError, FatalProbeError):
    """CLI binary is not installed or not on PATH"""

    pass


class HelmError(ClusterError, FatalProbeError):
    """Helm install or uninstall failed"""

    pass


class PortForwardError(ClusterError, FatalProbeError):
    """Port-forward process exited before the tunnel was usable"""

    pass
