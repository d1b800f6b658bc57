from .command import CommandResult, run_command
from .exceptions import (
    ClusterError,
    CommandNotFoundError,
    HelmError,
    KubectlError,
    PortForwardError,
)
from .helm import Helm, release_name
from .kubectl import Kubectl, PortForward, free_port

__all__ = [
    "ClusterError",
    "CommandNotFoundError",
    "CommandResult",
    "Helm",
    "HelmError",
    "Kubectl",
    "KubectlError",
    "PortForward",
    "PortForwardError",
    "free_port",
    "release_name",
    "run_command",
]
