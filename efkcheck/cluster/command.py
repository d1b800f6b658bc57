"""Subprocess wrapper shared by the kubectl and helm collaborators."""

import subprocess
from typing import List, NamedTuple, Optional, Sequence

from efkcheck.logging_config import configure_module_logging
from .exceptions import CommandNotFoundError, KubectlError

logger = configure_module_logging("cluster")


class CommandResult(NamedTuple):
    """Result from CLI command execution."""

    stdout: str
    stderr: str
    returncode: int

    @property
    def lines(self) -> List[str]:
        return self.stdout.splitlines()

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def run_command(
    argv: Sequence[str], timeout: float = 120.0, input: Optional[str] = None
) -> CommandResult:
    """
    Execute a CLI command and capture its output.

    Args:
        argv: Full command line (binary first)
        timeout: Seconds before the command is killed
        input: Text passed on stdin

    Returns:
        CommandResult with stdout, stderr, and returncode

    Raises:
        CommandNotFoundError: If the binary does not exist
        KubectlError: If the command timed out
    """
    logger.debug(f"Running: {' '.join(argv)}")
    try:
        result = subprocess.run(
            list(argv),
            capture_output=True,
            text=True,
            input=input,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        raise CommandNotFoundError(f"{argv[0]} not found: {e}")
    except subprocess.TimeoutExpired:
        raise KubectlError(f"{' '.join(argv)} timed out after {timeout}s")

    if result.returncode != 0:
        logger.debug(f"{argv[0]} exited {result.returncode}: {result.stderr.strip()}")

    return CommandResult(
        stdout=result.stdout,
        stderr=result.stderr,
        returncode=result.returncode,
    )
