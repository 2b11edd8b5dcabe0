"""
Container toolchain interface and the docker CLI implementation.
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from typing import List, Optional

from ..cancel import CancelToken
from ..errors import Cancelled

logger = logging.getLogger(__name__)


class Toolchain(ABC):
    """Build/publish capability set. Every call returns the process exit status."""

    @abstractmethod
    def build(self, image: str, dockerfile: str, context: str) -> int:
        pass

    @abstractmethod
    def login(self, registry: str, username: str, password: str) -> int:
        pass

    @abstractmethod
    def push(self, image: str) -> int:
        pass


class DockerToolchain(Toolchain):
    """Runs the ``docker`` CLI with its output passed straight through to the operator."""

    def __init__(self, docker_bin: str = "docker", cancel: Optional[CancelToken] = None,
                 poll_interval: float = 0.2):
        self.docker_bin = docker_bin
        self.cancel = cancel
        self.poll_interval = poll_interval

    def build(self, image: str, dockerfile: str, context: str) -> int:
        return self._run([self.docker_bin, "build", "-t", image, "-f", dockerfile, context])

    def login(self, registry: str, username: str, password: str) -> int:
        # Password is passed on stdin, never on the command line
        return self._run(
            [self.docker_bin, "login", "--username", username, "--password-stdin", registry],
            stdin_data=password,
        )

    def push(self, image: str) -> int:
        return self._run([self.docker_bin, "push", image])

    def _run(self, command: List[str], stdin_data: Optional[str] = None) -> int:
        """
        Run a docker command to completion.

        Args:
            command: Command line to execute
            stdin_data: Optional text written to the child's stdin

        Returns:
            Exit status of the process (127 if the binary is missing)

        Raises:
            Cancelled: If the cancel token is set while the process runs
        """
        shown = " ".join(command[:2])
        logger.info(f"Running {shown}")

        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.PIPE if stdin_data is not None else None,
                text=True,
            )
        except FileNotFoundError:
            logger.error(f"{self.docker_bin} executable not found")
            return 127

        if stdin_data is not None:
            try:
                process.stdin.write(stdin_data)
                process.stdin.close()
            except BrokenPipeError:
                # Child exited before reading stdin; its exit status tells why
                logger.debug(f"{shown} closed stdin early")

        while True:
            try:
                returncode = process.wait(timeout=self.poll_interval)
                break
            except subprocess.TimeoutExpired:
                if self.cancel is not None and self.cancel.cancelled:
                    logger.warning(f"Cancelling {shown}")
                    process.terminate()
                    try:
                        process.wait(timeout=10)
                    except subprocess.TimeoutExpired:
                        process.kill()
                        process.wait()
                    raise Cancelled(shown)

        logger.debug(f"{shown} exited with status {returncode}")
        return returncode
