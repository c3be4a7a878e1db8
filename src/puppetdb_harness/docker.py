# SPDX-FileCopyrightText: 2025 Blackcat Informatics® Inc.
# SPDX-License-Identifier: MIT

"""Thin wrapper around the container runtime CLI (docker or podman)."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

WILDCARD_HOSTS = {"0.0.0.0", "::", "[::]", ""}


class DockerError(RuntimeError):
    pass


def is_windows_host() -> bool:
    return os.name == "nt"


def network_driver_options() -> List[str]:
    # Windows has no default bridge driver.
    return ["--driver=nat"] if is_windows_host() else []


def create_host_volume_targets(volume_root: Optional[Path], volumes: Iterable[str]) -> List[Path]:
    """Create host-side directories for bind-mounted volumes.

    LCOW requires the target directories to exist before ``docker run``.
    Without a volume root nothing is mounted from the host, so nothing is
    created.
    """
    if volume_root is None:
        return []
    created = []
    for volume in volumes:
        target = Path(volume_root) / volume
        target.mkdir(parents=True, exist_ok=True)
        created.append(target)
    return created


class DockerCLI:
    def __init__(self, binary: str = "docker"):
        self.binary = binary

    def run_command(self, *args: str) -> subprocess.CompletedProcess:
        cmd = [self.binary, *args]
        logger.debug("running %s", " ".join(cmd))
        return subprocess.run(cmd, capture_output=True, text=True)

    def _checked(self, action: str, *args: str) -> str:
        result = self.run_command(*args)
        if result.returncode != 0:
            raise DockerError(f"Failed to {action}: {result.stderr.strip()}")
        return result.stdout.strip()

    def pull(self, image: str) -> None:
        result = self.run_command("pull", image)
        if result.returncode != 0:
            # A locally built image may not exist in any registry.
            logger.warning("pull of %s failed: %s", image, result.stderr.strip())

    def create_network(self, name: str, driver_options: Sequence[str] = ()) -> str:
        return self._checked("create network", "network", "create", *driver_options, name)

    def remove_network(self, network: str) -> subprocess.CompletedProcess:
        return self.run_command("network", "rm", network)

    def run_container(
        self,
        image: str,
        *,
        name: str,
        hostname: str,
        network: str,
        env: Optional[Dict[str, str]] = None,
        volumes: Sequence[str] = (),
        publish_all: bool = True,
    ) -> str:
        args = ["run", "--detach"]
        for key, value in (env or {}).items():
            args += ["--env", f"{key}={value}"]
        args += ["--name", name, "--hostname", hostname, "--network", network]
        if publish_all:
            args.append("--publish-all")
        for volume in volumes:
            args += ["--volume", volume]
        args.append(image)
        return self._checked(f"create {name} container", *args)

    def exec(self, container: str, *cmd: str) -> subprocess.CompletedProcess:
        return self.run_command("exec", container, *cmd)

    def kill(self, container: str) -> subprocess.CompletedProcess:
        return self.run_command("container", "kill", container)

    def remove(self, container: str) -> subprocess.CompletedProcess:
        return self.run_command("container", "rm", "--force", container)

    def logs(self, container: str) -> str:
        result = self.run_command("logs", container)
        return result.stdout + result.stderr

    def emit_log(self, container: str) -> None:
        logger.info("logs for container %s:\n%s", container, self.logs(container))

    def host_port(self, container: str, port: int) -> Tuple[str, int]:
        """Resolve where a container port is published on the host."""
        output = self._checked(f"look up port {port} of {container}", "port", container, f"{port}/tcp")
        binding = output.splitlines()[0].strip() if output else ""
        host, _, host_port = binding.rpartition(":")
        if not host_port.isdigit():
            raise DockerError(f"container {container} does not publish port {port}: {output!r}")
        if host in WILDCARD_HOSTS:
            host = "127.0.0.1"
        return host, int(host_port)

    def host_url(self, container: str, port: int) -> str:
        host, host_port = self.host_port(container, port)
        return f"http://{host}:{host_port}"
