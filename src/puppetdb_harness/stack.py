# SPDX-FileCopyrightText: 2025 Blackcat Informatics® Inc.
# SPDX-License-Identifier: MIT

"""Bring a PostgreSQL + PuppetDB pair up on a private network, and tear it down."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Dict, List, Optional

from . import postgres, puppetdb
from .config import DB_NAME, DB_PASSWORD, DB_USER, HarnessConfig
from .docker import (
    DockerCLI,
    DockerError,
    create_host_volume_targets,
    is_windows_host,
    network_driver_options,
)
from .readiness import ProbeResult, wait_until_ready

logger = logging.getLogger(__name__)

VOLUMES = ["pgdata"]
POSTGRES_PORT = 5432


@dataclass
class StackContext:
    config: HarnessConfig
    docker: DockerCLI
    network: Optional[str] = None
    postgres_container: Optional[str] = None
    pdb_container: Optional[str] = None

    def containers(self) -> List[str]:
        return [cid for cid in (self.postgres_container, self.pdb_container) if cid]


def _run_named_container(ctx: StackContext, image: str, *, name: str, **kwargs) -> str:
    try:
        return ctx.docker.run_container(image, name=name, **kwargs)
    except DockerError:
        # `docker run` may fail after the container was created (e.g. port clash).
        ctx.docker.remove(name)
        raise


def create_network(ctx: StackContext) -> str:
    name = f"puppetdb_test_network_{random.randrange(1000)}"
    ctx.network = ctx.docker.create_network(name, network_driver_options())
    return ctx.network


def run_postgres_container(ctx: StackContext) -> str:
    config = ctx.config
    ctx.docker.pull(config.postgres_image)

    volumes = [f"{config.postgres_init_dir}:/docker-entrypoint-initdb.d"]
    if is_windows_host() and config.volume_root is not None:
        volumes.append(f"{config.volume_root}/pgdata:/var/lib/postgresql/data")

    env: Dict[str, str] = {
        "POSTGRES_PASSWORD": DB_PASSWORD,
        "POSTGRES_USER": DB_USER,
        "POSTGRES_DB": DB_NAME,
    }
    ctx.postgres_container = _run_named_container(
        ctx,
        config.postgres_image,
        name="postgres",
        hostname="postgres",
        network=ctx.network,
        env=env,
        volumes=volumes,
    )

    # The entrypoint restarts the server after running init scripts.
    postgres.wait_on_postgres_db(
        ctx.docker,
        ctx.postgres_container,
        DB_NAME,
        timeout=config.postgres_timeout,
        interval=config.poll_interval,
    )

    # The restarted server is the first to listen on TCP; wait for it on the published port.
    wait_until_ready(
        postgres.connection_probe(postgres_settings(ctx)),
        config.postgres_timeout,
        config.poll_interval,
        description="postgres port",
    )
    return ctx.postgres_container


def run_puppetdb_container(ctx: StackContext) -> str:
    # USE_PUPPETSERVER=false skips the Postgres SSL setup that needs a CA.
    ctx.pdb_container = _run_named_container(
        ctx,
        ctx.config.pdb_image,
        name="puppetdb",
        hostname="puppetdb",
        network=ctx.network,
        env={
            "USE_PUPPETSERVER": "false",
            "PUPPERWARE_ANALYTICS_ENABLED": "false",
        },
    )
    return ctx.pdb_container


def start_stack(config: HarnessConfig, docker: Optional[DockerCLI] = None) -> StackContext:
    ctx = StackContext(config=config, docker=docker or DockerCLI(config.docker_bin))
    try:
        create_host_volume_targets(config.volume_root, VOLUMES)
        create_network(ctx)
        run_postgres_container(ctx)
        run_puppetdb_container(ctx)
    except BaseException:
        stop_stack(ctx)
        raise
    return ctx


def stop_stack(ctx: StackContext) -> None:
    for container in ctx.containers():
        ctx.docker.emit_log(container)
        logger.info("Killing container %s", container)
        ctx.docker.kill(container)
        ctx.docker.remove(container)
    ctx.postgres_container = None
    ctx.pdb_container = None
    if ctx.network is not None:
        ctx.docker.remove_network(ctx.network)
        ctx.network = None


def puppetdb_url(ctx: StackContext) -> str:
    return ctx.docker.host_url(ctx.pdb_container, puppetdb.PUPPETDB_PORT)


def postgres_settings(ctx: StackContext):
    host, port = ctx.docker.host_port(ctx.postgres_container, POSTGRES_PORT)
    return postgres.connection_settings(host, port)


def wait_for_puppetdb(ctx: StackContext, timeout: Optional[float] = None) -> ProbeResult:
    return puppetdb.wait_on_puppetdb_status(
        puppetdb_url(ctx),
        timeout=timeout or ctx.config.puppetdb_timeout,
        interval=ctx.config.poll_interval,
    )
