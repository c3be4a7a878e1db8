# SPDX-FileCopyrightText: 2025 Blackcat Informatics® Inc.
# SPDX-License-Identifier: MIT

"""PostgreSQL state checks, via ``psql`` inside the container or psycopg from the host."""

from __future__ import annotations

import logging
from typing import Dict, Set

import psycopg
from packaging.version import InvalidVersion, Version

from .config import DB_NAME, DB_PASSWORD, DB_USER
from .docker import DockerCLI
from .readiness import ProbeResult, ReadinessTimeout, wait_until_ready

logger = logging.getLogger(__name__)

CONTAINER_STOPPED_MARKERS = ("is not running", "No such container")


class ContainerStopped(RuntimeError):
    pass


def _sql_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _psql(docker: DockerCLI, container: str, sql: str, *flags: str):
    return docker.exec(container, "psql", *flags, f"--username={DB_USER}", f"--command={sql}")


def _count_query(database: str) -> str:
    return f"SELECT count(datname) FROM pg_database where datname = {_sql_literal(database)}"


def count_database(docker: DockerCLI, container: str, database: str) -> str:
    return _psql(docker, container, _count_query(database), "-t").stdout.strip()


def database_probe(docker: DockerCLI, container: str, database: str):
    def probe() -> ProbeResult:
        result = _psql(docker, container, _count_query(database), "-t")
        count = result.stdout.strip()
        if result.returncode == 0 and count == "1":
            return ProbeResult.ready(count)
        stderr = result.stderr.strip()
        if any(marker in stderr for marker in CONTAINER_STOPPED_MARKERS):
            return ProbeResult.error(ContainerStopped(stderr))
        return ProbeResult.not_ready(count or stderr)

    return probe


def wait_on_postgres_db(
    docker: DockerCLI,
    container: str,
    database: str,
    timeout: float = 120,
    interval: float = 1,
) -> ProbeResult:
    try:
        return wait_until_ready(
            database_probe(docker, container, database),
            timeout,
            interval,
            description=f"database {database}",
        )
    except ReadinessTimeout:
        logger.error("database %s never created", database)
        raise


def get_postgres_extensions(docker: DockerCLI, container: str) -> str:
    result = _psql(docker, container, "SELECT * FROM pg_extension")
    extensions = result.stdout.rstrip("\n")
    logger.info("retrieved extensions: %s", extensions)
    return extensions


def connection_settings(host: str, port: int) -> Dict[str, object]:
    return {
        "host": host,
        "port": port,
        "user": DB_USER,
        "password": DB_PASSWORD,
        "dbname": DB_NAME,
    }


def connect(settings, **kwargs) -> psycopg.Connection:
    return psycopg.connect(
        host=settings["host"],
        port=settings["port"],
        user=settings["user"],
        password=settings["password"],
        dbname=settings["dbname"],
        autocommit=True,
        **kwargs,
    )


def installed_extensions(settings) -> Set[str]:
    with connect(settings) as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT extname FROM pg_extension")
            return {row[0] for row in cur.fetchall()}


def parse_server_version(raw: str) -> Version:
    # e.g. "9.6.24" or "16.2 (Debian 16.2-1.pgdg120+2)"
    token = raw.strip().split(" ", 1)[0]
    try:
        return Version(token)
    except InvalidVersion as exc:
        raise ValueError(f"unrecognised server_version {raw!r}") from exc


def server_version(settings) -> Version:
    with connect(settings) as conn:
        with conn.cursor() as cur:
            cur.execute("SHOW server_version")
            row = cur.fetchone()
    return parse_server_version(row[0])


def connection_probe(settings, connect_timeout: int = 3):
    def probe() -> ProbeResult:
        try:
            with connect(settings, connect_timeout=connect_timeout) as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT 1")
        except psycopg.OperationalError as exc:
            return ProbeResult.not_ready(str(exc).strip())
        return ProbeResult.ready("accepting connections")

    return probe
