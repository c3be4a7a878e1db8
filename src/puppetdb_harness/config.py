# SPDX-FileCopyrightText: 2025 Blackcat Informatics® Inc.
# SPDX-License-Identifier: MIT

"""Environment-driven settings for the container test harness."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

# Init SQL ships as package data.
DEFAULT_POSTGRES_INIT_DIR = Path(__file__).resolve().parent / "postgres-custom"

# Credentials baked into both containers; PuppetDB's image defaults match these.
DB_USER = "puppetdb"
DB_PASSWORD = "puppetdb"
DB_NAME = "puppetdb"

IMAGE_ENV_VAR = "PUPPET_TEST_DOCKER_IMAGE"

MISSING_IMAGE_MESSAGE = f"""
  * * * * *
  {IMAGE_ENV_VAR} environment variable must be set so we
  know which image to test against!
  * * * * *
"""


class HarnessConfigError(RuntimeError):
    pass


@dataclass
class HarnessConfig:
    pdb_image: str
    postgres_image: str = "postgres:9.6"
    volume_root: Optional[Path] = None
    docker_bin: str = "docker"
    postgres_init_dir: Path = DEFAULT_POSTGRES_INIT_DIR
    postgres_timeout: float = 120.0
    puppetdb_timeout: float = 240.0
    poll_interval: float = 1.0


def _seconds(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise HarnessConfigError(f"{key} must be a number of seconds, got {raw!r}") from exc
    if value <= 0:
        raise HarnessConfigError(f"{key} must be positive, got {raw!r}")
    return value


def load_config(environ: Optional[Mapping[str, str]] = None) -> HarnessConfig:
    env = os.environ if environ is None else environ

    pdb_image = env.get(IMAGE_ENV_VAR, "").strip()
    if not pdb_image:
        raise HarnessConfigError(MISSING_IMAGE_MESSAGE)

    volume_root = env.get("VOLUME_ROOT", "").strip()
    init_dir = env.get("POSTGRES_INIT_DIR", "").strip()

    config = HarnessConfig(
        pdb_image=pdb_image,
        postgres_image=env.get("POSTGRES_IMAGE", "").strip() or "postgres:9.6",
        volume_root=Path(volume_root) if volume_root else None,
        docker_bin=env.get("DOCKER_BIN", "").strip() or "docker",
        postgres_init_dir=Path(init_dir) if init_dir else DEFAULT_POSTGRES_INIT_DIR,
        postgres_timeout=_seconds(env, "POSTGRES_READY_TIMEOUT", 120.0),
        puppetdb_timeout=_seconds(env, "PUPPETDB_READY_TIMEOUT", 240.0),
        poll_interval=_seconds(env, "READINESS_POLL_INTERVAL", 1.0),
    )
    if config.poll_interval > min(config.postgres_timeout, config.puppetdb_timeout):
        raise HarnessConfigError("READINESS_POLL_INTERVAL must not exceed the readiness timeouts")
    return config
