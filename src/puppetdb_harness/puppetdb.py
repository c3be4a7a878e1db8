# SPDX-FileCopyrightText: 2025 Blackcat Informatics® Inc.
# SPDX-License-Identifier: MIT

"""PuppetDB status endpoint probe.

PuppetDB has no container healthcheck, so readiness is judged from the
``puppetdb-status`` service entry of the status API. Connection errors while
the JVM is still starting are expected and reported as an empty state.
"""

from __future__ import annotations

import http.client
import json
import logging
from urllib.parse import urljoin, urlsplit

from .readiness import ProbeResult, ReadinessTimeout, wait_until_ready

logger = logging.getLogger(__name__)

STATUS_PATH = "/status/v1/services/puppetdb-status"
PUPPETDB_PORT = 8080

# The server is up but not yet (or not cleanly) answering HTTP.
TRANSIENT_ERRORS = (
    ConnectionRefusedError,
    ConnectionResetError,
    http.client.RemoteDisconnected,
    http.client.IncompleteRead,
    EOFError,
)


class PuppetDBStateError(RuntimeError):
    pass


def status_url(base_url: str) -> str:
    return urljoin(base_url, STATUS_PATH)


def get_puppetdb_state(base_url: str, timeout: float = 5) -> str:
    url = status_url(base_url)
    parts = urlsplit(url)
    connection_cls = http.client.HTTPSConnection if parts.scheme == "https" else http.client.HTTPConnection
    connection = connection_cls(parts.hostname, parts.port, timeout=timeout)
    try:
        connection.request("GET", parts.path)
        response = connection.getresponse()
        body = response.read().decode("utf-8", errors="replace")
        logger.info("retrieved raw puppetdb status: %s", body)
        if not 200 <= response.status < 300:
            return ""
        payload = json.loads(body)
    except TRANSIENT_ERRORS as exc:
        logger.info("PDB not accepting connections yet %s: %s", url, exc)
        return ""
    except json.JSONDecodeError as exc:
        logger.info("Invalid JSON response: %s", exc)
        return ""
    except Exception as exc:
        logger.error("Failure querying %s: %s", url, exc)
        raise
    finally:
        connection.close()

    if not isinstance(payload, dict):
        return ""
    return str(payload.get("state") or "")


def puppetdb_status_probe(base_url: str, timeout: float = 5):
    def probe() -> ProbeResult:
        state = get_puppetdb_state(base_url, timeout=timeout)
        if state == "running":
            return ProbeResult.ready(state)
        if state == "error":
            return ProbeResult.error(PuppetDBStateError(f"puppetdb at {base_url} reported state 'error'"), state)
        return ProbeResult.not_ready(state)

    return probe


def wait_on_puppetdb_status(base_url: str, timeout: float = 240, interval: float = 1) -> ProbeResult:
    try:
        return wait_until_ready(puppetdb_status_probe(base_url), timeout, interval, description="puppetdb")
    except ReadinessTimeout:
        logger.error("puppetdb never entered running state")
        raise
