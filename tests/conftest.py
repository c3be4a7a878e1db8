# SPDX-FileCopyrightText: 2025 Blackcat Informatics® Inc.
# SPDX-License-Identifier: MIT

import json
import os
import shutil
import socket
import stat
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from puppetdb_harness.config import IMAGE_ENV_VAR
from puppetdb_harness.docker import DockerCLI

# Stand-in for the container runtime CLI. Every invocation is appended to
# $FAKE_DOCKER_LOG; canned answers come from FAKE_DOCKER_* variables.
FAKE_DOCKER = r"""#!/usr/bin/env bash
echo "$*" >> "$FAKE_DOCKER_LOG"
case "$1" in
  network)
    if [ "$2" = "create" ]; then
      if [ -n "${FAKE_DOCKER_NETWORK_FAIL:-}" ]; then
        echo "$FAKE_DOCKER_NETWORK_FAIL" >&2
        exit 1
      fi
      for arg in "$@"; do last="$arg"; done
      echo "net-$last"
    fi
    ;;
  run)
    if [ -n "${FAKE_DOCKER_RUN_FAIL:-}" ]; then
      echo "$FAKE_DOCKER_RUN_FAIL" >&2
      exit 125
    fi
    name=""
    prev=""
    for arg in "$@"; do
      if [ "$prev" = "--name" ]; then name="$arg"; fi
      prev="$arg"
    done
    echo "cid-$name"
    ;;
  exec)
    printf '%b\n' "${FAKE_DOCKER_EXEC_STDOUT- 1}"
    if [ -n "${FAKE_DOCKER_EXEC_STDERR:-}" ]; then
      echo "$FAKE_DOCKER_EXEC_STDERR" >&2
    fi
    exit "${FAKE_DOCKER_EXEC_CODE:-0}"
    ;;
  port)
    printf '%b\n' "${FAKE_DOCKER_PORT-0.0.0.0:49153\n[::]:49153}"
    ;;
  logs)
    echo "log line for $2"
    ;;
  pull)
    if [ -n "${FAKE_DOCKER_PULL_FAIL:-}" ]; then
      echo "$FAKE_DOCKER_PULL_FAIL" >&2
      exit 1
    fi
    ;;
esac
exit 0
"""


class FakeDocker:
    def __init__(self, binary, log):
        self.binary = binary
        self.log = log
        self.cli = DockerCLI(str(binary))

    def calls(self):
        if not self.log.exists():
            return []
        return self.log.read_text().splitlines()


@pytest.fixture
def fake_docker(tmp_path, monkeypatch):
    binary = tmp_path / "docker"
    binary.write_text(FAKE_DOCKER)
    binary.chmod(stat.S_IRWXU)
    log = tmp_path / "docker.log"
    monkeypatch.setenv("FAKE_DOCKER_LOG", str(log))
    for key in list(os.environ):
        if key.startswith("FAKE_DOCKER_") and key != "FAKE_DOCKER_LOG":
            monkeypatch.delenv(key)
    return FakeDocker(binary, log)


def find_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _make_status_handler(server_state):
    class StatusHandler(BaseHTTPRequestHandler):
        protocol_version = "HTTP/1.1"

        def do_GET(self):  # noqa: N802
            server_state.requests.append(self.path)
            kind, *args = server_state.next_response()
            if kind == "drop":
                self.close_connection = True
                return
            if kind == "garbage":
                self.wfile.write(b"NOT HTTP\r\n\r\n")
                self.close_connection = True
                return
            status, payload = args
            body = json.dumps(payload).encode() if kind == "json" else payload.encode()
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, _format, *_args):  # noqa: D401
            return

    return StatusHandler


class StatusServer:
    """In-process HTTP server replaying a script of status responses.

    Responses are tuples: ``("json", status, obj)``, ``("raw", status, text)``,
    ``("drop",)`` to hang up without answering, or ``("garbage",)`` to send a
    malformed status line. The last response repeats once the script runs out.
    """

    def __init__(self):
        self.responses = []
        self.requests = []
        self._lock = threading.Lock()
        self._server = ThreadingHTTPServer(("127.0.0.1", 0), _make_status_handler(self))
        self._server.daemon_threads = True
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)

    @property
    def url(self) -> str:
        host, port = self._server.server_address[:2]
        return f"http://{host}:{port}"

    def script(self, *responses):
        with self._lock:
            self.responses = list(responses)

    def states(self, *states):
        self.script(*[("json", 200, {"service_version": "8.0.0", "state": s}) for s in states])

    def next_response(self):
        with self._lock:
            if len(self.responses) > 1:
                return self.responses.pop(0)
            return self.responses[0]

    def __enter__(self):
        self._thread.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self._server.shutdown()
        self._server.server_close()
        self._thread.join(timeout=5)


@pytest.fixture
def status_server():
    with StatusServer() as server:
        yield server


@pytest.fixture
def free_port():
    return find_free_port()


def pytest_collection_modifyitems(config, items):
    reason = None
    if not os.environ.get(IMAGE_ENV_VAR):
        reason = f"{IMAGE_ENV_VAR} is not set"
    elif shutil.which(os.environ.get("DOCKER_BIN") or "docker") is None:
        reason = "container runtime CLI not found on PATH"
    if reason is None:
        return
    skip = pytest.mark.skip(reason=reason)
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)
