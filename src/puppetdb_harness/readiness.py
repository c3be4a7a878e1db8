# SPDX-FileCopyrightText: 2025 Blackcat Informatics® Inc.
# SPDX-License-Identifier: MIT

"""Bounded polling for services that initialize asynchronously.

A probe is a zero-argument callable returning a :class:`ProbeResult`. The
probe decides which failures are transient (``NOT_READY``) and which are
fatal (``ERROR``); :func:`wait_until_ready` only enforces the retry policy.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ProbeState(enum.Enum):
    READY = "ready"
    NOT_READY = "not_ready"
    ERROR = "error"


@dataclass(frozen=True)
class ProbeResult:
    state: ProbeState
    detail: str = ""
    cause: Optional[BaseException] = None

    @classmethod
    def ready(cls, detail: str = "") -> "ProbeResult":
        return cls(ProbeState.READY, detail)

    @classmethod
    def not_ready(cls, detail: str = "") -> "ProbeResult":
        return cls(ProbeState.NOT_READY, detail)

    @classmethod
    def error(cls, cause: BaseException, detail: str = "") -> "ProbeResult":
        return cls(ProbeState.ERROR, detail or str(cause), cause)

    @property
    def is_ready(self) -> bool:
        return self.state is ProbeState.READY


Probe = Callable[[], ProbeResult]


class ReadinessError(Exception):
    """Base class for readiness failures."""


class ReadinessTimeout(ReadinessError, TimeoutError):
    def __init__(self, description: str, timeout: float, attempts: int, last_result: ProbeResult):
        self.description = description
        self.timeout = timeout
        self.attempts = attempts
        self.last_result = last_result
        message = f"{description} never became ready within {timeout:g}s ({attempts} attempts)"
        if last_result.detail:
            message += f"; last observed: {last_result.detail}"
        super().__init__(message)


class ProbeFailed(ReadinessError):
    def __init__(self, description: str, result: ProbeResult):
        self.description = description
        self.result = result
        super().__init__(f"{description} failed: {result.cause or result.detail}")


def wait_until_ready(
    probe: Probe,
    timeout: float,
    interval: float,
    *,
    description: str = "service",
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> ProbeResult:
    """Invoke ``probe`` every ``interval`` seconds until it reports ready.

    Returns the ready result. Raises :class:`ReadinessTimeout` once
    ``timeout`` seconds have elapsed without success, and
    :class:`ProbeFailed` as soon as the probe reports a fatal error.
    Exceptions raised by the probe itself propagate untouched.
    """
    if timeout <= 0 or interval <= 0:
        raise ValueError("timeout and interval must be positive")
    if interval > timeout:
        raise ValueError(f"interval {interval:g}s exceeds timeout {timeout:g}s")

    started = clock()
    attempts = 0
    while True:
        result = probe()
        attempts += 1
        if result.state is ProbeState.READY:
            logger.info("%s ready after %d attempt(s)", description, attempts)
            return result
        if result.state is ProbeState.ERROR:
            raise ProbeFailed(description, result) from result.cause

        logger.debug("%s not ready (attempt %d): %s", description, attempts, result.detail)
        elapsed = clock() - started
        if elapsed < timeout:
            # Never sleep past the deadline, even after a slow check.
            sleep(min(interval, timeout - elapsed))
            elapsed = clock() - started
        if elapsed >= timeout:
            logger.warning("%s never became ready after %d attempt(s)", description, attempts)
            raise ReadinessTimeout(description, timeout, attempts, result)
