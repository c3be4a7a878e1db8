"""PuppetDB container integration harness.

Starts PostgreSQL and PuppetDB containers on a throwaway network, waits for
both to finish initializing, and exposes the helpers the pytest suite under
``tests/`` uses to assert on their state.
"""

from .readiness import (
    ProbeFailed,
    ProbeResult,
    ProbeState,
    ReadinessError,
    ReadinessTimeout,
    wait_until_ready,
)

__all__: list[str] = [
    "ProbeFailed",
    "ProbeResult",
    "ProbeState",
    "ReadinessError",
    "ReadinessTimeout",
    "wait_until_ready",
]
