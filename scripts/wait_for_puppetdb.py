#!/usr/bin/env python3
# SPDX-FileCopyrightText: 2025 Blackcat Informatics® Inc.
# SPDX-License-Identifier: MIT

"""Block until a PuppetDB status endpoint reports the running state."""

from __future__ import annotations

import argparse
import logging
import sys

from puppetdb_harness.puppetdb import wait_on_puppetdb_status
from puppetdb_harness.readiness import ProbeFailed, ReadinessTimeout


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--url", required=True, help="Base URL, e.g. http://localhost:8080")
    parser.add_argument("--timeout", type=float, default=240.0, help="Seconds to wait in total")
    parser.add_argument("--interval", type=float, default=1.0, help="Seconds between status checks")
    parser.add_argument("--quiet", action="store_true")
    args = parser.parse_args(argv)
    if args.timeout <= 0 or args.interval <= 0:
        parser.error("--timeout and --interval must be positive")
    if args.interval > args.timeout:
        parser.error(f"--interval {args.interval:g}s exceeds --timeout {args.timeout:g}s")
    return args


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    try:
        wait_on_puppetdb_status(args.url, timeout=args.timeout, interval=args.interval)
    except ReadinessTimeout as exc:
        print(f"[wait-for-puppetdb] {exc}", file=sys.stderr)
        return 1
    except ProbeFailed as exc:
        print(f"[wait-for-puppetdb] {exc}", file=sys.stderr)
        return 2
    print("puppetdb is running")
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via subprocess
    sys.exit(main(sys.argv[1:]))
