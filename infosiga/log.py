# infosiga/log.py
#
# Shared logger with elapsed time.
#
# Design decisions:
#   - log() goes to stdout, warn() goes to stderr with a WARNING marker so data
#     quality notes (unmapped categories, unmatched municipalities) stand apart
#     from progress lines.
#   - No external dependencies: plain stream writes with flush.
from __future__ import annotations

import sys
import time

_start = time.monotonic()


def _stamp() -> str:
    elapsed = time.monotonic() - _start
    minutes, seconds = divmod(int(elapsed), 60)
    return f"[infosiga {minutes:02d}:{seconds:02d}]"


def log(message: str) -> None:
    """Write a timestamped log line to stdout."""
    sys.stdout.write(f"{_stamp()} {message}\n")
    sys.stdout.flush()


def warn(message: str) -> None:
    """Write a timestamped warning line to stderr."""
    sys.stderr.write(f"{_stamp()} WARNING: {message}\n")
    sys.stderr.flush()
