"""Explicit result variants threaded through the synchronization core.

Components return one of three shapes instead of raising for expected
conditions:

- ``Ok(value)``: the step produced a value.
- ``Skip(reason)``: nothing to do; informational only, never an error.
- ``Err(kind, message, exc)``: an anticipated failure, keeping the
  exception that caused it when there is one.

Raising is reserved for faults nobody planned for.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Ok[T]:
    value: T


@dataclass(frozen=True)
class Skip:
    reason: str


@dataclass(frozen=True)
class Err:
    kind: str
    message: str
    exc: BaseException | None = None
