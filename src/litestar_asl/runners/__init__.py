"""Runners execute Task resources.

A runner owns one resource scheme (``local://`` for :class:`LocalRunner`) and is
looked up through a :class:`RunnerRegistry` when a Task state is parsed.
"""

from __future__ import annotations

from litestar_asl.runners.base import EVENT_TYPES, Runner, RunnerEvent, RunnerFactory, RunnerRegistry
from litestar_asl.runners.local import LocalRunner, TaskFunction

__all__ = [
    "EVENT_TYPES",
    "LocalRunner",
    "Runner",
    "RunnerEvent",
    "RunnerFactory",
    "RunnerRegistry",
    "TaskFunction",
]
