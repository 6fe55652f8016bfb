"""Shared fixtures for the Shiro test suite."""

from __future__ import annotations

import os
from typing import Callable, List

import pytest

from shiro import config
from shiro.core.chat.scheduler import Scheduler


class _ManualHandle:
    def __init__(self, when: float, seq: int, callback: Callable[[], None]) -> None:
        self.when = when
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """Deterministic scheduler whose clock only moves when told to."""

    def __init__(self) -> None:
        self.now = 0.0
        self._seq = 0
        self._timers: List[_ManualHandle] = []

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualHandle:
        handle = _ManualHandle(self.now + delay, self._seq, callback)
        self._seq += 1
        self._timers.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for timer in self._timers if not timer.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [t for t in self._timers if not t.cancelled and t.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.when, t.seq))
            self._timers.remove(timer)
            self.now = timer.when
            timer.callback()
        self.now = target
        self._timers = [t for t in self._timers if not t.cancelled]


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def isolated_settings(monkeypatch, tmp_path):
    """Point configuration at a temporary .env and database."""

    monkeypatch.setattr(config, "_ENV_PATH", tmp_path / ".env")
    monkeypatch.setattr(config, "_settings", None)
    for key in list(os.environ):
        if key.startswith("SHIRO_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("SHIRO_DATABASE_PATH", str(tmp_path / "shiro.db"))
    monkeypatch.setenv("SHIRO_BASE_DIR", str(tmp_path / "recordings"))
    before = set(os.environ)
    yield tmp_path
    for key in set(os.environ) - before:
        if key.startswith("SHIRO_"):
            os.environ.pop(key, None)
