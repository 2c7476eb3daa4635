"""Deployment progress events and the channel that carries them to the UI."""

from __future__ import annotations

import queue
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Optional


class Stage(Enum):
    VALIDATING = "validating"
    CONFIG = "config"
    CLOUD_INIT = "cloudinit"
    LAUNCHING = "launching"
    WAITING = "waiting"
    CONNECTING = "connecting"
    INSTALLING = "installing"
    VERIFYING = "verifying"
    COMPLETE = "complete"
    CLEANUP = "cleanup"
    ERROR = "error"

    @property
    def display_name(self) -> str:
        return _STAGE_NAMES.get(self, self.value)


_STAGE_NAMES = {
    Stage.VALIDATING: "Validating",
    Stage.CONFIG: "Generating Config",
    Stage.CLOUD_INIT: "Generating Cloud-Init",
    Stage.LAUNCHING: "Launching",
    Stage.WAITING: "Waiting",
    Stage.CONNECTING: "Connecting",
    Stage.INSTALLING: "Installing",
    Stage.VERIFYING: "Verifying",
    Stage.COMPLETE: "Complete",
    Stage.CLEANUP: "Cleaning Up",
    Stage.ERROR: "Error",
}


@dataclass(frozen=True)
class ProgressEvent:
    """One status update from a deployer. ``percent`` of -1 is indeterminate."""
    stage: Stage
    message: str
    percent: int = 0
    command: str = ""
    detail: str = ""
    is_error: bool = False
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def with_command(cls, stage: Stage, message: str, command: str, percent: int) -> "ProgressEvent":
        return cls(stage=stage, message=message, command=command, percent=percent)

    @classmethod
    def with_detail(cls, stage: Stage, message: str, detail: str, percent: int) -> "ProgressEvent":
        return cls(stage=stage, message=message, detail=detail, percent=percent)

    @classmethod
    def error(cls, message: str, detail: str = "") -> "ProgressEvent":
        return cls(stage=Stage.ERROR, message=message, detail=detail, percent=-1, is_error=True)

    def clamped(self) -> "ProgressEvent":
        return replace(self, percent=clamp_percent(self.percent))


ProgressCallback = Callable[[ProgressEvent], None]


def clamp_percent(percent: int) -> int:
    return max(0, min(100, percent))


class ProgressTracker:
    """Records every event and forwards it to an optional callback."""

    def __init__(self, forward: Optional[ProgressCallback] = None):
        self.events: list[ProgressEvent] = []
        self._forward = forward

    def callback(self, event: ProgressEvent) -> None:
        self.events.append(event)
        if self._forward is not None:
            self._forward(event)

    @property
    def last_event(self) -> Optional[ProgressEvent]:
        return self.events[-1] if self.events else None

    @property
    def has_errors(self) -> bool:
        return any(e.is_error for e in self.events)

    @property
    def errors(self) -> list[ProgressEvent]:
        return [e for e in self.events if e.is_error]


_CLOSED = object()


class ProgressChannel:
    """Bounded FIFO between a deploy worker and the UI loop.

    ``receive`` blocks until an event arrives and returns None once the
    channel has been closed and drained. Closing is idempotent.
    """

    def __init__(self, capacity: int = 100):
        self._queue: queue.Queue = queue.Queue(maxsize=capacity)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: ProgressEvent) -> None:
        if self._closed:
            return
        self._queue.put(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put(_CLOSED)

    def receive(self, timeout: Optional[float] = None) -> Optional[ProgressEvent]:
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            # Leave the sentinel for any other waiting receiver
            self._queue.put(_CLOSED)
            return None
        return item
