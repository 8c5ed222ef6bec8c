"""
Two-phase delete confirmation
Flow: request(id) → ARMED (window open) → request(id) again → CONFIRMED → destructive call

States:
    Idle ──request(a)──▶ Armed(a)
    Armed(a) ──request(a) in window──▶ Idle + CONFIRMED
    Armed(a) ──request(b)──▶ Armed(b)
    Armed(a) ──disarm() / window expired──▶ Idle

Expiry is checked lazily on every observation and also cleared by a
single call_later timer when an event loop is running.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from assembly_factory.core.logging import get_logger


class DeleteOutcome(str, Enum):
    ARMED = "ARMED"
    CONFIRMED = "CONFIRMED"


@dataclass(frozen=True)
class Armed:
    target_id: str
    expires_at: float


class DeleteConfirmation:
    """
    Arms a delete on the first request and confirms it on the second.

    The caller performs the destructive call only when request() returns
    CONFIRMED; at that point the machine is already back to Idle.
    """

    def __init__(self, window_seconds: float = 3.0, clock: Callable[[], float] = time.monotonic) -> None:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.window_seconds = window_seconds
        self._clock = clock
        self._armed: Optional[Armed] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self.logger = get_logger(__name__, component="delete_confirmation")

    @property
    def armed(self) -> Optional[Armed]:
        self._expire()
        return self._armed

    @property
    def armed_id(self) -> Optional[str]:
        armed = self.armed
        return armed.target_id if armed else None

    def is_armed(self, target_id: str) -> bool:
        return self.armed_id == target_id

    def request(self, target_id: str) -> DeleteOutcome:
        """Register a delete request for target_id."""
        self._expire()
        if self._armed is not None and self._armed.target_id == target_id:
            self._reset()
            self.logger.info("Delete confirmed", target_id=target_id)
            return DeleteOutcome.CONFIRMED

        previous = self._armed.target_id if self._armed else None
        self._reset()
        self._armed = Armed(target_id=target_id, expires_at=self._clock() + self.window_seconds)
        self._schedule_expiry(target_id)
        self.logger.info("Delete armed", target_id=target_id, replaced=previous, window_seconds=self.window_seconds)
        return DeleteOutcome.ARMED

    def disarm(self) -> bool:
        """Cancel any pending confirmation; True when something was armed."""
        was_armed = self._armed is not None
        if was_armed:
            self.logger.info("Delete disarmed", target_id=self._armed.target_id)
        self._reset()
        return was_armed

    def _expire(self) -> None:
        if self._armed is not None and self._clock() >= self._armed.expires_at:
            self.logger.debug("Delete confirmation expired", target_id=self._armed.target_id)
            self._reset()

    def _reset(self) -> None:
        self._armed = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule_expiry(self, target_id: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # no loop (sync callers); lazy expiry still applies
            return
        self._timer = loop.call_later(self.window_seconds, self._on_timer, target_id)

    def _on_timer(self, target_id: str) -> None:
        if self._armed is not None and self._armed.target_id == target_id:
            self._timer = None
            self._armed = None
            self.logger.debug("Delete confirmation window elapsed", target_id=target_id)
