"""
Presence Tracker — best-effort online/activity signal per couple.

Each client publishes its own (status, current_screen, timestamp) on a
channel scoped to the couple; the tracker subscribes and keeps the last-known
state per (couple_id, user_id). A state older than PRESENCE_TIMEOUT_SECONDS
reads as offline. The timeout is applied by the reader, never the publisher.

Presence never gates game correctness. The session engine only asks it
whether a partner notification is worth sending.

  online  ↔ playing   enter_screen / exit_screen
  *       → offline   disconnect, or no update within the timeout
"""
from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol

from app.core.clock import as_utc, utcnow
from app.core.config import settings

logger = logging.getLogger(__name__)

# Screens on which a partner is already looking at the daily question.
PLAYING_SCREEN = "daily"
HOME_SCREEN = "home"


class PresenceStatus(str, enum.Enum):
    offline = "offline"
    online = "online"
    playing = "playing"


@dataclass(frozen=True)
class PresenceState:
    couple_id: int
    user_id: str
    status: str
    current_screen: Optional[str]
    last_seen_at: Optional[datetime]


OnUpdate = Callable[[PresenceState], None]
Unsubscribe = Callable[[], None]


class PresenceChannel(Protocol):
    def publish(self, couple_id: int, user_id: str, state: PresenceState) -> None: ...

    def subscribe(self, couple_id: int, on_update: OnUpdate) -> Unsubscribe: ...


class InMemoryPresenceChannel:
    """Single-process broadcast channel. Subscribers are called synchronously."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: dict[int, list[OnUpdate]] = {}

    def publish(self, couple_id: int, user_id: str, state: PresenceState) -> None:
        with self._lock:
            targets = list(self._subscribers.get(couple_id, ()))
        for callback in targets:
            try:
                callback(state)
            except Exception as exc:
                logger.warning("presence subscriber failed couple=%s user=%s: %s", couple_id, user_id, exc)

    def subscribe(self, couple_id: int, on_update: OnUpdate) -> Unsubscribe:
        with self._lock:
            self._subscribers.setdefault(couple_id, []).append(on_update)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(couple_id, [])
                if on_update in callbacks:
                    callbacks.remove(on_update)
                if not callbacks:
                    self._subscribers.pop(couple_id, None)

        return unsubscribe


class PresenceTracker:
    def __init__(
        self,
        channel: PresenceChannel,
        timeout_seconds: Optional[int] = None,
    ) -> None:
        self.channel = channel
        self.timeout = timedelta(
            seconds=timeout_seconds if timeout_seconds is not None else settings.PRESENCE_TIMEOUT_SECONDS
        )
        self._lock = threading.Lock()
        self._states: dict[tuple[int, str], PresenceState] = {}
        self._watched: dict[int, Unsubscribe] = {}

    # --- subscription side ---

    def watch(self, couple_id: int) -> None:
        with self._lock:
            if couple_id in self._watched:
                return
            self._watched[couple_id] = self.channel.subscribe(couple_id, self._on_update)

    def unwatch(self, couple_id: int) -> None:
        with self._lock:
            unsubscribe = self._watched.pop(couple_id, None)
            for key in [k for k in self._states if k[0] == couple_id]:
                del self._states[key]
        if unsubscribe:
            unsubscribe()

    def _on_update(self, state: PresenceState) -> None:
        key = (state.couple_id, state.user_id)
        with self._lock:
            known = self._states.get(key)
            # Out-of-order delivery: keep the newest report.
            if known and known.last_seen_at and state.last_seen_at and state.last_seen_at < known.last_seen_at:
                return
            self._states[key] = state

    # --- publishing side ---

    def publish(
        self,
        couple_id: int,
        user_id: str,
        status: PresenceStatus | str,
        current_screen: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PresenceState:
        self.watch(couple_id)
        state = PresenceState(
            couple_id=couple_id,
            user_id=user_id,
            status=PresenceStatus(status).value,
            current_screen=current_screen,
            last_seen_at=as_utc(now) if now is not None else utcnow(),
        )
        self.channel.publish(couple_id, user_id, state)
        return state

    def heartbeat(
        self,
        couple_id: int,
        user_id: str,
        status: Optional[PresenceStatus | str] = None,
        current_screen: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PresenceState:
        """Refresh last_seen_at, keeping the last reported status/screen unless given."""
        with self._lock:
            known = self._states.get((couple_id, user_id))
        if status is None:
            status = known.status if known and known.status != PresenceStatus.offline.value else PresenceStatus.online
        if current_screen is None:
            current_screen = known.current_screen if known else HOME_SCREEN
        return self.publish(couple_id, user_id, status, current_screen, now)

    def enter_screen(
        self, couple_id: int, user_id: str, screen: str = PLAYING_SCREEN, now: Optional[datetime] = None
    ) -> PresenceState:
        return self.publish(couple_id, user_id, PresenceStatus.playing, screen, now)

    def exit_screen(
        self, couple_id: int, user_id: str, now: Optional[datetime] = None
    ) -> PresenceState:
        return self.publish(couple_id, user_id, PresenceStatus.online, HOME_SCREEN, now)

    def disconnect(
        self, couple_id: int, user_id: str, now: Optional[datetime] = None
    ) -> PresenceState:
        return self.publish(couple_id, user_id, PresenceStatus.offline, None, now)

    # --- read side ---

    def get_state(
        self, couple_id: int, user_id: str, now: Optional[datetime] = None
    ) -> PresenceState:
        now = as_utc(now) if now is not None else utcnow()
        with self._lock:
            state = self._states.get((couple_id, user_id))
        if state is None:
            return PresenceState(couple_id, user_id, PresenceStatus.offline.value, None, None)
        if state.last_seen_at is not None and now - state.last_seen_at > self.timeout:
            return replace(state, status=PresenceStatus.offline.value, current_screen=None)
        return state

    def get_partner_state(
        self, couple, user_id: str, now: Optional[datetime] = None
    ) -> Optional[PresenceState]:
        """State of `user_id`'s partner in `couple`; None while the couple is unpaired."""
        partner_id = couple.partner_of(user_id)
        if partner_id is None:
            return None
        return self.get_state(couple.id, partner_id, now)

    def should_notify(
        self, couple_id: int, partner_id: str, now: Optional[datetime] = None
    ) -> bool:
        """False only while the partner is on the daily screen already."""
        state = self.get_state(couple_id, partner_id, now)
        return not (
            state.status == PresenceStatus.playing.value
            and state.current_screen == PLAYING_SCREEN
        )


presence_tracker = PresenceTracker(InMemoryPresenceChannel())


def get_presence_tracker() -> PresenceTracker:
    return presence_tracker
