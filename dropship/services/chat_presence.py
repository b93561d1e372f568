"""
Chat presence: decides whether a user is connected, reconnecting (inside the
grace period) or gone, from activity/disconnect signals fed in by the
transport. The timeouts are policy passed in by the caller.
"""
import logging
import threading
import time
from datetime import datetime
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from dropship.config import settings
from dropship.models.chat import ChatSession, ChatStatus
from dropship.services.state_machine import ensure_transition

logger = logging.getLogger(__name__)

CONNECTED = "connected"
RECONNECTING = "reconnecting"
LEFT = "left"


class ChatPresenceTracker:
    """
    Tracks one user's presence in the chat widget.

    A user leaves either explicitly (disconnect) or implicitly after
    `inactivity_timeout` seconds without activity. For `grace_period` seconds
    after leaving the state is "reconnecting"; after that it is "left".
    Any activity or reconnect returns the user to "connected".
    """

    def __init__(
        self,
        inactivity_timeout: Optional[float] = None,
        grace_period: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.inactivity_timeout = settings.CHAT_INACTIVITY_TIMEOUT if inactivity_timeout is None else inactivity_timeout
        self.grace_period = settings.CHAT_GRACE_PERIOD if grace_period is None else grace_period
        self._clock = clock
        self._last_activity = clock()
        self._disconnected_at: Optional[float] = None

    def _now(self, now: Optional[float]) -> float:
        return self._clock() if now is None else now

    def record_activity(self, now: Optional[float] = None) -> None:
        self._last_activity = self._now(now)
        self._disconnected_at = None

    def disconnect(self, now: Optional[float] = None) -> None:
        if self._disconnected_at is None:
            self._disconnected_at = self._now(now)

    def reconnect(self, now: Optional[float] = None) -> None:
        self.record_activity(now)

    def left_at(self) -> float:
        """Moment the user is considered to have left"""
        inactive_at = self._last_activity + self.inactivity_timeout
        if self._disconnected_at is not None:
            return min(self._disconnected_at, inactive_at)
        return inactive_at

    def state(self, now: Optional[float] = None) -> str:
        now = self._now(now)
        left_at = self.left_at()
        if now < left_at:
            return CONNECTED
        if now < left_at + self.grace_period:
            return RECONNECTING
        return LEFT

    def grace_remaining(self, now: Optional[float] = None) -> float:
        now = self._now(now)
        if self.state(now) != RECONNECTING:
            return 0
        return self.left_at() + self.grace_period - now


def get_user_session(db: Session, user_id: str) -> Optional[ChatSession]:
    return db.query(ChatSession).filter(ChatSession.user_id == user_id).first()


def mark_user_left(db: Session, user_id: str, now: Optional[datetime] = None) -> Optional[ChatSession]:
    """Persist that the user left. Closed or missing sessions are left alone."""
    session = get_user_session(db, user_id)
    if session is None or session.status in (ChatStatus.CLOSED, ChatStatus.USER_LEFT):
        return session

    try:
        ensure_transition("chat", session.status, ChatStatus.USER_LEFT)
        session.status = ChatStatus.USER_LEFT
        session.user_left_at = now or datetime.utcnow()
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(session)
    logger.debug(f"Chat user {user_id} marked as left")
    return session


def restore_session(db: Session, user_id: str, now: Optional[datetime] = None) -> Optional[ChatSession]:
    """
    The user came back. An assigned chat becomes active again, an unassigned
    one goes back to waiting for support. No agent is assigned here.
    """
    now = now or datetime.utcnow()
    session = get_user_session(db, user_id)
    if session is None or session.status == ChatStatus.CLOSED:
        return session

    target = ChatStatus.ACTIVE if session.assigned_agent_id else ChatStatus.WAITING_FOR_SUPPORT
    try:
        ensure_transition("chat", session.status, target)
        session.status = target
        session.user_left_at = None
        session.last_user_activity_at = now
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(session)
    return session


class PresenceRegistry:
    """
    One tracker per user, fed by the chat endpoints. The session is only
    marked `user_left` once a tracker has run out its grace period; a
    disconnect inside the grace period stays "reconnecting" in memory.
    """

    def __init__(
        self,
        inactivity_timeout: Optional[float] = None,
        grace_period: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.inactivity_timeout = inactivity_timeout
        self.grace_period = grace_period
        self._clock = clock
        self._trackers: Dict[str, ChatPresenceTracker] = {}
        self._lock = threading.Lock()

    def tracker(self, user_id: str) -> ChatPresenceTracker:
        with self._lock:
            tracker = self._trackers.get(user_id)
            if tracker is None:
                tracker = ChatPresenceTracker(self.inactivity_timeout, self.grace_period, self._clock)
                self._trackers[user_id] = tracker
            return tracker

    def snapshot(self, user_id: str) -> dict:
        tracker = self.tracker(user_id)
        now = self._clock()
        return {"presence": tracker.state(now), "graceRemaining": tracker.grace_remaining(now)}

    def sync(self, db: Session, user_id: str) -> dict:
        """Persist `user_left` if the grace period has run out"""
        snapshot = self.snapshot(user_id)
        if snapshot["presence"] == LEFT:
            mark_user_left(db, user_id)
        return snapshot

    def activity(self, user_id: str) -> None:
        self.tracker(user_id).record_activity()

    def disconnect(self, db: Session, user_id: str) -> dict:
        self.tracker(user_id).disconnect()
        return self.sync(db, user_id)

    def reconnect(self, db: Session, user_id: str) -> dict:
        self.tracker(user_id).reconnect()
        session = get_user_session(db, user_id)
        if session is not None and session.status == ChatStatus.USER_LEFT:
            restore_session(db, user_id)
        return self.snapshot(user_id)


presence_registry = PresenceRegistry()


def get_presence_registry() -> PresenceRegistry:
    return presence_registry
