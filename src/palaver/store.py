"""Session persistence and the recent-sessions index, built on a key-value pillar."""

import json
from typing import Callable, Iterable, List, Optional

from pydantic import ValidationError

from .errors import Corrupt, NotFound, StoreUnavailable
from .kv import KeyValue
from .models import (
    USER_ROLE,
    ChatMessage,
    RecentSession,
    Session,
    make_title,
    now_ms,
    random_suffix,
)
from .observability import get_logger

logger = get_logger(__name__)

SESSION_PREFIX = "session"


def is_session_key(key: str) -> bool:
    """Whether a storage key names a session record."""
    return key.startswith(f"{SESSION_PREFIX}-")


def timestamp_key(session_id: str) -> int:
    """Extracts the numeric creation stamp embedded in a session id.

    Raises
    ------
    ValueError
        If the id does not carry a numeric second component.
    """
    parts = session_id.split("-")
    if len(parts) < 2:
        raise ValueError(f"Session id has no timestamp component: {session_id!r}")
    return int(parts[1])


class SessionStore:
    """CRUD over Session records keyed by session id.

    Persistence is best-effort: when no key-value collaborator is available
    (``kv is None``) every operation is a no-op, and backend failures are logged
    and absorbed so they never interrupt a conversation.

    Parameters
    ----------
    kv : KeyValue or None
        The key-value collaborator. None means the environment has no durable
        storage and sessions live only in the engine's memory.
    clock : callable, optional
        Returns the current time in epoch milliseconds.
    """

    def __init__(
        self, kv: Optional[KeyValue], clock: Callable[[], int] = now_ms
    ) -> None:
        self.kv = kv
        self.clock = clock
        self._last_stamp = 0

    @property
    def available(self) -> bool:
        return self.kv is not None

    def _next_stamp(self) -> int:
        stamp = self.clock()
        if stamp <= self._last_stamp:
            stamp = self._last_stamp + 1
        self._last_stamp = stamp
        return stamp

    def new_session_id(self) -> str:
        """Generates ``session-<stamp>-<random>``; stamps strictly increase."""
        return f"{SESSION_PREFIX}-{self._next_stamp()}-{random_suffix()}"

    def create(self, initial_messages: Iterable[ChatMessage] = ()) -> Session:
        """Creates, persists and returns a new session."""
        session_id = self.new_session_id()
        now = self.clock()
        session = Session(
            id=session_id,
            messages=list(initial_messages),
            created_at=now,
            updated_at=now,
        )
        self._write(session)
        logger.info(
            "session_created",
            session_id=session_id,
            messages=len(session.messages),
            persisted=self.available,
        )
        return session

    def save(
        self,
        session_id: str,
        *,
        messages: Optional[List[ChatMessage]] = None,
        created_at: Optional[int] = None,
        updated_at: Optional[int] = None,
    ) -> bool:
        """Merges the given fields into the stored record for ``session_id``.

        Returns True when a write reached the key-value collaborator.
        """
        if not self.available:
            logger.debug("store_unavailable", operation="save", session_id=session_id)
            return False

        updated_at = self.clock() if updated_at is None else updated_at
        session = self.load(session_id) or Session(
            id=session_id, created_at=updated_at, updated_at=updated_at
        )
        if messages is not None:
            session.messages = [message.model_copy() for message in messages]
        if created_at is not None:
            session.created_at = created_at
        session.updated_at = updated_at
        return self._write(session)

    def load(self, session_id: str) -> Optional[Session]:
        """Returns the stored session, or None when missing or unreadable."""
        try:
            return self.get_or_raise(session_id)
        except StoreUnavailable:
            logger.debug("store_unavailable", operation="load", session_id=session_id)
        except Corrupt as exc:
            logger.warning("record_corrupt", session_id=session_id, reason=exc.reason)
        except NotFound:
            logger.debug("session_not_found", session_id=session_id)
        except Exception as exc:
            logger.warning("session_read_failed", session_id=session_id, error=str(exc))
        return None

    def get_or_raise(self, session_id: str) -> Session:
        """Like ``load`` but reports why nothing could be returned.

        Raises
        ------
        StoreUnavailable
            No key-value collaborator is configured.
        Corrupt
            The stored value is not a valid session record.
        NotFound
            Nothing is stored under ``session_id``.
        """
        if not self.available:
            raise StoreUnavailable("No key-value store is available")
        raw = self.kv.get(session_id)
        if raw is None:
            raise NotFound(session_id)
        return self._parse(session_id, raw)

    def _parse(self, session_id: str, raw: str) -> Session:
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("record is not a JSON object")
            # Records written before the first reply may lack one of the stamps.
            if "createdAt" not in data and "updatedAt" in data:
                data["createdAt"] = data["updatedAt"]
            if "updatedAt" not in data and "createdAt" in data:
                data["updatedAt"] = data["createdAt"]
            data["id"] = session_id
            return Session.model_validate(data)
        except (ValueError, ValidationError) as exc:
            raise Corrupt(session_id, str(exc)) from exc

    def _write(self, session: Session) -> bool:
        if not self.available:
            return False
        try:
            self.kv.set(session.id, json.dumps(session.to_record()))
        except Exception as exc:
            logger.warning("session_write_failed", session_id=session.id, error=str(exc))
            return False
        logger.debug(
            "session_saved", session_id=session.id, messages=len(session.messages)
        )
        return True

    def list_recent(self) -> List[RecentSession]:
        """Index of stored sessions, most recently created first."""
        if not self.available:
            return []
        try:
            keys = self.kv.keys()
        except Exception as exc:
            logger.warning("session_scan_failed", error=str(exc))
            return []

        entries = []
        for key in keys:
            if not is_session_key(key):
                continue
            try:
                stamp = timestamp_key(key)
            except ValueError:
                logger.debug("session_key_skipped", key=key)
                continue
            session = self.load(key)
            if session is None:
                continue

            first_user_msg = next(
                (msg for msg in session.messages if msg.role == USER_ROLE), None
            )
            entries.append(
                RecentSession(
                    id=key,
                    last_message=(
                        session.messages[-1].content if session.messages else ""
                    ),
                    timestamp_key=stamp,
                    title=make_title(first_user_msg.content) if first_user_msg else "",
                )
            )

        entries.sort(key=lambda entry: entry.timestamp_key, reverse=True)
        return entries

    def delete(self, session_id: str) -> None:
        """Removes the record for ``session_id``; missing ids are ignored."""
        if not self.available:
            logger.debug("store_unavailable", operation="delete", session_id=session_id)
            return
        try:
            self.kv.remove(session_id)
        except Exception as exc:
            logger.warning("session_delete_failed", session_id=session_id, error=str(exc))
            return
        logger.info("session_deleted", session_id=session_id)
