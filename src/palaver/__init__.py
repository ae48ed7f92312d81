"""
The main entrypoint for the Palaver package.

This module contains the Palaver class, which wires the pillars together: a
key-value backend under a SessionStore, a response generator, and a Notifier
for the recent-sessions listing. Each pillar can be replaced by injecting a
custom implementation.
"""

from typing import Any, List, Optional

from . import config, engine, kv, llm, notifier, store
from .engine import Engine, State
from .errors import (
    Corrupt,
    GenerationFailed,
    InvalidEdit,
    NotFound,
    PalaverError,
    StoreUnavailable,
)
from .models import ASSISTANT_ROLE, USER_ROLE, ChatMessage, RecentSession, Session
from .observability import get_logger, setup_logging

logger = get_logger(__name__)

_UNSET: Any = object()


class Palaver:
    """
    The application facade for a conversational assistant shell.

    It keeps at most one conversation open at a time and serves the listing
    surface: ``recent`` to list stored sessions, ``open`` to resume or start
    one, ``delete`` to remove one. The listing surface registers a callback on
    ``notifier`` to learn when the list changed.
    """

    def __init__(
        self,
        store: Optional[store.SessionStore] = None,
        llm: Optional[llm.LLM] = None,
        notifier: Optional[notifier.Notifier] = None,
        kv: Optional["kv.KeyValue"] = _UNSET,
        settings: Optional[config.Settings] = None,
        configure_logging: bool = False,
    ) -> None:
        """
        Initialize Palaver with configurable pillars.

        Parameters
        ----------
        store : store.SessionStore, optional
            Session persistence. Defaults to a SessionStore over ``kv``.
        llm : llm.LLM, optional
            Response generator. Defaults to llm.Canned() with the configured
            reply delay.
        notifier : notifier.Notifier, optional
            Change signal for the recent-sessions listing.
        kv : kv.KeyValue or None, optional
            Key-value backend used when ``store`` is not given. Pass None for
            an environment without durable storage. Defaults to the backend
            named by ``settings.storage``.
        settings : config.Settings, optional
            Defaults read from PALAVER_* environment variables.
        configure_logging : bool, default=False
            Configure structlog from ``settings.log_level`` and
            ``settings.log_format``. Applications that set up logging
            themselves leave this off.

        Examples
        --------
        >>> app = Palaver()
        >>> app = Palaver(kv=kv.File("./conversations"), llm=llm.Echo())
        """
        self.settings = settings if settings is not None else config.Settings()
        if configure_logging:
            setup_logging(self.settings.log_level, self.settings.log_format)

        store_module = globals()["store"]
        llm_module = globals()["llm"]
        notifier_module = globals()["notifier"]

        if store is None:
            backend = self.settings.build_kv() if kv is _UNSET else kv
            store = store_module.SessionStore(backend)
        self.store = store
        self.llm = (
            llm if llm is not None else llm_module.Canned(delay=self.settings.reply_delay)
        )
        self.notifier = notifier if notifier is not None else notifier_module.Notifier()
        self.active: Optional[Engine] = None

        if not self.store.available:
            logger.info("persistence_disabled")

    def open(
        self, session_id: Optional[str] = None, seed: Optional[str] = None
    ) -> Engine:
        """Opens a conversation, closing the one that was open before."""
        if self.active is not None:
            self.active.close()
        conversation = Engine(self.store, llm=self.llm, notifier=self.notifier)
        conversation.open(session_id=session_id, seed=seed)
        self.active = conversation
        return conversation

    def close(self) -> None:
        """Closes the open conversation and refreshes the listing."""
        if self.active is not None:
            self.active.close()
            self.active = None
        self.notifier.notify()

    def recent(self) -> List[RecentSession]:
        return self.store.list_recent()

    def delete(self, session_id: str) -> None:
        """Deletes a stored session. The open conversation is closed if it is the one."""
        if self.active is not None and self.active.session.id == session_id:
            self.active.close()
            self.active = None
        self.store.delete(session_id)
        self.notifier.notify()


__all__ = [
    "ASSISTANT_ROLE",
    "USER_ROLE",
    "ChatMessage",
    "Corrupt",
    "Engine",
    "GenerationFailed",
    "InvalidEdit",
    "NotFound",
    "Palaver",
    "PalaverError",
    "RecentSession",
    "Session",
    "State",
    "StoreUnavailable",
    "setup_logging",
]
