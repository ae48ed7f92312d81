"""Single-slot change notification for the recent-sessions listing."""

from typing import Callable, Optional

from .observability import get_logger

logger = get_logger(__name__)

Callback = Callable[[], None]


class Notifier:
    """Tells one registered listener that the recent-sessions list changed.

    There is at most one listener. Registering a new callback replaces the
    previous one.
    """

    def __init__(self) -> None:
        self._callback: Optional[Callback] = None

    @property
    def registered(self) -> bool:
        return self._callback is not None

    def register(self, callback: Callback) -> None:
        self._callback = callback

    def unregister(self) -> None:
        self._callback = None

    def notify(self) -> None:
        """Invokes the registered callback, if any.

        Errors raised by the listener are logged and absorbed.
        """
        callback = self._callback
        if callback is None:
            return
        try:
            callback()
        except Exception as exc:
            logger.warning("listener_failed", error=str(exc))
