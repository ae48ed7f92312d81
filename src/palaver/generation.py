"""Single-slot, cancellable response generation on top of asyncio."""

import asyncio
from typing import Callable, List, Optional, Sequence

from .errors import GenerationFailed
from .llm import LLM
from .models import ChatMessage
from .observability import get_logger

logger = get_logger(__name__)

ReplyCallback = Callable[[str], None]
FailureCallback = Callable[[GenerationFailed], None]


class GenerationTask:
    """Runs at most one reply generation at a time.

    Starting a generation cancels the outstanding one first, so two replies can
    never be delivered for the same turn. Callbacks run on the event loop,
    only for the generation that is still current, and never after
    ``cancel()``.
    """

    def __init__(self, llm: LLM) -> None:
        self.llm = llm
        self._task: Optional[asyncio.Task] = None

    @property
    def outstanding(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def current(self) -> Optional[asyncio.Task]:
        return self._task if self.outstanding else None

    def start(
        self,
        prompt: str,
        history: Sequence[ChatMessage],
        on_reply: ReplyCallback,
        on_failure: FailureCallback,
    ) -> asyncio.Task:
        """Schedules generation of a reply to ``prompt``.

        Must be called while an event loop is running.
        """
        self.cancel()
        loop = asyncio.get_running_loop()
        task = loop.create_task(
            self._run(prompt, list(history), on_reply, on_failure)
        )
        self._task = task
        logger.debug("generation_started", prompt_chars=len(prompt), history=len(history))
        return task

    async def _run(
        self,
        prompt: str,
        history: List[ChatMessage],
        on_reply: ReplyCallback,
        on_failure: FailureCallback,
    ) -> None:
        try:
            content = await self.llm.generate(prompt, history)
        except asyncio.CancelledError:
            logger.info("generation_cancelled", prompt_chars=len(prompt))
            raise
        except Exception as exc:
            failure = (
                exc if isinstance(exc, GenerationFailed) else GenerationFailed(prompt, exc)
            )
            self._release()
            logger.warning("generation_failed", error=str(failure))
            on_failure(failure)
            return

        self._release()
        logger.debug("generation_finished", reply_chars=len(content))
        on_reply(content)

    def _release(self) -> None:
        if self._task is asyncio.current_task():
            self._task = None

    def cancel(self) -> bool:
        """Cancels the outstanding generation. Returns whether one was running."""
        task, self._task = self._task, None
        if task is None or task.done():
            return False
        task.cancel()
        return True

    async def wait(self) -> None:
        """Waits until the outstanding generation, if any, has settled."""
        task = self._task
        if task is not None:
            await asyncio.wait({task})
