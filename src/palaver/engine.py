"""The conversation state machine for the active session."""

from enum import Enum
from functools import partial
from typing import List, Optional

from .errors import GenerationFailed, InvalidEdit
from .generation import GenerationTask
from .llm import LLM
from .models import (
    ASSISTANT_ROLE,
    USER_ROLE,
    ChatMessage,
    Role,
    Session,
    new_message_id,
)
from .notifier import Notifier
from .observability import get_logger
from .store import SessionStore

logger = get_logger(__name__)


class State(str, Enum):
    IDLE = "idle"
    AWAITING_REPLY = "awaiting_reply"
    EDITING = "editing"


class Engine:
    """Owns the in-memory copy of one open conversation.

    Every mutation is applied to the session here first, then written through
    the SessionStore, then announced through the Notifier. Operations that start
    a reply must be called while an asyncio event loop is running; the reply
    itself arrives later through the GenerationTask.

    Parameters
    ----------
    store : SessionStore
        Durable storage for the session.
    llm : LLM, optional
        The response generator. Ignored when ``generation`` is given.
    notifier : Notifier, optional
        Signalled after every write that changes the recent-sessions list.
    generation : GenerationTask, optional
        A ready generation slot, mainly for tests.
    """

    def __init__(
        self,
        store: SessionStore,
        llm: Optional[LLM] = None,
        notifier: Optional[Notifier] = None,
        generation: Optional[GenerationTask] = None,
    ) -> None:
        if generation is None:
            if llm is None:
                raise ValueError("Engine needs an llm or a generation task")
            generation = GenerationTask(llm)
        self.store = store
        self.generation = generation
        self.notifier = notifier if notifier is not None else Notifier()

        self.session = Session()
        self.last_error: Optional[GenerationFailed] = None
        self._editing_id: Optional[str] = None
        self._edit_buffer = ""
        self._pending_id: Optional[str] = None
        self._token: Optional[object] = None

    # --- Introspection ---
    @property
    def state(self) -> State:
        if self._editing_id is not None:
            return State.EDITING
        if self.generation.outstanding:
            return State.AWAITING_REPLY
        return State.IDLE

    @property
    def is_generating(self) -> bool:
        return self.generation.outstanding

    @property
    def messages(self) -> List[ChatMessage]:
        return self.session.messages

    @property
    def editing_id(self) -> Optional[str]:
        return self._editing_id

    @property
    def edit_buffer(self) -> str:
        return self._edit_buffer

    # --- Lifecycle ---
    def open(
        self, session_id: Optional[str] = None, seed: Optional[str] = None
    ) -> Session:
        """Loads an existing session, or starts a fresh one.

        A stored session is loaded verbatim and left idle. Otherwise a non-blank
        ``seed`` becomes the first user message of a new persisted session and
        its reply is requested immediately. With neither, the engine holds an
        empty session that is persisted on the first send.
        """
        self.close()
        self.last_error = None

        if session_id:
            existing = self.store.load(session_id)
            if existing is not None:
                self.session = existing
                logger.info(
                    "session_opened",
                    session_id=session_id,
                    messages=len(existing.messages),
                )
                return self.session
            logger.info("session_missing", session_id=session_id)

        self.session = Session()
        if seed is not None and seed.strip():
            first = self._new_message(USER_ROLE, seed)
            self.session = self.store.create([first])
            self.notifier.notify()
            self._start_generation(first)
        return self.session

    def close(self) -> None:
        """Drops any pending edit and in-flight reply."""
        self.cancel_edit()
        self.stop_generation()

    async def wait(self) -> None:
        """Waits for the in-flight reply, if any, to be appended or dropped."""
        await self.generation.wait()

    # --- Sending ---
    def send_user_message(self, text: str) -> Optional[ChatMessage]:
        """Appends a user message and requests a reply.

        Returns the new message, or None when the input was rejected: blank
        text, or a reply is still being generated. While a message is being
        edited, the text is applied as the edit instead.
        """
        if not text or not text.strip():
            logger.debug("send_rejected", reason="blank")
            return None
        if self._editing_id is not None:
            return self.apply_edit(text)
        if self.generation.outstanding:
            logger.debug("send_rejected", reason="awaiting_reply")
            return None

        message = self._new_message(USER_ROLE, text)
        self.session.messages.append(message)
        self._persist()
        self._start_generation(message)
        return message

    def retry(self) -> bool:
        """Requests a reply again for a trailing user message, e.g. after a failure."""
        if self.generation.outstanding or not self.session.messages:
            return False
        last = self.session.messages[-1]
        if last.role != USER_ROLE:
            return False
        self._start_generation(last)
        return True

    def stop_generation(self) -> bool:
        """Cancels the in-flight reply without appending or persisting anything."""
        if not self.generation.cancel():
            return False
        self._token = None
        self._pending_id = None
        logger.info("generation_stopped", session_id=self.session.id)
        return True

    # --- Editing ---
    def begin_edit(self, message_id: str) -> str:
        """Selects a user message for revision and returns its content.

        Raises
        ------
        InvalidEdit
            If the message does not exist, is not a user message, or is the
            message whose reply is still being generated.
        """
        position = self.session.index_of(message_id)
        if position == -1:
            raise InvalidEdit(message_id, "message not found")
        message = self.session.messages[position]
        if message.role != USER_ROLE:
            raise InvalidEdit(message_id, "only user messages can be edited")
        if self.generation.outstanding and message_id == self._pending_id:
            raise InvalidEdit(message_id, "its reply is still being generated")

        self._editing_id = message_id
        self._edit_buffer = message.content
        return message.content

    def cancel_edit(self) -> None:
        self._editing_id = None
        self._edit_buffer = ""

    def apply_edit(self, new_text: str) -> Optional[ChatMessage]:
        """Replaces the edited message's content and regenerates from it.

        The first assistant message after the edited one, and everything after
        that, is discarded. Blank text abandons the edit and leaves the session
        untouched.
        """
        message_id = self._editing_id
        self.cancel_edit()
        if message_id is None:
            return None
        if not new_text or not new_text.strip():
            logger.debug("edit_abandoned", message_id=message_id)
            return None

        position = self.session.index_of(message_id)
        if position == -1:
            logger.warning("edit_target_missing", message_id=message_id)
            return None

        messages = list(self.session.messages)
        edited = messages[position].model_copy(update={"content": new_text})
        messages[position] = edited
        cut = next(
            (
                index
                for index in range(position + 1, len(messages))
                if messages[index].role == ASSISTANT_ROLE
            ),
            None,
        )
        if cut is not None:
            del messages[cut:]
        self.session.messages = messages
        logger.info(
            "message_edited",
            session_id=self.session.id,
            message_id=message_id,
            remaining=len(messages),
        )

        self.generation.cancel()
        self._persist()
        self._start_generation(edited)
        return edited

    # --- Internals ---
    def _new_message(self, role: Role, content: str) -> ChatMessage:
        stamp = self.store.clock()
        if self.session.messages:
            stamp = max(stamp, self.session.messages[-1].timestamp)
        taken = {message.id for message in self.session.messages}
        message_id = new_message_id(stamp)
        while message_id in taken:
            message_id = new_message_id(stamp)
        return ChatMessage(role=role, content=content, id=message_id, timestamp=stamp)

    def _persist(self) -> None:
        now = self.store.clock()
        if self.session.id is None:
            self.session = self.store.create(self.session.messages)
        else:
            self.session.updated_at = now
            self.store.save(
                self.session.id, messages=self.session.messages, updated_at=now
            )
        self.notifier.notify()

    def _start_generation(self, prompt_message: ChatMessage) -> None:
        position = self.session.index_of(prompt_message.id)
        history = self.session.messages[:position] if position > 0 else []
        token = object()
        self._token = token
        self._pending_id = prompt_message.id
        self.last_error = None
        self.generation.start(
            prompt_message.content,
            history,
            on_reply=partial(self._on_reply, token),
            on_failure=partial(self._on_failure, token),
        )

    def _on_reply(self, token: object, content: str) -> None:
        if token is not self._token:
            logger.debug("stale_reply_dropped", session_id=self.session.id)
            return
        self._token = None
        self._pending_id = None
        reply = self._new_message(ASSISTANT_ROLE, content)
        self.session.messages.append(reply)
        self._persist()
        logger.info("reply_appended", session_id=self.session.id, message_id=reply.id)

    def _on_failure(self, token: object, failure: GenerationFailed) -> None:
        if token is not self._token:
            return
        self._token = None
        self._pending_id = None
        self.last_error = failure
        logger.warning(
            "reply_failed", session_id=self.session.id, error=str(failure)
        )
