"""
Defines the core Pydantic data models for the engine.

These models are the data contract between the pillars. They serialize to the
persisted record shape (camelCase keys, epoch-millisecond timestamps) and accept
both snake_case and camelCase on input.
"""

import random
import string
import time
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# --- Constants ---
USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"
Role = Literal["user", "assistant"]

MESSAGE_ID_PREFIX = "msg"
SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
SUFFIX_LENGTH = 7
TITLE_LENGTH = 40


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def random_suffix(length: int = SUFFIX_LENGTH) -> str:
    return "".join(random.choices(SUFFIX_ALPHABET, k=length))


def new_message_id(stamp: Optional[int] = None) -> str:
    """Build a message id of the form ``msg-<epoch ms>-<random>``."""
    stamp = now_ms() if stamp is None else stamp
    return f"{MESSAGE_ID_PREFIX}-{stamp}-{random_suffix()}"


# --- Models ---
class ChatMessage(BaseModel):
    """Represents a single message within a session."""

    role: Role
    content: str
    id: str = Field(default_factory=new_message_id)
    timestamp: int = Field(default_factory=now_ms)


class Session(BaseModel):
    """Represents a complete conversation session.

    The id is the storage key and is not part of the persisted value. It is
    ``None`` for a fresh conversation that has not been persisted yet.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    messages: List[ChatMessage] = Field(default_factory=list)
    created_at: int = Field(default_factory=now_ms, alias="createdAt")
    updated_at: int = Field(default_factory=now_ms, alias="updatedAt")

    def to_record(self) -> dict:
        """Serialize to the persisted record shape (without the id)."""
        return self.model_dump(by_alias=True, exclude={"id"})

    def index_of(self, message_id: str) -> int:
        """Position of ``message_id`` in the session, or -1."""
        for position, message in enumerate(self.messages):
            if message.id == message_id:
                return position
        return -1


class RecentSession(BaseModel):
    """An entry of the recent-sessions index, derived from a stored session."""

    id: str
    last_message: str = ""
    timestamp_key: int
    title: str = ""


def make_title(content: str, length: int = TITLE_LENGTH) -> str:
    return content[:length] + ("..." if len(content) > length else "")
