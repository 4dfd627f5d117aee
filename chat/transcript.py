"""
Client side of the chat relay.

A ``Transcript`` holds one conversation and drives at most one exchange at a
time: it posts the conversation to the relay endpoint, reads the streamed
reply chunk by chunk and keeps the trailing assistant message up to date.

Committed messages are immutable snapshots in a tuple; the in-flight
assistant reply lives in a separate draft cell that is replaced (never
mutated) on every chunk, so observers reading ``messages`` mid-stream always
see a consistent list.
"""

import codecs
import logging
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, List, Optional, Tuple

import httpx

log = logging.getLogger("chatrelay")

FALLBACK_REPLY = "I ran into a problem generating that response. Please try again."
UNEXPECTED_ERROR = "Unexpected error occurred."
GREETING = (
    "Hi there! I’m Agentic Chat, your AI assistant. Ask me anything or "
    "describe what you need and I’ll help."
)


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Status(str, Enum):
    NONE = "none"
    PENDING = "pending"
    ERROR = "error"


class ExchangeState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    STREAMING = "streaming"
    COMPLETE = "complete"
    FAILED = "failed"


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    content: str
    status: Status = Status.NONE
    id: str = field(default_factory=_new_id)

    def as_turn(self) -> dict:
        return {"role": self.role.value, "content": self.content}


INITIAL_MESSAGES: Tuple[ChatMessage, ...] = (ChatMessage(Role.ASSISTANT, GREETING),)


class ExchangeError(Exception):
    """The relay answered, but not with a readable stream."""


class Transcript:
    def __init__(self, url: str, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self._client = client
        self._log: Tuple[ChatMessage, ...] = INITIAL_MESSAGES
        self._draft: Optional[ChatMessage] = None
        self._epoch = 0
        self._observers: List[Callable[["Transcript"], None]] = []
        self.input = ""
        self.error: Optional[str] = None
        self.state = ExchangeState.IDLE
        self.in_flight = False

    # ---------- read side ----------
    @property
    def messages(self) -> Tuple[ChatMessage, ...]:
        if self._draft is None:
            return self._log
        return self._log + (self._draft,)

    def subscribe(self, callback: Callable[["Transcript"], None]) -> Callable[[], None]:
        """Call ``callback(transcript)`` after every change; returns an unsubscribe function."""
        self._observers.append(callback)

        def unsubscribe():
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _notify(self):
        for callback in list(self._observers):
            callback(self)

    # ---------- write side ----------
    def set_input(self, text: str) -> None:
        self.input = text
        self._notify()

    def reset(self) -> None:
        """Back to the greeting. An exchange still in flight is detached and its result dropped."""
        self._epoch += 1
        self._log = INITIAL_MESSAGES
        self._draft = None
        self.error = None
        self.input = ""
        self.state = ExchangeState.IDLE
        self._notify()

    async def submit(self, text: Optional[str] = None) -> None:
        trimmed = (self.input if text is None else text).strip()
        if not trimmed or self.in_flight:
            return

        user_message = ChatMessage(Role.USER, trimmed)
        turns = [m.as_turn() for m in self._log] + [user_message.as_turn()]

        self._log = self._log + (user_message,)
        self._draft = ChatMessage(Role.ASSISTANT, "", Status.PENDING)
        self.input = ""
        self.error = None
        self.in_flight = True
        self.state = ExchangeState.SUBMITTING
        epoch = self._epoch

        try:
            # an observer error fails the exchange like any other error
            self._notify()
            await self._exchange(turns, epoch)
        except Exception as exc:
            if epoch == self._epoch:
                self._fail(str(exc) or UNEXPECTED_ERROR)
            else:
                log.info("Discarding failed exchange after reset: %s", exc)
        finally:
            self.in_flight = False
            self._notify()

    async def _exchange(self, turns, epoch) -> None:
        if self._client is not None:
            await self._stream_reply(self._client, turns, epoch)
            return
        # reads wait as long as the relay keeps the connection open
        async with httpx.AsyncClient(timeout=None) as client:
            await self._stream_reply(client, turns, epoch)

    async def _stream_reply(self, client: httpx.AsyncClient, turns, epoch) -> None:
        async with client.stream("POST", self.url, json={"messages": turns}) as response:
            if not response.is_success:
                raise ExchangeError(
                    f"Request failed with status {response.status_code}. Please try again."
                )
            if epoch != self._epoch:
                return
            self.state = ExchangeState.STREAMING

            decoder = codecs.getincrementaldecoder("utf-8")()
            accumulated = ""
            async for chunk in response.aiter_bytes():
                if epoch != self._epoch:
                    # detached by reset: stop reading, leaving the block closes the response
                    return
                accumulated += decoder.decode(chunk)
                self._swap_draft(content=accumulated, status=Status.PENDING)

        if epoch != self._epoch:
            return
        final_output = (accumulated + decoder.decode(b"", final=True)).strip()
        self._commit_draft(content=final_output, status=Status.NONE)
        self.state = ExchangeState.COMPLETE

    def _swap_draft(self, **changes) -> None:
        self._draft = replace(self._draft, **changes)
        self._notify()

    def _commit_draft(self, **changes) -> None:
        self._log = self._log + (replace(self._draft, **changes),)
        self._draft = None

    def _fail(self, description: str) -> None:
        self.error = description
        self._commit_draft(
            status=Status.ERROR,
            content=self._draft.content or FALLBACK_REPLY,
        )
        self.state = ExchangeState.FAILED
