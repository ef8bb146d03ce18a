"""Chat session controller — runs one chat turn end-to-end.

One controller owns one session. It is constructed per active chat with its
collaborators passed in; nothing here is module-level state.

Turn flow for send_message():
  1. Reject blank text, a missing session, or a send already in flight.
  2. Persist the user message. If that fails the turn is aborted.
  3. Build the completion request: prior transcript + new message, with the
     character, world, pinned memories, RPG state and safe-mode flag.
  4. Stream the reply. A placeholder assistant message (id "streaming") is
     appended and updated in place with each delta.
  5. Persist the final assistant message and swap it in for the placeholder.
  6. In RPG mode, apply command tokens from the reply, persist the new state
     if it changed, and surface each event as a notice.

States: IDLE -> SENDING -> STREAMING -> IDLE, or -> FAILED -> IDLE on any
error. Failures remove the placeholder and surface exactly one error notice.
There is no automatic retry.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import random
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from rpg_chat import dice, rpg
from rpg_chat.llm import LLM, TransportError
from rpg_chat.models import (
    Character,
    CharacterProfile,
    ChatRequest,
    ChatSession,
    ChatTurn,
    DiceRolled,
    HpChanged,
    ItemGained,
    MemoryEntry,
    Message,
    RPGState,
    RpgEvent,
    World,
    WorldProfile,
)
from rpg_chat.prompts import PromptError
from rpg_chat.storage import PersistenceError, Storage
from rpg_chat.streaming import StreamAssembler

logger = logging.getLogger(__name__)

PLACEHOLDER_ID = "streaming"


class ChatState(str, enum.Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    FAILED = "failed"


@dataclass
class Notice:
    """A user-facing notification, shown by clients as a toast."""

    level: Literal["info", "success", "error"]
    text: str
    event: RpgEvent | None = None


def notice_for(event: RpgEvent) -> Notice:
    if isinstance(event, HpChanged):
        level = "success" if event.delta > 0 else "error" if event.delta < 0 else "info"
    elif isinstance(event, ItemGained):
        level = "success"
    else:
        level = "info"
    return Notice(level=level, text=event.describe(), event=event)


class ChatListener:
    """Receives controller output. Override what you need; the rest are no-ops."""

    def message_added(self, message: Message) -> None:
        pass

    def message_updated(self, message: Message) -> None:
        pass

    def message_replaced(self, old_id: str, message: Message) -> None:
        pass

    def message_removed(self, message_id: str) -> None:
        pass

    def state_changed(self, state: ChatState) -> None:
        pass

    def notify(self, notice: Notice) -> None:
        pass


def start_session(
    storage: Storage,
    character: Character,
    user_id: str,
    title: str | None = None,
) -> ChatSession:
    """Create and persist a new session for a character.

    RPG mode is fixed here from the character's toggle. With RPG mode on the
    state starts from the character's base stats; otherwise it is an unused
    default.
    """
    if title is None:
        title = f"Chat {len(storage.list_sessions(character.id)) + 1}"
    state = rpg.new_session_state(character) if character.is_rpg_enabled else RPGState()
    session = storage.create_session(ChatSession(
        user_id=user_id,
        character_id=character.id,
        title=title,
        is_rpg_mode=character.is_rpg_enabled,
        rpg_state=state,
    ))
    logger.info("session created id=%s character=%s rpg=%s",
                session.id, character.id, session.is_rpg_mode)
    return session


class ChatSessionController:
    def __init__(
        self,
        storage: Storage,
        llm: LLM,
        session: ChatSession | None,
        character: Character,
        *,
        world: World | None = None,
        memories: Iterable[MemoryEntry] = (),
        messages: Iterable[Message] = (),
        safe_mode: bool = True,
        history_limit: int = 0,
        listener: ChatListener | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._storage = storage
        self._llm = llm
        self.session = session
        self.character = character
        self.world = world
        self.memories = list(memories)
        self._messages = list(messages)
        self.safe_mode = safe_mode
        self.history_limit = history_limit
        self.listener = listener or ChatListener()
        self._rng = rng
        self._state = ChatState.IDLE

    @classmethod
    def open(
        cls, storage: Storage, llm: LLM, session_id: str, **kwargs
    ) -> ChatSessionController | None:
        """Load a session with its character, world, memories and transcript."""
        session = storage.get_session(session_id)
        if session is None:
            return None
        character = storage.get_character(session.character_id)
        if character is None:
            return None
        world = storage.get_world(character.world_id) if character.world_id else None
        return cls(
            storage, llm, session, character,
            world=world,
            memories=storage.list_memories(character.id, character.world_id),
            messages=storage.get_messages(session.id),
            **kwargs,
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> ChatState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state in (ChatState.SENDING, ChatState.STREAMING)

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def _set_state(self, state: ChatState) -> None:
        self._state = state
        self.listener.state_changed(state)

    def _fail(self, text: str) -> None:
        logger.warning("chat turn failed session=%s: %s",
                       self.session.id if self.session else None, text)
        self._set_state(ChatState.FAILED)
        self.listener.notify(Notice(level="error", text=text))
        self._set_state(ChatState.IDLE)

    def _discard_placeholder(self) -> None:
        before = len(self._messages)
        self._messages = [m for m in self._messages if m.id != PLACEHOLDER_ID]
        if len(self._messages) != before:
            self.listener.message_removed(PLACEHOLDER_ID)

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def build_request(self, prior: list[Message], text: str) -> ChatRequest:
        """Completion request for a new user message after ``prior``."""
        if self.history_limit > 0:
            prior = prior[-self.history_limit:]
        turns = [ChatTurn(role=m.role, content=m.content) for m in prior]
        turns.append(ChatTurn(role="user", content=text))
        return ChatRequest(
            messages=turns,
            character=CharacterProfile.from_character(self.character),
            world=WorldProfile.from_world(self.world) if self.world else None,
            memories=[m.content for m in self.memories],
            is_rpg_mode=self.session.is_rpg_mode,
            rpg_state=self.session.rpg_state,
            safe_mode=self.safe_mode,
        )

    async def send_message(self, text: str) -> Message | None:
        """Send a user message and stream the reply.

        Returns the persisted assistant message, or None when the send was
        rejected or failed. Failures are reported through the listener.
        """
        text = text.strip()
        if not text or self.session is None:
            logger.debug("send rejected: blank text or no active session")
            return None
        if self.busy:
            logger.debug("send rejected: session %s is %s", self.session.id, self._state.value)
            return None

        self._set_state(ChatState.SENDING)
        prior = list(self._messages)
        try:
            user_msg = self._storage.append_message(
                Message(session_id=self.session.id, role="user", content=text)
            )
        except PersistenceError:
            self._fail("Failed to send message")
            return None
        self._messages.append(user_msg)
        self.listener.message_added(user_msg)

        try:
            request = self.build_request(prior, text)
            self._set_state(ChatState.STREAMING)
            placeholder = Message(
                id=PLACEHOLDER_ID, session_id=self.session.id, role="assistant", content="",
            )
            self._messages.append(placeholder)
            self.listener.message_added(placeholder)

            assembler = StreamAssembler()
            async for so_far in assembler.iter_text(self._llm.stream(request)):
                placeholder.content = so_far
                self.listener.message_updated(placeholder)

            saved = self._storage.append_message(Message(
                session_id=self.session.id, role="assistant", content=assembler.text,
            ))
        except (TransportError, PersistenceError, PromptError) as e:
            self._discard_placeholder()
            self._fail(str(e) or "Failed to get response")
            return None
        except asyncio.CancelledError:
            logger.info("chat turn cancelled session=%s", self.session.id)
            self._discard_placeholder()
            self._set_state(ChatState.IDLE)
            raise
        except Exception:
            logger.exception("unexpected error in chat turn session=%s", self.session.id)
            self._discard_placeholder()
            self._fail("Failed to get response")
            return None

        self._messages = [saved if m.id == PLACEHOLDER_ID else m for m in self._messages]
        self.listener.message_replaced(PLACEHOLDER_ID, saved)

        if self.session.is_rpg_mode:
            if not self._apply_rpg(saved.content):
                return saved

        self._set_state(ChatState.IDLE)
        return saved

    def _apply_rpg(self, content: str) -> bool:
        """Apply command tokens from a reply. Returns False if saving failed."""
        result = rpg.apply_commands(self.session.rpg_state, content, self._rng)
        if result.changed:
            try:
                self.session = self._storage.update_session(
                    self.session.id, {"rpg_state": result.new_state.model_dump()}
                )
            except PersistenceError:
                self._fail("Failed to save RPG state")
                return False
            logger.info("rpg state saved session=%s hp=%d/%d items=%d",
                        self.session.id, self.session.rpg_state.hp,
                        self.session.rpg_state.max_hp, len(self.session.rpg_state.inventory))
        for event in result.events:
            self.listener.notify(notice_for(event))
        return True

    # ------------------------------------------------------------------
    # Manual actions
    # ------------------------------------------------------------------

    async def roll_dice(self, notation: str) -> Message | None:
        """Roll dice on the player's behalf and post the result as a system message."""
        if self.session is None or self.busy:
            return None
        result = dice.roll(notation, self._rng)
        try:
            saved = self._storage.append_message(Message(
                session_id=self.session.id,
                role="system",
                content=dice.format_roll(result),
                is_dice_roll=True,
                dice_result=result,
            ))
        except PersistenceError:
            self._fail("Failed to save dice roll")
            return None
        self._messages.append(saved)
        self.listener.message_added(saved)
        self.listener.notify(Notice(
            level="info",
            text=f"🎲 Rolled {result.dice}: {result.total}",
            event=DiceRolled(result=result),
        ))
        return saved

    def add_memory(self, text: str) -> MemoryEntry | None:
        """Pin a memory to this character (and its world)."""
        text = text.strip()
        if not text:
            return None
        try:
            memory = self._storage.create_memory(MemoryEntry(
                user_id=self.character.user_id,
                character_id=self.character.id,
                world_id=self.character.world_id,
                content=text,
            ))
        except PersistenceError:
            self._fail("Failed to save memory")
            return None
        self.memories.insert(0, memory)
        self.listener.notify(Notice(level="success", text="Memory saved!"))
        return memory
