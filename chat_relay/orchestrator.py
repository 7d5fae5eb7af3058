"""
Chat turn orchestration.
Sequences session resolution, persistence, prompt building and generation.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from chat_relay.ai_service import GeminiClient
from chat_relay.config import SessionReusePolicy, Settings
from chat_relay.context import build_context_prompt, derive_title
from chat_relay.errors import SessionUnavailableError, StorageError, ValidationError
from chat_relay.models import ChatMessage, ChatSession, ROLE_BOT, ROLE_USER
from chat_relay.store import ChatStore

logger = logging.getLogger(__name__)


@dataclass
class WriteResult:
    """Outcome of a best-effort write that the turn does not depend on."""

    ok: bool
    value: Any = None
    error: Optional[str] = None


@dataclass
class ChatTurnResult:
    reply: str
    chat_id: str
    context_used: bool

    def to_dict(self):
        return {
            'reply': self.reply,
            'chatId': self.chat_id,
            'contextUsed': self.context_used,
        }


def attempt(action: str, fn: Callable[[], Any]) -> WriteResult:
    """Run a store write, converting a StorageError into a failed WriteResult."""
    try:
        return WriteResult(ok=True, value=fn())
    except StorageError as e:
        logger.warning(f"Best-effort write failed ({action}): {e}")
        return WriteResult(ok=False, error=str(e))


class ChatOrchestrator:
    """Handles one chat turn and the session/message queries."""

    def __init__(self, store: ChatStore, generator: GeminiClient, settings: Settings):
        self.store = store
        self.generator = generator
        self.settings = settings

    def resolve_session(
        self, user_id: str, message: str, chat_id: Optional[str] = None,
        title: Optional[str] = None
    ) -> ChatSession:
        """Find the session for this turn, creating one if needed."""
        if chat_id:
            session = self.store.get_session(chat_id, user_id)
            if session is not None:
                return session
            logger.info(f"Chat {chat_id} not found for user {user_id}, resolving another")

        if not title and self.settings.session_reuse_policy == SessionReusePolicy.REUSE_LATEST:
            session = self.store.get_latest_session(user_id)
            if session is not None:
                return session

        return self.store.create_session(user_id, title or derive_title(message))

    def handle_chat_turn(
        self, user_id: Optional[str], message: Optional[str],
        chat_id: Optional[str] = None, title: Optional[str] = None
    ) -> ChatTurnResult:
        """
        Process one user message and return the assistant reply.

        Raises:
            ValidationError: userId or message missing
            StorageError: the session could not be resolved or created
            GenerationError: the generation backend failed
        """
        if not user_id or not message or not message.strip():
            raise ValidationError()

        try:
            session = self.resolve_session(user_id, message, chat_id, title)
        except StorageError as e:
            raise SessionUnavailableError(e.message) from e

        saved = attempt("save user message",
                        lambda: self.store.save_message(session.id, ROLE_USER, message))
        exclude_id = saved.value.id if saved.ok else None

        chat_history: List[ChatMessage] = self.store.get_recent_messages(
            session.id, limit=self.settings.context_window, exclude_id=exclude_id
        )

        prompt = build_context_prompt(message, chat_history, self.settings.context_window)
        reply = self.generator.generate(prompt)

        attempt("save bot message",
                lambda: self.store.save_message(session.id, ROLE_BOT, reply))
        attempt("touch chat session", lambda: self.store.touch_session(session.id))

        return ChatTurnResult(
            reply=reply,
            chat_id=session.id,
            context_used=len(chat_history) > 0,
        )

    def list_sessions(self, user_id: str) -> List[ChatSession]:
        return self.store.list_sessions(user_id)

    def list_messages(self, chat_id: str) -> List[ChatMessage]:
        return self.store.list_messages(chat_id)

    def delete_session(self, chat_id: str) -> None:
        self.store.delete_session(chat_id)
