"""
Message store backed by SQLAlchemy.
Table-style reads and writes for chat sessions and their messages.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import asc, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chat_relay.errors import StorageError
from chat_relay.models import ChatMessage, ChatSession, DEFAULT_TITLE

logger = logging.getLogger(__name__)


class ChatStore:
    """Persistence operations scoped to one database session."""

    def __init__(self, db: Session):
        self.db = db

    def _fail(self, action: str, error: Exception) -> StorageError:
        self.db.rollback()
        logger.error(f"Error {action}: {error}")
        return StorageError(f"Error {action}: {error}")

    # Sessions

    def get_session(self, chat_id: str, user_id: str) -> Optional[ChatSession]:
        try:
            return (
                self.db.query(ChatSession)
                .filter(ChatSession.id == chat_id, ChatSession.user_id == user_id)
                .first()
            )
        except SQLAlchemyError as e:
            raise self._fail("fetching chat session", e)

    def get_latest_session(self, user_id: str) -> Optional[ChatSession]:
        try:
            return (
                self.db.query(ChatSession)
                .filter(ChatSession.user_id == user_id)
                .order_by(desc(ChatSession.updated_at))
                .first()
            )
        except SQLAlchemyError as e:
            raise self._fail("fetching recent chat", e)

    def create_session(self, user_id: str, title: Optional[str] = None) -> ChatSession:
        try:
            session = ChatSession(user_id=user_id, title=title or DEFAULT_TITLE)
            self.db.add(session)
            self.db.commit()
            self.db.refresh(session)
            return session
        except SQLAlchemyError as e:
            raise self._fail("creating chat session", e)

    def touch_session(self, chat_id: str) -> Optional[ChatSession]:
        """Refresh updated_at. Never moves the timestamp backwards."""
        try:
            session = self.db.get(ChatSession, chat_id)
            if session is None:
                return None
            now = datetime.utcnow()
            if session.updated_at is None or now > session.updated_at:
                session.updated_at = now
            self.db.commit()
            return session
        except SQLAlchemyError as e:
            raise self._fail("updating chat session", e)

    def list_sessions(self, user_id: str) -> List[ChatSession]:
        try:
            return (
                self.db.query(ChatSession)
                .filter(ChatSession.user_id == user_id)
                .order_by(desc(ChatSession.updated_at))
                .all()
            )
        except SQLAlchemyError as e:
            raise self._fail("fetching chat sessions", e)

    def delete_session(self, chat_id: str) -> None:
        """Delete a session's messages, then the session row itself."""
        try:
            self.db.query(ChatMessage).filter(ChatMessage.chat_id == chat_id).delete(
                synchronize_session=False
            )
            self.db.commit()
        except SQLAlchemyError as e:
            # Partial cleanup is tolerated; the session delete below still runs
            self._fail("deleting chat messages", e)

        try:
            self.db.query(ChatSession).filter(ChatSession.id == chat_id).delete(
                synchronize_session=False
            )
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("deleting chat session", e)

    # Messages

    def save_message(self, chat_id: str, role: str, content: str) -> ChatMessage:
        try:
            message = ChatMessage(chat_id=chat_id, role=role, content=content)
            self.db.add(message)
            self.db.commit()
            self.db.refresh(message)
            return message
        except SQLAlchemyError as e:
            raise self._fail("saving message", e)

    def get_recent_messages(
        self, chat_id: str, limit: int = 10, exclude_id: Optional[int] = None
    ) -> List[ChatMessage]:
        """Return up to `limit` most recent messages, oldest first."""
        try:
            query = self.db.query(ChatMessage).filter(ChatMessage.chat_id == chat_id)
            if exclude_id is not None:
                query = query.filter(ChatMessage.id != exclude_id)
            messages = (
                query.order_by(desc(ChatMessage.created_at), desc(ChatMessage.id))
                .limit(limit)
                .all()
            )
            return list(reversed(messages))
        except SQLAlchemyError as e:
            raise self._fail("fetching chat history", e)

    def list_messages(self, chat_id: str) -> List[ChatMessage]:
        try:
            return (
                self.db.query(ChatMessage)
                .filter(ChatMessage.chat_id == chat_id)
                .order_by(asc(ChatMessage.created_at), asc(ChatMessage.id))
                .all()
            )
        except SQLAlchemyError as e:
            raise self._fail("fetching chat messages", e)
