"""
Database models for the chat relay.
Defines ChatSession and ChatMessage entities.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import declarative_base

Base = declarative_base()

ROLE_USER = "user"
ROLE_BOT = "bot"
DEFAULT_TITLE = "New Chat"
TITLE_COLUMN_LENGTH = 200


def _new_id():
    return str(uuid.uuid4())


class ChatSession(Base):
    """Represents a conversation owned by one user."""
    __tablename__ = 'chat_sessions'

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(255), nullable=False, index=True)
    title = Column(String(TITLE_COLUMN_LENGTH), default=DEFAULT_TITLE, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'title': self.title,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }


class ChatMessage(Base):
    """Represents a single message in a chat session."""
    __tablename__ = 'chat_messages'

    # Autoincrement id breaks created_at ties in insertion order
    id = Column(Integer, primary_key=True, autoincrement=True)
    chat_id = Column(String(36), ForeignKey('chat_sessions.id'), nullable=False, index=True)
    role = Column(String(20), nullable=False)  # 'user' or 'bot'
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'chat_id': self.chat_id,
            'role': self.role,
            'content': self.content,
            'created_at': self.created_at.isoformat(),
        }
